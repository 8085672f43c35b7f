"""Date normalization and duration resolution for raw event listings."""
import logging
import math
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

from processor.exceptions import MalformedDate

logger = logging.getLogger(__name__)

# English and Dutch month names and abbreviations
MONTHS = {
    'jan': 1, 'january': 1, 'januari': 1,
    'feb': 2, 'february': 2, 'februari': 2,
    'mar': 3, 'mrt': 3, 'march': 3, 'maart': 3,
    'apr': 4, 'april': 4,
    'may': 5, 'mei': 5,
    'jun': 6, 'june': 6, 'juni': 6,
    'jul': 7, 'july': 7, 'juli': 7,
    'aug': 8, 'august': 8, 'augustus': 8,
    'sep': 9, 'sept': 9, 'september': 9,
    'oct': 10, 'okt': 10, 'october': 10, 'oktober': 10,
    'nov': 11, 'november': 11,
    'dec': 12, 'december': 12,
}

WEEKDAYS = {
    'ma', 'di', 'wo', 'do', 'vr', 'za', 'zo',
    'maandag', 'dinsdag', 'woensdag', 'donderdag', 'vrijdag', 'zaterdag', 'zondag',
    'mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun',
    'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday',
}

_ISO_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_DMY_DASH_RE = re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{4})$')
_DMY_SLASH_RE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_SHORT_RE = re.compile(
    r'^(?:(?P<weekday>[^\W\d_]+)\.?,?\s+)?'
    r'(?P<day>\d{1,2})\s+(?P<month>[^\W\d_]+)\.?'
    r'(?:\s+(?P<year>\d{4}))?'
    r'(?:,?\s+(?:om\s+)?\d{1,2}[:.]\d{2}(?:\s*uur)?)?$'
)
_YEAR_FIRST_RE = re.compile(r'^\d{4}[-/.]')
_DAY_COUNT_RE = re.compile(r'^(\d+)(?:\s+([^\W\d_]+))?$')


def _build(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_short_date(date_str: str, today: Optional[date] = None) -> Optional[str]:
    """
    Parse "<day> <month-name>" with an optional explicit year.

    A leading weekday ("za 22 nov") and a trailing time ("22 mei 2025
    20:00") are ignored. Without a year, the event is assumed to be in the
    next occurrence of that month: the current year, or next year when the
    month is already behind us.

    Args:
        date_str: Text such as "22 nov", "3 Maart" or "1 oktober 2026"
        today: Reference date for year inference (default: today)

    Returns:
        ISO date string, or None if the text is not in this form
    """
    match = _SHORT_RE.match(date_str.strip().lower())
    if not match:
        return None

    weekday = match.group('weekday')
    if weekday and weekday not in WEEKDAYS:
        return None

    month = MONTHS.get(match.group('month'))
    if month is None:
        return None

    day = int(match.group('day'))
    if match.group('year'):
        year = int(match.group('year'))
    else:
        today = today or date.today()
        year = today.year + 1 if month < today.month else today.year

    return _build(year, month, day)


def normalize_date(date_str: Optional[str], today: Optional[date] = None) -> str:
    """
    Normalize free-form date text to ISO 8601 (YYYY-MM-DD).

    Tries, in order: YYYY-MM-DD, DD-MM-YYYY, DD/MM/YYYY, "<day> <month>",
    then the general date-text parser.

    Args:
        date_str: Date text as scraped
        today: Reference date for year inference

    Returns:
        ISO 8601 date string

    Raises:
        MalformedDate: If no strategy yields a valid calendar date
    """
    text = (date_str or '').strip()
    if not text:
        raise MalformedDate(date_str or '')

    match = _ISO_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        result = _build(year, month, day)
        if result:
            return result
        raise MalformedDate(text)

    for pattern in (_DMY_DASH_RE, _DMY_SLASH_RE):
        match = pattern.match(text)
        if match:
            day, month, year = (int(part) for part in match.groups())
            result = _build(year, month, day)
            if result:
                return result
            raise MalformedDate(text)

    result = parse_short_date(text, today=today)
    if result:
        return result

    today = today or date.today()
    year_first = bool(_YEAR_FIRST_RE.match(text))
    try:
        # Local calendar date of the listing; any UTC offset is ignored
        parsed = date_parser.parse(
            text,
            dayfirst=not year_first,
            yearfirst=year_first,
            default=datetime(today.year, today.month, today.day),
        )
    except (ValueError, OverflowError) as e:
        logger.debug(f"General date parser rejected {text!r}: {e}")
        raise MalformedDate(text) from e

    return parsed.date().isoformat()


def calculate_duration(
    start_date: str,
    duration: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None
) -> int:
    """
    Resolve an event's duration in whole days.

    Args:
        start_date: Normalized ISO start date
        duration: Day count ("3", "3 dagen") or an end date as text
        end_date: Explicit end date text, takes precedence over duration

    Returns:
        Duration in days, at least 1
    """
    start = date.fromisoformat(start_date)

    if end_date and end_date.strip():
        end = _try_normalize(end_date, today)
        if end is not None:
            return _days_between(start, end)

    if not duration or not str(duration).strip():
        return 1

    text = str(duration).strip()
    match = _DAY_COUNT_RE.match(text)
    # "22 nov" is an end date, not a day count
    if match and (match.group(2) or '').lower() not in MONTHS:
        return max(int(match.group(1)), 1)

    end = _try_normalize(text, today)
    if end is not None:
        return _days_between(start, end)

    logger.debug(f"Could not resolve duration {duration!r}, defaulting to 1")
    return 1


def _try_normalize(text: str, today: Optional[date]) -> Optional[date]:
    try:
        return date.fromisoformat(normalize_date(text, today=today))
    except MalformedDate:
        return None


def _days_between(start: date, end: date) -> int:
    seconds = abs((end - start).total_seconds())
    return max(math.ceil(seconds / 86400), 1)

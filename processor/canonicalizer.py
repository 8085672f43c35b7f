"""Canonicalizer turning raw listings into fingerprinted events."""
import hashlib
import logging
from datetime import date
from typing import List, Optional, Tuple

from processor.dates import calculate_duration, normalize_date
from processor.exceptions import CanonicalizationError, InvalidCandidate
from processor.models import CanonicalEvent, RawCandidate
from processor.text import UNKNOWN, extract_domain, first_non_empty, normalize_text

logger = logging.getLogger(__name__)


class EventCanonicalizer:
    """Validates and normalizes raw candidates into canonical events."""

    FINGERPRINT_LENGTH = 16
    FINGERPRINT_DELIMITER = '|'

    def __init__(self, today: Optional[date] = None):
        """
        Initialize the canonicalizer.

        Args:
            today: Fixed reference date for year inference (default: the
                current date at call time)
        """
        self.today = today

    def canonicalize_batch(
        self,
        raw_candidates: List[RawCandidate],
        source_url_hint: Optional[str] = None
    ) -> Tuple[List[CanonicalEvent], List[str]]:
        """
        Canonicalize a batch, dropping candidates that cannot be normalized.

        Args:
            raw_candidates: Candidates from one or more adapters
            source_url_hint: URL used to derive a source label when missing

        Returns:
            Tuple of (canonical events in input order, failure messages)
        """
        events = []
        failures = []

        for raw in raw_candidates:
            try:
                events.append(self.canonicalize(raw, source_url_hint))
            except CanonicalizationError as e:
                message = f"Dropped candidate '{raw.name}' from {raw.source or source_url_hint}: {e}"
                logger.warning(message)
                failures.append(message)

        logger.info(
            f"Canonicalized {len(events)} events out of "
            f"{len(raw_candidates)} candidates"
        )
        return events, failures

    def canonicalize(
        self,
        raw: RawCandidate,
        source_url_hint: Optional[str] = None
    ) -> CanonicalEvent:
        """
        Turn one raw candidate into a canonical event.

        Args:
            raw: Raw candidate from a source adapter
            source_url_hint: URL used to derive a source label when missing

        Returns:
            CanonicalEvent with its fingerprint

        Raises:
            InvalidCandidate: If the name is empty after normalization
            MalformedDate: If the date cannot be normalized
        """
        name = normalize_text(raw.name)
        if not name:
            raise InvalidCandidate("Candidate has no name")

        event_date = normalize_date(normalize_text(raw.date), today=self.today)
        location = first_non_empty(raw.location, raw.venue, raw.city)
        organizer = first_non_empty(raw.organizer)
        contact = first_non_empty(raw.contact)
        source = self._resolve_source(raw.source, source_url_hint)
        duration_days = calculate_duration(
            event_date,
            duration=normalize_text(raw.duration),
            end_date=normalize_text(raw.end_date),
            today=self.today
        )

        return CanonicalEvent(
            name=name,
            date=event_date,
            location=location,
            organizer=organizer,
            contact=contact,
            source=source,
            duration_days=duration_days,
            fingerprint=self.generate_fingerprint(name, event_date, location)
        )

    def _resolve_source(self, label: Optional[str], source_url_hint: Optional[str]) -> str:
        source = normalize_text(label)
        if source:
            return source
        return extract_domain(source_url_hint) or UNKNOWN

    @classmethod
    def generate_fingerprint(cls, name: str, event_date: str, location: str) -> str:
        """
        Generate the identity key of an event from name + date + location.

        Organizer, contact, source and duration do not contribute, so
        that one event listed by several sources yields one fingerprint.

        Args:
            name: Event name
            event_date: ISO 8601 event date
            location: Event location

        Returns:
            First 16 hex characters of the SHA256 digest
        """
        composite = cls.FINGERPRINT_DELIMITER.join(
            part.strip().lower() for part in (name, event_date, location)
        )
        digest = hashlib.sha256(composite.encode('utf-8')).hexdigest()
        return digest[:cls.FINGERPRINT_LENGTH]

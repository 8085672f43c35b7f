"""Unit tests for date normalization and duration resolution."""
from datetime import date

import pytest

from processor.dates import calculate_duration, normalize_date, parse_short_date
from processor.exceptions import MalformedDate


class TestNormalizeDate:
    """Test cases for normalize_date."""

    def test_iso_format(self):
        assert normalize_date("2025-12-01") == "2025-12-01"

    def test_day_month_year_with_dashes(self):
        assert normalize_date("01-12-2025") == "2025-12-01"

    def test_day_month_year_with_slashes(self):
        assert normalize_date("1/12/2025") == "2025-12-01"

    def test_surrounding_whitespace_is_ignored(self):
        assert normalize_date("  2025-12-01 \n") == "2025-12-01"

    def test_short_form_month_already_passed_rolls_to_next_year(self):
        """Test '22 nov' parsed in December lands in the following year."""
        assert normalize_date("22 nov", today=date(2025, 12, 15)) == "2026-11-22"

    def test_short_form_month_ahead_uses_current_year(self):
        """Test '22 nov' parsed before November stays in the current year."""
        assert normalize_date("22 nov", today=date(2025, 3, 1)) == "2025-11-22"

    def test_short_form_current_month_uses_current_year(self):
        assert normalize_date("22 nov", today=date(2025, 11, 30)) == "2025-11-22"

    def test_short_form_dutch_month_name(self):
        assert normalize_date("3 maart", today=date(2025, 6, 1)) == "2026-03-03"

    def test_short_form_is_case_insensitive_and_allows_trailing_dot(self):
        assert normalize_date("15 OKT.", today=date(2025, 1, 1)) == "2025-10-15"

    def test_short_form_with_explicit_year(self):
        assert normalize_date("1 oktober 2027", today=date(2025, 12, 1)) == "2027-10-01"

    def test_general_parser_fallback(self):
        """Test formats outside the fixed list go through the general parser."""
        assert normalize_date("Dec 5, 2025") == "2025-12-05"

    @pytest.mark.parametrize("text", [
        "2025-12-01 20:00",
        "2025-12-01T20:00:00+01:00",
        "2025/12/01",
        "2025.12.01",
    ])
    def test_year_first_text_keeps_month_before_day(self, text):
        """Test year-first dates with a time or other separators are not day-first."""
        assert normalize_date(text, today=date(2025, 1, 1)) == "2025-12-01"

    def test_day_first_text_with_time(self):
        assert normalize_date("01.12.2025 20:00", today=date(2025, 1, 1)) == "2025-12-01"

    def test_short_form_with_leading_weekday(self):
        assert normalize_date("za 22 nov", today=date(2025, 10, 1)) == "2025-11-22"

    def test_short_form_with_trailing_time(self):
        assert normalize_date("22 mei 2025 20:00", today=date(2025, 1, 1)) == "2025-05-22"

    def test_short_form_with_weekday_and_time(self):
        assert normalize_date("Vrijdag 5 december om 21.30 uur", today=date(2025, 10, 1)) == "2025-12-05"

    @pytest.mark.parametrize("text", ["", "   ", "binnenkort", "2025-02-30", "31-02-2025", "31 feb"])
    def test_unparseable_dates_raise(self, text):
        """Test that undatable text raises MalformedDate."""
        with pytest.raises(MalformedDate):
            normalize_date(text, today=date(2025, 1, 1))

    def test_none_raises(self):
        with pytest.raises(MalformedDate):
            normalize_date(None)


class TestParseShortDate:
    """Test cases for parse_short_date."""

    def test_unknown_month_returns_none(self):
        assert parse_short_date("22 brumaire", today=date(2025, 1, 1)) is None

    def test_other_shapes_return_none(self):
        assert parse_short_date("2025-11-22", today=date(2025, 1, 1)) is None

    def test_leading_word_must_be_a_weekday(self):
        assert parse_short_date("vanaf 22 nov", today=date(2025, 1, 1)) is None
        assert parse_short_date("Sat, 22 Nov", today=date(2025, 1, 1)) == "2025-11-22"

    def test_english_full_month_name(self):
        assert parse_short_date("4 July", today=date(2025, 1, 1)) == "2025-07-04"


class TestCalculateDuration:
    """Test cases for calculate_duration."""

    def test_default_is_one_day(self):
        assert calculate_duration("2025-12-01") == 1

    def test_bare_number(self):
        assert calculate_duration("2025-12-01", duration="3") == 3

    def test_number_with_unit(self):
        assert calculate_duration("2025-12-01", duration="3 dagen") == 3

    def test_zero_is_floored_to_one(self):
        assert calculate_duration("2025-12-01", duration="0") == 1

    def test_end_date(self):
        assert calculate_duration("2025-12-01", end_date="2025-12-04") == 3

    def test_end_date_before_start_uses_absolute_difference(self):
        assert calculate_duration("2025-12-04", end_date="2025-12-01") == 3

    def test_same_day_end_date_is_one_day(self):
        assert calculate_duration("2025-12-01", end_date="01-12-2025") == 1

    def test_duration_given_as_date(self):
        assert calculate_duration("2025-12-01", duration="2025-12-03") == 2

    def test_duration_given_as_short_date(self):
        assert calculate_duration("2025-11-20", duration="22 nov", today=date(2025, 10, 1)) == 2

    def test_end_date_takes_precedence_over_duration(self):
        assert calculate_duration("2025-12-01", duration="7", end_date="2025-12-03") == 2

    def test_unresolvable_duration_defaults_to_one(self):
        assert calculate_duration("2025-12-01", duration="onbekend") == 1

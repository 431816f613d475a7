"""Tests for identity normalization."""

from datetime import date, datetime

import pytest

from scripts.analytics.normalize import (
    day_of_month,
    normalize_email,
    normalize_language,
    normalize_name,
    normalize_phone,
    parse_flexible_timestamp,
    parse_sheet_date,
    parse_timestamp,
    strict_no,
    strict_yes,
)


class TestNormalizePhone:
    def test_strips_country_code(self):
        assert normalize_phone("+91 98765 43210") == "9876543210"
        assert normalize_phone("9198765 43210") == "9876543210"

    def test_ten_digits_unchanged(self):
        assert normalize_phone("98765-43210") == "9876543210"

    def test_other_lengths_returned_as_digits(self):
        assert normalize_phone("0091 98765 43210") == "00919876543210"
        assert normalize_phone("12345") == "12345"

    def test_empty_and_none(self):
        assert normalize_phone("") == ""
        assert normalize_phone(None) == ""
        assert normalize_phone("n/a") == ""

    def test_numeric_input(self):
        assert normalize_phone(919876543210) == "9876543210"


class TestTextKeys:
    def test_name_collapses_whitespace(self):
        assert normalize_name("  Asha   RAO ") == "asha rao"

    def test_email_lowercased(self):
        assert normalize_email(" Parent@Example.COM ") == "parent@example.com"


class TestLanguage:
    @pytest.mark.parametrize("raw,expected", [
        ("hindi", "Hindi"),
        (" ENGLISH ", "English"),
        ("Tamil", "Tamil"),
        ("", "Other"),
        ("Not Selected", "Other"),
        ("not provided", "Other"),
        ("Klingon", "Other"),
        (None, "Other"),
    ])
    def test_vocabulary(self, raw, expected):
        assert normalize_language(raw) == expected


class TestStrictFlags:
    def test_yes_is_exact(self):
        assert strict_yes(" YES ") is True
        assert strict_yes("Yesterday") is False
        assert strict_yes("y") is False
        assert strict_yes(None) is False

    def test_no_is_exact(self):
        assert strict_no("No") is True
        assert strict_no("None") is False
        assert strict_no("") is False


class TestTimestamps:
    def test_us_slash_format(self):
        assert parse_timestamp("9/1/2025 14:30:00") == datetime(2025, 9, 1, 14, 30)

    def test_iso_format(self):
        assert parse_flexible_timestamp("2025-09-01T10:00:00") == "2025-09-01T10:00:00"

    def test_dash_dates_are_day_first(self):
        assert parse_timestamp("01-09-2025") == datetime(2025, 9, 1)
        assert parse_timestamp("5-9-2025 9:15") == datetime(2025, 9, 5, 9, 15)

    def test_aware_timestamp_becomes_naive_utc(self):
        assert parse_timestamp("2025-09-01T10:00:00+05:30") == datetime(2025, 9, 1, 4, 30)

    def test_unparsable_is_none(self):
        assert parse_flexible_timestamp("") is None
        assert parse_flexible_timestamp("yesterday") is None
        assert parse_flexible_timestamp("31-02-2025") is None


class TestDayOfMonth:
    def test_day_from_iso(self):
        assert day_of_month("2025-09-17T08:00:00") == 17

    def test_missing_defaults_to_one(self):
        assert day_of_month(None) == 1
        assert day_of_month("garbage") == 1


class TestSheetDate:
    def test_valid_titles(self):
        assert parse_sheet_date("01-09-2025") == date(2025, 9, 1)
        assert parse_sheet_date("1-9-2025") == date(2025, 9, 1)

    def test_impossible_date(self):
        assert parse_sheet_date("31-09-2025") is None

    def test_non_date_titles(self):
        assert parse_sheet_date("Summary") is None
        assert parse_sheet_date("01-09-25") is None
        assert parse_sheet_date("") is None

"""Tests for period specifiers and target sheet resolution."""

import pytest

from scripts.analytics.periods import (
    parse_month_year,
    resolve_period,
    resolve_target_titles,
)
from scripts.lib.errors import PeriodValidationError, SheetNotFoundError

TITLES = ["Summary", "30-08-2025", "01-09-2025", "02-09-2025", "31-09-2025", "15-09-2025"]


class TestParseMonthYear:
    @pytest.mark.parametrize("value,expected", [
        ("09-2025", (9, 2025)),
        ("9-2025", (9, 2025)),
        ("2025-09", (9, 2025)),
        ("2025/9", (9, 2025)),
    ])
    def test_formats(self, value, expected):
        assert parse_month_year(value) == expected

    def test_ambiguous_rejected(self):
        with pytest.raises(PeriodValidationError):
            parse_month_year("09-10")

    def test_month_out_of_range(self):
        with pytest.raises(PeriodValidationError):
            parse_month_year("13-2025")

    def test_garbage(self):
        with pytest.raises(PeriodValidationError):
            parse_month_year("September")


class TestResolvePeriod:
    def test_date_takes_precedence(self):
        period = resolve_period(date_title="01-09-2025", month_year="10-2025")
        assert period.kind == "date"
        assert period.label == "date:01-09-2025"

    def test_month_year_before_month_and_year(self):
        period = resolve_period(month_year="2025-10", month=9, year=2025)
        assert (period.month, period.year) == (10, 2025)

    def test_month_and_year_together(self):
        period = resolve_period(month="9", year="2025")
        assert period.label == "month:09-2025"

    def test_month_without_year(self):
        with pytest.raises(PeriodValidationError):
            resolve_period(month="9")

    def test_last_n_clamped(self):
        assert resolve_period(last_n=0).last_n == 1
        assert resolve_period(last_n="3").label == "last:3"

    def test_bad_date_format(self):
        with pytest.raises(PeriodValidationError):
            resolve_period(date_title="2025-09-01")

    def test_nothing_given(self):
        with pytest.raises(PeriodValidationError):
            resolve_period()


class TestResolveTargets:
    def test_specific_date(self):
        res = resolve_target_titles(resolve_period(date_title="1-9-2025"), TITLES)
        assert res.target_titles == ["01-09-2025"]

    def test_impossible_date_not_found(self):
        with pytest.raises(SheetNotFoundError):
            resolve_target_titles(resolve_period(date_title="31-09-2025"), TITLES)

    def test_month_ascending(self):
        res = resolve_target_titles(resolve_period(month_year="09-2025"), TITLES)
        assert res.target_titles == ["01-09-2025", "02-09-2025", "15-09-2025"]
        assert res.fallback_used is False

    def test_available_newest_first(self):
        res = resolve_target_titles(resolve_period(last_n=2), TITLES)
        assert res.available_titles == ["15-09-2025", "02-09-2025", "01-09-2025", "30-08-2025"]
        assert res.target_titles == ["02-09-2025", "15-09-2025"]

    def test_empty_month_falls_back(self):
        res = resolve_target_titles(resolve_period(month_year="12-2024"), TITLES)
        assert res.fallback_used is True
        assert res.target_titles == ["30-08-2025", "01-09-2025", "02-09-2025", "15-09-2025"]

    def test_no_dated_sheets(self):
        res = resolve_target_titles(resolve_period(month_year="09-2025"), ["Summary"])
        assert res.target_titles == []
        assert res.fallback_used is False

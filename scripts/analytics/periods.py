"""
Signup Analytics — Period Specifiers
======================================

Signup sheets are split into one tab per day, titled ``DD-MM-YYYY``. A
request names the days it wants through one of:

  - date        "01-09-2025"                    -> that single tab
  - month/year  month=9, year=2025              -> every tab in the month
  - month_year  "09-2025", "9-2025", "2025-09"  -> every tab in the month
  - last_n      7                               -> the N most recent tabs

Month/year strings are ambiguous between ``MM-YYYY`` and ``YYYY-MM``.
Precedence used by parse_month_year():

  1. first part has four digits or is greater than 12 -> ``YYYY-MM``
  2. second part has four digits or is greater than 12 -> ``MM-YYYY``
  3. otherwise the value is rejected

All validation happens here, before any network I/O.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple, Union

from scripts.analytics.normalize import parse_sheet_date
from scripts.lib.errors import PeriodValidationError, SheetNotFoundError

DEFAULT_LAST_N = 7

SHEET_TITLE_PATTERN = re.compile(r"^\s*\d{1,2}-\d{1,2}-\d{4}\s*$")
MONTH_YEAR_SEPARATORS = re.compile(r"[-/]")


@dataclass(frozen=True)
class PeriodSpec:
    kind: str  # "date" | "month" | "last_n"
    date_title: Optional[str] = None
    month: Optional[int] = None
    year: Optional[int] = None
    last_n: int = DEFAULT_LAST_N

    @property
    def label(self) -> str:
        if self.kind == "date":
            return f"date:{self.date_title}"
        if self.kind == "month":
            return f"month:{self.month:02d}-{self.year}"
        return f"last:{self.last_n}"

    @property
    def description(self) -> str:
        if self.kind == "date":
            return f"Specific date: {self.date_title}"
        if self.kind == "month":
            return f"Month: {self.month:02d}-{self.year}"
        return f"Last {self.last_n} sheets"


@dataclass
class TargetResolution:
    target_titles: List[str]
    available_titles: List[str]
    fallback_used: bool = False


def _to_int(value: Union[str, int, None], name: str) -> int:
    if isinstance(value, int):
        return value
    text = str(value or "").strip()
    if not text.isdigit():
        raise PeriodValidationError(f"{name} must be a number", value=str(value))
    return int(text)


def parse_month_year(value: str) -> Tuple[int, int]:
    """Split a combined month/year string into ``(month, year)``."""
    text = str(value or "").strip()
    parts = MONTH_YEAR_SEPARATORS.split(text)
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        raise PeriodValidationError(
            "Invalid monthYear parameter (expected MM-YYYY or YYYY-MM)", value=text,
        )

    first, second = (p.strip() for p in parts)
    a, b = int(first), int(second)
    if len(first) == 4 or a > 12:
        year, month = a, b
    elif len(second) == 4 or b > 12:
        month, year = a, b
    else:
        raise PeriodValidationError(
            "Ambiguous monthYear parameter: neither part is a year", value=text,
        )

    if not 1 <= month <= 12:
        raise PeriodValidationError(f"Month out of range: {month}", value=text)
    return month, year


def resolve_period(
    date_title: Optional[str] = None,
    month: Union[str, int, None] = None,
    year: Union[str, int, None] = None,
    month_year: Optional[str] = None,
    last_n: Union[str, int, None] = None,
) -> PeriodSpec:
    """Build a PeriodSpec from request parameters, in that precedence."""
    if date_title:
        title = str(date_title).strip()
        if not SHEET_TITLE_PATTERN.match(title):
            raise PeriodValidationError(
                "Invalid date parameter (expected DD-MM-YYYY)", value=title,
            )
        return PeriodSpec(kind="date", date_title=title)

    if month_year:
        m, y = parse_month_year(month_year)
        return PeriodSpec(kind="month", month=m, year=y)

    if month is not None or year is not None:
        if month is None or year is None:
            raise PeriodValidationError("month and year must be given together")
        m = _to_int(month, "month")
        y = _to_int(year, "year")
        if not 1 <= m <= 12:
            raise PeriodValidationError(f"Month out of range: {m}", value=str(month))
        return PeriodSpec(kind="month", month=m, year=y)

    if last_n is not None:
        return PeriodSpec(kind="last_n", last_n=max(1, _to_int(last_n, "last_n")))

    raise PeriodValidationError(
        "A period is required: date, month/year, month_year or last_n",
    )


def dated_sheets(titles: List[str]) -> List[Tuple[str, date]]:
    """Titles that parse as real calendar dates, oldest first."""
    dated = []
    for title in titles:
        parsed = parse_sheet_date(title)
        if parsed is not None:
            dated.append((title, parsed))
    dated.sort(key=lambda item: item[1])
    return dated


def resolve_target_titles(period: PeriodSpec, titles: List[str]) -> TargetResolution:
    """
    Choose which sheet titles a period covers.

    Raises:
        SheetNotFoundError: A specific date was requested and no sheet for
            that calendar day exists (including impossible dates).
    """
    dated = dated_sheets(titles)
    available = [t for t, _ in reversed(dated)]

    if period.kind == "date":
        wanted = parse_sheet_date(period.date_title)
        matches = [t for t, d in dated if wanted is not None and d == wanted]
        if not matches:
            raise SheetNotFoundError(period.date_title)
        return TargetResolution([matches[0]], available)

    if period.kind == "month":
        in_month = [
            t for t, d in dated if d.month == period.month and d.year == period.year
        ]
        if in_month:
            return TargetResolution(in_month, available)
        fallback = [t for t, _ in dated[-period.last_n:]] if dated else []
        return TargetResolution(fallback, available, fallback_used=bool(fallback))

    recent = [t for t, _ in dated[-period.last_n:]] if dated else []
    return TargetResolution(recent, available)

"""
Signup Analytics — Identity Normalizer
========================================

Pure functions that turn raw spreadsheet strings into canonical comparison
keys: phones, names, emails, languages, timestamps, and strict yes/no flags.

None of these functions raise on bad input; unparsable values degrade to an
empty string, "Other", or None.

Usage:
    from scripts.analytics.normalize import normalize_phone, strict_yes
    normalize_phone("+91 98765 43210")   # "9876543210"
    strict_yes(" YES ")                  # True
    strict_yes("Yesterday")              # False
"""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Optional

NON_DIGITS = re.compile(r"\D+")
WHITESPACE = re.compile(r"\s+")

INDIA_COUNTRY_CODE = "91"

LANGUAGE_OTHER = "Other"
UNSET_LANGUAGE_VALUES = {"", "not selected", "not provided"}

KNOWN_LANGUAGES = {
    "english": "English",
    "hindi": "Hindi",
    "marathi": "Marathi",
    "bengali": "Bengali",
    "gujarati": "Gujarati",
    "telugu": "Telugu",
    "tamil": "Tamil",
    "kannada": "Kannada",
    "malayalam": "Malayalam",
    "punjabi": "Punjabi",
    "odia": "Odia",
    "assamese": "Assamese",
    "urdu": "Urdu",
}

# Formats tried before the DD-MM-YYYY fallback. Dash-separated day-first
# dates are deliberately absent so "01-09-2025" is never read as January 9.
NATIVE_TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)

DEFAULT_DAY = 1


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw)


def normalize_phone(raw: Any) -> str:
    """Digits only; a 12-digit number starting with 91 loses the country code.

    Shorter or longer numbers are returned as cleaned digits, unpadded.
    """
    digits = NON_DIGITS.sub("", _text(raw))
    if len(digits) == 12 and digits.startswith(INDIA_COUNTRY_CODE):
        return digits[2:]
    return digits


def normalize_name(raw: Any) -> str:
    return WHITESPACE.sub(" ", _text(raw).strip().lower())


def normalize_email(raw: Any) -> str:
    return _text(raw).strip().lower()


def normalize_language(raw: Any) -> str:
    """Map free-text language onto the fixed vocabulary, else "Other"."""
    value = _text(raw).strip().lower()
    if value in UNSET_LANGUAGE_VALUES:
        return LANGUAGE_OTHER
    return KNOWN_LANGUAGES.get(value, LANGUAGE_OTHER)


def strict_yes(value: Any) -> bool:
    return _text(value).strip().lower() == "yes"


def strict_no(value: Any) -> bool:
    return _text(value).strip().lower() == "no"


def _to_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _parse_native(value: str) -> Optional[datetime]:
    for fmt in NATIVE_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return _to_naive(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _parse_day_first(value: str) -> Optional[datetime]:
    """Reinterpret ``D-M-YYYY [HH:MM[:SS]]`` as an ISO timestamp."""
    date_part, _, time_part = value.partition(" ")
    time_part = time_part.strip() or "00:00:00"
    pieces = date_part.split("-")
    if len(pieces) != 3:
        return None
    day, month, year = pieces
    clock = time_part.split(":")
    if len(clock) == 2:
        clock.append("00")
    time_part = ":".join(c.zfill(2) for c in clock)
    try:
        return datetime.fromisoformat(
            f"{year}-{month.zfill(2)}-{day.zfill(2)}T{time_part}"
        )
    except ValueError:
        return None


def parse_timestamp(raw: Any) -> Optional[datetime]:
    value = _text(raw).strip()
    if not value:
        return None
    parsed = _parse_native(value) or _parse_day_first(value)
    return _to_naive(parsed) if parsed else None


def parse_flexible_timestamp(raw: Any) -> Optional[str]:
    """ISO-8601 string for a sheet timestamp, or None when unparsable."""
    parsed = parse_timestamp(raw)
    return parsed.isoformat() if parsed else None


def day_of_month(timestamp_iso: Optional[str]) -> int:
    """Calendar day of an ISO timestamp; unparsable timestamps bucket to day 1."""
    if not timestamp_iso:
        return DEFAULT_DAY
    try:
        return datetime.fromisoformat(timestamp_iso).day
    except ValueError:
        return DEFAULT_DAY


def parse_sheet_date(title: Any) -> Optional[date]:
    """Parse a ``DD-MM-YYYY`` (or ``D-M-YYYY``) sheet title.

    Titles that are not real calendar dates, such as ``31-09-2025``, return
    None and are excluded from the dated-sheet universe.
    """
    pieces = _text(title).strip().split("-")
    if len(pieces) != 3:
        return None
    day, month, year = (p.strip() for p in pieces)
    if not (day.isdigit() and month.isdigit() and year.isdigit() and len(year) == 4):
        return None
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None

"""
Signup Analytics — Sheet Row Mapper
=====================================

Translates raw sheet rows (header -> cell text) into canonical records.

The signup, WhatsApp, conversion and demo-status sheets have been edited by
hand for a long time, so one logical column appears under several header
spellings ("Phone", "Phone Number", "Contact"; "Form Submitted",
"Form Submited"). Every known spelling lives in the alias tables below; a
newly observed spelling is a one-line addition to the relevant list.

Header matching ignores case and surrounding/internal whitespace runs. The
first alias with a non-empty value wins; a field with no match is "".
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List

from scripts.analytics.normalize import (
    normalize_email,
    normalize_name,
    normalize_phone,
    parse_flexible_timestamp,
)
from scripts.analytics.records import Contact, DemoStatus, DemoStatusIndex, SaleRecord
from scripts.lib.errors import RowMappingError

# ---------------------------------------------------------------------------
# Alias tables: canonical field -> header spellings, in priority order
# ---------------------------------------------------------------------------

CONTACT_FIELD_ALIASES: Dict[str, List[str]] = {
    "timestamp": ["Timestamp", "Registration Date", "Registration"],
    "name": ["Name", "Full Name"],
    "phone": ["Phone", "Phone Number", "Number", "Contact"],
    "email": ["Email", "Email ID", "E-mail"],
    "city": ["City"],
    "language": ["Language"],
    "board": ["Board"],
    "grade": ["Grade"],
    "status": ["Status"],
    "assigned_to": ["Assigned To"],
    "lead_source": ["Source", "Lead Source"],
    "current_status": ["Current Status"],
    "sales_owner": ["Sales Owner"],
    "demo_requested": ["Demo Requested"],
    "demo_status": ["Demo Status"],
    "registration_date": ["Registration Date"],
    "form_submitted": ["Form Submitted", "Form Submited", "Form Submittet"],
    "demo_date": ["Demo Date"],
    "follow_up_day1": ["Follow-up day-1", "Follow up day-1", "Follow-up day 1"],
    "next_action": ["Next Action"],
    "feedback": ["Feedback from Customer"],
    "assigned_phone": ["Assigned Phone"],
    "assigned_at": ["Assigned At"],
}

SALE_FIELD_ALIASES: Dict[str, List[str]] = {
    "name": ["Name"],
    "email": ["Email ID", "Email"],
    "contact": ["Contact", "Phone", "Phone Number"],
    "activated": ["Activated"],
    "rating": ["Ratings in Amazon", "Rating"],
    "purchase_month": ["Purchase Month"],
    "last_follow_up": ["Last Follow-Up", "Last Follow Up"],
}

DEMO_STATUS_FIELD_ALIASES: Dict[str, List[str]] = {
    "phone": ["Phone Number", "Phone", "Contact"],
    "name": ["Name"],
    "demo_completed": ["Demo Completed"],
}


def _header_key(header: Any) -> str:
    return " ".join(str(header).split()).lower()


def _ensure_mapping(row: Any, row_index: int = None) -> Mapping:
    if not isinstance(row, Mapping):
        raise RowMappingError(
            f"Row is not a field-value record: {type(row).__name__}",
            row_index=row_index,
        )
    return row


def lookup_field(row: Mapping, aliases: Iterable[str]) -> str:
    """Return the first non-empty value among *aliases*, or ""."""
    normalized: Dict[str, str] = {}
    for header, value in row.items():
        key = _header_key(header)
        text = "" if value is None else str(value).strip()
        # Headers equal after case/whitespace folding keep the first non-empty value
        if text and not normalized.get(key):
            normalized[key] = text
    for alias in aliases:
        text = normalized.get(_header_key(alias))
        if text:
            return text
    return ""


def map_fields(row: Mapping, alias_table: Dict[str, List[str]]) -> Dict[str, str]:
    return {field: lookup_field(row, aliases) for field, aliases in alias_table.items()}


def map_contact(row: Any, row_index: int = 0, source_sheet: str = "") -> Contact:
    """Build a Contact from a signup / WhatsApp sheet row."""
    fields = map_fields(_ensure_mapping(row, row_index), CONTACT_FIELD_ALIASES)
    raw_timestamp = fields.pop("timestamp")
    return Contact(
        identity_key=normalize_phone(fields["phone"]),
        secondary_key=normalize_email(fields["email"]),
        timestamp=parse_flexible_timestamp(raw_timestamp),
        source_sheet=source_sheet,
        row_index=row_index,
        **fields,
    )


def map_sale(row: Any) -> SaleRecord:
    """Build a SaleRecord from a conversion sheet row."""
    return SaleRecord(**map_fields(_ensure_mapping(row), SALE_FIELD_ALIASES))


def identified_sales(sales: Iterable[SaleRecord]) -> List[SaleRecord]:
    """Sales carrying a name or a contact; only these can be matched."""
    return [s for s in sales if s.name or s.contact]


def build_demo_status_index(rows: Iterable[Any]) -> DemoStatusIndex:
    """Index the demo-status sheet by raw phone and by normalized name.

    Phone keys are trimmed only, never phone-normalized. A later row with
    the same key replaces an earlier one.
    """
    index = DemoStatusIndex()
    for i, row in enumerate(rows):
        fields = map_fields(_ensure_mapping(row, i), DEMO_STATUS_FIELD_ALIASES)
        index.total_rows += 1

        completed = fields["demo_completed"].lower()
        status = DemoStatus(demo_status=completed, is_completed=completed == "yes")

        if fields["phone"]:
            index.by_phone[fields["phone"]] = status
        name_key = normalize_name(fields["name"])
        if name_key:
            index.by_name[name_key] = status
    return index

"""
Signup Analytics — Core Records
=================================

Plain dataclasses shared by the reconciliation pipeline. Records are built
fresh from sheet rows for every aggregation request and never persisted.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Contact:
    """One lead / signup row after header mapping and normalization."""
    identity_key: str
    secondary_key: str = ""
    timestamp: Optional[str] = None
    name: str = ""
    phone: str = ""
    email: str = ""
    city: str = ""
    language: str = ""
    board: str = ""
    grade: str = ""
    status: str = ""
    assigned_to: str = ""
    lead_source: str = ""
    current_status: str = ""
    sales_owner: str = ""
    demo_requested: str = ""
    demo_status: str = ""
    registration_date: str = ""
    form_submitted: str = ""
    demo_date: str = ""
    follow_up_day1: str = ""
    next_action: str = ""
    feedback: str = ""
    assigned_phone: str = ""
    assigned_at: str = ""
    source_sheet: str = ""
    row_index: int = 0

    def to_dict(self, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        data = asdict(self)
        if fields:
            return {k: v for k, v in data.items() if k in fields}
        return data


@dataclass(frozen=True)
class SaleRecord:
    """One row of the conversion / enrollment sheet."""
    name: str = ""
    email: str = ""
    contact: str = ""
    activated: str = ""
    rating: str = ""
    purchase_month: str = ""
    last_follow_up: str = ""


@dataclass(frozen=True)
class DemoStatus:
    demo_status: str
    is_completed: bool


@dataclass
class DemoStatusIndex:
    """Lookups built from the dedicated demo-status sheet.

    ``by_phone`` is keyed by the raw phone (trim only), ``by_name`` by the
    normalized name.
    """
    by_phone: Dict[str, DemoStatus] = field(default_factory=dict)
    by_name: Dict[str, DemoStatus] = field(default_factory=dict)
    total_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_demo_records": self.total_rows,
            "total_with_phone_numbers": len(self.by_phone),
            "total_with_names": len(self.by_name),
            "phone_number_mapping": {k: asdict(v) for k, v in self.by_phone.items()},
            "name_mapping": {k: asdict(v) for k, v in self.by_name.items()},
        }


@dataclass
class MatchResult:
    """Outcome of reconciling one external record against the contacts."""
    record: Any
    matched_contact: Optional[Contact] = None
    unique_key: Optional[str] = None
    credited: bool = False


@dataclass
class DayBucket:
    day: int
    total_contacts: int = 0
    demo_requested: int = 0
    demo_declined: int = 0
    demo_completed: int = 0
    sales: int = 0
    conversion_rate: int = 0
    demo_completion_rate: int = 0
    languages: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten language counts next to the totals for stacked charts."""
        data = asdict(self)
        data.update(data.pop("languages"))
        return data


@dataclass
class AggregateSummary:
    total_contacts: int = 0
    demo_requested: int = 0
    demo_declined: int = 0
    demo_completed: int = 0
    sales_count: int = 0
    conversion_rate: int = 0
    demo_request_rate: int = 0
    demo_completion_rate: int = 0
    sales_from_completed_rate: int = 0
    overall_sales_from_requests_rate: int = 0
    assigned_contacts: int = 0
    unassigned_contacts: int = 0
    avg_daily_contacts: int = 0
    avg_daily_demos: int = 0
    most_used_language: Optional[List[Any]] = None
    languages: Dict[str, int] = field(default_factory=dict)
    sales_by_assignee: Dict[str, int] = field(default_factory=dict)
    boards: Dict[str, int] = field(default_factory=dict)
    grades: Dict[str, int] = field(default_factory=dict)
    statuses: Dict[str, int] = field(default_factory=dict)
    daily_data: List[DayBucket] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["daily_data"] = [d.to_dict() for d in self.daily_data]
        return data


@dataclass
class ConversionStats:
    total_records: int = 0
    activated: int = 0
    pending_activation: int = 0
    with_ratings: int = 0
    monthly_breakdown: Dict[str, int] = field(default_factory=dict)
    activation_rate: float = 0.0
    ratings_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

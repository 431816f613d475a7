"""
Signup Analytics — Metrics Aggregator
=======================================

Folds a deduplicated, match-enriched Contact list into an AggregateSummary:
totals, rate percentages, a language frequency map, categorical counts,
and per-day buckets for the stacked charts.

Rates are whole percentages. A rate whose denominator is zero is 0, and
every rate is clamped to [0, 100].

Demo classification modes:
  - "field": completed = requested and the contact's own Demo Status is "yes"
  - "index": completed = requested and the demo-status sheet says completed
  - "all":   free-signup view, every contact counts as requested and completed
"""
from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional, Set

from scripts.analytics.matcher import count_sales, sales_by_assignee, sales_by_day
from scripts.analytics.normalize import (
    day_of_month,
    normalize_language,
    strict_no,
    strict_yes,
)
from scripts.analytics.records import (
    AggregateSummary,
    Contact,
    ConversionStats,
    DayBucket,
    MatchResult,
    SaleRecord,
)

DEMO_MODES = ("field", "index", "all")
NOT_PROVIDED = "Not provided"
ACTIVATED_VALUES = {"yes", "true", "activated"}


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def percent(numerator: int, denominator: int) -> int:
    """round(numerator / denominator * 100), 0 for an empty denominator."""
    if not denominator or denominator <= 0:
        return 0
    value = _round_half_up(numerator * 100 / denominator)
    return max(0, min(100, value))


def _categorical(value: str) -> str:
    return (value or "").strip() or NOT_PROVIDED


def _sorted_counts(counter: Counter) -> Dict[str, int]:
    """Descending by count; ties keep first-seen order."""
    return dict(sorted(counter.items(), key=lambda item: -item[1]))


def filter_by_assignee(contacts: Iterable[Contact], assignee: Optional[str]) -> List[Contact]:
    """Contacts assigned to *assignee* (trimmed, case-insensitive); "All" keeps everyone."""
    if not assignee or assignee.strip().lower() == "all":
        return list(contacts)
    wanted = assignee.strip().lower()
    return [c for c in contacts if c.assigned_to.strip().lower() == wanted]


def classify_demo(
    contact: Contact,
    demo_mode: str,
    completed_keys: Optional[Set[str]] = None,
):
    """Return ``(requested, declined, completed)`` for one contact."""
    if demo_mode == "all":
        return True, False, True
    requested = strict_yes(contact.demo_requested)
    declined = strict_no(contact.demo_requested)
    if demo_mode == "index":
        completed = requested and contact.identity_key in (completed_keys or set())
    else:
        completed = requested and strict_yes(contact.demo_status)
    return requested, declined, completed


def aggregate_contacts(
    contacts: List[Contact],
    *,
    sale_matches: Optional[List[MatchResult]] = None,
    completed_keys: Optional[Set[str]] = None,
    demo_mode: str = "field",
) -> AggregateSummary:
    """
    Build the AggregateSummary for one period.

    Args:
        contacts: Deduplicated contacts (already filtered by assignee).
        sale_matches: Output of match_sales against the same contacts.
        completed_keys: Output of match_demo_completions (``index`` mode).
        demo_mode: One of DEMO_MODES.
    """
    if demo_mode not in DEMO_MODES:
        raise ValueError(f"Unknown demo mode: {demo_mode}")

    sale_matches = sale_matches or []
    daily_sales = sales_by_day(sale_matches)

    summary = AggregateSummary(total_contacts=len(contacts))
    languages: Counter = Counter()
    boards: Counter = Counter()
    grades: Counter = Counter()
    statuses: Counter = Counter()
    days: Dict[int, DayBucket] = {}

    for contact in contacts:
        day = day_of_month(contact.timestamp)
        bucket = days.setdefault(day, DayBucket(day=day))
        bucket.total_contacts += 1

        requested, declined, completed = classify_demo(contact, demo_mode, completed_keys)
        if requested:
            summary.demo_requested += 1
            bucket.demo_requested += 1
        if declined:
            summary.demo_declined += 1
            bucket.demo_declined += 1
        if completed:
            summary.demo_completed += 1
            bucket.demo_completed += 1

        language = normalize_language(contact.language)
        languages[language] += 1
        bucket.languages[language] = bucket.languages.get(language, 0) + 1

        if contact.assigned_to.strip():
            summary.assigned_contacts += 1

        boards[_categorical(contact.board)] += 1
        grades[_categorical(contact.grade)] += 1
        statuses[_categorical(contact.status)] += 1

    summary.unassigned_contacts = summary.total_contacts - summary.assigned_contacts
    summary.sales_count = count_sales(sale_matches)
    summary.sales_by_assignee = sales_by_assignee(sale_matches)

    summary.conversion_rate = percent(summary.sales_count, summary.total_contacts)
    summary.demo_request_rate = percent(summary.demo_requested, summary.total_contacts)
    summary.demo_completion_rate = percent(summary.demo_completed, summary.demo_requested)
    summary.sales_from_completed_rate = percent(summary.sales_count, summary.demo_completed)
    summary.overall_sales_from_requests_rate = percent(
        summary.sales_count, summary.demo_requested
    )

    summary.languages = _sorted_counts(languages)
    summary.boards = dict(boards)
    summary.grades = dict(grades)
    summary.statuses = dict(statuses)

    ordered_days = [days[d] for d in sorted(days)]
    for bucket in ordered_days:
        bucket.sales = daily_sales.get(bucket.day, 0)
        bucket.conversion_rate = percent(bucket.sales, bucket.total_contacts)
        bucket.demo_completion_rate = percent(bucket.demo_completed, bucket.demo_requested)
        bucket.languages = {
            lang: bucket.languages.get(lang, 0) for lang in summary.languages
        }
    summary.daily_data = ordered_days

    active_days = max(len(ordered_days), 1)
    summary.avg_daily_contacts = _round_half_up(summary.total_contacts / active_days)
    summary.avg_daily_demos = _round_half_up(summary.demo_requested / active_days)
    if summary.languages:
        top = next(iter(summary.languages.items()))
        summary.most_used_language = [top[0], top[1]]
    else:
        summary.most_used_language = ["N/A", 0]

    return summary


def summarize_conversions(sales: Iterable[SaleRecord]) -> ConversionStats:
    """Activation and ratings analytics over every conversion row.

    Pass all mapped rows, including those without a name or contact, so
    totals and rates match the row count of the sheet.
    """
    sales = list(sales)
    stats = ConversionStats(total_records=len(sales))
    months: Counter = Counter()
    for sale in sales:
        if sale.activated.strip().lower() in ACTIVATED_VALUES:
            stats.activated += 1
        if sale.rating.strip():
            stats.with_ratings += 1
        months[sale.purchase_month.strip() or "Unknown"] += 1

    stats.pending_activation = stats.total_records - stats.activated
    stats.monthly_breakdown = dict(months)
    if stats.total_records:
        stats.activation_rate = round(stats.activated / stats.total_records * 100, 1)
        stats.ratings_rate = round(stats.with_ratings / stats.total_records * 100, 1)
    return stats

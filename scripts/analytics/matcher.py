"""
Signup Analytics — Cross-Source Matcher
=========================================

Attributes external records to Contacts:

  - Sales: each conversion row is matched by email first, then by
    normalized phone. The matched contact's unique key (email, else phone,
    else its row position) is credited at most once per run, so several
    sale rows for the same person count as one sale.
  - Demo completions: contacts whose own "Demo Requested" is strictly
    "yes" are looked up by raw (trim-only) phone in the demo-status sheet.
    A completion is never credited to a contact that did not request a demo.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from scripts.analytics.normalize import (
    day_of_month,
    normalize_email,
    normalize_name,
    normalize_phone,
    strict_yes,
)
from scripts.analytics.records import Contact, DemoStatusIndex, MatchResult, SaleRecord
from scripts.lib.logger import setup_logger

logger = setup_logger("matcher")

UNASSIGNED = "Unassigned"


def contact_unique_key(contact: Contact) -> str:
    """Stable per-run key for crediting a contact once."""
    email = normalize_email(contact.email)
    if email:
        return f"email:{email}"
    phone = normalize_phone(contact.phone)
    if phone:
        return f"phone:{phone}"
    return f"row:{contact.row_index}"


def _index_contacts(contacts: Iterable[Contact]):
    by_email: Dict[str, Contact] = {}
    by_phone: Dict[str, Contact] = {}
    for contact in contacts:
        email = normalize_email(contact.email)
        if email:
            by_email[email] = contact
        phone = normalize_phone(contact.phone)
        if phone:
            by_phone[phone] = contact
    return by_email, by_phone


def match_sales(contacts: List[Contact], sales: Iterable[SaleRecord]) -> List[MatchResult]:
    """Match every sale row; ``credited`` is True for the first row per contact."""
    by_email, by_phone = _index_contacts(contacts)
    credited: Set[str] = set()
    results: List[MatchResult] = []

    for sale in sales:
        matched: Optional[Contact] = None
        email = normalize_email(sale.email)
        if email:
            matched = by_email.get(email)
        if matched is None:
            phone = normalize_phone(sale.contact)
            if phone:
                matched = by_phone.get(phone)

        if matched is None:
            results.append(MatchResult(record=sale))
            continue

        key = contact_unique_key(matched)
        is_new = key not in credited
        if is_new:
            credited.add(key)
        else:
            logger.debug("Sale row for %s already credited, skipping", key)
        results.append(
            MatchResult(record=sale, matched_contact=matched, unique_key=key, credited=is_new)
        )

    logger.info(
        "Matched %d sales to %d contacts (%d sale rows)",
        len(credited), len(contacts), len(results),
    )
    return results


def credited_matches(matches: Iterable[MatchResult]) -> List[MatchResult]:
    return [m for m in matches if m.credited]


def count_sales(matches: Iterable[MatchResult]) -> int:
    return len(credited_matches(matches))


def sales_by_assignee(matches: Iterable[MatchResult]) -> Dict[str, int]:
    counts: Dict[str, int] = defaultdict(int)
    for m in credited_matches(matches):
        counts[m.matched_contact.assigned_to.strip() or UNASSIGNED] += 1
    return dict(counts)


def sales_by_day(matches: Iterable[MatchResult]) -> Dict[int, int]:
    """Credited sales keyed by the matched contact's signup day-of-month."""
    counts: Dict[int, int] = defaultdict(int)
    for m in credited_matches(matches):
        counts[day_of_month(m.matched_contact.timestamp)] += 1
    return dict(counts)


def match_demo_completions(
    contacts: Iterable[Contact],
    index: DemoStatusIndex,
    *,
    use_names: bool = False,
) -> Set[str]:
    """
    Identity keys of contacts with a requested *and* completed demo.

    Args:
        contacts: Deduplicated contacts for the period.
        index: Demo-status lookups (raw phone keys).
        use_names: Fall back to the normalized-name lookup when the raw
            phone has no entry in the demo-status sheet.
    """
    completed: Set[str] = set()
    seen_phones: Set[str] = set()

    for contact in contacts:
        if not strict_yes(contact.demo_requested):
            continue
        phone = contact.phone.strip()
        status = index.by_phone.get(phone) if phone else None
        if status is None and use_names:
            name = normalize_name(contact.name)
            status = index.by_name.get(name) if name else None
        if status is None or not status.is_completed:
            continue

        dedupe_key = phone or f"name:{normalize_name(contact.name)}"
        if dedupe_key in seen_phones:
            continue
        seen_phones.add(dedupe_key)
        completed.add(contact.identity_key)

    logger.info("Matched %d completed demos", len(completed))
    return completed

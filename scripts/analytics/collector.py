"""
Signup Analytics — Multi-Sheet Collector
==========================================

Resolves a period to dated sheet tabs, reads them one after another, maps
rows to Contacts, and deduplicates by normalized phone keeping the most
recent registration.

Sheets are read sequentially with a short delay between them to stay under
the shared Sheets API quota. Failures local to one tab (rate-limit
exhaustion, missing header row, tab deleted since listing) are recorded in
``failed_sheets`` and the run continues; the result is then marked
incomplete and must not be cached.
"""
from __future__ import annotations

import asyncio
import os
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from scripts.analytics.periods import PeriodSpec, resolve_target_titles
from scripts.analytics.records import Contact
from scripts.analytics.row_mapper import map_contact
from scripts.analytics.sheet_fetcher import SheetSource, fetch_rows_with_retry
from scripts.lib.errors import (
    MissingHeaderError,
    RowMappingError,
    SheetNotFoundError,
    SheetRateLimitError,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("collector")

INTER_SHEET_DELAY_MS = int(os.getenv("SHEET_FETCH_DELAY_MS", "250"))
INTER_SHEET_JITTER_MS = 250

SKIPPABLE_SHEET_ERRORS = (SheetRateLimitError, MissingHeaderError, SheetNotFoundError)


@dataclass
class CollectionResult:
    contacts: List[Contact] = field(default_factory=list)
    period: Optional[PeriodSpec] = None
    target_titles: List[str] = field(default_factory=list)
    processed_sheets: List[Dict[str, Any]] = field(default_factory=list)
    failed_sheets: List[Dict[str, Any]] = field(default_factory=list)
    available_titles: List[str] = field(default_factory=list)
    total_rows: int = 0
    dropped_without_phone: int = 0
    unreadable_rows: int = 0
    fallback_used: bool = False

    @property
    def complete(self) -> bool:
        return not self.failed_sheets

    def metadata(self) -> Dict[str, Any]:
        return {
            "period": self.period.label if self.period else None,
            "date_range": self.period.description if self.period else None,
            "target_titles": self.target_titles,
            "processed_sheets": self.processed_sheets,
            "failed_sheets": self.failed_sheets,
            "available_titles": self.available_titles,
            "total_sheets_processed": len(self.processed_sheets),
            "total_rows_processed": self.total_rows,
            "unique_contacts": len(self.contacts),
            "dropped_without_phone": self.dropped_without_phone,
            "unreadable_rows": self.unreadable_rows,
            "fallback_used": self.fallback_used,
            "complete": self.complete,
        }


def dedupe_contacts(contacts: List[Contact]) -> Tuple[List[Contact], int]:
    """
    Keep the most recent Contact per identity key.

    Contacts are ordered by timestamp descending; unparsable timestamps sort
    last. Equal timestamps keep input order (stable sort), so the row read
    first wins a tie. Contacts with an empty identity key are dropped.

    Returns:
        Tuple of (unique contacts, number dropped for lacking a phone).
    """
    dated = [c for c in contacts if c.timestamp]
    undated = [c for c in contacts if not c.timestamp]
    dated.sort(key=lambda c: datetime.fromisoformat(c.timestamp), reverse=True)

    seen = set()
    unique: List[Contact] = []
    dropped = 0
    for contact in dated + undated:
        if not contact.identity_key:
            dropped += 1
            continue
        if contact.identity_key in seen:
            continue
        seen.add(contact.identity_key)
        unique.append(contact)
    return unique, dropped


async def collect_contacts(
    source: SheetSource,
    period: PeriodSpec,
    *,
    inter_sheet_delay_ms: int = INTER_SHEET_DELAY_MS,
    inter_sheet_jitter_ms: int = INTER_SHEET_JITTER_MS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **fetch_options,
) -> CollectionResult:
    """
    Collect a deduplicated Contact list for *period* from *source*.

    Args:
        source: Signup / WhatsApp spreadsheet.
        period: Validated period specifier.
        inter_sheet_delay_ms: Pause between consecutive sheet reads.
        inter_sheet_jitter_ms: Random extra pause between sheet reads.
        sleep: Awaitable sleep (injected in tests).
        **fetch_options: Passed through to fetch_rows_with_retry.

    Raises:
        SheetNotFoundError: A specific date was requested and does not exist.
    """
    titles = await source.fetch_sheet_titles()
    resolution = resolve_target_titles(period, titles)
    result = CollectionResult(
        period=period,
        target_titles=resolution.target_titles,
        available_titles=resolution.available_titles,
        fallback_used=resolution.fallback_used,
    )
    if resolution.fallback_used:
        logger.warning(
            "No sheets matched %s; falling back to the %d most recent",
            period.label, len(resolution.target_titles),
        )

    accumulated: List[Contact] = []
    for position, title in enumerate(resolution.target_titles):
        if position > 0 and (inter_sheet_delay_ms or inter_sheet_jitter_ms):
            await sleep((inter_sheet_delay_ms + random.uniform(0, inter_sheet_jitter_ms)) / 1000)

        try:
            rows = await fetch_rows_with_retry(
                source, title, sleep=sleep, **fetch_options,
            )
        except SKIPPABLE_SHEET_ERRORS as e:
            logger.warning("Skipping sheet '%s': %s", title, e)
            result.failed_sheets.append(
                {"title": title, "reason": getattr(e, "code", "SHEET_ERROR"), "error": str(e)}
            )
            continue

        for row in rows:
            try:
                accumulated.append(map_contact(row, len(accumulated), source_sheet=title))
            except RowMappingError as e:
                result.unreadable_rows += 1
                logger.warning("Unreadable row in sheet '%s': %s", title, e)

        result.total_rows += len(rows)
        result.processed_sheets.append({"title": title, "row_count": len(rows)})
        logger.debug("Sheet '%s': %d rows", title, len(rows))

    result.contacts, result.dropped_without_phone = dedupe_contacts(accumulated)
    logger.info(
        "Collected %s: %d sheets, %d rows, %d unique contacts (%d failed sheets)",
        period.label, len(result.processed_sheets), result.total_rows,
        len(result.contacts), len(result.failed_sheets),
    )
    return result

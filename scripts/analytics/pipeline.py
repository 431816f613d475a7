"""
Signup Analytics — Aggregation Pipeline
=========================================

Runs one dashboard aggregation end to end:

    1. Gather (concurrent) — signup contacts for the period, conversion
       rows, demo-status rows. Each source hits its own spreadsheet.
    2. Match               — sales by email/phone, demo completions by phone
    3. Aggregate           — AggregateSummary for the view / assignee

The whole run is bounded by a wall-clock timeout. Cancelling the calling
task cancels every in-flight sheet read and pending retry; partial work is
discarded. Only complete results (every targeted sheet read) are written to
the cache.

Usage:
    from scripts.analytics.pipeline import IdentitySources, aggregate
    from scripts.analytics.periods import resolve_period

    payload = await aggregate(
        resolve_period(month_year="09-2025"),
        IdentitySources(signups=signup_sheet, conversions=conversion_sheet),
        cache=get_cache(),
        cache_key=key,
    )
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from scripts.analytics.aggregator import (
    aggregate_contacts,
    filter_by_assignee,
    summarize_conversions,
)
from scripts.analytics.collector import (
    INTER_SHEET_DELAY_MS,
    INTER_SHEET_JITTER_MS,
    CollectionResult,
    collect_contacts,
)
from scripts.analytics.matcher import match_demo_completions, match_sales
from scripts.analytics.periods import PeriodSpec
from scripts.analytics.records import (
    AggregateSummary,
    ConversionStats,
    DemoStatusIndex,
    SaleRecord,
)
from scripts.analytics.row_mapper import (
    build_demo_status_index,
    identified_sales,
    map_sale,
)
from scripts.analytics.sheet_fetcher import SheetSource, fetch_rows_with_retry
from scripts.lib.cache import DEFAULT_TTL_SECONDS, Cache
from scripts.lib.errors import (
    AggregationTimeoutError,
    MissingHeaderError,
    SheetNotFoundError,
    SheetRateLimitError,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("aggregation_pipeline")

AGGREGATION_TIMEOUT_SECONDS = float(os.getenv("AGGREGATION_TIMEOUT_SECONDS", "30"))


@dataclass
class IdentitySources:
    """Spreadsheets feeding one dashboard view."""
    signups: SheetSource
    conversions: Optional[SheetSource] = None
    demo_status: Optional[SheetSource] = None
    conversion_sheet: Optional[str] = None
    demo_status_sheet: Optional[str] = None


@dataclass
class SourceData:
    collection: CollectionResult
    sales: List[SaleRecord] = field(default_factory=list)
    conversion_records: List[SaleRecord] = field(default_factory=list)
    demo_index: Optional[DemoStatusIndex] = None
    failed_sources: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.collection.complete and not self.failed_sources


@dataclass
class AggregationResult:
    summary: AggregateSummary
    source_data: SourceData
    assignee: Optional[str] = None
    demo_mode: str = "field"
    conversion_stats: Optional[ConversionStats] = None

    @property
    def complete(self) -> bool:
        return self.source_data.complete

    def to_dict(self, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        collection = self.source_data.collection
        contacts = filter_by_assignee(collection.contacts, self.assignee)
        metadata = collection.metadata()
        metadata["failed_sources"] = self.source_data.failed_sources
        metadata["complete"] = self.complete
        metadata["filtered_contacts"] = len(contacts)
        return {
            "summary": self.summary.to_dict(),
            "contacts": [c.to_dict(fields) for c in contacts],
            "conversion_stats": (
                self.conversion_stats.to_dict() if self.conversion_stats else None
            ),
            "assignee": self.assignee or "All",
            "demo_mode": self.demo_mode,
            "complete": self.complete,
            "metadata": metadata,
        }


async def load_single_sheet(
    source: SheetSource,
    sheet_name: Optional[str] = None,
    **fetch_options,
) -> Tuple[str, List[Dict[str, str]]]:
    """Rows of *sheet_name*, or of the first sheet when it is absent/unknown."""
    titles = await source.fetch_sheet_titles()
    if not titles:
        raise SheetNotFoundError(sheet_name or "<first sheet>")
    title = sheet_name if sheet_name in titles else titles[0]
    rows = await fetch_rows_with_retry(source, title, **fetch_options)
    return title, rows


async def _load_optional(
    label: str,
    source: Optional[SheetSource],
    sheet_name: Optional[str],
    failed: List[Dict[str, Any]],
    **fetch_options,
) -> Optional[List[Dict[str, str]]]:
    if source is None:
        return None
    try:
        title, rows = await load_single_sheet(source, sheet_name, **fetch_options)
    except (SheetRateLimitError, MissingHeaderError, SheetNotFoundError) as e:
        logger.warning("Skipping %s sheet: %s", label, e)
        failed.append({"source": label, "reason": e.code, "error": str(e)})
        return None
    logger.info("Loaded %s sheet '%s': %d rows", label, title, len(rows))
    return rows


async def gather_sources(
    period: PeriodSpec,
    sources: IdentitySources,
    *,
    inter_sheet_delay_ms: int = INTER_SHEET_DELAY_MS,
    inter_sheet_jitter_ms: int = INTER_SHEET_JITTER_MS,
    **fetch_options,
) -> SourceData:
    """Read the signup, conversion and demo-status sheets concurrently."""
    failed: List[Dict[str, Any]] = []
    tasks = [
        asyncio.ensure_future(collect_contacts(
            sources.signups, period,
            inter_sheet_delay_ms=inter_sheet_delay_ms,
            inter_sheet_jitter_ms=inter_sheet_jitter_ms,
            **fetch_options,
        )),
        asyncio.ensure_future(_load_optional(
            "conversions", sources.conversions, sources.conversion_sheet,
            failed, **fetch_options,
        )),
        asyncio.ensure_future(_load_optional(
            "demo_status", sources.demo_status, sources.demo_status_sheet,
            failed, **fetch_options,
        )),
    ]
    try:
        collection, conversion_rows, demo_rows = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    conversion_records = [map_sale(row) for row in conversion_rows or []]
    return SourceData(
        collection=collection,
        sales=identified_sales(conversion_records),
        conversion_records=conversion_records,
        demo_index=build_demo_status_index(demo_rows) if demo_rows is not None else None,
        failed_sources=failed,
    )


def summarize(
    data: SourceData,
    *,
    assignee: Optional[str] = None,
    demo_mode: Optional[str] = None,
) -> AggregationResult:
    """Match and aggregate already-gathered sheet data for one assignee."""
    if demo_mode is None:
        demo_mode = "index" if data.demo_index is not None else "field"

    contacts = filter_by_assignee(data.collection.contacts, assignee)
    sale_matches = match_sales(contacts, data.sales)
    completed_keys = None
    if demo_mode == "index":
        completed_keys = match_demo_completions(
            contacts, data.demo_index or DemoStatusIndex(),
        )

    summary = aggregate_contacts(
        contacts,
        sale_matches=sale_matches,
        completed_keys=completed_keys,
        demo_mode=demo_mode,
    )
    return AggregationResult(
        summary=summary,
        source_data=data,
        assignee=assignee,
        demo_mode=demo_mode,
        conversion_stats=(
            summarize_conversions(data.conversion_records)
            if data.conversion_records else None
        ),
    )


async def run_aggregation(
    period: PeriodSpec,
    sources: IdentitySources,
    *,
    assignee: Optional[str] = None,
    demo_mode: Optional[str] = None,
    **fetch_options,
) -> AggregationResult:
    data = await gather_sources(period, sources, **fetch_options)
    return summarize(data, assignee=assignee, demo_mode=demo_mode)


async def _with_timeout(coro, timeout: Optional[float]):
    if not timeout:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Aggregation exceeded %.1fs budget", timeout)
        raise AggregationTimeoutError(timeout)


async def aggregate(
    period: PeriodSpec,
    sources: IdentitySources,
    *,
    assignee: Optional[str] = None,
    demo_mode: Optional[str] = None,
    fields: Optional[List[str]] = None,
    cache: Optional[Cache] = None,
    cache_key: Optional[str] = None,
    cache_ttl: int = DEFAULT_TTL_SECONDS,
    timeout: Optional[float] = AGGREGATION_TIMEOUT_SECONDS,
    **fetch_options,
) -> Dict[str, Any]:
    """
    Aggregate one period into a JSON-ready payload.

    Args:
        period: Validated period specifier.
        sources: Spreadsheets for this view.
        assignee: Restrict contacts to one assignee ("All"/None for everyone).
        demo_mode: "field" | "index" | "all"; inferred when None.
        fields: Contact fields to include in the payload (all when None).
        cache: Cache to consult and, for complete results, populate.
        cache_key: Key for this request (see scripts.lib.cache.make_cache_key).
        cache_ttl: TTL for the written entry.
        timeout: Wall-clock budget in seconds (None/0 disables).

    Returns:
        Payload dict with ``summary``, ``contacts``, ``metadata`` and ``cached``.

    Raises:
        AggregationTimeoutError: Budget exceeded.
        SheetNotFoundError: Explicit date requested that has no sheet.
    """
    if cache is not None and cache_key:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.info("Cache hit for %s", period.label)
            return {**cached, "cached": True}

    result = await _with_timeout(
        run_aggregation(
            period, sources,
            assignee=assignee, demo_mode=demo_mode, **fetch_options,
        ),
        timeout,
    )
    payload = result.to_dict(fields)

    if cache is not None and cache_key:
        if result.complete:
            cache.set(cache_key, payload, ttl_seconds=cache_ttl)
        else:
            logger.warning(
                "Partial result for %s not cached (%d failed sheets, %d failed sources)",
                period.label,
                len(result.source_data.collection.failed_sheets),
                len(result.source_data.failed_sources),
            )
    return {**payload, "cached": False}


async def compare_assignees(
    period: PeriodSpec,
    sources: IdentitySources,
    assignees: List[str],
    *,
    demo_mode: Optional[str] = "all",
    timeout: Optional[float] = AGGREGATION_TIMEOUT_SECONDS,
    **fetch_options,
) -> Dict[str, Any]:
    """One sheet read, one summary per assignee (side-by-side comparison)."""
    data = await _with_timeout(gather_sources(period, sources, **fetch_options), timeout)
    results = {
        name: summarize(data, assignee=name, demo_mode=demo_mode).summary.to_dict()
        for name in assignees
    }
    metadata = data.collection.metadata()
    metadata["failed_sources"] = data.failed_sources
    metadata["complete"] = data.complete
    return {"assignees": results, "complete": data.complete, "metadata": metadata}

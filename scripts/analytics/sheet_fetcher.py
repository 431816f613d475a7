"""
Signup Analytics — Retrying Sheet Fetcher
===========================================

Reads every row of one named sheet, retrying on rate-limit responses with
exponential backoff plus jitter.

Google Sheets allows roughly 60 read requests per minute per user, and a
month of daily signup tabs is 30+ reads, so 429s are routine. A sheet whose
first row is empty is reported as MissingHeaderError and never retried.

Usage:
    from scripts.analytics.sheet_fetcher import fetch_rows_with_retry
    rows = await fetch_rows_with_retry(source, "01-09-2025")
"""
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Dict, List, Protocol

from scripts.lib.errors import HubError, MissingHeaderError, SheetRateLimitError
from scripts.lib.logger import setup_logger

logger = setup_logger("sheet_fetcher")

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_JITTER_MS = 400
MAX_DELAY_MS = 15000

RATE_LIMIT_MARKERS = (
    "429",
    "quota",
    "rate limit",
    "ratelimit",
    "rate_limit",
    "rate-limit",
    "limit exceeded",
    "too many requests",
)
# Matched as written: "generate" must not read as a rate limit
RATE_LIMIT_CASED_MARKERS = ("Quota", "Rate", "limit")
MISSING_HEADER_MARKER = "no values in the header row"

Row = Dict[str, str]


class SheetSource(Protocol):
    """A spreadsheet seen as a set of titled sheets of keyed rows."""

    async def fetch_sheet_titles(self) -> List[str]:
        ...

    async def fetch_rows(self, title: str) -> List[Row]:
        """Rows of *title* as header -> value records.

        May raise SheetRateLimitError, MissingHeaderError or SheetNotFoundError.
        """
        ...


def is_rate_limit_error(error: BaseException) -> bool:
    """True for HTTP 429 or a quota/rate-limit message."""
    if isinstance(error, SheetRateLimitError):
        return True
    if isinstance(error, HubError):
        return False
    for attr in ("status_code", "status"):
        if getattr(error, attr, None) == 429:
            return True
    resp = getattr(error, "resp", None)
    if resp is not None and getattr(resp, "status", None) == 429:
        return True
    message = str(error)
    if any(marker in message for marker in RATE_LIMIT_CASED_MARKERS):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def is_missing_header_error(error: BaseException) -> bool:
    if isinstance(error, MissingHeaderError):
        return True
    return MISSING_HEADER_MARKER in str(error).lower()


async def fetch_rows_with_retry(
    source: SheetSource,
    title: str,
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
    jitter_ms: int = DEFAULT_JITTER_MS,
    max_delay_ms: int = MAX_DELAY_MS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[Row]:
    """
    Fetch all rows of *title*, retrying rate-limit failures.

    Args:
        source: Spreadsheet source.
        title: Sheet (tab) title.
        max_retries: Retries after the first attempt.
        initial_delay_ms: First backoff delay; doubles per retry.
        jitter_ms: Upper bound of the random extra delay per retry.
        max_delay_ms: Cap on the doubled delay.
        sleep: Awaitable sleep (injected in tests).

    Returns:
        List of row dicts.

    Raises:
        SheetRateLimitError: Rate limited on every attempt.
        MissingHeaderError: Sheet has no header row.
        Exception: Any other source error, unchanged.
    """
    attempt = 0
    delay_ms = initial_delay_ms
    while True:
        try:
            return await source.fetch_rows(title)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if is_missing_header_error(e):
                if isinstance(e, MissingHeaderError):
                    raise
                raise MissingHeaderError(title) from e

            if not is_rate_limit_error(e):
                raise

            if attempt >= max_retries:
                logger.error(
                    "Rate limit on sheet '%s' persisted after %d attempts",
                    title, attempt + 1,
                )
                if isinstance(e, SheetRateLimitError):
                    raise
                raise SheetRateLimitError(title, attempts=attempt + 1) from e

            wait_ms = delay_ms + random.uniform(0, jitter_ms)
            attempt += 1
            logger.warning(
                "Rate limit hit on sheet '%s', retrying in %.0fms (attempt %d/%d)",
                title, wait_ms, attempt, max_retries,
            )
            await sleep(wait_ms / 1000)
            delay_ms = min(delay_ms * 2, max_delay_ms)

"""
Response cache for aggregation results.

The aggregation pipeline depends only on the ``Cache`` interface. Two
backends are provided:

  - MemoryCache   — in-process dict with per-entry TTL (single instance)
  - SupabaseCache — shared ``dashboard_cache`` table (multi-instance)

Entries are written wholesale and never mutated in place, so no locking is
needed. Readers check expiry themselves; an expired entry is a miss.

Usage:
    from scripts.lib.cache import get_cache, make_cache_key

    cache = get_cache()
    key = make_cache_key("signups", spreadsheet_id, "monthYear:09-2025", ["phone"])
    cached = cache.get(key)
    if cached is None:
        cache.set(key, payload, ttl_seconds=900)
"""
from __future__ import annotations

import json
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "900"))


def make_cache_key(*parts: Any) -> str:
    """Canonical serialization of request parameters.

    Empty parts are dropped and list/tuple/set parts are sorted so that
    ``fields=a,b`` and ``fields=b,a`` share one entry.
    """
    canonical = []
    for part in parts:
        if part is None or part == "" or part == [] or part == ():
            continue
        if isinstance(part, (list, tuple, set, frozenset)):
            canonical.append(sorted(str(p) for p in part))
        elif isinstance(part, dict):
            canonical.append({str(k): part[k] for k in sorted(part)})
        else:
            canonical.append(part)
    return json.dumps(canonical, separators=(",", ":"), sort_keys=True, default=str)


class Cache(ABC):
    """Key-value store with TTL."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        """Store *value*. ``ttl_seconds <= 0`` means no expiry."""
        ...

    @abstractmethod
    def clear(self, key: Optional[str] = None) -> None:
        """Drop one entry, or everything when *key* is None."""
        ...


class MemoryCache(Cache):
    """Process-local TTL cache."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at < self._clock():
            self._store.pop(key, None)
            logger.debug("Cache expired: %s", key)
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._store[key] = (value, expires_at)

    def clear(self, key: Optional[str] = None) -> None:
        if key:
            self._store.pop(key, None)
        else:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class SupabaseCache(Cache):
    """Cache backed by the Supabase ``dashboard_cache`` table.

    Values must be JSON-serialisable. Backend failures degrade to cache
    misses so a Supabase outage never fails an aggregation.
    """

    def get(self, key: str) -> Optional[Any]:
        from scripts.lib.supabase_client import fetch_cache_row

        try:
            row = fetch_cache_row(key)
        except Exception as e:
            logger.warning("Supabase cache read failed (treating as miss): %s", e)
            return None
        if not row:
            return None

        expires_at = row.get("expires_at")
        if expires_at:
            expiry = datetime.fromisoformat(str(expires_at).replace("Z", "+00:00"))
            if expiry < datetime.now(timezone.utc):
                return None
        return row.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        from scripts.lib.supabase_client import upsert_cache_row

        expires_at = None
        if ttl_seconds > 0:
            expires_at = (
                datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
            ).isoformat()
        try:
            upsert_cache_row(key, value, expires_at)
        except Exception as e:
            logger.warning("Supabase cache write failed for %s: %s", key, e)

    def clear(self, key: Optional[str] = None) -> None:
        from scripts.lib.supabase_client import delete_cache_rows

        try:
            delete_cache_rows(key)
        except Exception as e:
            logger.warning("Supabase cache clear failed: %s", e)


_default_cache: Optional[Cache] = None


def get_cache() -> Cache:
    """Return the process-wide cache selected by CACHE_BACKEND (singleton)."""
    global _default_cache
    if _default_cache is not None:
        return _default_cache

    backend = os.getenv("CACHE_BACKEND", "memory").lower()
    if backend == "supabase":
        _default_cache = SupabaseCache()
    else:
        _default_cache = MemoryCache()
    logger.info("Cache backend: %s", backend)
    return _default_cache

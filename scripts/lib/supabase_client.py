"""
Supabase Client Helper for the Signup Analytics Hub.
Provides connection, snapshot storage, and the shared cache table used when
several API instances run behind one load balancer.

Usage:
    from scripts.lib.supabase_client import get_client, upsert_snapshot

    client = get_client()
    upsert_snapshot("signup_summary", data)
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = (
    os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    or os.environ.get("SUPABASE_KEY", "")
)

CACHE_TABLE = "dashboard_cache"

_client = None


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    if not SUPABASE_URL or not SUPABASE_KEY:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env"
        )

    from supabase import create_client
    _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    logger.info("Supabase client connected to %s", SUPABASE_URL)
    return _client


def upsert_snapshot(source: str, data: Dict) -> bool:
    """
    Insert a new dashboard snapshot for a given source.

    Args:
        source: Source identifier (e.g. "signup_summary").
        data: Full aggregation payload.

    Returns:
        True on success, False on failure.
    """
    try:
        client = get_client()
        row = {
            "source": source,
            "data": data,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        client.table("dashboard_snapshots").insert(row).execute()
        logger.info("Snapshot inserted for source: %s", source)
        return True
    except Exception as e:
        logger.error("Supabase snapshot insert failed for %s: %s", source, e)
        return False


def fetch_cache_row(key: str) -> Optional[Dict]:
    """Return the raw cache row for *key* (value + expires_at), or None."""
    client = get_client()
    result = (
        client.table(CACHE_TABLE)
        .select("value, expires_at")
        .eq("key", key)
        .limit(1)
        .execute()
    )
    if result.data:
        return result.data[0]
    return None


def upsert_cache_row(key: str, value: Dict, expires_at: Optional[str]) -> None:
    """Write a cache entry wholesale, replacing any previous value."""
    client = get_client()
    client.table(CACHE_TABLE).upsert(
        {"key": key, "value": value, "expires_at": expires_at},
        on_conflict="key",
    ).execute()


def delete_cache_rows(key: Optional[str] = None) -> None:
    """Delete one cache entry, or every entry when *key* is None."""
    client = get_client()
    query = client.table(CACHE_TABLE).delete()
    if key:
        query = query.eq("key", key)
    else:
        query = query.neq("key", "")
    query.execute()

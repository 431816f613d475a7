"""
Signup Hub — Signup Analytics Router
======================================
Aggregated signup, WhatsApp, conversion and demo-status views read live
from Google Sheets, plus LLM coaching recommendations.

Endpoints:
  GET    /api/signups/freesignup      - Free-signup summary for a period
  GET    /api/signups/whatsapp        - WhatsApp bot summary for a period
  GET    /api/signups/compare         - Side-by-side summary per assignee
  GET    /api/signups/conversions     - Conversion sheet rows + activation stats
  GET    /api/signups/demo-status     - Demo-status phone/name lookups
  POST   /api/signups/recommendations - LLM daily/weekly action items
  DELETE /api/signups/cache           - Drop one cached response, or all

Period parameters (first one present wins):
  date=DD-MM-YYYY | month_year=MM-YYYY | month=M&year=YYYY | last_n=N
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from integrations.google_sheets import source_from_env
from models.dashboard_models import (
    CacheClearResponse,
    ConversionResponse,
    DemoStatusResponse,
    RecommendationRequest,
    RecommendationResponse,
)
from scripts.analytics.aggregator import summarize_conversions
from scripts.analytics.periods import resolve_period
from scripts.analytics.pipeline import (
    IdentitySources,
    aggregate,
    compare_assignees,
    load_single_sheet,
)
from scripts.analytics.recommendations import generate_recommendations
from scripts.analytics.row_mapper import build_demo_status_index, identified_sales, map_sale
from scripts.lib.cache import get_cache, make_cache_key
from scripts.lib.errors import (
    AggregationTimeoutError,
    ConfigError,
    DataError,
    HubError,
    MissingHeaderError,
    SheetAuthError,
    SheetNotFoundError,
    SheetRateLimitError,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("signups_router")

router = APIRouter(prefix="/api/signups", tags=["signups"])

SIGNUP_SHEET_SETTING = "SIGNUP_SPREADSHEET_ID"
WHATSAPP_SHEET_SETTING = "WHATSAPP_SPREADSHEET_ID"
CONVERSION_SHEET_SETTING = "CONVERSION_SPREADSHEET_ID"
DEMO_STATUS_SHEET_SETTING = "DEMO_STATUS_SPREADSHEET_ID"


def _http_error(e: HubError) -> HTTPException:
    """Translate a hub error into the HTTP status the dashboard expects."""
    if isinstance(e, SheetNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (MissingHeaderError, DataError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, SheetRateLimitError):
        return HTTPException(status_code=429, detail=str(e))
    if isinstance(e, AggregationTimeoutError):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, SheetAuthError):
        return HTTPException(status_code=500, detail="Google Sheets authentication failed")
    return HTTPException(status_code=500, detail=str(e))


def _require_source(setting: str, override: Optional[str]):
    source = source_from_env(setting, override)
    if source is None:
        raise ConfigError(f"spreadsheet_id is required ({setting} not set)", setting=setting)
    return source


def _split(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


async def _summary_view(
    view: str,
    sources: IdentitySources,
    *,
    date: Optional[str],
    month: Optional[str],
    year: Optional[str],
    month_year: Optional[str],
    last_n: Optional[int],
    assignee: Optional[str],
    fields: Optional[str],
    demo_mode: Optional[str],
    refresh: bool,
):
    period = resolve_period(
        date_title=date, month=month, year=year, month_year=month_year, last_n=last_n,
    )
    field_list = sorted(_split(fields)) or None
    key = make_cache_key(view, {
        "signups": sources.signups.spreadsheet_id,
        "conversions": getattr(sources.conversions, "spreadsheet_id", None),
        "demo_status": getattr(sources.demo_status, "spreadsheet_id", None),
        "period": period.label,
        "assignee": (assignee or "All").strip().lower(),
        "fields": field_list,
    })
    cache = get_cache()
    if refresh:
        cache.clear(key)
    return await aggregate(
        period, sources,
        assignee=assignee, demo_mode=demo_mode, fields=field_list,
        cache=cache, cache_key=key,
    )


@router.get("/freesignup")
async def freesignup_summary(
    spreadsheet_id: Optional[str] = Query(None, description="Signup spreadsheet (defaults to SIGNUP_SPREADSHEET_ID)"),
    date: Optional[str] = Query(None, description="Single sheet, DD-MM-YYYY"),
    month: Optional[str] = Query(None, description="Month number, with year"),
    year: Optional[str] = Query(None, description="Four-digit year, with month"),
    month_year: Optional[str] = Query(None, description="MM-YYYY or YYYY-MM"),
    last_n: Optional[int] = Query(None, ge=1, description="N most recent sheets"),
    assignee: Optional[str] = Query(None, description="Restrict to one assignee"),
    fields: Optional[str] = Query(None, description="Comma-separated contact fields"),
    refresh: bool = Query(False, description="Bypass the cached response"),
):
    """Free-signup summary: every contact counts as a requested and completed demo."""
    try:
        sources = IdentitySources(
            signups=_require_source(SIGNUP_SHEET_SETTING, spreadsheet_id),
            conversions=source_from_env(CONVERSION_SHEET_SETTING),
        )
        return await _summary_view(
            "freesignup", sources,
            date=date, month=month, year=year, month_year=month_year, last_n=last_n,
            assignee=assignee, fields=fields, demo_mode="all", refresh=refresh,
        )
    except HubError as e:
        logger.error("Free-signup summary failed: %s", e)
        raise _http_error(e)
    except Exception as e:
        logger.error("Free-signup summary failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to aggregate signup data")


@router.get("/whatsapp")
async def whatsapp_summary(
    spreadsheet_id: Optional[str] = Query(None, description="WhatsApp spreadsheet (defaults to WHATSAPP_SPREADSHEET_ID)"),
    demo_status_spreadsheet_id: Optional[str] = Query(None, description="Demo-status spreadsheet"),
    demo_status_sheet: Optional[str] = Query(None, description="Tab in the demo-status spreadsheet"),
    date: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    year: Optional[str] = Query(None),
    month_year: Optional[str] = Query(None),
    last_n: Optional[int] = Query(None, ge=1),
    assignee: Optional[str] = Query(None),
    fields: Optional[str] = Query(None),
    refresh: bool = Query(False),
):
    """WhatsApp bot summary; demo completion comes from the demo-status sheet when configured."""
    try:
        demo_source = source_from_env(DEMO_STATUS_SHEET_SETTING, demo_status_spreadsheet_id)
        sources = IdentitySources(
            signups=_require_source(WHATSAPP_SHEET_SETTING, spreadsheet_id),
            conversions=source_from_env(CONVERSION_SHEET_SETTING),
            demo_status=demo_source,
            demo_status_sheet=demo_status_sheet,
        )
        return await _summary_view(
            "whatsapp", sources,
            date=date, month=month, year=year, month_year=month_year, last_n=last_n,
            assignee=assignee, fields=fields,
            demo_mode="index" if demo_source is not None else "field",
            refresh=refresh,
        )
    except HubError as e:
        logger.error("WhatsApp summary failed: %s", e)
        raise _http_error(e)
    except Exception as e:
        logger.error("WhatsApp summary failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to aggregate WhatsApp data")


@router.get("/compare")
async def compare_summary(
    assignees: str = Query(..., description="Comma-separated assignee names"),
    spreadsheet_id: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    year: Optional[str] = Query(None),
    month_year: Optional[str] = Query(None),
    last_n: Optional[int] = Query(None, ge=1),
):
    """Free-signup summary per assignee, from a single read of the sheets."""
    try:
        names = _split(assignees)
        if not names:
            raise HTTPException(status_code=400, detail="At least one assignee is required")
        period = resolve_period(
            date_title=date, month=month, year=year, month_year=month_year, last_n=last_n,
        )
        sources = IdentitySources(
            signups=_require_source(SIGNUP_SHEET_SETTING, spreadsheet_id),
            conversions=source_from_env(CONVERSION_SHEET_SETTING),
        )
        return await compare_assignees(period, sources, names)
    except HTTPException:
        raise
    except HubError as e:
        logger.error("Assignee comparison failed: %s", e)
        raise _http_error(e)
    except Exception as e:
        logger.error("Assignee comparison failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to compare assignees")


@router.get("/conversions", response_model=ConversionResponse)
async def conversions(
    spreadsheet_id: Optional[str] = Query(None, description="Defaults to CONVERSION_SPREADSHEET_ID"),
    sheet_name: Optional[str] = Query(None, description="Tab name (first tab when absent)"),
):
    """Conversion sheet rows with activation and ratings stats."""
    try:
        source = _require_source(CONVERSION_SHEET_SETTING, spreadsheet_id)
        title, rows = await load_single_sheet(source, sheet_name)
        records = [map_sale(row) for row in rows]
        sales = identified_sales(records)
        return {
            "sheet_name": title,
            "data": [
                {"name": s.name, "email": s.email, "contact": s.contact,
                 "activated": s.activated, "rating": s.rating,
                 "purchase_month": s.purchase_month, "last_follow_up": s.last_follow_up}
                for s in sales
            ],
            "analytics": summarize_conversions(records).to_dict(),
        }
    except HubError as e:
        logger.error("Conversion sheet read failed: %s", e)
        raise _http_error(e)
    except Exception as e:
        logger.error("Conversion sheet read failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to read conversion sheet")


@router.get("/demo-status", response_model=DemoStatusResponse)
async def demo_status(
    spreadsheet_id: Optional[str] = Query(None, description="Defaults to DEMO_STATUS_SPREADSHEET_ID"),
    sheet_name: Optional[str] = Query(None, description="Tab name (first tab when absent)"),
):
    """Demo-completion lookups keyed by raw phone and normalized name."""
    try:
        source = _require_source(DEMO_STATUS_SHEET_SETTING, spreadsheet_id)
        title, rows = await load_single_sheet(source, sheet_name)
        return {"sheet_name": title, **build_demo_status_index(rows).to_dict()}
    except HubError as e:
        logger.error("Demo-status sheet read failed: %s", e)
        raise _http_error(e)
    except Exception as e:
        logger.error("Demo-status sheet read failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to read demo-status sheet")


@router.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(req: RecommendationRequest):
    """Daily and weekly action items for the team, generated by the LLM."""
    try:
        return await generate_recommendations(
            req.dashboard_type, req.data, month=req.month, provider=req.provider,
        )
    except ConfigError as e:
        logger.error("Recommendations not configured: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error("Recommendations failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate recommendations")


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(key: Optional[str] = Query(None, description="Single cache key; all when absent")):
    get_cache().clear(key)
    logger.info("Cache cleared: %s", key or "all")
    return {"cleared": True, "key": key}

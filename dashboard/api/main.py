"""
Signup Hub — API Server
=========================

Live analytics over the signup, WhatsApp, conversion and demo-status
Google Sheets, with a response cache in front of the aggregation pipeline.

Route groups:
  /api/health      - Health check
  /api/signups/*   - Period summaries, comparisons, single-sheet reads,
                     recommendations and cache control
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

logger = logging.getLogger(__name__)

SHEET_SETTINGS = {
    "signups": "SIGNUP_SPREADSHEET_ID",
    "whatsapp": "WHATSAPP_SPREADSHEET_ID",
    "conversions": "CONVERSION_SPREADSHEET_ID",
    "demo_status": "DEMO_STATUS_SPREADSHEET_ID",
}


def _sheets_configured() -> dict:
    return {name: bool(os.getenv(setting)) for name, setting in SHEET_SETTINGS.items()}


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Signup Hub...")

    from scripts.lib.cache import get_cache
    logger.info("Cache backend: %s", type(get_cache()).__name__)

    missing = [name for name, ok in _sheets_configured().items() if not ok]
    if missing:
        logger.warning("Spreadsheet IDs not configured: %s", ", ".join(missing))

    if not (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL")):
        logger.warning("No Google service-account credentials configured")

    logger.info("Signup Hub ready")
    yield
    logger.info("Shutting down Signup Hub...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
).split(",")

app = FastAPI(
    title="Signup Hub",
    version="1.0.0",
    description="Signup, WhatsApp and conversion analytics over Google Sheets",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.signups import router as signups_router

app.include_router(signups_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with configuration status."""
    return {
        "status": "healthy",
        "service": "Signup Hub",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache_backend": os.getenv("CACHE_BACKEND", "memory").lower(),
        "sheets": _sheets_configured(),
        "ai_provider": os.getenv("AI_PROVIDER", "groq").lower(),
    }

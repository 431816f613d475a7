"""
Google Sheets Source
=====================

Service-account client for the Sheets v4 API, exposed as a SheetSource:
one spreadsheet seen as titled tabs of header-keyed rows.

The googleapiclient transport is blocking, so every request runs in a
worker thread. API failures are translated to the hub's sheet errors:

    HTTP 429 / quota          -> SheetRateLimitError   (retried by the fetcher)
    HTTP 404 / unknown range  -> SheetNotFoundError
    HTTP 401 / 403            -> SheetAuthError
    empty first row           -> MissingHeaderError

Credentials:
    - GOOGLE_SERVICE_ACCOUNT_JSON  (path to the service-account key file)
    - OR inline: GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY

Usage:
    from integrations.google_sheets import GoogleSheetsSource
    source = GoogleSheetsSource(os.getenv("SIGNUP_SPREADSHEET_ID"))
    titles = await source.fetch_sheet_titles()
    rows = await source.fetch_rows(titles[0])
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional

from scripts.lib.errors import (
    ConfigError,
    MissingHeaderError,
    SheetAuthError,
    SheetError,
    SheetNotFoundError,
    SheetRateLimitError,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("google_sheets")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

Row = Dict[str, str]


def _build_credentials():
    """Service-account credentials from the key file or the inline env pair.

    Raises:
        SheetAuthError: Neither credential form is configured.
    """
    from google.oauth2 import service_account

    json_path = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "").strip()
    if json_path:
        path = Path(json_path)
        if not path.exists():
            raise SheetAuthError(f"Service account JSON file not found: {json_path}")
        logger.info("Loading credentials from %s", json_path)
        return service_account.Credentials.from_service_account_file(
            str(path), scopes=SCOPES,
        )

    email = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "").strip()
    private_key = os.getenv("GOOGLE_PRIVATE_KEY", "").strip()
    if email and private_key:
        # .env files carry the key with escaped newlines
        info = {
            "type": "service_account",
            "client_email": email,
            "token_uri": "https://oauth2.googleapis.com/token",
            "private_key": private_key.replace("\\n", "\n"),
        }
        logger.info("Loading inline credentials for %s", email)
        return service_account.Credentials.from_service_account_info(
            info, scopes=SCOPES,
        )

    raise SheetAuthError(
        "No Google credentials found. Set GOOGLE_SERVICE_ACCOUNT_JSON "
        "or GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY"
    )


def rows_from_values(values: List[List[str]], title: str) -> List[Row]:
    """Key data rows by the header row, padding short rows with ""."""
    if not values or not any(str(cell).strip() for cell in values[0]):
        raise MissingHeaderError(title)

    headers = [str(h) for h in values[0]]
    rows: List[Row] = []
    for raw in values[1:]:
        padded = list(raw) + [""] * (len(headers) - len(raw))
        rows.append({headers[i]: padded[i] for i in range(len(headers))})
    return rows


def translate_http_error(error: Exception, title: Optional[str] = None) -> Exception:
    """Map a googleapiclient HttpError onto the hub's sheet errors."""
    resp = getattr(error, "resp", None)
    status = getattr(resp, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    message = str(error)
    lowered = message.lower()

    if status == 429 or "rate_limit" in lowered or "quota" in lowered:
        return SheetRateLimitError(title)
    if status == 404 or "unable to parse range" in lowered:
        return SheetNotFoundError(title)
    if status in (401, 403):
        return SheetAuthError(f"Google Sheets denied access: {message}")
    return SheetError(message, code=f"SHEET_HTTP_{status or 'ERROR'}", title=title)


class GoogleSheetsSource:
    """One spreadsheet, read through the Sheets v4 API."""

    def __init__(self, spreadsheet_id: str, credentials=None):
        if not spreadsheet_id:
            raise ConfigError("Spreadsheet ID is required", setting="spreadsheet_id")
        self.spreadsheet_id = spreadsheet_id
        self._credentials = credentials
        self._service = None

    def _sheets(self):
        if self._service is None:
            from googleapiclient.discovery import build

            credentials = self._credentials or _build_credentials()
            self._service = build(
                "sheets", "v4", credentials=credentials, cache_discovery=False,
            )
        return self._service.spreadsheets()

    def _execute(self, request, title: Optional[str] = None):
        from googleapiclient.errors import HttpError

        try:
            return request.execute()
        except HttpError as e:
            raise translate_http_error(e, title) from e

    def _list_titles(self) -> List[str]:
        request = self._sheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields="sheets.properties(title,hidden)",
        )
        metadata = self._execute(request)
        titles = []
        for sheet in metadata.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("hidden"):
                continue
            titles.append(props.get("title", ""))
        return titles

    def _read_values(self, title: str) -> List[List[str]]:
        request = self._sheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'",
            valueRenderOption="FORMATTED_VALUE",
            dateTimeRenderOption="FORMATTED_STRING",
        )
        return self._execute(request, title).get("values", [])

    async def fetch_sheet_titles(self) -> List[str]:
        titles = await asyncio.to_thread(self._list_titles)
        logger.debug("Spreadsheet %s has %d visible tabs", self.spreadsheet_id, len(titles))
        return titles

    async def fetch_rows(self, title: str) -> List[Row]:
        values = await asyncio.to_thread(self._read_values, title)
        rows = rows_from_values(values, title)
        logger.debug("Tab '%s': %d rows", title, len(rows))
        return rows


def source_from_env(setting: str, override: Optional[str] = None) -> Optional[GoogleSheetsSource]:
    """Source for the spreadsheet ID in *override* or env var *setting*; None when unset."""
    spreadsheet_id = (override or os.getenv(setting, "")).strip()
    if not spreadsheet_id:
        return None
    return GoogleSheetsSource(spreadsheet_id)

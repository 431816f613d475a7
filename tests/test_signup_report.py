"""Tests for the signup report CLI."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from scripts import signup_report
from scripts.analytics.periods import resolve_period
from scripts.lib.errors import ConfigError

PAYLOAD = {
    "summary": {"total_contacts": 2, "sales_count": 1, "conversion_rate": 50},
    "contacts": [],
    "complete": True,
    "cached": False,
}


class TestOutputPath:
    def test_period_in_filename(self, tmp_path):
        path = signup_report.output_path("whatsapp", resolve_period(month_year="09-2025"), tmp_path)
        assert path == tmp_path / "signup_summary_whatsapp_month_09-2025.json"


class TestBuildSources:
    def test_missing_sheet_id(self):
        with patch.dict("os.environ", {"SIGNUP_SPREADSHEET_ID": ""}):
            with pytest.raises(ConfigError):
                signup_report.build_sources("freesignup")

    def test_whatsapp_includes_demo_status(self):
        env = {"WHATSAPP_SPREADSHEET_ID": "wa", "DEMO_STATUS_SPREADSHEET_ID": "demo"}
        with patch.dict("os.environ", env):
            sources = signup_report.build_sources("whatsapp")
        assert sources.signups.spreadsheet_id == "wa"
        assert sources.demo_status.spreadsheet_id == "demo"


class TestMain:
    def test_writes_json(self, tmp_path):
        with patch.dict("os.environ", {"SIGNUP_SPREADSHEET_ID": "signup"}), \
                patch.object(signup_report, "aggregate", new=AsyncMock(return_value=PAYLOAD)) as mock_agg:
            code = signup_report.main(["--month-year", "09-2025", "--output-dir", str(tmp_path)])

        assert code == 0
        written = json.loads((tmp_path / "signup_summary_freesignup_month_09-2025.json").read_text())
        assert written["summary"]["total_contacts"] == 2
        assert mock_agg.await_args.kwargs["demo_mode"] == "all"

    def test_period_required(self):
        with pytest.raises(SystemExit):
            signup_report.main(["--view", "whatsapp"])

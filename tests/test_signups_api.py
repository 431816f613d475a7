"""Tests for the signup analytics HTTP API."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from dashboard.api.main import app
from scripts.lib.cache import MemoryCache
from scripts.lib.errors import SheetAuthError, SheetRateLimitError

SIGNUP_ROWS = [
    {"Timestamp": "9/1/2025 10:00:00", "Phone": "9000000001", "Name": "A",
     "Demo Requested": "Yes", "Demo Status": "Yes", "Assigned To": "Sowmya"},
    {"Timestamp": "9/1/2025 11:00:00", "Phone": "9000000002", "Name": "B",
     "Demo Requested": "No", "Assigned To": "Sukaina"},
]


@pytest.fixture
def sheets(make_source):
    return {
        "SIGNUP_SPREADSHEET_ID": make_source({"01-09-2025": SIGNUP_ROWS}, spreadsheet_id="signup"),
        "WHATSAPP_SPREADSHEET_ID": make_source({"01-09-2025": SIGNUP_ROWS}, spreadsheet_id="wa"),
        "CONVERSION_SPREADSHEET_ID": make_source(
            {"Sales": [{"Name": "A", "Contact": "9000000001", "Activated": "yes"}]},
            spreadsheet_id="conv",
        ),
        "DEMO_STATUS_SPREADSHEET_ID": make_source(
            {"Demo": [{"Phone Number": "9000000001", "Name": "A", "Demo Completed": "Yes"}]},
            spreadsheet_id="demo",
        ),
    }


@pytest.fixture
def client(sheets):
    cache = MemoryCache()

    def fake_source(setting, override=None):
        return sheets.get(setting)

    with patch("dashboard.api.routers.signups.source_from_env", side_effect=fake_source), \
            patch("dashboard.api.routers.signups.get_cache", return_value=cache):
        yield TestClient(app)


class TestHealth:
    def test_health(self):
        response = TestClient(app).get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_startup_warms_shared_cache(self):
        with patch("scripts.lib.cache.get_cache", return_value=MemoryCache()) as mock_get:
            with TestClient(app) as started:
                assert started.get("/api/health").status_code == 200
        mock_get.assert_called_once_with()


class TestFreeSignup:
    def test_month_summary(self, client):
        response = client.get("/api/signups/freesignup", params={"month_year": "09-2025"})
        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["total_contacts"] == 2
        assert body["summary"]["demo_completed"] == 2
        assert body["summary"]["sales_count"] == 1
        assert body["demo_mode"] == "all"
        assert body["cached"] is False

    def test_second_request_cached(self, client):
        client.get("/api/signups/freesignup", params={"month_year": "09-2025"})
        response = client.get("/api/signups/freesignup", params={"month_year": "09-2025"})
        assert response.json()["cached"] is True

    def test_fields_projection(self, client):
        response = client.get(
            "/api/signups/freesignup",
            params={"month_year": "09-2025", "fields": "phone,name", "assignee": "Sowmya"},
        )
        assert response.json()["contacts"] == [{"name": "A", "phone": "9000000001"}]

    def test_missing_period_is_400(self, client):
        assert client.get("/api/signups/freesignup").status_code == 400

    def test_bad_month_year_is_400(self, client):
        response = client.get("/api/signups/freesignup", params={"month_year": "09-10"})
        assert response.status_code == 400

    def test_missing_date_is_404(self, client):
        response = client.get("/api/signups/freesignup", params={"date": "31-09-2025"})
        assert response.status_code == 404

    def test_auth_failure_is_500(self, client, sheets):
        sheets["SIGNUP_SPREADSHEET_ID"].fetch_sheet_titles = AsyncMock(side_effect=SheetAuthError())
        response = client.get("/api/signups/freesignup", params={"last_n": 1})
        assert response.status_code == 500

    def test_unconfigured_sheet_is_400(self, client, sheets):
        del sheets["SIGNUP_SPREADSHEET_ID"]
        response = client.get("/api/signups/freesignup", params={"last_n": 1})
        assert response.status_code == 400


class TestWhatsApp:
    def test_uses_demo_status_sheet(self, client):
        response = client.get("/api/signups/whatsapp", params={"date": "01-09-2025"})
        assert response.status_code == 200
        body = response.json()
        assert body["demo_mode"] == "index"
        assert body["summary"]["demo_requested"] == 1
        assert body["summary"]["demo_completed"] == 1


class TestCompare:
    def test_per_assignee(self, client):
        response = client.get(
            "/api/signups/compare", params={"month_year": "09-2025", "assignees": "Sowmya,Sukaina"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["assignees"]["Sowmya"]["sales_count"] == 1
        assert body["assignees"]["Sukaina"]["total_contacts"] == 1

    def test_blank_assignees_is_400(self, client):
        response = client.get("/api/signups/compare", params={"month_year": "09-2025", "assignees": " , "})
        assert response.status_code == 400


class TestSingleSheets:
    def test_conversions(self, client):
        response = client.get("/api/signups/conversions")
        assert response.status_code == 200
        body = response.json()
        assert body["sheet_name"] == "Sales"
        assert body["analytics"]["activated"] == 1

    def test_blank_rows_counted_in_analytics(self, client, sheets):
        sheets["CONVERSION_SPREADSHEET_ID"].sheets["Sales"].append(
            {"Name": "", "Contact": "", "Activated": ""},
        )
        body = client.get("/api/signups/conversions").json()
        assert len(body["data"]) == 1
        assert body["analytics"]["total_records"] == 2
        assert body["analytics"]["activation_rate"] == 50.0

    def test_demo_status(self, client):
        response = client.get("/api/signups/demo-status", params={"sheet_name": "Demo"})
        assert response.status_code == 200
        body = response.json()
        assert body["total_demo_records"] == 1
        assert body["phone_number_mapping"]["9000000001"]["is_completed"] is True

    def test_missing_header_is_400(self, client, sheets):
        sheets["DEMO_STATUS_SPREADSHEET_ID"].sheets["Demo"] = None
        assert client.get("/api/signups/demo-status").status_code == 400

    def test_rate_limit_exhausted_is_429(self, client):
        with patch(
            "dashboard.api.routers.signups.load_single_sheet",
            new=AsyncMock(side_effect=SheetRateLimitError("Sales", attempts=6)),
        ):
            response = client.get("/api/signups/conversions")
        assert response.status_code == 429


class TestRecommendations:
    def test_passes_through(self, client):
        result = {
            "recommendations": {"current_week": ["Today: 15 calls"], "next_week": []},
            "timestamp": "2025-09-01T00:00:00+00:00",
            "dashboard_type": "whatsapp",
            "month": "09-2025",
        }
        with patch(
            "dashboard.api.routers.signups.generate_recommendations",
            new=AsyncMock(return_value=result),
        ):
            response = client.post(
                "/api/signups/recommendations",
                json={"dashboard_type": "whatsapp", "data": {"total_contacts": 3}, "month": "09-2025"},
            )
        assert response.status_code == 200
        assert response.json()["recommendations"]["current_week"] == ["Today: 15 calls"]

    def test_unknown_dashboard_type(self, client):
        response = client.post("/api/signups/recommendations", json={"dashboard_type": "x"})
        assert response.status_code == 422


class TestCache:
    def test_clear(self, client):
        client.get("/api/signups/freesignup", params={"month_year": "09-2025"})
        assert client.delete("/api/signups/cache").json() == {"cleared": True, "key": None}
        response = client.get("/api/signups/freesignup", params={"month_year": "09-2025"})
        assert response.json()["cached"] is False

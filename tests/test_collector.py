"""Tests for multi-sheet collection and deduplication."""

import pytest

from scripts.analytics.collector import collect_contacts, dedupe_contacts
from scripts.analytics.periods import resolve_period
from scripts.analytics.records import Contact
from scripts.lib.errors import SheetNotFoundError, SheetRateLimitError


def _row(phone, timestamp, name="Parent"):
    return {"Timestamp": timestamp, "Phone": phone, "Name": name}


class TestDedupe:
    def test_most_recent_wins(self):
        older = Contact(identity_key="1", timestamp="2025-09-01T10:00:00", name="old")
        newer = Contact(identity_key="1", timestamp="2025-09-02T10:00:00", name="new")
        unique, dropped = dedupe_contacts([older, newer])
        assert [c.name for c in unique] == ["new"]
        assert dropped == 0

    def test_tie_keeps_first_read(self):
        first = Contact(identity_key="1", timestamp="2025-09-01T10:00:00", name="first")
        second = Contact(identity_key="1", timestamp="2025-09-01T10:00:00", name="second")
        unique, _ = dedupe_contacts([first, second])
        assert unique[0].name == "first"

    def test_undated_sorts_last(self):
        undated = Contact(identity_key="1", timestamp=None, name="undated")
        dated = Contact(identity_key="1", timestamp="2025-09-01T10:00:00", name="dated")
        unique, _ = dedupe_contacts([undated, dated])
        assert unique[0].name == "dated"

    def test_empty_identity_dropped(self):
        unique, dropped = dedupe_contacts([Contact(identity_key=""), Contact(identity_key="2")])
        assert [c.identity_key for c in unique] == ["2"]
        assert dropped == 1


class TestCollectContacts:
    @pytest.mark.asyncio
    async def test_month_collection_dedupes_across_sheets(self, make_source, sleep):
        source = make_source({
            "01-09-2025": [
                _row("+91 98765 43210", "9/1/2025 09:00:00", "Asha"),
                _row("9000000001", "9/1/2025 10:00:00"),
            ],
            "02-09-2025": [_row("9876543210", "9/2/2025 09:00:00", "Asha again")],
            "01-10-2025": [_row("9000000002", "10/1/2025 09:00:00")],
        })
        result = await collect_contacts(
            source, resolve_period(month_year="09-2025"), sleep=sleep, inter_sheet_delay_ms=100,
            inter_sheet_jitter_ms=0,
        )
        assert source.reads == ["01-09-2025", "02-09-2025"]
        assert result.total_rows == 3
        assert len(result.contacts) == 2
        asha = next(c for c in result.contacts if c.identity_key == "9876543210")
        assert asha.name == "Asha again"
        assert sleep.calls == [0.1]
        assert result.complete is True

    @pytest.mark.asyncio
    async def test_rows_without_phone_counted(self, make_source, sleep):
        source = make_source({"01-09-2025": [_row("", "9/1/2025"), _row("123", "9/1/2025")]})
        result = await collect_contacts(source, resolve_period(last_n=1), sleep=sleep)
        assert result.dropped_without_phone == 1
        assert len(result.contacts) == 1

    @pytest.mark.asyncio
    async def test_failed_sheet_recorded_and_skipped(self, make_source, sleep):
        source = make_source(
            {"01-09-2025": [_row("1", "9/1/2025")], "02-09-2025": [_row("2", "9/2/2025")],
             "03-09-2025": None},
            errors={"02-09-2025": [SheetRateLimitError("02-09-2025")] * 10},
        )
        result = await collect_contacts(
            source, resolve_period(month_year="09-2025"), sleep=sleep, max_retries=1,
        )
        assert [c.identity_key for c in result.contacts] == ["1"]
        reasons = {f["title"]: f["reason"] for f in result.failed_sheets}
        assert reasons == {
            "02-09-2025": "API_RATE_LIMIT",
            "03-09-2025": "SHEET_MISSING_HEADER",
        }
        assert result.complete is False
        assert result.metadata()["complete"] is False

    @pytest.mark.asyncio
    async def test_unreadable_rows_counted(self, make_source, sleep):
        source = make_source({"01-09-2025": [_row("1", "9/1/2025")]})
        original = source.fetch_rows

        async def with_bad_row(title):
            return await original(title) + ["not a row"]

        source.fetch_rows = with_bad_row
        result = await collect_contacts(source, resolve_period(last_n=1), sleep=sleep)
        assert result.unreadable_rows == 1
        assert len(result.contacts) == 1

    @pytest.mark.asyncio
    async def test_missing_date_raises(self, make_source, sleep):
        source = make_source({"01-09-2025": []})
        with pytest.raises(SheetNotFoundError):
            await collect_contacts(source, resolve_period(date_title="31-09-2025"), sleep=sleep)

    @pytest.mark.asyncio
    async def test_fallback_flagged(self, make_source, sleep):
        source = make_source({"01-09-2025": [_row("1", "9/1/2025")]})
        result = await collect_contacts(
            source, resolve_period(month_year="01-2024"), sleep=sleep,
        )
        assert result.fallback_used is True
        assert result.metadata()["fallback_used"] is True
        assert len(result.contacts) == 1

"""Tests for sheet row mapping."""

import pytest

from scripts.analytics.row_mapper import (
    build_demo_status_index,
    identified_sales,
    lookup_field,
    map_contact,
    map_sale,
)
from scripts.lib.errors import RowMappingError


class TestLookupField:
    def test_header_case_and_whitespace_ignored(self):
        row = {"  phone   NUMBER ": "98765 43210"}
        assert lookup_field(row, ["Phone Number"]) == "98765 43210"

    def test_first_non_empty_alias_wins(self):
        row = {"Phone": "", "Phone Number": "111", "Contact": "222"}
        assert lookup_field(row, ["Phone", "Phone Number", "Contact"]) == "111"

    def test_colliding_headers_keep_first_non_empty(self):
        row = {"Phone": "9000000001", "Phone ": "", "PHONE": "9000000002"}
        assert lookup_field(row, ["Phone"]) == "9000000001"

    def test_colliding_headers_skip_empty_first(self):
        row = {"Phone ": "  ", "Phone": "9000000001"}
        assert lookup_field(row, ["Phone"]) == "9000000001"

    def test_colliding_header_keeps_identity_key(self):
        contact = map_contact({"Phone": "9000000001", "Phone ": "", "Name": "A"})
        assert contact.identity_key == "9000000001"

    def test_missing_field_is_empty(self):
        assert lookup_field({"Name": "A"}, ["Email"]) == ""


class TestMapContact:
    def test_full_row(self):
        row = {
            "Timestamp": "9/1/2025 10:00:00",
            "Name": "Asha",
            "Phone Number": "+91 98765 43210",
            "Email": " Asha@Example.com ",
            "Language": "Hindi",
            "Assigned To": "Sowmya",
            "Demo Requested": "Yes",
            "Form Submited": "yes",
        }
        contact = map_contact(row, row_index=4, source_sheet="01-09-2025")
        assert contact.identity_key == "9876543210"
        assert contact.secondary_key == "asha@example.com"
        assert contact.timestamp == "2025-09-01T10:00:00"
        assert contact.assigned_to == "Sowmya"
        assert contact.form_submitted == "yes"
        assert contact.row_index == 4
        assert contact.source_sheet == "01-09-2025"

    def test_unparsable_timestamp_is_none(self):
        contact = map_contact({"Timestamp": "soon", "Phone": "9876543210"})
        assert contact.timestamp is None

    def test_empty_row_has_empty_identity(self):
        contact = map_contact({})
        assert contact.identity_key == ""
        assert contact.name == ""

    def test_non_mapping_row_rejected(self):
        with pytest.raises(RowMappingError):
            map_contact(["a", "b"], row_index=2)


class TestMapSales:
    def test_conversion_aliases(self):
        sale = map_sale({
            "Name": "Asha", "Email ID": "a@x.com", "Contact": "9876543210",
            "Activated": "Yes", "Ratings in Amazon": "5", "Purchase Month": "Sep",
        })
        assert sale.email == "a@x.com"
        assert sale.rating == "5"
        assert sale.purchase_month == "Sep"

    def test_blank_rows_dropped(self):
        sales = identified_sales(map_sale(r) for r in [{"Name": "", "Contact": ""}, {"Name": "B"}])
        assert [s.name for s in sales] == ["B"]


class TestDemoStatusIndex:
    def test_raw_phone_and_name_keys(self):
        index = build_demo_status_index([
            {"Phone Number": " +91 98765 43210 ", "Name": "Asha  Rao", "Demo Completed": "Yes"},
            {"Phone Number": "9000000000", "Name": "", "Demo Completed": "No"},
        ])
        assert index.total_rows == 2
        assert index.by_phone["+91 98765 43210"].is_completed is True
        assert "9876543210" not in index.by_phone
        assert index.by_name["asha rao"].demo_status == "yes"
        assert index.by_phone["9000000000"].is_completed is False

    def test_to_dict_counts(self):
        data = build_demo_status_index([{"Phone": "1", "Demo Completed": "yes"}]).to_dict()
        assert data["total_demo_records"] == 1
        assert data["total_with_phone_numbers"] == 1
        assert data["total_with_names"] == 0
        assert data["phone_number_mapping"]["1"]["is_completed"] is True

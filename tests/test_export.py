"""
Tests for CSV report export.
"""

import csv
import io

import pytest
from datetime import date

from portal.core.export import COLUMNS, EXPORTABLE, notification_rows, to_csv, with_location_names
from portal.core.notifications import InitiativeRecord, RegistrationInfo, derive_notifications


def parse(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


class TestCsv:

    def test_header_only_for_empty_input(self):
        rows = parse(to_csv("locations", []))
        assert rows == [[header for header, _ in COLUMNS["locations"]]]

    def test_every_resource_has_columns(self):
        assert set(EXPORTABLE) == {"locations", "initiatives", "compliance", "users", "notifications"}

    def test_unknown_resource(self):
        with pytest.raises(KeyError):
            to_csv("claims", [])

    def test_nested_values_and_booleans(self):
        doc = {
            "title": "Consent, renewal",
            "description": 'SPCB "CTO"',
            "location_name": "Depot",
            "status": "Active",
            "registration_info": {"registered": "Yes", "license_number": "L-1"},
            "is_active": True,
        }
        header, row = parse(to_csv("initiatives", [doc]))

        record = dict(zip(header, row))
        assert record["Title"] == "Consent, renewal"
        assert record["Description"] == 'SPCB "CTO"'
        assert record["Registered"] == "Yes"
        assert record["LicenseNumber"] == "L-1"
        assert record["Validity"] == ""
        assert record["Budget"] == ""

    def test_boolean_cells(self):
        header, row = parse(to_csv("users", [{"name": "A", "is_active": False}]))
        assert dict(zip(header, row))["IsActive"] == "No"

    def test_location_names(self):
        docs = [{"location": "l1"}, {"location": "gone"}, {}]
        named = with_location_names(docs, {"l1": "Depot"})
        assert [d["location_name"] for d in named] == ["Depot", "", ""]
        assert "location_name" not in docs[0]


class TestNotificationExport:

    def test_rows_follow_ranking(self):
        today = date(2026, 3, 1)
        records = [
            InitiativeRecord(id="a", title="Deadline", end_date=date(2026, 3, 20)),
            InitiativeRecord(
                id="b",
                title="License",
                location_name="Quarry",
                registration=RegistrationInfo(
                    registered="Yes", license_number="PESO/1", validity=date(2026, 2, 27)
                ),
            ),
        ]
        rows = parse(to_csv("notifications", notification_rows(derive_notifications(records, today))))

        assert rows[0][:3] == ["Title", "Type", "Severity"]
        assert [r[0] for r in rows[1:]] == ["License", "Deadline"]
        assert rows[1][1:5] == ["expiry", "critical", "Registration expired 2 days ago", "-2"]
        assert rows[1][5:] == ["2026-02-27", "Quarry", "PESO/1"]

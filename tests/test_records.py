"""
Tests for turning stored initiative documents into engine records.
"""

import pytest
from datetime import date, datetime, timezone

from portal.core.clock import portal_timezone, to_portal_date
from portal.core.records import (
    ExpandedLocation,
    LocationId,
    parse_date,
    parse_location_ref,
    record_from_document,
    records_from_documents,
    resolve_location_name,
)


NAMES = {"loc-1": "Pune Metro Depot", "loc-2": "Nashik Stone Quarry"}


@pytest.fixture(autouse=True)
def utc_portal(monkeypatch):
    monkeypatch.setenv("PORTAL_TIMEZONE", "UTC")


class TestLocationRef:

    def test_string_is_an_id(self):
        assert parse_location_ref("loc-1") == LocationId("loc-1")

    def test_object_is_expanded(self):
        ref = parse_location_ref({"_id": "loc-2", "name": "Quarry", "city": "Nashik"})
        assert ref == ExpandedLocation(id="loc-2", name="Quarry")

    @pytest.mark.parametrize("raw", [None, "", "   ", 42, ["loc-1"]])
    def test_unusable_values(self, raw):
        assert parse_location_ref(raw) is None

    def test_id_resolves_through_lookup(self):
        assert resolve_location_name(LocationId("loc-1"), NAMES) == "Pune Metro Depot"

    def test_unknown_id_resolves_to_none(self):
        assert resolve_location_name(LocationId("gone"), NAMES) is None

    def test_expanded_name_wins(self):
        ref = ExpandedLocation(id="loc-1", name="Embedded Name")
        assert resolve_location_name(ref, NAMES) == "Embedded Name"

    def test_expanded_without_name_falls_back_to_id(self):
        ref = ExpandedLocation(id="loc-2", name=None)
        assert resolve_location_name(ref, NAMES) == "Nashik Stone Quarry"


class TestParseDate:

    def test_iso_date(self):
        assert parse_date("2026-11-15") == date(2026, 11, 15)

    def test_iso_timestamp(self):
        assert parse_date("2026-11-15T10:00:00.000Z") == date(2026, 11, 15)

    def test_timestamp_uses_portal_zone(self, monkeypatch):
        monkeypatch.setenv("PORTAL_TIMEZONE", "Asia/Kolkata")
        # 20:00 UTC is already the next day in India
        assert parse_date("2026-11-15T20:00:00Z") == date(2026, 11, 16)

    def test_date_and_datetime_objects(self):
        assert parse_date(date(2026, 1, 2)) == date(2026, 1, 2)
        moment = datetime(2026, 1, 2, 23, 30, tzinfo=timezone.utc)
        assert parse_date(moment) == date(2026, 1, 2)

    @pytest.mark.parametrize("raw", [None, "", "  ", "not a date", "2026-13-45", 17, {}])
    def test_junk_is_none(self, raw):
        assert parse_date(raw) is None


class TestClock:

    def test_unknown_zone_is_rejected(self, monkeypatch):
        monkeypatch.setenv("PORTAL_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="PORTAL_TIMEZONE"):
            portal_timezone()

    def test_unset_zone_means_local(self, monkeypatch):
        monkeypatch.delenv("PORTAL_TIMEZONE", raising=False)
        assert portal_timezone() is None

    def test_naive_datetime_is_taken_as_local(self):
        assert to_portal_date(datetime(2026, 5, 1, 23, 59)) == date(2026, 5, 1)


class TestRecordFromDocument:

    def test_stored_document(self):
        doc = {
            "id": "init-1",
            "title": "Consent to Operate",
            "status": "Active",
            "end_date": "2026-12-01",
            "location": "loc-1",
            "registration_info": {
                "registered": "Yes",
                "license_number": "SPCB/CTO/2231",
                "validity": "2026-11-15",
            },
        }
        record = record_from_document(doc, NAMES)

        assert record.id == "init-1"
        assert record.status == "Active"
        assert record.end_date == date(2026, 12, 1)
        assert record.location_name == "Pune Metro Depot"
        assert record.registration.is_registered
        assert record.registration.license_number == "SPCB/CTO/2231"
        assert record.registration.validity == date(2026, 11, 15)

    def test_wire_shaped_document(self):
        doc = {
            "_id": "init-2",
            "title": "Explosives license",
            "endDate": "2026-10-01T00:00:00.000Z",
            "location": {"_id": "loc-2", "name": "Quarry"},
            "registrationInfo": {
                "registered": "Yes",
                "licenseNumber": "PESO/4410",
                "validity": "",
            },
        }
        record = record_from_document(doc, NAMES)

        assert record.id == "init-2"
        assert record.status == "Planning"
        assert record.end_date == date(2026, 10, 1)
        assert record.location_name == "Quarry"
        assert record.registration.license_number == "PESO/4410"
        assert record.registration.validity is None

    def test_missing_everything_optional(self):
        record = record_from_document({"id": "bare"}, NAMES)
        assert record.title == ""
        assert record.end_date is None
        assert record.location_name is None
        assert record.registration is None

    def test_document_without_id_is_skipped(self):
        assert record_from_document({"title": "orphan"}, NAMES) is None

    def test_batch_skips_unusable_documents(self):
        docs = [{"id": "a"}, {"title": "no id"}, {"id": "b", "end_date": "junk"}]
        records = records_from_documents(docs, NAMES)
        assert [r.id for r in records] == ["a", "b"]
        assert records[1].end_date is None

"""
Record boundary for the notification engine.

Stored initiatives (and payloads from older clients) are loosely shaped:
- ``location`` is either a location id or an expanded location object
- dates may be ISO dates, ISO timestamps, empty strings or missing
- keys may be snake_case (store) or camelCase (wire)

This module resolves all of that once, so the engine only ever sees an
``InitiativeRecord`` with real dates and a plain location name.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

from .clock import to_portal_date
from .notifications import InitiativeRecord, RegistrationInfo


@dataclass(frozen=True)
class LocationId:
    """A reference to a location by id only."""
    id: str


@dataclass(frozen=True)
class ExpandedLocation:
    """A location embedded in the record."""
    id: Optional[str]
    name: Optional[str]


LocationRef = Union[LocationId, ExpandedLocation]


def parse_location_ref(raw: Any) -> Optional[LocationRef]:
    """Classify a raw ``location`` value; None when absent or unusable."""
    if isinstance(raw, str) and raw.strip():
        return LocationId(raw.strip())
    if isinstance(raw, Mapping):
        ref_id = raw.get("id") or raw.get("_id")
        return ExpandedLocation(
            id=str(ref_id) if ref_id else None,
            name=raw.get("name") or None,
        )
    return None


def resolve_location_name(
    ref: Optional[LocationRef],
    names_by_id: Mapping[str, str],
) -> Optional[str]:
    """Display name for a location reference, looked up by id when needed."""
    if ref is None:
        return None
    if isinstance(ref, ExpandedLocation):
        if ref.name:
            return ref.name
        return names_by_id.get(ref.id) if ref.id else None
    return names_by_id.get(ref.id)


def parse_date(value: Any) -> Optional[date]:
    """
    Lenient date parsing; anything unusable becomes None.

    Timestamps are reduced to their calendar date in the portal zone.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_portal_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return to_portal_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def _pick(doc: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in doc:
            return doc[key]
    return None


def registration_from_document(raw: Any) -> Optional[RegistrationInfo]:
    if not isinstance(raw, Mapping):
        return None
    license_number = _pick(raw, "license_number", "licenseNumber")
    return RegistrationInfo(
        registered=str(raw.get("registered") or "No"),
        license_number=str(license_number) if license_number else None,
        validity=parse_date(raw.get("validity")),
    )


def record_from_document(
    doc: Mapping[str, Any],
    names_by_id: Mapping[str, str],
) -> Optional[InitiativeRecord]:
    """
    Build an engine record from a stored initiative.

    Returns None for documents without an id, since notification ids are
    derived from it.
    """
    record_id = _pick(doc, "id", "_id")
    if not record_id:
        return None

    location = parse_location_ref(doc.get("location"))
    return InitiativeRecord(
        id=str(record_id),
        title=str(doc.get("title") or ""),
        status=str(doc.get("status") or "Planning"),
        end_date=parse_date(_pick(doc, "end_date", "endDate")),
        location_name=resolve_location_name(location, names_by_id),
        registration=registration_from_document(
            _pick(doc, "registration_info", "registrationInfo")
        ),
    )


def records_from_documents(
    docs: Iterable[Mapping[str, Any]],
    names_by_id: Mapping[str, str],
) -> list[InitiativeRecord]:
    records = []
    for doc in docs:
        record = record_from_document(doc, names_by_id)
        if record is not None:
            records.append(record)
    return records

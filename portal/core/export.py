"""
CSV report export.

Each exportable resource has a fixed column list: (header, dotted path
into the stored document). Location ids are replaced by location names.
"""

import csv
import io
from typing import Any, Iterable, Mapping

from .notifications import Notification


COLUMNS: dict[str, list[tuple[str, str]]] = {
    "locations": [
        ("Name", "name"),
        ("Address", "address"),
        ("City", "city"),
        ("State", "state"),
        ("ZipCode", "zip_code"),
        ("IsActive", "is_active"),
        ("CreatedAt", "created_at"),
    ],
    "initiatives": [
        ("Title", "title"),
        ("Description", "description"),
        ("Location", "location_name"),
        ("Category", "category"),
        ("Status", "status"),
        ("StartDate", "start_date"),
        ("EndDate", "end_date"),
        ("Budget", "budget"),
        ("Participants", "participants"),
        ("TypeOfPermission", "type_of_permission"),
        ("Agency", "agency"),
        ("Registered", "registration_info.registered"),
        ("LicenseNumber", "registration_info.license_number"),
        ("Validity", "registration_info.validity"),
        ("CreatedAt", "created_at"),
        ("UpdatedAt", "updated_at"),
    ],
    "compliance": [
        ("Title", "title"),
        ("Location", "location_name"),
        ("Category", "category"),
        ("Status", "status"),
        ("Priority", "priority"),
        ("DueDate", "due_date"),
        ("AssignedTo", "assigned_to"),
        ("CreatedAt", "created_at"),
    ],
    "users": [
        ("Name", "name"),
        ("Email", "email"),
        ("Role", "role"),
        ("IsActive", "is_active"),
        ("LastLogin", "last_login"),
        ("CreatedAt", "created_at"),
    ],
    "notifications": [
        ("Title", "title"),
        ("Type", "rule_type"),
        ("Severity", "severity"),
        ("Message", "message"),
        ("DaysRemaining", "days_remaining"),
        ("ExpiryDate", "expiry_date"),
        ("Location", "location_name"),
        ("LicenseNumber", "license_number"),
    ],
}

EXPORTABLE = tuple(COLUMNS)


def _lookup(doc: Mapping[str, Any], path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def to_csv(resource: str, rows: Iterable[Mapping[str, Any]]) -> str:
    """
    Render rows of one resource as CSV text with a header line.

    Raises:
        KeyError: if the resource has no column definition
    """
    columns = COLUMNS[resource]
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([header for header, _ in columns])
    for row in rows:
        writer.writerow([_cell(_lookup(row, path)) for _, path in columns])
    return buf.getvalue()


def with_location_names(
    docs: Iterable[Mapping[str, Any]],
    names_by_id: Mapping[str, str],
) -> list[dict[str, Any]]:
    """Copy documents adding ``location_name`` resolved from ``location``."""
    return [
        {**d, "location_name": names_by_id.get(d.get("location"), "")}
        for d in docs
    ]


def notification_rows(notifications: Iterable[Notification]) -> list[dict[str, Any]]:
    return [n.model_dump(mode="json") for n in notifications]

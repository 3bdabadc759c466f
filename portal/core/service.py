"""
Portal Service - resource rules on top of the document store.

The service:
- Validates request models against the stored state
- Enforces cross-collection rules
- Embeds location summaries into responses
- Feeds stored initiatives to the notification engine

Rules (enforced in code):
- Initiatives and compliance items must reference an existing location
- A location cannot be deleted while initiatives reference it
- An initiative's end date must stay after its start date across updates
- Users are never hard-deleted; deletion deactivates them
- Login creates the user on first sight of a uid, otherwise refreshes it
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..db.store import (
    COMPLIANCE,
    INITIATIVES,
    LOCATIONS,
    USERS,
    DocumentStore,
    Query,
)
from ..schemas import (
    ComplianceCreate,
    ComplianceFields,
    ComplianceOut,
    ComplianceStats,
    ComplianceStatus,
    ComplianceUpdate,
    EXPIRING_WINDOW_DAYS,
    InitiativeCreate,
    InitiativeOut,
    InitiativeUpdate,
    LocationCreate,
    LocationSummary,
    LocationUpdate,
    RequirementUpdate,
    UserLogin,
    UserStats,
    UserUpdate,
)
from ..schemas.compliance import Requirement
from ..schemas.dashboard import DashboardStats
from ..schemas.initiative import InitiativeFields
from . import export, stats
from .notifications import Notification, NotificationFeed, derive_notifications
from .records import records_from_documents


logger = logging.getLogger(__name__)

LOCATION_SEARCH_FIELDS = ("name", "city", "state")
INITIATIVE_SEARCH_FIELDS = ("title", "description")
COMPLIANCE_SEARCH_FIELDS = ("title", "description")
USER_SEARCH_FIELDS = ("name", "email")


class PortalError(Exception):
    """Base exception for portal rule violations."""
    pass


class ValidationError(PortalError):
    """Raised when a request is well-formed but violates a rule."""
    pass


class NotFoundError(PortalError):
    """Raised when the addressed document does not exist."""
    pass


class ConflictError(PortalError):
    """Raised when an operation would break a reference between documents."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.details = details


def _describe(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def _date_uploads(requirements: list[dict[str, Any]], today: date) -> list[dict[str, Any]]:
    """Stamp requirement documents that arrived without an upload date."""
    for req in requirements:
        for document in req.get("documents") or []:
            if not document.get("upload_date"):
                document["upload_date"] = today.isoformat()
    return requirements


class PortalService:
    """
    All resource operations used by the HTTP routes and the CLI.

    Stateless apart from the store reference; safe to share across requests.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # ============================================================
    # Location helpers
    # ============================================================

    def location_names(self) -> dict[str, str]:
        return {
            d["id"]: d.get("name", "")
            for d in self.store.find(LOCATIONS, Query(sort_by="name", descending=False))
        }

    def _location_summaries(self) -> dict[str, LocationSummary]:
        return {
            d["id"]: LocationSummary.model_validate(d)
            for d in self.store.find(LOCATIONS)
        }

    def _require_location(self, location_id: Optional[str]) -> None:
        if not location_id or not self.store.exists(LOCATIONS, location_id):
            raise ValidationError("Invalid location ID")

    def _get_or_404(self, collection: str, document_id: str, label: str) -> dict[str, Any]:
        doc = self.store.get(collection, document_id)
        if doc is None:
            raise NotFoundError(f"{label} not found")
        return doc

    # ============================================================
    # Locations
    # ============================================================

    def list_locations(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[list[dict[str, Any]], int]:
        filters = {} if is_active is None else {"is_active": is_active}
        query = Query.page(
            page, limit,
            filters=filters,
            search=search,
            search_fields=LOCATION_SEARCH_FIELDS,
        )
        return self.store.find(LOCATIONS, query), self.store.count(LOCATIONS, query.unpaged())

    def get_location(self, location_id: str) -> dict[str, Any]:
        """A location together with the initiatives that reference it."""
        doc = self._get_or_404(LOCATIONS, location_id, "Location")
        doc["initiatives"] = self.store.find(
            INITIATIVES, Query(filters={"location": location_id})
        )
        return doc

    def create_location(self, body: LocationCreate) -> dict[str, Any]:
        doc = self.store.insert(LOCATIONS, body.to_document())
        logger.info("Location created: %s (%s)", doc["name"], doc["id"])
        return doc

    def update_location(self, location_id: str, body: LocationUpdate) -> dict[str, Any]:
        existing = self._get_or_404(LOCATIONS, location_id, "Location")
        changes = body.model_dump(mode="json", exclude_unset=True)
        merged = {**existing, **changes}
        try:
            LocationCreate.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e
        return self.store.update(LOCATIONS, location_id, changes)

    def delete_location(self, location_id: str) -> None:
        self._get_or_404(LOCATIONS, location_id, "Location")
        in_use = self.store.count(INITIATIVES, Query(filters={"location": location_id}))
        if in_use > 0:
            raise ConflictError(
                "Cannot delete location with associated initiatives",
                initiative_count=in_use,
            )
        self.store.delete(LOCATIONS, location_id)
        logger.info("Location deleted: %s", location_id)

    # ============================================================
    # Initiatives
    # ============================================================

    def initiative_out(
        self,
        doc: dict[str, Any],
        summaries: Optional[dict[str, LocationSummary]] = None,
    ) -> InitiativeOut:
        if summaries is None:
            loc = self.store.get(LOCATIONS, doc.get("location") or "")
            summary = LocationSummary.model_validate(loc) if loc else None
        else:
            summary = summaries.get(doc.get("location"))
        return InitiativeOut.model_validate({**doc, "location_summary": summary})

    def initiatives_out(self, docs: Iterable[dict[str, Any]]) -> list[InitiativeOut]:
        summaries = self._location_summaries()
        return [self.initiative_out(d, summaries) for d in docs]

    def list_initiatives(
        self,
        page: int = 1,
        limit: int = 10,
        location: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[InitiativeOut], int]:
        filters = {
            k: v for k, v in
            (("location", location), ("status", status), ("category", category))
            if v
        }
        query = Query.page(
            page, limit,
            filters=filters,
            search=search,
            search_fields=INITIATIVE_SEARCH_FIELDS,
        )
        docs = self.store.find(INITIATIVES, query)
        return self.initiatives_out(docs), self.store.count(INITIATIVES, query.unpaged())

    def initiatives_for_location(self, location_id: str) -> list[InitiativeOut]:
        docs = self.store.find(
            INITIATIVES,
            Query(filters={"location": location_id}, sort_by="start_date"),
        )
        return self.initiatives_out(docs)

    def get_initiative(self, initiative_id: str) -> InitiativeOut:
        return self.initiative_out(
            self._get_or_404(INITIATIVES, initiative_id, "Initiative")
        )

    def create_initiative(self, body: InitiativeCreate) -> InitiativeOut:
        self._require_location(body.location)
        doc = self.store.insert(INITIATIVES, body.to_document())
        logger.info("Initiative created: %s (%s)", doc["title"], doc["id"])
        return self.initiative_out(doc)

    def update_initiative(self, initiative_id: str, body: InitiativeUpdate) -> InitiativeOut:
        existing = self._get_or_404(INITIATIVES, initiative_id, "Initiative")
        changes = body.model_dump(mode="json", exclude_unset=True)
        if "location" in changes:
            self._require_location(changes["location"])

        try:
            validated = InitiativeFields.model_validate({**existing, **changes})
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e

        doc = self.store.update(INITIATIVES, initiative_id, validated.to_document())
        return self.initiative_out(doc)

    def delete_initiative(self, initiative_id: str) -> None:
        if not self.store.delete(INITIATIVES, initiative_id):
            raise NotFoundError("Initiative not found")
        logger.info("Initiative deleted: %s", initiative_id)

    # ============================================================
    # Compliance
    # ============================================================

    def compliance_out(
        self,
        doc: dict[str, Any],
        today: date,
        summaries: Optional[dict[str, LocationSummary]] = None,
    ) -> ComplianceOut:
        if summaries is None:
            summaries = self._location_summaries()
        item = ComplianceOut.model_validate(
            {**doc, "location_summary": summaries.get(doc.get("location"))}
        )
        return item.model_copy(update={"is_expiring": item.is_expiring_on(today)})

    def compliance_list_out(self, docs: Iterable[dict[str, Any]], today: date) -> list[ComplianceOut]:
        summaries = self._location_summaries()
        return [self.compliance_out(d, today, summaries) for d in docs]

    def list_compliance(
        self,
        today: date,
        page: int = 1,
        limit: int = 1000,
        search: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        location: Optional[str] = None,
        expiring: bool = False,
    ) -> tuple[list[ComplianceOut], int]:
        filters = {
            k: v for k, v in (
                ("status", status),
                ("category", category),
                ("priority", priority),
                ("location", location),
            )
            if v
        }
        exclude = {}
        on_or_before = {}
        if expiring:
            horizon = today + timedelta(days=EXPIRING_WINDOW_DAYS)
            on_or_before["due_date"] = horizon.isoformat()
            filters.pop("status", None)
            exclude["status"] = ComplianceStatus.COMPLIANT.value

        query = Query.page(
            page, limit,
            filters=filters,
            exclude=exclude,
            on_or_before=on_or_before,
            search=search,
            search_fields=COMPLIANCE_SEARCH_FIELDS,
        )
        docs = self.store.find(COMPLIANCE, query)
        return self.compliance_list_out(docs, today), self.store.count(COMPLIANCE, query.unpaged())

    def compliance_for_location(self, location_id: str, today: date) -> list[ComplianceOut]:
        docs = self.store.find(COMPLIANCE, Query(filters={"location": location_id}))
        return self.compliance_list_out(docs, today)

    def expiring_compliance(self, days: int, today: date) -> list[ComplianceOut]:
        """Active, not yet Compliant, due within ``days`` (soonest first)."""
        horizon = today + timedelta(days=days)
        docs = self.store.find(
            COMPLIANCE,
            Query(
                filters={"is_active": True},
                exclude={"status": ComplianceStatus.COMPLIANT.value},
                on_or_before={"due_date": horizon.isoformat()},
                sort_by="due_date",
                descending=False,
            ),
        )
        return self.compliance_list_out(docs, today)

    def get_compliance(self, compliance_id: str, today: date) -> ComplianceOut:
        return self.compliance_out(
            self._get_or_404(COMPLIANCE, compliance_id, "Compliance item"), today
        )

    def create_compliance(self, body: ComplianceCreate, today: date) -> ComplianceOut:
        self._require_location(body.location)
        fields = body.to_document()
        _date_uploads(fields["requirements"], today)
        doc = self.store.insert(COMPLIANCE, fields)
        logger.info("Compliance item created: %s (%s)", doc["title"], doc["id"])
        return self.compliance_out(doc, today)

    def update_compliance(
        self,
        compliance_id: str,
        body: ComplianceUpdate,
        today: date,
    ) -> ComplianceOut:
        existing = self._get_or_404(COMPLIANCE, compliance_id, "Compliance item")
        changes = body.model_dump(mode="json", exclude_unset=True)
        if "location" in changes:
            self._require_location(changes["location"])
        try:
            validated = ComplianceFields.model_validate({**existing, **changes})
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e

        fields = validated.to_document()
        _date_uploads(fields["requirements"], today)
        doc = self.store.update(COMPLIANCE, compliance_id, fields)
        return self.compliance_out(doc, today)

    def update_requirement(
        self,
        compliance_id: str,
        requirement_id: str,
        body: RequirementUpdate,
        today: date,
    ) -> ComplianceOut:
        existing = self._get_or_404(COMPLIANCE, compliance_id, "Compliance item")
        requirements = list(existing.get("requirements") or [])

        for index, req in enumerate(requirements):
            if req.get("id") == requirement_id:
                break
        else:
            raise NotFoundError("Requirement not found")

        changes = body.model_dump(mode="json", exclude_unset=True)
        try:
            updated = Requirement.model_validate({**requirements[index], **changes})
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e
        requirements[index] = updated.model_dump(mode="json")
        _date_uploads(requirements[index:index + 1], today)

        doc = self.store.update(COMPLIANCE, compliance_id, {"requirements": requirements})
        return self.compliance_out(doc, today)

    def delete_compliance(self, compliance_id: str) -> None:
        if not self.store.delete(COMPLIANCE, compliance_id):
            raise NotFoundError("Compliance item not found")

    def compliance_stats(self, today: date) -> ComplianceStats:
        return stats.compliance_stats(self.store.find(COMPLIANCE), today)

    # ============================================================
    # Users
    # ============================================================

    def login_user(self, body: UserLogin, now: datetime) -> tuple[dict[str, Any], bool]:
        """
        Find the user by uid or create it.

        Returns:
            (user document, True if it was created)
        """
        existing = self.store.find_one(USERS, uid=body.uid)
        if existing is None:
            doc = self.store.insert(USERS, {
                "uid": body.uid,
                "name": body.name,
                "email": body.email,
                "image_url": body.image_url or "",
                "is_active": True,
                "role": "user",
                "last_login": now.isoformat(),
            })
            logger.info("New user created: %s", body.email)
            return doc, True

        changes = {
            "name": body.name,
            "email": body.email,
            "last_login": now.isoformat(),
        }
        if body.image_url and body.image_url != existing.get("image_url"):
            changes["image_url"] = body.image_url
        doc = self.store.update(USERS, existing["id"], changes)
        logger.info("User updated: %s", body.email)
        return doc, False

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[list[dict[str, Any]], int]:
        filters = {} if is_active is None else {"is_active": is_active}
        query = Query.page(
            page, limit,
            filters=filters,
            search=search,
            search_fields=USER_SEARCH_FIELDS,
        )
        return self.store.find(USERS, query), self.store.count(USERS, query.unpaged())

    def get_user(self, uid: str) -> dict[str, Any]:
        doc = self.store.find_one(USERS, uid=uid)
        if doc is None:
            raise NotFoundError("User not found")
        return doc

    def update_user(self, uid: str, body: UserUpdate) -> dict[str, Any]:
        doc = self.get_user(uid)
        changes = body.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if not changes:
            return doc
        return self.store.update(USERS, doc["id"], changes)

    def deactivate_user(self, uid: str) -> dict[str, Any]:
        doc = self.get_user(uid)
        return self.store.update(USERS, doc["id"], {"is_active": False})

    def user_stats(self, now: datetime) -> UserStats:
        return stats.user_stats(self.store.find(USERS), now)

    # ============================================================
    # Dashboard & notifications
    # ============================================================

    def dashboard_stats(self) -> DashboardStats:
        return stats.dashboard_stats(
            users=self.store.find(USERS),
            initiatives=self.store.find(INITIATIVES),
            locations=self.store.find(LOCATIONS, Query(sort_by="name", descending=False)),
            compliance=self.store.find(COMPLIANCE),
        )

    def notifications(self, today: date) -> list[Notification]:
        """Derive ranked expiry notifications over every stored initiative."""
        records = records_from_documents(
            self.store.find(INITIATIVES),
            self.location_names(),
        )
        return derive_notifications(records, today)

    def notification_feed(
        self,
        today: date,
        dismissed_ids: Iterable[str] = (),
    ) -> NotificationFeed:
        return NotificationFeed.build(self.notifications(today), today, dismissed_ids)

    # ============================================================
    # Export
    # ============================================================

    def export_csv(self, resource: str, today: date) -> str:
        """
        Render one resource as CSV.

        Raises:
            NotFoundError: for a resource without an export definition
        """
        if resource not in export.EXPORTABLE:
            raise NotFoundError(f"Unknown export: {resource}")

        if resource == "notifications":
            rows = export.notification_rows(self.notifications(today))
        elif resource in (INITIATIVES, COMPLIANCE):
            rows = export.with_location_names(
                self.store.find(resource), self.location_names()
            )
        else:
            rows = self.store.find(resource)
        return export.to_csv(resource, rows)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

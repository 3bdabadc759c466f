# Core portal services
from .notifications import (
    Notification,
    NotificationFeed,
    RuleType,
    Severity,
    InitiativeRecord,
    derive_notifications,
    badge_count,
    visible_notifications,
)
from .records import record_from_document, records_from_documents
from .service import (
    PortalService,
    PortalError,
    ValidationError,
    NotFoundError,
    ConflictError,
)

__all__ = [
    "Notification",
    "NotificationFeed",
    "RuleType",
    "Severity",
    "InitiativeRecord",
    "derive_notifications",
    "badge_count",
    "visible_notifications",
    "record_from_document",
    "records_from_documents",
    "PortalService",
    "PortalError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
]

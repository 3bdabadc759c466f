# Document schemas for the compliance portal.
# Stored documents are snake_case; the HTTP API speaks camelCase.

from .common import ApiResponse, Page, PortalModel, ok
from .location import (
    Coordinates,
    Location,
    LocationCreate,
    LocationSummary,
    LocationUpdate,
)
from .compliance import (
    Compliance,
    ComplianceCategory,
    ComplianceCreate,
    ComplianceFields,
    ComplianceOut,
    ComplianceStats,
    ComplianceStatus,
    ComplianceUpdate,
    Priority,
    Requirement,
    RequirementUpdate,
    EXPIRING_WINDOW_DAYS,
)
from .initiative import (
    Agency,
    ContactPerson,
    Initiative,
    InitiativeCategory,
    InitiativeCreate,
    InitiativeOut,
    InitiativeStatus,
    InitiativeUpdate,
    LocationDetail,
    PermissionType,
    ProjectPhase,
    RegistrationInfo,
    YesNo,
)
from .user import User, UserLogin, UserRole, UserStats, UserUpdate

__all__ = [
    # Envelope
    "ApiResponse",
    "Page",
    "PortalModel",
    "ok",
    # Location
    "Coordinates",
    "Location",
    "LocationCreate",
    "LocationDetail",
    "LocationSummary",
    "LocationUpdate",
    # Compliance
    "Compliance",
    "ComplianceCategory",
    "ComplianceCreate",
    "ComplianceFields",
    "ComplianceOut",
    "ComplianceStats",
    "ComplianceStatus",
    "ComplianceUpdate",
    "Priority",
    "Requirement",
    "RequirementUpdate",
    "EXPIRING_WINDOW_DAYS",
    # Initiative
    "Agency",
    "ContactPerson",
    "Initiative",
    "InitiativeCategory",
    "InitiativeCreate",
    "InitiativeOut",
    "InitiativeStatus",
    "InitiativeUpdate",
    "PermissionType",
    "ProjectPhase",
    "RegistrationInfo",
    "YesNo",
    # User
    "User",
    "UserLogin",
    "UserRole",
    "UserStats",
    "UserUpdate",
]

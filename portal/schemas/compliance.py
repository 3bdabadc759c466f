"""
Compliance Schema

A compliance item is a standing obligation at a location (an audit, a
statutory filing, a safety inspection) broken into requirements.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field, field_validator

from .common import PortalModel, blank_to_none
from .location import LocationSummary


# Due within this many days (and not yet Compliant) counts as expiring
EXPIRING_WINDOW_DAYS = 30


class ComplianceCategory(str, Enum):
    ENVIRONMENTAL = "Environmental"
    SAFETY = "Safety"
    LEGAL = "Legal"
    FINANCIAL = "Financial"
    OPERATIONAL = "Operational"
    OTHER = "Other"


class ComplianceStatus(str, Enum):
    COMPLIANT = "Compliant"
    NON_COMPLIANT = "Non-Compliant"
    PENDING_REVIEW = "Pending Review"
    IN_PROGRESS = "In Progress"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RequirementDocument(PortalModel):
    name: str
    url: str
    # Filled in by the service with the portal date when omitted
    upload_date: Optional[date] = None


class RequirementFields(PortalModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: ComplianceStatus = ComplianceStatus.PENDING_REVIEW
    due_date: Optional[date] = None
    completion_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    assigned_to: Optional[str] = None
    documents: list[RequirementDocument] = Field(default_factory=list)
    notes: Optional[str] = None


class Requirement(RequirementFields):
    """A single requirement; carries its own id so it can be updated in place."""
    id: str = Field(default_factory=lambda: uuid4().hex)


class RequirementUpdate(PortalModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[ComplianceStatus] = None
    due_date: Optional[date] = None
    completion_date: Optional[date] = None
    priority: Optional[Priority] = None
    assigned_to: Optional[str] = None
    documents: Optional[list[RequirementDocument]] = None
    notes: Optional[str] = None


class ComplianceFields(PortalModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    location: str = Field(..., description="Id of the owning work location")
    category: ComplianceCategory = ComplianceCategory.OTHER
    status: ComplianceStatus = ComplianceStatus.PENDING_REVIEW
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    last_review_date: Optional[date] = None
    next_review_date: Optional[date] = None
    assigned_to: Optional[str] = None
    requirements: list[Requirement] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("due_date", "last_review_date", "next_review_date", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return blank_to_none(v)

    def is_expiring_on(self, today: date) -> bool:
        """Due within the expiring window and not yet Compliant."""
        if self.due_date is None:
            return False
        horizon = today + timedelta(days=EXPIRING_WINDOW_DAYS)
        return self.due_date <= horizon and self.status != ComplianceStatus.COMPLIANT


class ComplianceCreate(ComplianceFields):
    """Request body for creating a compliance item."""
    pass


class ComplianceUpdate(PortalModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[ComplianceCategory] = None
    status: Optional[ComplianceStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    last_review_date: Optional[date] = None
    next_review_date: Optional[date] = None
    assigned_to: Optional[str] = None
    requirements: Optional[list[Requirement]] = None
    is_active: Optional[bool] = None

    @field_validator("due_date", "last_review_date", "next_review_date", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return blank_to_none(v)


class Compliance(ComplianceFields):
    """A stored compliance item."""
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ComplianceOut(Compliance):
    """A compliance item as returned by the API."""
    location_summary: Optional[LocationSummary] = None
    is_expiring: bool = False


class ComplianceStats(PortalModel):
    total: int
    compliant: int
    non_compliant: int
    pending: int
    in_progress: int
    expiring: int
    overdue: int
    compliance_rate: int

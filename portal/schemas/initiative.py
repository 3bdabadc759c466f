"""
Initiative Schema

An initiative is a tracked regulatory activity tied to a work location:
a permit, a license, a registration or an internal compliance programme.
Its end date and registration validity drive the expiry notifications.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator

from .common import PortalModel, blank_to_none
from .compliance import ComplianceStatus, Priority
from .location import Location, LocationSummary


class InitiativeCategory(str, Enum):
    ENVIRONMENTAL = "Environmental"
    SAFETY = "Safety"
    LEGAL = "Legal"
    FINANCIAL = "Financial"
    OPERATIONAL = "Operational"
    EDUCATION = "Education"
    HEALTHCARE = "Healthcare"
    TECHNOLOGY = "Technology"
    COMMUNITY = "Community"
    OTHER = "Other"


class InitiativeStatus(str, Enum):
    """
    Lifecycle of an initiative.
    Completed and Cancelled initiatives no longer raise deadline reminders.
    """
    PLANNING = "Planning"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"
    CANCELLED = "Cancelled"


class PermissionType(str, Enum):
    CONSENT_TO_ESTABLISH = "Consent to Establish"
    CONSENT_TO_OPERATE = "Consent to Operate"
    INSURANCE = "Insurance"
    NOC = "NOC"
    NOC_FROM_CLIENT = "NOC/Permission from client"
    PERMISSION = "Permission"
    BLANK = "blank"
    GOVERNMENT_APPROVAL = "Government Approval"
    ENVIRONMENTAL_PERMIT = "Environmental Permit"
    CONSTRUCTION_LICENSE = "Construction License"
    OPERATIONAL_PERMIT = "Operational Permit"
    NOT_APPLICABLE = "Not Applicable"


class Agency(str, Enum):
    """Issuing authority for a permit or registration."""
    CHIEF_CONTROLLER_OF_EXPLOSIVES = "Chief Controller of Explosives"
    DEIAA_SEIAA = "DEIAA/SEIAA"
    FACTORIES_DEPARTMENT = "Factories Department"
    FOREST_DEPARTMENT = "Forest Department"
    GOVERNMENT_PRIVATE = "Government/Private"
    LABOUR_DEPARTMENT = "Labour Department Authority"
    MOEFCC = "MOEFCC"
    STATE_POLLUTION_CONTROL_BOARD = "State Pollution Control Board"
    STATE_WATER_DEPARTMENT = "State Water Department"
    FSSAI = "The Food Safety and Standards Authority of India"
    MINISTRY_OF_ENVIRONMENT = "Ministry of Environment"
    MUNICIPAL_CORPORATION = "Municipal Corporation"
    STATE_GOVERNMENT = "State Government"
    CENTRAL_GOVERNMENT = "Central Government"
    NOT_APPLICABLE = "Not Applicable"


class YesNo(str, Enum):
    YES = "Yes"
    NO = "No"


class ProjectPhase(str, Enum):
    INITIAL = "Initial"
    DESIGN = "Design"
    EXECUTION = "Execution"
    MONITORING = "Monitoring"
    CLOSURE = "Closure"


class ContactPerson(PortalModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class RegistrationInfo(PortalModel):
    """
    License / registration attached to an initiative.

    The validity date is the legal expiry of the registration. It only
    raises reminders when ``registered`` is "Yes".
    """
    registered: YesNo = YesNo.NO
    license_number: Optional[str] = None
    validity: Optional[date] = None
    quantity: Optional[str] = None
    remarks: Optional[str] = None

    @field_validator("validity", mode="before")
    @classmethod
    def blank_validity_is_none(cls, v):
        # The SPA posts "" for an unset date input
        if isinstance(v, str) and not v.strip():
            return None
        return v


class InitiativeFields(PortalModel):
    """Fields shared by create requests and stored initiatives."""
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display label",
        examples=["Consent to Operate renewal"],
    )
    description: str = Field(..., min_length=1)
    location: str = Field(
        ...,
        description="Id of the owning work location",
    )
    category: InitiativeCategory = InitiativeCategory.OTHER
    status: InitiativeStatus = InitiativeStatus.PLANNING
    start_date: date
    end_date: Optional[date] = Field(
        default=None,
        description="Planned completion / regulatory deadline",
    )
    budget: float = Field(default=0, ge=0)
    participants: int = Field(default=0, ge=0)
    contact_person: ContactPerson = Field(default_factory=ContactPerson)
    is_active: bool = True

    type_of_permission: Optional[PermissionType] = None
    agency: Optional[Agency] = None
    applicable: Optional[YesNo] = None
    registration_info: RegistrationInfo = Field(default_factory=RegistrationInfo)

    compliance_status: Optional[ComplianceStatus] = None
    last_compliance_check: Optional[date] = None
    next_compliance_review: Optional[date] = None
    project_phase: Optional[ProjectPhase] = None
    risk_level: Optional[Priority] = None
    compliance_score: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator(
        "end_date", "last_compliance_check", "next_compliance_review",
        "type_of_permission", "agency", "applicable",
        mode="before",
    )
    @classmethod
    def blank_is_none(cls, v):
        return blank_to_none(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class InitiativeCreate(InitiativeFields):
    """Request body for creating an initiative."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Consent to Operate renewal",
                "description": "Renew the SPCB consent for the batching plant",
                "location": "5f0c2b7e9d8a4c1e8b6a2d3f4e5a6b7c",
                "category": "Environmental",
                "status": "Active",
                "startDate": "2026-01-10",
                "endDate": "2026-11-30",
                "typeOfPermission": "Consent to Operate",
                "agency": "State Pollution Control Board",
                "registrationInfo": {
                    "registered": "Yes",
                    "licenseNumber": "SPCB/CTO/2231",
                    "validity": "2026-11-15",
                },
            }
        }
    }


class InitiativeUpdate(PortalModel):
    """
    Partial update; only supplied fields are changed.

    The merged result is re-validated as a whole, so the end date rule
    still holds after the update.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[InitiativeCategory] = None
    status: Optional[InitiativeStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[float] = Field(default=None, ge=0)
    participants: Optional[int] = Field(default=None, ge=0)
    contact_person: Optional[ContactPerson] = None
    is_active: Optional[bool] = None
    type_of_permission: Optional[PermissionType] = None
    agency: Optional[Agency] = None
    applicable: Optional[YesNo] = None
    registration_info: Optional[RegistrationInfo] = None
    compliance_status: Optional[ComplianceStatus] = None
    last_compliance_check: Optional[date] = None
    next_compliance_review: Optional[date] = None
    project_phase: Optional[ProjectPhase] = None
    risk_level: Optional[Priority] = None
    compliance_score: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator(
        "end_date", "last_compliance_check", "next_compliance_review",
        "type_of_permission", "agency", "applicable",
        mode="before",
    )
    @classmethod
    def blank_is_none(cls, v):
        return blank_to_none(v)


class Initiative(InitiativeFields):
    """A stored initiative."""
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InitiativeOut(Initiative):
    """An initiative with its location summary embedded."""
    location_summary: Optional[LocationSummary] = None


class LocationDetail(Location):
    """A location with the initiatives that reference it."""
    initiatives: list[Initiative] = Field(default_factory=list)

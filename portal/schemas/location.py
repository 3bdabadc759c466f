"""
Work Location Schema

A site where the company operates and where initiatives are tracked.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import PortalModel


class Coordinates(PortalModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class LocationCreate(PortalModel):
    """Fields accepted when registering a work location."""
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name of the site",
        examples=["Pune Metro Depot"],
    )
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Pune Metro Depot",
                "address": "Survey No. 12, Hill Road",
                "city": "Pune",
                "state": "Maharashtra",
                "zipCode": "411001",
                "isActive": True,
            }
        }
    }


class LocationUpdate(PortalModel):
    """Partial update; only supplied fields are changed."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class Location(LocationCreate):
    """A stored work location."""
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LocationSummary(PortalModel):
    """The slice of a location embedded in initiative and compliance responses."""
    id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None


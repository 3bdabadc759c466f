"""
Portal User Schema

Users sign in through an external identity provider; the portal keeps a
profile keyed by the provider's uid.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from .common import PortalModel


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    MANAGER = "manager"


def _normalize_email(v: Optional[str]) -> Optional[str]:
    return v.strip().lower() if v else v


class UserLogin(PortalModel):
    """Profile sent by the client after the identity provider signs a user in."""
    uid: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    image_url: Optional[str] = Field(default="", alias="imageURL")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v)


class UserUpdate(PortalModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageURL")
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v)


class User(PortalModel):
    id: str
    uid: str
    name: str
    email: str
    image_url: str = Field(default="", alias="imageURL")
    is_active: bool = True
    last_login: Optional[datetime] = None
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserStats(PortalModel):
    total_users: int
    active_users: int
    inactive_users: int
    recent_users: int
    users_by_role: dict[str, int]

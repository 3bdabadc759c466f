"""
Shared schema plumbing.

Every model speaks camelCase on the wire (the SPA's convention) and
snake_case in Python and in stored documents.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


def blank_to_none(value):
    """Form fields left empty arrive as "" (or whitespace); treat them as absent."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PortalModel(BaseModel):
    """Base model: camelCase aliases, snake_case attribute names accepted too."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self) -> dict:
        """Serialize for the document store (snake_case, JSON types)."""
        return self.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})


class ApiResponse(PortalModel, Generic[T]):
    """
    The single response envelope used by every endpoint.

    Success: {"success": true, "data": ...}
    Failure: {"success": false, "error": "..."}
    """
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None


class Page(PortalModel, Generic[T]):
    """A page of results from a paginated list endpoint."""
    items: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "Page":
        total_pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(items=items, total=total, page=page, total_pages=total_pages)


def ok(data=None, message: Optional[str] = None) -> ApiResponse:
    """Wrap a payload in the success envelope."""
    return ApiResponse(success=True, data=data, message=message)

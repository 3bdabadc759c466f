"""
Work Location API Routes

CRUD for the sites where initiatives and compliance items are tracked.
A location cannot be deleted while initiatives still reference it.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from portal.core import PortalError
from portal.observability import get_logger, get_metrics
from portal.schemas import (
    ApiResponse,
    Location,
    LocationCreate,
    LocationDetail,
    LocationUpdate,
    Page,
    ok,
)
from portal.web.deps import get_service, http_error


router = APIRouter(prefix="/api/locations", tags=["Locations"])
logger = get_logger(__name__)


@router.get("", response_model=ApiResponse[Page[Location]])
async def list_locations(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
):
    """List locations, newest first, with optional search over name/city/state."""
    docs, total = get_service(request).list_locations(
        page=page, limit=limit, search=search, is_active=is_active
    )
    items = [Location.model_validate(d) for d in docs]
    return ok(Page.build(items, total, page, limit))


@router.get("/{location_id}", response_model=ApiResponse[LocationDetail])
async def get_location(request: Request, location_id: str):
    """A single location together with its initiatives."""
    try:
        doc = get_service(request).get_location(location_id)
    except PortalError as e:
        raise http_error(e)
    return ok(LocationDetail.model_validate(doc))


@router.post("", response_model=ApiResponse[Location], status_code=201)
async def create_location(request: Request, body: LocationCreate):
    doc = get_service(request).create_location(body)
    get_metrics().record_write()
    return ok(Location.model_validate(doc), message="Location created successfully")


@router.put("/{location_id}", response_model=ApiResponse[Location])
async def update_location(request: Request, location_id: str, body: LocationUpdate):
    try:
        doc = get_service(request).update_location(location_id, body)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(Location.model_validate(doc), message="Location updated successfully")


@router.delete("/{location_id}", response_model=ApiResponse[None])
async def delete_location(request: Request, location_id: str):
    """Delete a location; refused with 409 while initiatives reference it."""
    try:
        get_service(request).delete_location(location_id)
    except PortalError as e:
        logger.warning("Location delete refused", location_id=location_id, reason=str(e))
        raise http_error(e)
    get_metrics().record_write()
    return ok(message="Location deleted successfully")

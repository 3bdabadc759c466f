"""
Initiative API Routes

Initiatives are the permits, licenses and programmes tracked per work
location. Every response embeds the owning location's summary.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from portal.core import PortalError
from portal.observability import get_metrics
from portal.schemas import (
    ApiResponse,
    InitiativeCreate,
    InitiativeOut,
    InitiativeUpdate,
    Page,
    ok,
)
from portal.web.deps import get_service, http_error


router = APIRouter(prefix="/api/initiatives", tags=["Initiatives"])


@router.get("", response_model=ApiResponse[Page[InitiativeOut]])
async def list_initiatives(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    location: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
):
    """List initiatives, newest first. Search covers title and description."""
    items, total = get_service(request).list_initiatives(
        page=page,
        limit=limit,
        location=location,
        status=status,
        category=category,
        search=search,
    )
    return ok(Page.build(items, total, page, limit))


@router.get("/location/{location_id}", response_model=ApiResponse[list[InitiativeOut]])
async def initiatives_for_location(request: Request, location_id: str):
    """All initiatives of one location, latest start date first."""
    return ok(get_service(request).initiatives_for_location(location_id))


@router.get("/{initiative_id}", response_model=ApiResponse[InitiativeOut])
async def get_initiative(request: Request, initiative_id: str):
    try:
        return ok(get_service(request).get_initiative(initiative_id))
    except PortalError as e:
        raise http_error(e)


@router.post("", response_model=ApiResponse[InitiativeOut], status_code=201)
async def create_initiative(request: Request, body: InitiativeCreate):
    """Create an initiative; the referenced location must exist."""
    try:
        item = get_service(request).create_initiative(body)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(item, message="Initiative created successfully")


@router.put("/{initiative_id}", response_model=ApiResponse[InitiativeOut])
async def update_initiative(request: Request, initiative_id: str, body: InitiativeUpdate):
    """Partial update; the merged initiative is validated as a whole."""
    try:
        item = get_service(request).update_initiative(initiative_id, body)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(item, message="Initiative updated successfully")


@router.delete("/{initiative_id}", response_model=ApiResponse[None])
async def delete_initiative(request: Request, initiative_id: str):
    try:
        get_service(request).delete_initiative(initiative_id)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(message="Initiative deleted successfully")

"""
Compliance API Routes

Compliance items are standing obligations at a location, each broken into
requirements. Items due within 30 days that are not yet Compliant are
flagged ``isExpiring`` in every response.
"""

from typing import Optional

from fastapi import APIRouter, Path, Query, Request

from portal.core import PortalError
from portal.observability import get_metrics
from portal.schemas import (
    ApiResponse,
    ComplianceCreate,
    ComplianceOut,
    ComplianceStats,
    ComplianceUpdate,
    Page,
    RequirementUpdate,
    ok,
)
from portal.web.deps import get_service, get_today, http_error


router = APIRouter(prefix="/api/compliance", tags=["Compliance"])


@router.get("", response_model=ApiResponse[Page[ComplianceOut]])
async def list_compliance(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(1000, ge=1, le=1000),
    search: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    location: Optional[str] = None,
    expiring: bool = False,
):
    """
    List compliance items, newest first.

    ``expiring=true`` restricts to items due within 30 days that are not
    Compliant (and ignores the status filter).
    """
    items, total = get_service(request).list_compliance(
        get_today(),
        page=page,
        limit=limit,
        search=search,
        status=status,
        category=category,
        priority=priority,
        location=location,
        expiring=expiring,
    )
    return ok(Page.build(items, total, page, limit))


@router.get("/stats/overview", response_model=ApiResponse[ComplianceStats])
async def compliance_stats(request: Request):
    return ok(get_service(request).compliance_stats(get_today()))


@router.get("/expiring/{days}", response_model=ApiResponse[list[ComplianceOut]])
async def expiring_compliance(request: Request, days: int = Path(..., ge=0, le=3650)):
    """Active items due within ``days`` and not Compliant, soonest first."""
    return ok(get_service(request).expiring_compliance(days, get_today()))


@router.get("/location/{location_id}", response_model=ApiResponse[list[ComplianceOut]])
async def compliance_for_location(request: Request, location_id: str):
    return ok(get_service(request).compliance_for_location(location_id, get_today()))


@router.get("/{compliance_id}", response_model=ApiResponse[ComplianceOut])
async def get_compliance(request: Request, compliance_id: str):
    try:
        return ok(get_service(request).get_compliance(compliance_id, get_today()))
    except PortalError as e:
        raise http_error(e)


@router.post("", response_model=ApiResponse[ComplianceOut], status_code=201)
async def create_compliance(request: Request, body: ComplianceCreate):
    try:
        item = get_service(request).create_compliance(body, get_today())
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(item, message="Compliance item created successfully")


@router.put("/{compliance_id}", response_model=ApiResponse[ComplianceOut])
async def update_compliance(request: Request, compliance_id: str, body: ComplianceUpdate):
    try:
        item = get_service(request).update_compliance(compliance_id, body, get_today())
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(item, message="Compliance item updated successfully")


@router.put(
    "/{compliance_id}/requirements/{requirement_id}",
    response_model=ApiResponse[ComplianceOut],
)
async def update_requirement(
    request: Request,
    compliance_id: str,
    requirement_id: str,
    body: RequirementUpdate,
):
    """Update one requirement of a compliance item in place."""
    try:
        item = get_service(request).update_requirement(
            compliance_id, requirement_id, body, get_today()
        )
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(item, message="Requirement updated successfully")


@router.delete("/{compliance_id}", response_model=ApiResponse[None])
async def delete_compliance(request: Request, compliance_id: str):
    try:
        get_service(request).delete_compliance(compliance_id)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(message="Compliance item deleted successfully")

"""
CSV Export Routes

Downloads for the reports page. Each resource has a fixed header row;
location ids are replaced by location names.
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from portal.core import PortalError
from portal.core.export import EXPORTABLE
from portal.observability import get_logger, get_metrics
from portal.web.deps import get_service, get_today, http_error


router = APIRouter(prefix="/api/export", tags=["Export"])
logger = get_logger(__name__)


@router.get("/{resource}.csv")
async def export_csv(request: Request, resource: str):
    """Download one of: locations, initiatives, compliance, users, notifications."""
    if resource not in EXPORTABLE:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown export: {resource}. Valid values: {', '.join(EXPORTABLE)}",
        )

    today = get_today()
    try:
        content = get_service(request).export_csv(resource, today)
    except PortalError as e:
        raise http_error(e)

    get_metrics().record_export(resource)
    logger.info("CSV export", resource=resource)

    filename = f"{resource}-{today.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

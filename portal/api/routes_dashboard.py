"""
Dashboard API Routes

Aggregate counts for the admin overview page.
"""

from fastapi import APIRouter, Request

from portal.schemas import ApiResponse, ok
from portal.schemas.dashboard import DashboardStats
from portal.web.deps import get_service


router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=ApiResponse[DashboardStats])
async def dashboard_stats(request: Request):
    """
    Overview counts, total budget, initiative status breakdown, completion
    rates, the five most recent initiatives and per-location counts.
    """
    return ok(get_service(request).dashboard_stats())

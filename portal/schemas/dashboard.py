"""
Dashboard Schema

Aggregate counts shown on the admin overview.
"""

from typing import Any

from pydantic import Field

from .common import PortalModel


class DashboardOverview(PortalModel):
    total_users: int = 0
    active_users: int = 0
    total_initiatives: int = 0
    total_locations: int = 0
    total_compliance: int = 0
    active_initiatives: int = 0
    completed_initiatives: int = 0
    planning_initiatives: int = 0
    pending_compliance: int = 0
    overdue_compliance: int = 0
    total_budget: float = 0


class CompletionRates(PortalModel):
    initiatives: int = 0
    compliance: int = 0


class LocationInitiativeCount(PortalModel):
    id: str
    name: str
    initiative_count: int


class DashboardStats(PortalModel):
    overview: DashboardOverview
    completion_rates: CompletionRates
    status_counts: dict[str, int] = Field(default_factory=dict)
    recent_activities: list[dict[str, Any]] = Field(default_factory=list)
    location_stats: list[LocationInitiativeCount] = Field(default_factory=list)

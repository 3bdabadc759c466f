"""
Aggregate statistics over stored documents.

Pure functions: the caller fetches the documents and passes "today"/"now".
"""

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping

from ..schemas import ComplianceStats, ComplianceStatus, EXPIRING_WINDOW_DAYS, UserStats
from ..schemas.dashboard import (
    CompletionRates,
    DashboardOverview,
    DashboardStats,
    LocationInitiativeCount,
)
from .records import parse_date


# Users created within this many days count as recent
RECENT_USER_DAYS = 30

# Initiatives listed under "recent activity"
RECENT_ACTIVITY_LIMIT = 5

Doc = Mapping[str, Any]


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


def compliance_stats(docs: Iterable[Doc], today: date) -> ComplianceStats:
    """Status breakdown of active compliance items, plus expiring/overdue."""
    active = [d for d in docs if d.get("is_active", True)]
    statuses = Counter(d.get("status") for d in active)
    horizon = today + timedelta(days=EXPIRING_WINDOW_DAYS)

    expiring = 0
    overdue = 0
    for d in active:
        if d.get("status") == ComplianceStatus.COMPLIANT.value:
            continue
        due = parse_date(d.get("due_date"))
        if due is None:
            continue
        if due <= horizon:
            expiring += 1
        if due < today:
            overdue += 1

    total = len(active)
    compliant = statuses[ComplianceStatus.COMPLIANT.value]
    return ComplianceStats(
        total=total,
        compliant=compliant,
        non_compliant=statuses[ComplianceStatus.NON_COMPLIANT.value],
        pending=statuses[ComplianceStatus.PENDING_REVIEW.value],
        in_progress=statuses[ComplianceStatus.IN_PROGRESS.value],
        expiring=expiring,
        overdue=overdue,
        compliance_rate=percent(compliant, total),
    )


def user_stats(docs: Iterable[Doc], now: datetime) -> UserStats:
    users = list(docs)
    active = sum(1 for u in users if u.get("is_active", True))
    cutoff = now - timedelta(days=RECENT_USER_DAYS)

    recent = 0
    for u in users:
        created = u.get("created_at")
        if not created:
            continue
        try:
            created_at = datetime.fromisoformat(str(created).replace("Z", "+00:00"))
        except ValueError:
            continue
        if created_at.tzinfo is None and cutoff.tzinfo is not None:
            created_at = created_at.replace(tzinfo=cutoff.tzinfo)
        if created_at >= cutoff:
            recent += 1

    return UserStats(
        total_users=len(users),
        active_users=active,
        inactive_users=len(users) - active,
        recent_users=recent,
        users_by_role=dict(Counter(u.get("role", "user") for u in users)),
    )


def dashboard_stats(
    users: Iterable[Doc],
    initiatives: Iterable[Doc],
    locations: Iterable[Doc],
    compliance: Iterable[Doc],
) -> DashboardStats:
    """
    Overview counts for the admin dashboard.

    ``initiatives`` is expected newest first; the first few become the
    recent activity list.
    """
    users = list(users)
    initiatives = list(initiatives)
    locations = list(locations)
    compliance = list(compliance)

    statuses = Counter(i.get("status") for i in initiatives)
    compliance_statuses = Counter(c.get("status") for c in compliance)
    per_location = Counter(i.get("location") for i in initiatives)

    total_initiatives = len(initiatives)
    completed = statuses["Completed"]

    overview = DashboardOverview(
        total_users=len(users),
        active_users=sum(1 for u in users if u.get("is_active", True)),
        total_initiatives=total_initiatives,
        total_locations=sum(1 for loc in locations if loc.get("is_active", True)),
        total_compliance=len(compliance),
        active_initiatives=statuses["Active"],
        completed_initiatives=completed,
        planning_initiatives=statuses["Planning"],
        pending_compliance=compliance_statuses[ComplianceStatus.PENDING_REVIEW.value],
        overdue_compliance=compliance_statuses[ComplianceStatus.NON_COMPLIANT.value],
        total_budget=sum(float(i.get("budget") or 0) for i in initiatives),
    )

    rates = CompletionRates(
        initiatives=percent(completed, total_initiatives),
        compliance=percent(
            compliance_statuses[ComplianceStatus.COMPLIANT.value], len(compliance)
        ),
    )

    return DashboardStats(
        overview=overview,
        completion_rates=rates,
        status_counts={k: v for k, v in statuses.items() if k},
        recent_activities=[
            {
                "id": i.get("id"),
                "title": i.get("title"),
                "status": i.get("status"),
                "updatedAt": i.get("updated_at"),
            }
            for i in initiatives[:RECENT_ACTIVITY_LIMIT]
        ],
        location_stats=[
            LocationInitiativeCount(
                id=loc["id"],
                name=loc.get("name", ""),
                initiative_count=per_location.get(loc["id"], 0),
            )
            for loc in locations
        ],
    )

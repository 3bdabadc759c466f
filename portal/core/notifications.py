"""
Expiry Notification Engine

Scans initiative records and derives severity-graded reminders for
registrations that are about to lapse and initiative deadlines that are
approaching or already past.

Pipeline:
    records -> derive_for_record (per record, 0..2 notifications)
            -> rank (severity desc, days remaining asc, stable)
            -> consumer (dismissal filter, badge count)

Everything here is pure: the caller passes "today" in, the functions keep
no state, and malformed records simply produce no notification.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from pydantic import ConfigDict

from ..schemas.common import PortalModel


# Records whose date is further out than this produce no reminder
LOOKAHEAD_DAYS = 30

# Initiatives in these states no longer have a live deadline
CLOSED_STATUSES = frozenset({"Completed", "Cancelled"})


class RuleType(str, Enum):
    """Which rule produced a notification."""
    EXPIRY = "expiry"           # Registration / license validity
    COMPLIANCE = "compliance"   # Initiative end date


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

# Severities counted in the header badge
BADGE_SEVERITIES = frozenset({Severity.CRITICAL, Severity.HIGH})


# ============================================================
# INPUT SHAPE
# ============================================================

@dataclass(frozen=True)
class RegistrationInfo:
    registered: str = "No"
    license_number: Optional[str] = None
    validity: Optional[date] = None

    @property
    def is_registered(self) -> bool:
        return self.registered == "Yes"


@dataclass(frozen=True)
class InitiativeRecord:
    """
    The fields of an initiative the engine reads.

    Built from stored documents by ``portal.core.records``; the location is
    already resolved to a display name.
    """
    id: str
    title: str
    status: str = "Planning"
    end_date: Optional[date] = None
    location_name: Optional[str] = None
    registration: Optional[RegistrationInfo] = None


# ============================================================
# OUTPUT SHAPE
# ============================================================

class Notification(PortalModel):
    """
    One triggered rule for one record. Immutable.

    The id is ``{record id}-validity`` or ``{record id}-deadline`` so that
    re-deriving from unchanged data yields the same ids, which is what
    client-side dismissal is keyed on.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    rule_type: RuleType
    severity: Severity
    message: str
    days_remaining: int
    expiry_date: date
    source_record_id: str
    location_name: Optional[str] = None
    license_number: Optional[str] = None


# ============================================================
# SEVERITY CLASSIFIER
# ============================================================

def days_until(target: date, today: date) -> int:
    """
    Signed whole days from today to target; negative means past.

    Both sides are calendar dates, so this equals the ceiling of the
    midnight-normalized difference: a deadline tomorrow is 1, never 0.
    """
    return (target - today).days


def classify_expiry(days_remaining: int) -> tuple[Severity, str]:
    """Registration validity thresholds."""
    if days_remaining < 0:
        return Severity.CRITICAL, f"Registration expired {abs(days_remaining)} days ago"
    if days_remaining <= 7:
        severity = Severity.CRITICAL
    elif days_remaining <= 15:
        severity = Severity.HIGH
    else:
        severity = Severity.MEDIUM
    return severity, f"Registration expires in {days_remaining} days"


def classify_deadline(days_remaining: int) -> tuple[Severity, str]:
    """Initiative deadline thresholds (one step milder than registrations)."""
    if days_remaining < 0:
        return Severity.HIGH, f"Initiative deadline passed {abs(days_remaining)} days ago"
    if days_remaining <= 7:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW
    return severity, f"Initiative deadline in {days_remaining} days"


def classify(rule_type: RuleType, days_remaining: int) -> tuple[Severity, str]:
    """Map (rule, days remaining) to a severity tier and message."""
    if rule_type == RuleType.EXPIRY:
        return classify_expiry(days_remaining)
    return classify_deadline(days_remaining)


# ============================================================
# DERIVER
# ============================================================

def derive_for_record(record: InitiativeRecord, today: date) -> list[Notification]:
    """
    Evaluate both rules for a single record.

    1. Registration validity: registered == "Yes" and a validity date.
    2. Deadline: an end date and a status other than Completed/Cancelled.

    Each rule emits only when its date is within LOOKAHEAD_DAYS (or past).
    """
    notifications = []

    reg = record.registration
    if reg is not None and reg.is_registered and reg.validity is not None:
        days = days_until(reg.validity, today)
        if days <= LOOKAHEAD_DAYS:
            severity, message = classify(RuleType.EXPIRY, days)
            notifications.append(Notification(
                id=f"{record.id}-validity",
                title=record.title,
                rule_type=RuleType.EXPIRY,
                severity=severity,
                message=message,
                days_remaining=days,
                expiry_date=reg.validity,
                source_record_id=record.id,
                location_name=record.location_name,
                license_number=reg.license_number,
            ))

    if record.end_date is not None and record.status not in CLOSED_STATUSES:
        days = days_until(record.end_date, today)
        if days <= LOOKAHEAD_DAYS:
            severity, message = classify(RuleType.COMPLIANCE, days)
            notifications.append(Notification(
                id=f"{record.id}-deadline",
                title=record.title,
                rule_type=RuleType.COMPLIANCE,
                severity=severity,
                message=message,
                days_remaining=days,
                expiry_date=record.end_date,
                source_record_id=record.id,
                location_name=record.location_name,
            ))

    return notifications


# ============================================================
# RANKER
# ============================================================

def rank(notifications: Iterable[Notification]) -> list[Notification]:
    """
    Order by severity (most severe first), then days remaining (most
    overdue / most imminent first). Python's sort is stable, so full ties
    keep their emission order.
    """
    return sorted(
        notifications,
        key=lambda n: (-n.severity.rank, n.days_remaining),
    )


def derive_notifications(
    records: Iterable[InitiativeRecord],
    today: date,
) -> list[Notification]:
    """Derive and rank notifications for every record against one 'today'."""
    emitted = []
    for record in records:
        emitted.extend(derive_for_record(record, today))
    return rank(emitted)


# ============================================================
# CONSUMER VIEW
# ============================================================

def visible_notifications(
    notifications: Iterable[Notification],
    dismissed_ids: Iterable[str] = (),
) -> list[Notification]:
    """Notifications whose id is not in the caller's dismissed set."""
    dismissed = set(dismissed_ids)
    return [n for n in notifications if n.id not in dismissed]


def badge_count(
    notifications: Iterable[Notification],
    dismissed_ids: Iterable[str] = (),
) -> int:
    """Visible critical + high notifications."""
    return sum(
        1 for n in visible_notifications(notifications, dismissed_ids)
        if n.severity in BADGE_SEVERITIES
    )


@dataclass
class NotificationFeed:
    """What the notification panel needs in one object."""
    today: date
    notifications: list[Notification]
    badge_count: int
    dismissed_count: int
    counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        notifications: list[Notification],
        today: date,
        dismissed_ids: Iterable[str] = (),
    ) -> "NotificationFeed":
        dismissed = set(dismissed_ids)
        visible = visible_notifications(notifications, dismissed)
        counts = {s.value: 0 for s in Severity}
        for n in visible:
            counts[n.severity.value] += 1
        return cls(
            today=today,
            notifications=visible,
            badge_count=badge_count(visible),
            dismissed_count=len(notifications) - len(visible),
            counts=counts,
        )

"""
Notification API Routes

Expiry reminders derived on every request from the stored initiatives.
Nothing is persisted: the client keeps its own set of dismissed ids and
sends it back as repeated ``dismissed`` query parameters.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import Field

from portal.core import Notification
from portal.observability import get_logger, get_metrics
from portal.schemas import ApiResponse, PortalModel, ok
from portal.web.deps import get_service, get_today


router = APIRouter(prefix="/api/notifications", tags=["Notifications"])
logger = get_logger(__name__)


class NotificationCounts(PortalModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class NotificationFeedOut(PortalModel):
    """What the header bell and the notification panel render."""
    today: date
    notifications: list[Notification] = Field(default_factory=list)
    badge_count: int = 0
    dismissed_count: int = 0
    counts: NotificationCounts = Field(default_factory=NotificationCounts)


@router.get("", response_model=ApiResponse[NotificationFeedOut])
async def list_notifications(
    request: Request,
    dismissed: Optional[list[str]] = Query(None),
):
    """
    Ranked notifications (most severe first, then most urgent), minus the
    dismissed ids. ``badgeCount`` counts the visible critical and high ones.
    """
    feed = get_service(request).notification_feed(get_today(), dismissed or ())
    get_metrics().record_notifications(len(feed.notifications) + feed.dismissed_count)

    logger.debug(
        "Notifications derived",
        visible=len(feed.notifications),
        dismissed_count=feed.dismissed_count,
        badge_count=feed.badge_count,
    )
    return ok(NotificationFeedOut(
        today=feed.today,
        notifications=feed.notifications,
        badge_count=feed.badge_count,
        dismissed_count=feed.dismissed_count,
        counts=NotificationCounts(**feed.counts),
    ))

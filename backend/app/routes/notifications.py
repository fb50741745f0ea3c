"""Notification routes.

A user's inbox: list, unread badge count, mark read, archive and delete.
Every endpoint only ever touches the caller's own notifications.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field

from freelancehub.notifications.models import Notification, time_ago

from ..auth import CurrentUser
from ..database import MarketplaceDep
from ..logging_config import get_logger
from ..rate_limit import limiter

logger = get_logger("freelancehub.api.notifications")
router = APIRouter(prefix="/notifications", tags=["notifications"])


# =============================================================================
# Request/Response Models
# =============================================================================


class NotificationIds(BaseModel):
    ids: list[str] = Field(default_factory=list)


class NotificationResponse(BaseModel):
    id: str
    recipient_id: str
    sender_id: str | None = None
    type: str
    title: str
    message: str
    job_id: str | None = None
    link: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool
    archived: bool
    created_at: datetime
    time_ago: str


class UnreadCountResponse(BaseModel):
    count: int


class BulkResultResponse(BaseModel):
    message: str
    count: int


class MessageResponse(BaseModel):
    message: str


def to_notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        **notification.to_dict(),
        time_ago=time_ago(notification.created_at),
    )


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=list[NotificationResponse])
@limiter.limit("120/minute")
async def list_notifications(
    request: Request,
    auth: CurrentUser,
    market: MarketplaceDep,
    unread: bool = Query(False, description="Only unread notifications"),
    archived: bool = Query(False, description="Include archived notifications"),
    type: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """The caller's notifications, newest first."""
    logger.info(f"GET /notifications | user={auth.user_id} | unread={unread}")
    notifications = market.notifications.list_notifications(
        auth.actor,
        unread_only=unread,
        include_archived=archived,
        type=type,
        limit=limit,
        offset=offset,
    )
    return [to_notification_response(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
@limiter.limit("120/minute")
async def get_unread_count(
    request: Request,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    return UnreadCountResponse(count=market.notifications.unread_count(auth.actor))


@router.put("/mark-read-multiple", response_model=BulkResultResponse)
@limiter.limit("30/minute")
async def mark_read_multiple(
    request: Request,
    body: NotificationIds,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"PUT /notifications/mark-read-multiple | user={auth.user_id} | count={len(body.ids)}")
    count = market.notifications.mark_read_multiple(auth.actor, body.ids)
    return BulkResultResponse(message="Notifications marked as read", count=count)


@router.put("/read-all", response_model=BulkResultResponse)
@limiter.limit("30/minute")
async def mark_all_read(
    request: Request,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"PUT /notifications/read-all | user={auth.user_id}")
    count = market.notifications.mark_all_read(auth.actor)
    return BulkResultResponse(message="All notifications marked as read", count=count)


@router.put("/archive-multiple", response_model=BulkResultResponse)
@limiter.limit("30/minute")
async def archive_multiple(
    request: Request,
    body: NotificationIds,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"PUT /notifications/archive-multiple | user={auth.user_id} | count={len(body.ids)}")
    count = market.notifications.archive_multiple(auth.actor, body.ids)
    return BulkResultResponse(message="Notifications archived", count=count)


@router.put("/{notification_id}", response_model=MessageResponse)
@limiter.limit("60/minute")
async def mark_read(
    request: Request,
    notification_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Mark one notification read."""
    logger.info(f"PUT /notifications/{notification_id} | user={auth.user_id}")
    market.notifications.mark_read(auth.actor, notification_id)
    return MessageResponse(message="Notification marked as read")


@router.delete("/multiple", response_model=BulkResultResponse)
@limiter.limit("30/minute")
async def delete_multiple(
    request: Request,
    body: NotificationIds,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"DELETE /notifications/multiple | user={auth.user_id} | count={len(body.ids)}")
    count = market.notifications.delete_multiple(auth.actor, body.ids)
    return BulkResultResponse(message="Notifications deleted", count=count)


@router.delete("/{notification_id}", response_model=MessageResponse)
@limiter.limit("60/minute")
async def delete_notification(
    request: Request,
    notification_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"DELETE /notifications/{notification_id} | user={auth.user_id}")
    market.notifications.delete(auth.actor, notification_id)
    return MessageResponse(message="Notification deleted")

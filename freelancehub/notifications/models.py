"""Notification data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from freelancehub.utils import iso, new_id, parse_datetime, utc_now


class NotificationType(str, Enum):
    """Business events that produce a notification."""

    NEW_APPLICATION = "new_application"
    JOB_ASSIGNED = "job_assigned"
    APPLICATION_REJECTED = "application_rejected"
    JOB_CLOSED = "job_closed"
    MILESTONES_CREATED = "milestones_created"
    MILESTONE_APPROVAL_REQUESTED = "milestone_approval_requested"
    MILESTONE_APPROVED = "milestone_approved"
    MILESTONE_REJECTED = "milestone_rejected"
    PAYMENT_RELEASED = "payment_released"
    JOB_COMPLETED = "job_completed"
    NEW_RATING = "new_rating"
    NEW_MESSAGE = "new_message"


@dataclass
class Notification:
    """A message delivered to a single user."""

    recipient_id: str
    type: str
    title: str
    message: str
    id: str = field(default_factory=new_id)
    sender_id: Optional[str] = None
    job_id: Optional[str] = None
    link: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    read: bool = False
    archived: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        raw = self.type.value if isinstance(self.type, Enum) else self.type
        try:
            self.type = NotificationType(raw).value
        except ValueError:
            raise ValueError(f"Invalid notification type: {raw}") from None
        if not self.recipient_id:
            raise ValueError("recipient_id is required")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "job_id": self.job_id,
            "link": self.link,
            "metadata": dict(self.metadata),
            "read": self.read,
            "archived": self.archived,
            "created_at": iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            id=data["id"],
            recipient_id=data["recipient_id"],
            sender_id=data.get("sender_id"),
            type=data["type"],
            title=data.get("title") or "",
            message=data.get("message") or "",
            job_id=data.get("job_id"),
            link=data.get("link"),
            metadata=dict(data.get("metadata") or {}),
            read=bool(data.get("read", False)),
            archived=bool(data.get("archived", False)),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Human-friendly age of a notification ("5 minutes ago")."""
    now = now or utc_now()
    seconds = int((now - created_at).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if seconds < 604800:
        days = seconds // 86400
        return f"{days} day{'s' if days > 1 else ''} ago"
    return created_at.date().isoformat()

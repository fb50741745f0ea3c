"""
Notification service.

Business events call ``notify``; users read and tidy their inbox through
the remaining methods. A notification is only ever changed by marking it
read, archiving it or deleting it.
"""

from typing import Any, Dict, List, Optional

from freelancehub.actors import Actor
from freelancehub.config import MarketplaceConfig
from freelancehub.errors import (
    ForbiddenError,
    NotificationNotFoundError,
    ValidationError,
)
from freelancehub.logging_config import get_logger, log_notification
from freelancehub.notifications.models import Notification, NotificationType
from freelancehub.notifications.storage import NotificationStorage

logger = get_logger("freelancehub.notifications.service")


class NotificationService:
    """Creates notifications and manages a user's inbox."""

    def __init__(self, storage: NotificationStorage, config: Optional[MarketplaceConfig] = None):
        self.storage = storage
        self.config = config or MarketplaceConfig()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def notify(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        sender_id: Optional[str] = None,
        job_id: Optional[str] = None,
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Store a notification for ``recipient_id``."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            sender_id=sender_id,
            job_id=job_id,
            link=link or (f"/jobs/{job_id}" if job_id else None),
            metadata=metadata or {},
        )
        self.storage.save_notification(notification)
        log_notification(recipient_id, notification.type, job_id)
        return notification

    def notify_quietly(self, recipient_id: Optional[str], type: NotificationType, **kwargs) -> Optional[Notification]:
        """Like ``notify`` but never fails the calling transition.

        The state change has already been committed when this runs, so a
        failed insert is logged rather than raised.
        """
        if not recipient_id:
            return None
        try:
            return self.notify(recipient_id, type, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to notify {recipient_id} ({type.value}): {e}")
            return None

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        actor: Actor,
        unread_only: bool = False,
        include_archived: bool = False,
        type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        if type is not None:
            try:
                type = NotificationType(type).value
            except ValueError:
                raise ValidationError(f"Unknown notification type: {type}") from None
        return self.storage.list_notifications(
            actor.user_id,
            read=False if unread_only else None,
            archived=None if include_archived else False,
            type=type,
            limit=limit or self.config.notification_list_limit,
            offset=offset,
        )

    def unread_count(self, actor: Actor) -> int:
        return self.storage.count_notifications(actor.user_id, read=False)

    def _get_owned(self, actor: Actor, notification_id: str) -> Notification:
        notification = self.storage.get_notification(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        if notification.recipient_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        return notification

    def mark_read(self, actor: Actor, notification_id: str) -> Notification:
        notification = self._get_owned(actor, notification_id)
        if not notification.read:
            self.storage.update_notifications(actor.user_id, {"read": True}, ids=[notification_id])
            notification.read = True
        return notification

    def mark_read_multiple(self, actor: Actor, ids: List[str]) -> int:
        self._require_ids(ids)
        return self.storage.update_notifications(actor.user_id, {"read": True}, ids=ids, read=False)

    def mark_all_read(self, actor: Actor) -> int:
        updated = self.storage.update_notifications(actor.user_id, {"read": True}, read=False)
        logger.info(f"Marked {updated} notifications read | user={actor.user_id}")
        return updated

    def archive_multiple(self, actor: Actor, ids: List[str]) -> int:
        self._require_ids(ids)
        return self.storage.update_notifications(actor.user_id, {"archived": True}, ids=ids)

    def delete(self, actor: Actor, notification_id: str) -> None:
        self._get_owned(actor, notification_id)
        self.storage.delete_notifications(actor.user_id, [notification_id])

    def delete_multiple(self, actor: Actor, ids: List[str]) -> int:
        self._require_ids(ids)
        return self.storage.delete_notifications(actor.user_id, ids)

    @staticmethod
    def _require_ids(ids: List[str]) -> None:
        if not ids:
            raise ValidationError("At least one notification id is required")

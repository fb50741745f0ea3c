"""Notification storage layer."""

import copy
import threading
from typing import Any, Dict, List, Optional, Protocol

from freelancehub.notifications.models import Notification


class NotificationStorage(Protocol):
    """Protocol for notification persistence backends."""

    def save_notification(self, notification: Notification) -> str:
        """Insert a notification. Returns its ID."""
        ...

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        ...

    def list_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
        type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        """List a user's notifications, newest first."""
        ...

    def count_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
    ) -> int:
        ...

    def update_notifications(
        self,
        recipient_id: str,
        updates: Dict[str, Any],
        ids: Optional[List[str]] = None,
        read: Optional[bool] = None,
    ) -> int:
        """Update the recipient's notifications (optionally limited to ``ids``
        or to a read state). Returns the number of rows changed."""
        ...

    def delete_notifications(self, recipient_id: str, ids: List[str]) -> int:
        """Delete the recipient's notifications by ID. Returns rows removed."""
        ...


class InMemoryNotificationStorage:
    """In-memory notification storage for testing and local development."""

    def __init__(self):
        self._notifications: dict[str, Notification] = {}
        self._lock = threading.Lock()

    def save_notification(self, notification: Notification) -> str:
        with self._lock:
            self._notifications[notification.id] = copy.deepcopy(notification)
        return notification.id

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            found = self._notifications.get(notification_id)
            return copy.deepcopy(found) if found else None

    def _select(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
        type: Optional[str] = None,
    ) -> List[Notification]:
        items = [n for n in self._notifications.values() if n.recipient_id == recipient_id]
        if read is not None:
            items = [n for n in items if n.read == read]
        if archived is not None:
            items = [n for n in items if n.archived == archived]
        if type is not None:
            items = [n for n in items if n.type == type]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items

    def list_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
        type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        with self._lock:
            items = self._select(recipient_id, read, archived, type)
            return copy.deepcopy(items[offset : offset + limit])

    def count_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
    ) -> int:
        with self._lock:
            return len(self._select(recipient_id, read, archived))

    def update_notifications(
        self,
        recipient_id: str,
        updates: Dict[str, Any],
        ids: Optional[List[str]] = None,
        read: Optional[bool] = None,
    ) -> int:
        changed = 0
        with self._lock:
            for n in self._notifications.values():
                if n.recipient_id != recipient_id:
                    continue
                if ids is not None and n.id not in ids:
                    continue
                if read is not None and n.read != read:
                    continue
                for key, value in updates.items():
                    setattr(n, key, value)
                changed += 1
        return changed

    def delete_notifications(self, recipient_id: str, ids: List[str]) -> int:
        with self._lock:
            doomed = [
                nid
                for nid in ids
                if nid in self._notifications
                and self._notifications[nid].recipient_id == recipient_id
            ]
            for nid in doomed:
                del self._notifications[nid]
        return len(doomed)

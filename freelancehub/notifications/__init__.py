"""Notifications subsystem.

Models:
- Notification: A message delivered to one user
- NotificationType: Business events that produce notifications

Service:
- NotificationService: notify + inbox operations (read, archive, delete)
"""

from freelancehub.notifications.models import Notification, NotificationType, time_ago
from freelancehub.notifications.service import NotificationService
from freelancehub.notifications.storage import InMemoryNotificationStorage, NotificationStorage

__all__ = [
    "Notification",
    "NotificationType",
    "NotificationService",
    "NotificationStorage",
    "InMemoryNotificationStorage",
    "time_ago",
]

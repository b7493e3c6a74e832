"""Notification queueing components."""

from pushdispatch.queue.notification_queue import NotificationQueue

__all__ = [
    "NotificationQueue",
]

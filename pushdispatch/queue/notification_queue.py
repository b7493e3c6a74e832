"""
Tool: Notification Queue
Purpose: Hold pending notifications grouped by service type until flush

Usage:
    from pushdispatch.queue.notification_queue import NotificationQueue

    queue = NotificationQueue()
    queue.append("standard", notification)
    for service_type, notifications in queue.drain():
        ...

Ordering:
    - Groups are ordered by the first enqueue of each service type
    - Notifications keep enqueue order within a group
    - drain() is the only way to read the queue, and it empties it
"""

from pushdispatch.models import Notification


class NotificationQueue:
    """In-memory queue of notifications keyed by service type."""

    def __init__(self):
        self._groups: dict[str, list[Notification]] = {}

    def append(self, service_type: str, notification: Notification) -> None:
        self._groups.setdefault(service_type, []).append(notification)

    def drain(self) -> list[tuple[str, list[Notification]]]:
        """Return every group in order and clear the queue."""
        groups, self._groups = self._groups, {}
        return list(groups.items())

    def service_types(self) -> list[str]:
        return list(self._groups)

    def __len__(self) -> int:
        return sum(len(group) for group in self._groups.values())

    def __bool__(self) -> bool:
        return bool(self._groups)

    def __repr__(self) -> str:
        counts = ", ".join(f"{t}={len(g)}" for t, g in self._groups.items())
        return f"NotificationQueue({counts})"

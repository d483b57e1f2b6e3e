"""
In-memory, dismissible user notifications.

Failures the user should see (a settings load that could not reach the store,
an update that was not saved) are pushed here instead of being raised, so the
calling screen can keep working with the last good state.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .utils.logging import get_logger

logger = get_logger(__name__)

LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


@dataclass
class Notification:
    id: int
    title: str
    message: str
    level: str = LEVEL_INFO
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dismissed: bool = False


class NotificationCenter:
    """Collects notifications until the user dismisses them."""

    def __init__(self) -> None:
        self._items: List[Notification] = []
        self._ids = itertools.count(1)

    def notify(self, title: str, message: str, level: str = LEVEL_INFO) -> Notification:
        notification = Notification(id=next(self._ids), title=title, message=message, level=level)
        self._items.append(notification)
        if level == LEVEL_ERROR:
            logger.error(f"{title}: {message}")
        elif level == LEVEL_WARNING:
            logger.warning(f"{title}: {message}")
        else:
            logger.info(f"{title}: {message}")
        return notification

    def error(self, title: str, message: str) -> Notification:
        return self.notify(title, message, level=LEVEL_ERROR)

    def dismiss(self, notification_id: int) -> bool:
        """Mark a notification dismissed. Returns False if it is unknown."""
        notification = self.get(notification_id)
        if notification is None:
            return False
        notification.dismissed = True
        return True

    def get(self, notification_id: int) -> Optional[Notification]:
        for notification in self._items:
            if notification.id == notification_id:
                return notification
        return None

    def active(self) -> List[Notification]:
        return [n for n in self._items if not n.dismissed]

    def __len__(self) -> int:
        return len(self.active())

# coherence/notifications.py
"""
Portais Notifications — v1.0.0

The ledger signals noteworthy moments (combo, level-up, quest done,
streak, achievement) through a plain `notify(kind, message)` callable.

NotificationCenter is the default sink: a bounded queue the HTTP layer
drains into each response so the UI can show toasts.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List

logger = logging.getLogger("portais.notifications")


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    COMBO = "combo"
    ACHIEVEMENT = "achievement"


Notifier = Callable[[NotificationKind, str], None]


def null_notifier(kind: NotificationKind, message: str) -> None:
    """Discard notifications."""
    return None


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    message: str
    timestamp: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }


class NotificationCenter:
    """Thread-safe bounded queue of pending notifications."""

    MAX_PENDING = 50

    def __init__(self, max_pending: int = MAX_PENDING):
        self._pending: Deque[Notification] = deque(maxlen=max_pending)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self, kind: NotificationKind, message: str) -> None:
        self.notify(kind, message)

    def notify(self, kind: NotificationKind, message: str) -> None:
        kind = NotificationKind(kind)
        with self._lock:
            notification = Notification(
                id=f"toast-{next(self._counter)}",
                kind=kind,
                message=message,
                timestamp=int(time.time() * 1000),
            )
            self._pending.append(notification)
        logger.info("[%s] %s", kind.value, message)

    def drain(self) -> List[Notification]:
        """Return and clear everything pending, oldest first."""
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)


__all__ = [
    "NotificationKind",
    "Notifier",
    "Notification",
    "NotificationCenter",
    "null_notifier",
]

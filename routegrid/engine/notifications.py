"""Notifier — user-facing, non-blocking notifications."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from ..utils.logging import get_logger

logger = get_logger("engine.notifications")

VARIANTS = ("default", "success", "destructive")


@dataclass
class Notification:
    title: str
    description: str = ""
    variant: str = "default"
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant,
            "timestamp": self.timestamp,
        }


class Notifier:
    """Keeps a bounded history of notifications and fans them out to subscribers."""

    def __init__(self, max_history: int = 100):
        self._history: deque[Notification] = deque(maxlen=max_history)
        self._subscribers: list[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Notification], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def notify(self, title: str, description: str = "", variant: str = "default") -> Notification:
        if variant not in VARIANTS:
            variant = "default"
        notification = Notification(title=title, description=description, variant=variant)
        self._history.append(notification)

        log = logger.warning if variant == "destructive" else logger.info
        log("notification", title=title, description=description, variant=variant)

        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.error("notification_subscriber_failed", error=str(e))
        return notification

    def success(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, "success")

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, "destructive")

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    @property
    def last(self) -> Notification | None:
        return self._history[-1] if self._history else None

    def clear(self) -> None:
        self._history.clear()

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    level: str  # "success" | "error" | "info"
    message: str
    at: datetime

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "message": self.message,
            "at": self.at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }


class Notifier:
    """Collects user-visible messages until the presentation layer drains them."""

    def __init__(self, maxlen: int = 50):
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    def _push(self, level: str, message: str) -> None:
        logger.info(f"[{level}] {message}")
        self._pending.append(
            Notification(level=level, message=message, at=datetime.now(timezone.utc))
        )

    def success(self, message: str) -> None:
        self._push("success", message)

    def error(self, message: str) -> None:
        self._push("error", message)

    def info(self, message: str) -> None:
        self._push("info", message)

    def peek(self) -> list[Notification]:
        return list(self._pending)

    def drain(self) -> list[Notification]:
        items = list(self._pending)
        self._pending.clear()
        return items

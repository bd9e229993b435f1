from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class NoticeBoard:
    """Dismissible user notifications, newest last."""

    def __init__(self) -> None:
        self._items: list[Notice] = []
        self._lock = threading.Lock()

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level, message)
        with self._lock:
            self._items.append(notice)
        if level == NoticeLevel.ERROR:
            logger.debug("Error notice: %s", message)
        return notice

    def info(self, message: str) -> Notice:
        return self.notify(NoticeLevel.INFO, message)

    def success(self, message: str) -> Notice:
        return self.notify(NoticeLevel.SUCCESS, message)

    def warning(self, message: str) -> Notice:
        return self.notify(NoticeLevel.WARNING, message)

    def error(self, message: str) -> Notice:
        return self.notify(NoticeLevel.ERROR, message)

    @property
    def items(self) -> list[Notice]:
        with self._lock:
            return list(self._items)

    @property
    def latest(self) -> Notice | None:
        with self._lock:
            return self._items[-1] if self._items else None

    def of_level(self, level: NoticeLevel) -> list[Notice]:
        return [notice for notice in self.items if notice.level == level]

    def dismiss(self, notice: Notice) -> None:
        with self._lock:
            if notice in self._items:
                self._items.remove(notice)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

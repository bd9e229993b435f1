from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class Debouncer:
    """Per-key cancellable timers.

    Scheduling a key replaces its pending timer. ``close`` cancels every
    pending timer and turns later ``schedule`` calls into no-ops, so the
    owner can tie the debouncer to its own lifetime with ``with``.
    """

    def __init__(self, delay: float, timer_factory: TimerFactory | None = None) -> None:
        self.delay = delay
        self._factory = timer_factory or thread_timer
        self._pending: dict[Hashable, TimerHandle] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self, key: Hashable, callback: Callable[..., None], *args, **kwargs) -> bool:
        holder: list[TimerHandle] = []

        def fire() -> None:
            with self._lock:
                # A cancelled or replaced timer may still reach here.
                if self._closed or not holder or self._pending.get(key) is not holder[0]:
                    return
                del self._pending[key]
            callback(*args, **kwargs)

        with self._lock:
            if self._closed:
                return False
            previous = self._pending.pop(key, None)
            timer = self._factory(self.delay, fire)
            holder.append(timer)
            self._pending[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()
        return True

    def cancel(self, key: Hashable) -> bool:
        with self._lock:
            timer = self._pending.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self.cancel_all()
        logger.debug("Debouncer closed")

    def __enter__(self) -> Debouncer:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> None: ...

    def cancel_all(self) -> None: ...


class TimerScheduler:
    """Runs each callback on a daemon ``threading.Timer``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        timer: threading.Timer

        def _fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed")

        timer = threading.Timer(max(0.0, delay_seconds), _fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()


class ManualScheduler:
    """Scheduler driven by an explicit clock; nothing fires until ``advance``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._now = 0.0
        self._sequence = 0
        self._queue: list[tuple[float, int, Callable[[], None]]] = []

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        with self._lock:
            self._sequence += 1
            self._queue.append((self._now + max(0.0, delay_seconds), self._sequence, callback))
            self._queue.sort(key=lambda item: (item[0], item[1]))

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def advance(self, seconds: float) -> int:
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        with self._lock:
            self._now += seconds
            due = [item for item in self._queue if item[0] <= self._now]
            self._queue = [item for item in self._queue if item[0] > self._now]
        for _due_at, _sequence, callback in due:
            callback()
        return len(due)

    def cancel_all(self) -> None:
        with self._lock:
            self._queue.clear()

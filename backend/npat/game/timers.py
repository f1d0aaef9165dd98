from __future__ import annotations

from threading import Lock
from typing import Callable, Protocol


class TimerHandle:
    """A deferred callback that can be cancelled before it fires.

    Once cancelled, `fire` never runs the callback. Firing is at most once.
    """

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._lock = Lock()
        self._done = False
        self.cancelled = False

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            self._done = True

    def fire(self) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
        self._callback()
        return True


class Scheduler(Protocol):
    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle: ...

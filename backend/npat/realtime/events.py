from __future__ import annotations

import logging
from typing import Any, Callable

from flask_socketio import SocketIO

from ..game.session import Publisher
from ..game.timers import TimerHandle


logger = logging.getLogger(__name__)


def make_publisher(socketio: SocketIO) -> Publisher:
    def _publish(room_id: str, event: str, payload: Any, to: str | None = None) -> None:
        try:
            socketio.emit(event, payload, to=to or room_id)
        except Exception:
            logger.exception("[emit-failed] room=%s event=%s", room_id, event)

    return _publish


class SocketIOScheduler:
    """Runs deferred callbacks as Socket.IO background tasks."""

    def __init__(self, socketio: SocketIO) -> None:
        self._socketio = socketio

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)

        def _runner() -> None:
            self._socketio.sleep(delay_sec)
            try:
                handle.fire()
            except Exception:
                logger.exception("[timer-error] delay=%ss", delay_sec)

        self._socketio.start_background_task(_runner)
        return handle

from __future__ import annotations

import logging
import random
import string
from threading import RLock
from typing import Callable, Mapping

from .session import Publisher, RoomSession
from .timers import Scheduler


logger = logging.getLogger(__name__)


def generate_room_code(length: int = 4, rng: random.Random | None = None) -> str:
    chooser = rng or random
    return "".join(chooser.choices(string.ascii_uppercase + string.digits, k=length))


class RoomRegistry:
    """Maps room ids to their sessions and connection ids to the room they joined.

    The registry lock only guards the two maps; it is never held while a
    session operation runs.
    """

    def __init__(
        self,
        publisher: Publisher,
        scheduler: Scheduler,
        *,
        collection_timeout_sec: float = 10,
        host_reelection: bool = True,
        enforce_host: bool = True,
        room_code_length: int = 4,
        rng_factory: Callable[[], random.Random] | None = None,
    ) -> None:
        self._publisher = publisher
        self._scheduler = scheduler
        self._collection_timeout_sec = collection_timeout_sec
        self._host_reelection = host_reelection
        self._enforce_host = enforce_host
        self._room_code_length = room_code_length
        self._rng_factory = rng_factory or random.Random

        self._lock = RLock()
        self._rooms: dict[str, RoomSession] = {}
        self._memberships: dict[str, str] = {}

    @classmethod
    def from_config(cls, config: Mapping, publisher: Publisher, scheduler: Scheduler) -> RoomRegistry:
        return cls(
            publisher,
            scheduler,
            collection_timeout_sec=float(config.get("COLLECTION_TIMEOUT_SEC", 10)),
            host_reelection=bool(config.get("HOST_REELECTION", True)),
            enforce_host=bool(config.get("ENFORCE_HOST_ACTIONS", True)),
            room_code_length=int(config.get("ROOM_CODE_LENGTH", 4)),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        with self._lock:
            return room_id in self._rooms

    def get(self, room_id: str) -> RoomSession | None:
        with self._lock:
            return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> RoomSession:
        with self._lock:
            session = self._rooms.get(room_id)
            if session is None:
                session = self._new_session(room_id)
                self._rooms[room_id] = session
                logger.info("[room-create] room=%s rooms=%d", room_id, len(self._rooms))
            return session

    def create(self) -> RoomSession:
        with self._lock:
            code = generate_room_code(self._room_code_length)
            while code in self._rooms:
                code = generate_room_code(self._room_code_length)
            return self.get_or_create(code)

    def room_of(self, player_id: str) -> RoomSession | None:
        with self._lock:
            room_id = self._memberships.get(player_id)
            return self._rooms.get(room_id) if room_id else None

    def join(self, room_id: str, player_id: str, name: str, claim_host: bool = False) -> RoomSession:
        with self._lock:
            previous = self._memberships.get(player_id)
            self._memberships[player_id] = room_id
        if previous and previous != room_id:
            self.remove(previous, player_id)

        session = self.get_or_create(room_id)
        session.join(player_id, name, claim_host=claim_host)
        return session

    def remove(self, room_id: str, player_id: str) -> bool:
        # Emptied rooms stay resident.
        session = self.get(room_id)
        if session is None:
            return False
        return session.disconnect(player_id)

    def disconnect(self, player_id: str) -> bool:
        with self._lock:
            room_id = self._memberships.pop(player_id, None)
        if room_id is None:
            return False
        return self.remove(room_id, player_id)

    def _new_session(self, room_id: str) -> RoomSession:
        return RoomSession(
            room_id,
            self._publisher,
            self._scheduler,
            collection_timeout_sec=self._collection_timeout_sec,
            host_reelection=self._host_reelection,
            enforce_host=self._enforce_host,
            rng=self._rng_factory(),
        )

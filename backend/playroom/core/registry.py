from __future__ import annotations

import logging
import time
import uuid
from threading import RLock
from typing import Callable, Generic, Protocol, TypeVar

from .scheduler import Scheduler

logger = logging.getLogger(__name__)

EMPTY_ROOM_TTL_SEC = 5 * 60
ENDED_ROOM_TTL_SEC = 15 * 60


class SweepableRoom(Protocol):
    id: str
    created_at: float

    def is_empty(self) -> bool: ...

    def is_ended(self) -> bool: ...

    def close(self) -> None: ...


R = TypeVar("R", bound=SweepableRoom)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomRegistry(Generic[R]):
    """Active rooms of one game type, keyed by id.

    A lookup table, not a validating API: unknown ids give ``None``.
    """

    def __init__(
        self,
        prefix: str,
        scheduler: Scheduler,
        empty_ttl: float = EMPTY_ROOM_TTL_SEC,
        ended_ttl: float = ENDED_ROOM_TTL_SEC,
    ) -> None:
        self.prefix = prefix
        self.scheduler = scheduler
        self.empty_ttl = empty_ttl
        self.ended_ttl = ended_ttl
        self._lock = RLock()
        self._rooms: dict[str, R] = {}
        self._sweeper = None

    def _new_id(self) -> str:
        return f"{self.prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"

    def create(self, factory: Callable[[str], R]) -> R:
        with self._lock:
            room_id = self._new_id()
            while room_id in self._rooms:
                room_id = self._new_id()

            room = factory(room_id)
            self._rooms[room_id] = room
            logger.info("room created: %s", room_id)
            return room

    def get(self, room_id: str) -> R | None:
        with self._lock:
            return self._rooms.get(room_id)

    def delete(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        room.close()
        logger.info("room deleted: %s", room_id)
        return True

    def list(self, predicate: Callable[[R], bool] | None = None) -> list[R]:
        with self._lock:
            rooms = list(self._rooms.values())
        if predicate is None:
            return rooms
        return [r for r in rooms if predicate(r)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms

    def sweep(self, now: float | None = None) -> list[str]:
        """Drop rooms left empty or ended for too long. Returns removed ids."""
        if now is None:
            now = self.scheduler.now()

        expired = []
        for room in self.list():
            age = now - room.created_at
            if room.is_empty() and age > self.empty_ttl:
                expired.append(room.id)
            elif room.is_ended() and age > self.ended_ttl:
                expired.append(room.id)

        for room_id in expired:
            self.delete(room_id)
        if expired:
            logger.info("swept %d %s room(s)", len(expired), self.prefix)
        return expired

    def start_sweeper(self, interval: float = 60) -> None:
        if self._sweeper is not None and self._sweeper.active:
            return

        def _tick() -> None:
            try:
                self.sweep()
            finally:
                self._sweeper = self.scheduler.call_later(interval, _tick)

        self._sweeper = self.scheduler.call_later(interval, _tick)

    def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

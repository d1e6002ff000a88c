"""Optimistic read-compute-write around a shared room record."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .errors import ConcurrencyConflict, FatalError, Rejected, RoomNotFound, Status
from .models import Room

logger = logging.getLogger(__name__)

Transition = Callable[[Room], List[str]]


@dataclass
class Outcome:
    ok: bool
    status: Status
    room: Room
    lines: List[str] = field(default_factory=list)
    error: Optional[str] = None
    player_id: Optional[str] = None


class RoomStore:
    """In-process room records, each guarded by a version number.

    ``load`` hands out private copies, so a caller can never change a stored
    room except through ``compare_and_set``.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Tuple[int, Room]] = {}

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    async def insert(self, room: Room) -> None:
        if room.code in self._rooms:
            raise ValueError(f"Room {room.code} already exists.")
        self._rooms[room.code] = (0, room.clone())

    async def load(self, code: str) -> Tuple[Room, int]:
        try:
            version, room = self._rooms[code]
        except KeyError:
            raise RoomNotFound(f"No room with code {code}.") from None
        return room.clone(), version

    async def compare_and_set(self, code: str, version: int, room: Room) -> bool:
        current, _ = self._rooms.get(code, (None, None))
        if current != version:
            return False
        self._rooms[code] = (version + 1, room.clone())
        return True


class Gateway:
    def __init__(self, store: RoomStore, max_attempts: int = 5) -> None:
        self.store = store
        self.max_attempts = max_attempts

    async def transact(self, code: str, transition: Transition, op: str = "update") -> Outcome:
        """Apply ``transition`` to the latest room and commit it atomically.

        The transition is rerun against a fresh copy whenever another writer
        got there first. A rejected transition commits nothing and reports
        its status; fatal errors are logged and raised.
        """
        for attempt in range(1, self.max_attempts + 1):
            room, version = await self.store.load(code)
            try:
                lines = transition(room)
            except Rejected as e:
                logger.debug("[%s] %s ignored (%s): %s", code, op, e.status.value, e)
                current, _ = await self.store.load(code)
                return Outcome(ok=False, status=e.status, room=current, error=str(e))
            except FatalError as e:
                logger.error("[%s] %s aborted (%s): %s", code, op, e.status.value, e)
                raise

            if await self.store.compare_and_set(code, version, room):
                for line in lines:
                    logger.info("[%s] %s", code, line)
                return Outcome(ok=True, status=Status.OK, room=room, lines=lines)
            logger.debug("[%s] %s hit a write conflict (attempt %d)", code, op, attempt)

        logger.error("[%s] %s gave up after %d conflicting writes", code, op, self.max_attempts)
        raise ConcurrencyConflict(f"Could not commit {op} on room {code}.")

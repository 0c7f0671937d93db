"""Process-wide lookup of live rooms."""

from __future__ import annotations

import asyncio
import secrets
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from arena.session.room import Room

ROOM_ID_LENGTH = 6


def generate_room_id() -> str:
    """Return a short URL-safe room identifier."""
    return secrets.token_urlsafe(ROOM_ID_LENGTH)[:ROOM_ID_LENGTH]


class SessionDirectory:
    """Map room ids to rooms and their per-room locks.

    Holds no game logic. The directory does not own rooms beyond lookup: removing
    an entry is how a room is discarded, and anything still referencing the room
    object (a timer finishing its last step) must re-check membership.
    """

    def __init__(self, id_factory: Callable[[], str] = generate_room_id) -> None:
        self._id_factory = id_factory
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def new_room_id(self) -> str:
        """Draw ids from the factory until one is not in use."""
        while True:
            room_id = self._id_factory()
            if room_id not in self._rooms:
                return room_id

    def insert(self, room: Room) -> None:
        if room.room_id in self._rooms:
            raise ValueError(f"room {room.room_id} already exists")
        self._rooms[room.room_id] = room
        self._locks[room.room_id] = asyncio.Lock()

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def lock_for(self, room_id: str) -> asyncio.Lock | None:
        """Return the room's single-writer lock, or None if the room is gone."""
        return self._locks.get(room_id)

    def remove(self, room_id: str) -> Room | None:
        """Remove a room. Safe to call for rooms that are already gone."""
        self._locks.pop(room_id, None)
        return self._rooms.pop(room_id, None)

    def discard_if_stale(self, room_id: str, ttl_seconds: float, now: float | None = None) -> Room | None:
        """Remove a waiting room that is empty or older than the TTL.

        Return the removed room, or None when the room is gone or still live.
        Calling it again for the same room is a no-op.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return None
        if not room.is_stale(time.monotonic() if now is None else now, ttl_seconds):
            return None
        return self.remove(room_id)

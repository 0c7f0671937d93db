from __future__ import annotations

import asyncio
import contextlib
import random
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from arena.logic.enums import BotDifficulty, LeaveReason, RoomStatus
from arena.logic.settings import GameSettings
from arena.messaging.types import ErrorCode, ErrorMessage, RoomCreatedMessage
from arena.session.broadcast import Broadcaster
from arena.session.directory import SessionDirectory
from arena.session.inputs import (
    CountdownStep,
    JoinRoom,
    Leave,
    PaddleMove,
    PlayerReady,
    RoomInput,
    StartMatch,
    Tick,
)
from arena.session.room import Room, default_nickname
from arena.session.timer_manager import TimerManager

if TYPE_CHECKING:
    from arena.logic.events import RoomEvent
    from arena.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

DEFAULT_BASE_URL = "http://localhost:3001"
DEFAULT_MAX_ROOMS = 1000
DEFAULT_ROOM_TTL_SECONDS = 3600
DEFAULT_ROOM_SWEEP_INTERVAL_SECONDS = 300


class SessionManager:
    """Connect client connections to rooms and drive each room's schedules.

    Every room mutation happens under that room's lock, whether it comes from a
    client message, a countdown step, or a tick. After each mutation the room's
    status decides which schedule should be running and whether the room is done.
    """

    def __init__(  # noqa: PLR0913
        self,
        directory: SessionDirectory | None = None,
        broadcaster: Broadcaster | None = None,
        *,
        game_settings: GameSettings | None = None,
        base_url: str = DEFAULT_BASE_URL,
        max_rooms: int = DEFAULT_MAX_ROOMS,
        room_ttl_seconds: float = DEFAULT_ROOM_TTL_SECONDS,
        room_sweep_interval_seconds: float = DEFAULT_ROOM_SWEEP_INTERVAL_SECONDS,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self._directory = directory if directory is not None else SessionDirectory()
        self._broadcaster = broadcaster if broadcaster is not None else Broadcaster()
        self._game_settings = game_settings or GameSettings()
        self._base_url = base_url.rstrip("/")
        self._max_rooms = max_rooms
        self._room_ttl_seconds = room_ttl_seconds
        self._room_sweep_interval_seconds = room_sweep_interval_seconds
        self._rng_factory = rng_factory
        self._connections: dict[str, ConnectionProtocol] = {}
        self._seats: dict[str, str] = {}  # connection_id -> room_id
        self._timer_manager = TimerManager(
            on_countdown=self._handle_countdown_step,
            on_start=self._handle_start_match,
            on_tick=self._handle_tick,
        )
        self._room_reaper_task: asyncio.Task[None] | None = None

    # --- Connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection
        self._broadcaster.register(connection)

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)
        self._seats.pop(connection.connection_id, None)
        self._broadcaster.unregister(connection.connection_id)

    # --- Queries ---

    @property
    def room_count(self) -> int:
        return len(self._directory)

    @property
    def playing_count(self) -> int:
        return sum(1 for room in self._directory if room.status == RoomStatus.PLAYING)

    @property
    def max_rooms(self) -> int:
        return self._max_rooms

    def get_room(self, room_id: str) -> Room | None:
        return self._directory.get(room_id)

    def room_of(self, connection_id: str) -> str | None:
        """Return the id of the room this connection is seated in."""
        return self._seats.get(connection_id)

    def is_counting_down(self, room_id: str) -> bool:
        return self._timer_manager.is_counting_down(room_id)

    def is_ticking(self, room_id: str) -> bool:
        return self._timer_manager.is_ticking(room_id)

    # --- Client operations ---

    def send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        self._broadcaster.send(connection.connection_id, ErrorMessage(code=code, message=message))

    async def create_room(
        self,
        connection: ConnectionProtocol,
        *,
        nickname: str | None = None,
        bot: bool = False,
        bot_difficulty: BotDifficulty = BotDifficulty.MEDIUM,
    ) -> Room | None:
        """Create an empty waiting room. The creator joins separately."""
        if len(self._directory) >= self._max_rooms:
            self.send_error(connection, ErrorCode.SERVER_FULL, "Server is at room capacity")
            return None

        room = Room(
            room_id=self._directory.new_room_id(),
            bot_enabled=bot,
            bot_difficulty=bot_difficulty,
            settings=self._game_settings,
            rng=self._rng_factory(),
        )
        self._directory.insert(room)
        self._timer_manager.create_timers(room.room_id, room.settings)
        logger.info("room created", room_id=room.room_id, bot_enabled=bot, bot_difficulty=bot_difficulty)

        self._broadcaster.send(
            connection.connection_id,
            RoomCreatedMessage(
                room_id=room.room_id,
                room_url=f"{self._base_url}/game/{room.room_id}",
                nickname=nickname or default_nickname(room.rng),
                bot_enabled=bot,
            ),
        )
        return room

    async def join_room(self, connection: ConnectionProtocol, room_id: str, nickname: str | None = None) -> None:
        connection_id = connection.connection_id
        if connection_id in self._seats:
            self.send_error(connection, ErrorCode.ALREADY_IN_ROOM, "Already in a room")
            return

        lock = self._directory.lock_for(room_id)
        if lock is None:
            self.send_error(connection, ErrorCode.ROOM_NOT_FOUND, "Room not found")
            return

        async with lock:
            room = self._directory.get(room_id)
            if room is None:
                self.send_error(connection, ErrorCode.ROOM_NOT_FOUND, "Room not found")
                return
            events = room.handle(JoinRoom(participant_id=connection_id, nickname=nickname))
            if connection_id in room.players:
                self._seats[connection_id] = room_id
            self._apply(room, events)

    async def set_ready(self, connection: ConnectionProtocol) -> None:
        await self._dispatch(connection, PlayerReady(participant_id=connection.connection_id))

    async def move_paddle(self, connection: ConnectionProtocol, y: float) -> None:
        await self._dispatch(connection, PaddleMove(participant_id=connection.connection_id, y=y))

    async def leave(self, connection: ConnectionProtocol, reason: LeaveReason = LeaveReason.LEFT) -> None:
        """Remove the connection from its room, if any."""
        connection_id = connection.connection_id
        room_id = self._seats.pop(connection_id, None)
        if room_id is None:
            return
        await self._dispatch_to_room(room_id, Leave(participant_id=connection_id, reason=reason))

    async def _dispatch(self, connection: ConnectionProtocol, room_input: RoomInput) -> None:
        room_id = self._seats.get(connection.connection_id)
        if room_id is not None:
            await self._dispatch_to_room(room_id, room_input)

    async def _dispatch_to_room(self, room_id: str, room_input: RoomInput) -> None:
        lock = self._directory.lock_for(room_id)
        if lock is None:
            return
        async with lock:
            room = self._directory.get(room_id)
            if room is not None:
                self._apply(room, room.handle(room_input))

    # --- Schedule callbacks ---

    async def _handle_countdown_step(self, room_id: str, count: int) -> None:
        await self._dispatch_to_room(room_id, CountdownStep(count=count))

    async def _handle_start_match(self, room_id: str) -> None:
        await self._dispatch_to_room(room_id, StartMatch())

    async def _handle_tick(self, room_id: str) -> None:
        """Advance one room by one tick. A failure here aborts only this room."""
        lock = self._directory.lock_for(room_id)
        if lock is None:
            self._timer_manager.cleanup_room(room_id)
            return
        async with lock:
            room = self._directory.get(room_id)
            if room is None or room.status != RoomStatus.PLAYING:
                return
            try:
                events = room.handle(Tick())
                if room.status == RoomStatus.PLAYING:
                    self._broadcaster.publish_state(room)
                self._apply(room, events)
            except Exception:
                logger.exception("room tick failed", room_id=room_id)
                self._abort(room)

    # --- Room bookkeeping ---

    def _apply(self, room: Room, events: list[RoomEvent]) -> None:
        """Deliver a room's events, then bring its schedules in line with its status."""
        self._broadcaster.publish(room, events)
        self._reconcile(room)

    def _reconcile(self, room: Room) -> None:
        if room.should_discard:
            self._discard(room)
            return
        room_id = room.room_id
        if room.status == RoomStatus.COUNTDOWN:
            self._timer_manager.start_countdown(room_id)
        else:
            self._timer_manager.stop_countdown(room_id)
        if room.status == RoomStatus.PLAYING:
            self._timer_manager.start_ticker(room_id)
        else:
            self._timer_manager.stop_ticker(room_id)

    def _discard(self, room: Room) -> None:
        """Forget a room and stop its schedules. Safe to call twice."""
        if self._directory.remove(room.room_id) is not None:
            logger.info("room discarded", room_id=room.room_id, status=room.status)
        self._timer_manager.cleanup_room(room.room_id)
        for participant_id in room.players:
            if self._seats.get(participant_id) == room.room_id:
                self._seats.pop(participant_id)

    def _abort(self, room: Room) -> None:
        self._broadcaster.send_many(
            room.human_ids(),
            ErrorMessage(code=ErrorCode.INTERNAL_ERROR, message="The match was aborted"),
        )
        room.closed = True
        self._discard(room)

    # --- Room reaper ---

    def start_room_reaper(self) -> None:
        """Start the periodic expiry sweep. Idempotent."""
        if self._room_ttl_seconds <= 0:
            return
        if self._room_reaper_task is not None and not self._room_reaper_task.done():
            return
        self._room_reaper_task = asyncio.create_task(self._room_reaper_loop())

    async def stop_room_reaper(self) -> None:
        if self._room_reaper_task is not None:
            self._room_reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._room_reaper_task
            self._room_reaper_task = None

    async def _room_reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(self._room_sweep_interval_seconds)
            try:
                await self.reap_expired_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def reap_expired_rooms(self, now: float | None = None) -> list[str]:
        """Discard waiting rooms that are empty or past their TTL.

        Candidates are re-checked under the room lock, so a room that started a
        match in the meantime survives. Returns the ids of the discarded rooms.
        """
        now = time.monotonic() if now is None else now
        candidates = [room.room_id for room in self._directory if room.is_stale(now, self._room_ttl_seconds)]
        reaped: list[str] = []
        for room_id in candidates:
            lock = self._directory.lock_for(room_id)
            if lock is None:
                continue
            async with lock:
                room = self._directory.discard_if_stale(room_id, self._room_ttl_seconds, now)
                if room is None:
                    continue
                logger.info("room expired", room_id=room_id, age=round(now - room.created_at))
                self._broadcaster.send_many(
                    room.human_ids(),
                    ErrorMessage(code=ErrorCode.ROOM_EXPIRED, message="Room expired"),
                )
                room.closed = True
                self._discard(room)
                reaped.append(room_id)
        return reaped

    # --- Lifecycle ---

    async def drain(self) -> None:
        """Wait until every queued outbound message has been written."""
        await self._broadcaster.drain()

    async def shutdown(self) -> None:
        await self.stop_room_reaper()
        self._timer_manager.cancel_all()
        self._broadcaster.close_all()
        logger.info("session manager stopped", rooms=len(self._directory))

"""Broadcast adapter: turns room state and room events into wire messages and
delivers them without blocking the caller.

Each connection gets an outbox drained by its own writer task, so a slow client
delays only its own frames and frames to one client stay in order. Outboxes are
bounded; when one overflows the oldest frame is dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from arena.logic.enums import Side
from arena.logic.events import (
    BroadcastTarget,
    CountdownEvent,
    GameOverEvent,
    GameStartEvent,
    OpponentDisconnectedEvent,
    PlayerJoinedEvent,
    RejectedEvent,
    RoomJoinedEvent,
    ScoreEvent,
)
from arena.messaging.encoder import encode
from arena.messaging.types import (
    BallState,
    CountdownMessage,
    ErrorCode,
    ErrorMessage,
    GameOverMessage,
    GameStartMessage,
    GameStateMessage,
    ObstacleState,
    OpponentDisconnectedMessage,
    PlayerInfo,
    PlayerJoinedMessage,
    RoomJoinedMessage,
    Scores,
    ScoreUpdateMessage,
)

if TYPE_CHECKING:
    from pydantic import BaseModel

    from arena.logic.events import EventTarget, RoomEvent, RoomEventPayload
    from arena.messaging.protocol import ConnectionProtocol
    from arena.messaging.types import ServerMessage
    from arena.session.room import Room

logger = structlog.get_logger()

DEFAULT_OUTBOX_SIZE = 256


class Outbox:
    """Ordered, bounded, fire-and-forget delivery to one connection."""

    def __init__(self, connection: ConnectionProtocol, maxsize: int = DEFAULT_OUTBOX_SIZE) -> None:
        self.connection = connection
        self._queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=maxsize)
        self._task = asyncio.create_task(self._pump(), name=f"outbox:{connection.connection_id}")
        self.dropped = 0

    def put(self, frame: bytes) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
        self._queue.put_nowait(frame)

    async def drain(self) -> None:
        """Wait until every queued frame has been handed to the connection."""
        await self._queue.join()

    def close(self) -> None:
        self._task.cancel()

    async def _pump(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                    await self.connection.send_bytes(frame)
            finally:
                self._queue.task_done()


def scores_of(room: Room) -> Scores:
    scores = room.scores()
    return Scores(left=scores[Side.LEFT], right=scores[Side.RIGHT])


def game_state_message(room: Room) -> GameStateMessage:
    """Snapshot the simulation for the per-tick state broadcast."""
    simulation = room.simulation
    ball = simulation.ball
    left = room.player_on(Side.LEFT)
    right = room.player_on(Side.RIGHT)
    return GameStateMessage(
        timestamp=room.elapsed_ms(),
        ball=BallState(x=ball.x, y=ball.y, vx=ball.vx, vy=ball.vy),
        obstacles=[
            ObstacleState(
                id=o.obstacle_id,
                x=o.x,
                y=o.y,
                shape=o.shape,
                radius=o.radius,
                rotation=o.rotation,
            )
            for o in simulation.obstacles
        ],
        paddle1_y=left.paddle_y if left else 0.0,
        paddle2_y=right.paddle_y if right else 0.0,
        scores=scores_of(room),
    )


def event_message(room: Room, data: RoomEventPayload) -> ServerMessage:  # noqa: PLR0911
    """Map a domain event to its wire message."""
    if isinstance(data, RoomJoinedEvent):
        return RoomJoinedMessage(your_side=data.side, nickname=data.nickname)
    if isinstance(data, PlayerJoinedEvent):
        return PlayerJoinedMessage(
            player1=PlayerInfo(nickname=data.left.nickname, side=data.left.side),
            player2=PlayerInfo(nickname=data.right.nickname, side=data.right.side),
        )
    if isinstance(data, CountdownEvent):
        return CountdownMessage(count=data.count)
    if isinstance(data, GameStartEvent):
        return GameStartMessage(start_time=data.start_time)
    if isinstance(data, ScoreEvent):
        return ScoreUpdateMessage(
            type=data.kind,
            scorer=data.scorer,
            scores=scores_of(room),
            obstacle_id=data.obstacle_id,
        )
    if isinstance(data, GameOverEvent):
        return GameOverMessage(
            winner=PlayerInfo(nickname=data.winner.nickname, side=data.winner.side),
            final_scores=scores_of(room),
            duration_seconds=data.duration_seconds,
            obstacles_destroyed=data.obstacles_destroyed,
        )
    if isinstance(data, OpponentDisconnectedEvent):
        return OpponentDisconnectedMessage(reason=data.reason, forfeit=data.forfeit)
    if isinstance(data, RejectedEvent):
        return ErrorMessage(code=ErrorCode(data.code.value), message=data.message)
    raise TypeError(f"unknown room event {type(data).__name__}")


def _recipients(room: Room, target: EventTarget) -> list[str]:
    if isinstance(target, BroadcastTarget):
        return [pid for pid in room.human_ids() if pid != target.exclude]
    return [target.participant_id]


class Broadcaster:
    """The only component that writes to client connections."""

    def __init__(self, outbox_size: int = DEFAULT_OUTBOX_SIZE) -> None:
        self._outbox_size = outbox_size
        self._outboxes: dict[str, Outbox] = {}  # connection_id -> Outbox

    def register(self, connection: ConnectionProtocol) -> None:
        if connection.connection_id not in self._outboxes:
            self._outboxes[connection.connection_id] = Outbox(connection, self._outbox_size)

    def unregister(self, connection_id: str) -> None:
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is not None:
            outbox.close()

    def send(self, connection_id: str, message: BaseModel) -> None:
        """Queue one message for one connection. Unknown ids (bots, gone clients) are skipped."""
        outbox = self._outboxes.get(connection_id)
        if outbox is not None:
            outbox.put(encode(message.model_dump(mode="json", exclude_none=True)))

    def send_many(self, connection_ids: list[str], message: BaseModel) -> None:
        if not connection_ids:
            return
        frame = encode(message.model_dump(mode="json", exclude_none=True))
        for connection_id in connection_ids:
            outbox = self._outboxes.get(connection_id)
            if outbox is not None:
                outbox.put(frame)

    def publish(self, room: Room, events: list[RoomEvent]) -> None:
        for event in events:
            self.send_many(_recipients(room, event.target), event_message(room, event.data))

    def publish_state(self, room: Room) -> None:
        self.send_many(room.human_ids(), game_state_message(room))

    async def drain(self) -> None:
        """Wait for every outbox to flush. Used on shutdown and in tests."""
        for outbox in list(self._outboxes.values()):
            await outbox.drain()

    def close_all(self) -> None:
        for connection_id in list(self._outboxes):
            self.unregister(connection_id)

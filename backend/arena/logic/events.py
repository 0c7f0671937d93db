"""Domain events produced by rooms and the simulation.

Rooms never touch the transport: every observable effect of handling an input is
returned as a RoomEvent, which pairs a domain event with a routing target. The
broadcast adapter turns them into wire messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from arena.logic.enums import LeaveReason, ScoreType, Side

# ---------------------------------------------------------------------------
# Typed routing targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BroadcastTarget:
    """Event should be sent to every human participant in the room."""

    exclude: str | None = None


@dataclass(frozen=True)
class ParticipantTarget:
    """Event should be sent to a single participant."""

    participant_id: str


EventTarget = BroadcastTarget | ParticipantTarget


# ---------------------------------------------------------------------------
# Event models
# ---------------------------------------------------------------------------


class EventType(StrEnum):
    ROOM_JOINED = "room_joined"
    PLAYER_JOINED = "player_joined"
    COUNTDOWN = "countdown"
    GAME_START = "game_start"
    SCORE = "score"
    GAME_OVER = "game_over"
    OPPONENT_DISCONNECTED = "opponent_disconnected"
    REJECTED = "rejected"


class RoomEventData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EventType


class SeatInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    nickname: str
    side: Side


class RoomJoinedEvent(RoomEventData):
    type: Literal[EventType.ROOM_JOINED] = EventType.ROOM_JOINED
    side: Side
    nickname: str


class PlayerJoinedEvent(RoomEventData):
    type: Literal[EventType.PLAYER_JOINED] = EventType.PLAYER_JOINED
    left: SeatInfo
    right: SeatInfo


class CountdownEvent(RoomEventData):
    type: Literal[EventType.COUNTDOWN] = EventType.COUNTDOWN
    count: int


class GameStartEvent(RoomEventData):
    type: Literal[EventType.GAME_START] = EventType.GAME_START
    start_time: str


class ScoreEvent(RoomEventData):
    """A goal or an obstacle destruction detected during a tick."""

    type: Literal[EventType.SCORE] = EventType.SCORE
    kind: Literal[ScoreType.GOAL, ScoreType.OBSTACLE]
    scorer: Side
    obstacle_id: str | None = None


class GameOverEvent(RoomEventData):
    type: Literal[EventType.GAME_OVER] = EventType.GAME_OVER
    winner: SeatInfo
    duration_seconds: int
    obstacles_destroyed: int


class OpponentDisconnectedEvent(RoomEventData):
    type: Literal[EventType.OPPONENT_DISCONNECTED] = EventType.OPPONENT_DISCONNECTED
    reason: LeaveReason
    forfeit: bool


class RejectionCode(StrEnum):
    ROOM_FULL = "ROOM_FULL"


class RejectedEvent(RoomEventData):
    """An input the room refused; reported only to the sender."""

    type: Literal[EventType.REJECTED] = EventType.REJECTED
    code: RejectionCode
    message: str


RoomEventPayload = (
    RoomJoinedEvent
    | PlayerJoinedEvent
    | CountdownEvent
    | GameStartEvent
    | ScoreEvent
    | GameOverEvent
    | OpponentDisconnectedEvent
    | RejectedEvent
)


@dataclass(frozen=True)
class RoomEvent:
    """Transport container pairing a domain event with its recipients."""

    data: RoomEventPayload
    target: EventTarget

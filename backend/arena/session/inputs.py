"""Closed set of inputs a room accepts.

Transport messages are parsed into these variants by the session layer; timers
produce CountdownStep, StartMatch and Tick. Room.handle() is the only entry point.
"""

from dataclasses import dataclass

from arena.logic.enums import LeaveReason


@dataclass(frozen=True)
class JoinRoom:
    participant_id: str
    nickname: str | None = None


@dataclass(frozen=True)
class PlayerReady:
    participant_id: str


@dataclass(frozen=True)
class PaddleMove:
    participant_id: str
    y: float


@dataclass(frozen=True)
class Leave:
    participant_id: str
    reason: LeaveReason = LeaveReason.DISCONNECT


@dataclass(frozen=True)
class CountdownStep:
    count: int


@dataclass(frozen=True)
class StartMatch:
    pass


@dataclass(frozen=True)
class Tick:
    pass


RoomInput = JoinRoom | PlayerReady | PaddleMove | Leave | CountdownStep | StartMatch | Tick

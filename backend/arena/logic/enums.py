"""
String enum definitions for arena game concepts.
"""

from __future__ import annotations

from enum import StrEnum


class Side(StrEnum):
    """Paddle side. The left paddle defends x = -FIELD_WIDTH / 2."""

    LEFT = "left"
    RIGHT = "right"

    @property
    def opponent(self) -> Side:
        return Side.RIGHT if self is Side.LEFT else Side.LEFT

    @property
    def direction(self) -> int:
        """Sign of the x direction pointing from this side's paddle into the field."""
        return 1 if self is Side.LEFT else -1


class RoomStatus(StrEnum):
    """Room lifecycle states."""

    WAITING = "waiting"
    READY = "ready"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    FINISHED = "finished"


class BotDifficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ScoreType(StrEnum):
    GOAL = "goal"
    OBSTACLE = "obstacle"
    GAME_OVER = "game_over"


class LeaveReason(StrEnum):
    DISCONNECT = "disconnect"
    LEFT = "left"

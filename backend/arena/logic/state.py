"""Mutable simulation state owned by a single room.

All instances are mutated only from within a room tick or from the synchronous
handling of an inbound message for that room.
"""

from dataclasses import dataclass

from arena.logic.enums import Side

BOT_PARTICIPANT_ID = "bot"
BOT_NICKNAME = "Bot"


@dataclass
class Ball:
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    @property
    def speed(self) -> float:
        return (self.vx * self.vx + self.vy * self.vy) ** 0.5


@dataclass
class Obstacle:
    obstacle_id: str
    x: float
    y: float
    shape: int  # polygon side count
    radius: float
    drift: float  # vertical velocity
    rotation: float = 0.0


@dataclass
class Player:
    """A participant seated on one side of the field.

    The side is fixed for the player's lifetime in the room.
    """

    participant_id: str
    nickname: str
    side: Side
    paddle_y: float = 0.0
    score: int = 0
    ready: bool = False
    is_bot: bool = False

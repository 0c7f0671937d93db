"""Field geometry and tunable match settings.

The geometry constants are part of the wire contract: clients render the field with
the same numbers, so they are plain module constants rather than settings.
"""

import math

from pydantic import BaseModel, ConfigDict, Field

FIELD_WIDTH = 16.0
FIELD_HEIGHT = 10.0
PADDLE_HEIGHT = 2.5
PADDLE_WIDTH = 0.3
BALL_RADIUS = 0.2

# Highest |y| a paddle center may take.
PADDLE_LIMIT = FIELD_HEIGHT / 2 - PADDLE_HEIGHT / 2
# Highest |y| the ball center may take.
BALL_LIMIT = FIELD_HEIGHT / 2 - BALL_RADIUS

MAX_PLAYERS = 2
OBSTACLE_SHAPES = (3, 4, 5, 6, 8)


class GameSettings(BaseModel):
    """Per-match tunables. Velocities are expressed in field units per tick."""

    model_config = ConfigDict(frozen=True)

    tick_rate: int = Field(default=60, ge=1, le=240)
    win_score: int = Field(default=50, ge=1)
    obstacle_count: int = Field(default=3, ge=0)

    countdown_from: int = Field(default=3, ge=1)
    countdown_interval_seconds: float = Field(default=1.0, gt=0)

    launch_speed: float = Field(default=0.08, gt=0)
    launch_cone: float = Field(default=math.pi / 6, gt=0, lt=math.pi / 2)
    paddle_speedup: float = Field(default=1.05, gt=1)
    curve_factor: float = Field(default=0.3, ge=0)

    obstacle_min_radius: float = Field(default=0.3, gt=0)
    obstacle_radius_spread: float = Field(default=0.3, ge=0)
    obstacle_max_drift: float = Field(default=0.02, ge=0)
    obstacle_spin: float = 0.02

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate


def clamp_paddle(y: float) -> float:
    """Clamp a paddle center to the field."""
    return max(-PADDLE_LIMIT, min(PADDLE_LIMIT, y))

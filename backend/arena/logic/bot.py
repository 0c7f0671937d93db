"""
Bot opponent policy.

The bot stands in for a second human: once per tick, before the simulation step,
it nudges its paddle toward where it expects the ball, with a difficulty-dependent
speed and aim error.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from arena.logic.enums import BotDifficulty
from arena.logic.settings import FIELD_HEIGHT, clamp_paddle
from arena.logic.simulation import paddle_x

if TYPE_CHECKING:
    from arena.logic.state import Ball, Player

# Distance below which the bot holds still instead of jittering around the target.
DEAD_ZONE = 0.1


class BotProfile(BaseModel):
    """Movement speed (units per tick) and half-width of the uniform aim error."""

    model_config = ConfigDict(frozen=True)

    speed: float
    error: float
    predicts: bool


# Human paddle input moves at roughly 0.12 units per tick.
BOT_PROFILES: dict[BotDifficulty, BotProfile] = {
    BotDifficulty.EASY: BotProfile(speed=0.08, error=0.75, predicts=False),
    BotDifficulty.MEDIUM: BotProfile(speed=0.12, error=0.25, predicts=True),
    BotDifficulty.HARD: BotProfile(speed=0.15, error=0.1, predicts=True),
}


class BotPolicy:
    """Per-room decision function for the bot's paddle."""

    def __init__(self, difficulty: BotDifficulty = BotDifficulty.MEDIUM, rng: random.Random | None = None) -> None:
        self.difficulty = difficulty
        self.profile = BOT_PROFILES[difficulty]
        self._rng = rng or random.Random()  # noqa: S311

    def target_y(self, player: Player, ball: Ball) -> float:
        """Estimate where the ball crosses the bot's paddle plane."""
        if not self.profile.predicts or ball.vx == 0:
            return ball.y
        time_to_reach = abs((paddle_x(player.side) - ball.x) / ball.vx)
        predicted = ball.y + ball.vy * time_to_reach
        return max(-FIELD_HEIGHT / 2, min(FIELD_HEIGHT / 2, predicted))

    def step(self, player: Player, ball: Ball) -> None:
        """Move the bot paddle one tick toward its (noisy) target."""
        error = self._rng.uniform(-self.profile.error, self.profile.error)
        diff = self.target_y(player, ball) + error - player.paddle_y
        if abs(diff) <= DEAD_ZONE:
            return
        step = self.profile.speed if diff > 0 else -self.profile.speed
        player.paddle_y = clamp_paddle(player.paddle_y + step)

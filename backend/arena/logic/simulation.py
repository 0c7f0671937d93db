"""
Fixed-tick physics for one match: ball, paddles, drifting obstacles and scoring.

Coordinates are centered on the field: x grows to the right, y grows upward, the
left goal line is x = -FIELD_WIDTH / 2. Velocities are in field units per tick, so
one call to advance() is exactly one tick regardless of the tick rate.

Randomness (launch angle, obstacle placement) comes from an injected random.Random
so tests can seed it; trajectories are still not meant to be reproduced exactly.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING

from arena.logic.enums import ScoreType, Side
from arena.logic.events import ScoreEvent
from arena.logic.settings import (
    BALL_LIMIT,
    BALL_RADIUS,
    FIELD_HEIGHT,
    FIELD_WIDTH,
    OBSTACLE_SHAPES,
    PADDLE_HEIGHT,
    PADDLE_WIDTH,
    GameSettings,
)
from arena.logic.state import Ball, Obstacle

if TYPE_CHECKING:
    from collections.abc import Iterable

    from arena.logic.state import Player

# Obstacles spawn away from the goal lines and the walls.
_SPAWN_HALF_WIDTH = (FIELD_WIDTH - 4) / 2
_SPAWN_HALF_HEIGHT = (FIELD_HEIGHT - 2) / 2

# Collision box around a paddle center, grown by the ball radius.
_PADDLE_REACH_X = PADDLE_WIDTH / 2 + BALL_RADIUS
_PADDLE_REACH_Y = PADDLE_HEIGHT / 2 + BALL_RADIUS


def paddle_x(side: Side) -> float:
    """Return the x coordinate of a side's paddle center."""
    return -side.direction * (FIELD_WIDTH / 2 - PADDLE_WIDTH)


def _reflect_at_walls(y: float, velocity: float, limit: float) -> tuple[float, float]:
    if abs(y) > limit:
        return math.copysign(limit, y), -velocity
    return y, velocity


class Simulation:
    """
    Physics state and per-tick integration for a single room.

    advance() runs the tick steps in a fixed order: ball integration, wall
    reflection, paddle collisions, obstacle collisions, obstacle kinematics and
    goal detection. The win check belongs to the room, which owns the lifecycle.
    """

    def __init__(self, settings: GameSettings | None = None, rng: random.Random | None = None) -> None:
        self.settings = settings or GameSettings()
        self.rng = rng or random.Random()  # noqa: S311
        self.ball = Ball()
        self.obstacles: list[Obstacle] = []
        self.obstacles_destroyed = 0
        self.last_scoring_side: Side | None = None
        self.tick_count = 0
        self._obstacle_seq = 0

    def start(self) -> None:
        """Reset the ball and lay out a fresh set of obstacles."""
        self.reset_ball()
        self.obstacles = [self.spawn_obstacle() for _ in range(self.settings.obstacle_count)]
        self.obstacles_destroyed = 0
        self.last_scoring_side = None
        self.tick_count = 0

    def reset_ball(self) -> None:
        """Put the ball at the center with a random launch inside the cone."""
        cone = self.settings.launch_cone
        angle = self.rng.uniform(-cone, cone)
        direction = 1 if self.rng.random() < 0.5 else -1
        speed = self.settings.launch_speed
        self.ball.x = 0.0
        self.ball.y = 0.0
        self.ball.vx = math.cos(angle) * speed * direction
        self.ball.vy = math.sin(angle) * speed

    def spawn_obstacle(self) -> Obstacle:
        """Create an obstacle with a fresh id and random attributes."""
        s = self.settings
        obstacle = Obstacle(
            obstacle_id=f"obs_{self._obstacle_seq}",
            x=self.rng.uniform(-_SPAWN_HALF_WIDTH, _SPAWN_HALF_WIDTH),
            y=self.rng.uniform(-_SPAWN_HALF_HEIGHT, _SPAWN_HALF_HEIGHT),
            shape=self.rng.choice(OBSTACLE_SHAPES),
            radius=s.obstacle_min_radius + self.rng.random() * s.obstacle_radius_spread,
            drift=self.rng.uniform(-s.obstacle_max_drift, s.obstacle_max_drift),
        )
        self._obstacle_seq += 1
        return obstacle

    def advance(self, players: Iterable[Player]) -> ScoreEvent | None:
        """Advance one tick. Return the scoring event of this tick, if any.

        A goal supersedes an obstacle destruction that happened earlier in the same
        tick; both points are still awarded.
        """
        by_side = {p.side: p for p in players}
        ball = self.ball
        self.tick_count += 1

        ball.x += ball.vx
        ball.y += ball.vy
        ball.y, ball.vy = _reflect_at_walls(ball.y, ball.vy, BALL_LIMIT)

        for side in (Side.LEFT, Side.RIGHT):
            player = by_side.get(side)
            if player is not None:
                self._collide_paddle(player)

        event = self._collide_obstacles(by_side)
        self._move_obstacles()

        goal = self._check_goal(by_side)
        return goal or event

    def _collide_paddle(self, player: Player) -> None:
        ball = self.ball
        px = paddle_x(player.side)
        dx = ball.x - px
        dy = ball.y - player.paddle_y
        if abs(dx) >= _PADDLE_REACH_X or abs(dy) >= _PADDLE_REACH_Y:
            return

        # Contact point along the paddle, -1 at the bottom edge and +1 at the top.
        contact = max(-1.0, min(1.0, dy / (PADDLE_HEIGHT / 2)))
        direction = player.side.direction
        ball.vx = direction * abs(ball.vx) * self.settings.paddle_speedup
        ball.vy += contact * self.settings.curve_factor
        # Push out on the field side so the same paddle cannot hit twice.
        ball.x = px + direction * _PADDLE_REACH_X
        self.last_scoring_side = player.side

    def _collide_obstacles(self, by_side: dict[Side, Player]) -> ScoreEvent | None:
        ball = self.ball
        for index, obstacle in enumerate(self.obstacles):
            dx = ball.x - obstacle.x
            dy = ball.y - obstacle.y
            distance = math.hypot(dx, dy)
            reach = BALL_RADIUS + obstacle.radius
            if distance >= reach:
                continue

            # Bounce along the collision normal, keeping the speed.
            angle = math.atan2(dy, dx)
            speed = ball.speed
            ball.vx = math.cos(angle) * speed
            ball.vy = math.sin(angle) * speed
            overlap = reach - distance
            ball.x += math.cos(angle) * overlap
            ball.y += math.sin(angle) * overlap
            ball.y = max(-BALL_LIMIT, min(BALL_LIMIT, ball.y))

            self.obstacles_destroyed += 1
            del self.obstacles[index]
            self.obstacles.append(self.spawn_obstacle())

            # Points go to whoever last touched the ball; nobody has before the first paddle hit.
            scorer = by_side.get(self.last_scoring_side) if self.last_scoring_side else None
            if scorer is None:
                return None
            scorer.score += 1
            return ScoreEvent(kind=ScoreType.OBSTACLE, scorer=scorer.side, obstacle_id=obstacle.obstacle_id)
        return None

    def _move_obstacles(self) -> None:
        for obstacle in self.obstacles:
            obstacle.y += obstacle.drift
            obstacle.rotation += self.settings.obstacle_spin
            obstacle.y, obstacle.drift = _reflect_at_walls(
                obstacle.y,
                obstacle.drift,
                FIELD_HEIGHT / 2 - obstacle.radius,
            )

    def _check_goal(self, by_side: dict[Side, Player]) -> ScoreEvent | None:
        x = self.ball.x
        if x < -FIELD_WIDTH / 2:
            scoring_side = Side.RIGHT
        elif x > FIELD_WIDTH / 2:
            scoring_side = Side.LEFT
        else:
            return None

        self.reset_ball()
        scorer = by_side.get(scoring_side)
        if scorer is None:
            return None
        scorer.score += 1
        return ScoreEvent(kind=ScoreType.GOAL, scorer=scoring_side)

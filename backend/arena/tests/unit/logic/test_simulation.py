import math
import random

import pytest

from arena.logic.enums import ScoreType, Side
from arena.logic.settings import (
    BALL_LIMIT,
    FIELD_HEIGHT,
    FIELD_WIDTH,
    OBSTACLE_SHAPES,
    PADDLE_LIMIT,
    PADDLE_WIDTH,
    GameSettings,
)
from arena.logic.simulation import Simulation, paddle_x
from arena.logic.state import Obstacle, Player


def make_simulation(seed: int = 1, **overrides) -> Simulation:
    sim = Simulation(GameSettings(**overrides), random.Random(seed))
    sim.start()
    return sim


def make_players(*, left: bool = True, right: bool = True) -> list[Player]:
    players = []
    if left:
        players.append(Player(participant_id="a", nickname="A", side=Side.LEFT))
    if right:
        players.append(Player(participant_id="b", nickname="B", side=Side.RIGHT))
    return players


def place_ball(sim: Simulation, x: float, y: float, vx: float, vy: float) -> None:
    sim.ball.x, sim.ball.y, sim.ball.vx, sim.ball.vy = x, y, vx, vy


class TestStart:
    def test_lays_out_configured_obstacles(self):
        sim = make_simulation()

        assert [o.obstacle_id for o in sim.obstacles] == ["obs_0", "obs_1", "obs_2"]
        for obstacle in sim.obstacles:
            assert obstacle.shape in OBSTACLE_SHAPES
            assert 0.3 <= obstacle.radius < 0.6
            assert abs(obstacle.x) <= (FIELD_WIDTH - 4) / 2
            assert abs(obstacle.y) <= (FIELD_HEIGHT - 2) / 2
            assert abs(obstacle.drift) <= 0.02

    def test_ball_starts_at_center_with_launch_speed(self):
        sim = make_simulation()

        assert (sim.ball.x, sim.ball.y) == (0.0, 0.0)
        assert sim.ball.speed == pytest.approx(0.08)

    def test_resets_counters(self):
        sim = make_simulation()
        sim.obstacles_destroyed = 4
        sim.last_scoring_side = Side.LEFT

        sim.start()

        assert sim.obstacles_destroyed == 0
        assert sim.last_scoring_side is None

    def test_launch_angle_stays_inside_cone(self):
        sim = make_simulation(seed=3)
        for _ in range(500):
            sim.reset_ball()
            angle = math.atan2(abs(sim.ball.vy), abs(sim.ball.vx))
            assert angle <= math.pi / 6 + 1e-9
            assert sim.ball.vx != 0

    def test_launch_direction_is_randomized(self):
        sim = make_simulation(seed=5)
        directions = set()
        for _ in range(100):
            sim.reset_ball()
            directions.add(math.copysign(1, sim.ball.vx))
        assert directions == {1.0, -1.0}


class TestWalls:
    def test_ball_reflects_and_is_clamped_at_top_wall(self):
        sim = make_simulation()
        sim.obstacles = []
        place_ball(sim, 0.0, BALL_LIMIT - 0.01, 0.0, 0.3)

        sim.advance(make_players())

        assert sim.ball.y == BALL_LIMIT
        assert sim.ball.vy == pytest.approx(-0.3)

    def test_ball_reflects_at_bottom_wall(self):
        sim = make_simulation()
        sim.obstacles = []
        place_ball(sim, 0.0, -BALL_LIMIT + 0.01, 0.0, -0.3)

        sim.advance(make_players())

        assert sim.ball.y == -BALL_LIMIT
        assert sim.ball.vy == pytest.approx(0.3)

    @pytest.mark.parametrize("seed", range(5))
    def test_ball_never_leaves_the_field_vertically(self, seed):
        sim = make_simulation(seed=seed)
        rng = random.Random(seed)
        players = make_players()
        for _ in range(3000):
            for player in players:
                player.paddle_y = rng.uniform(-PADDLE_LIMIT, PADDLE_LIMIT)
            sim.advance(players)
            assert abs(sim.ball.y) <= BALL_LIMIT


class TestPaddles:
    def test_paddle_centers_sit_inside_goal_lines(self):
        assert paddle_x(Side.LEFT) == pytest.approx(-(FIELD_WIDTH / 2 - PADDLE_WIDTH))
        assert paddle_x(Side.RIGHT) == pytest.approx(FIELD_WIDTH / 2 - PADDLE_WIDTH)

    def test_left_paddle_returns_ball_faster(self):
        sim = make_simulation()
        sim.obstacles = []
        px = paddle_x(Side.LEFT)
        place_ball(sim, px + 0.3, 0.0, -0.1, 0.0)

        sim.advance(make_players())

        assert sim.ball.vx == pytest.approx(0.105)
        assert sim.ball.vy == pytest.approx(0.0)
        assert sim.ball.x > px
        assert sim.last_scoring_side == Side.LEFT

    def test_right_paddle_returns_ball_to_the_left(self):
        sim = make_simulation()
        sim.obstacles = []
        px = paddle_x(Side.RIGHT)
        place_ball(sim, px - 0.3, 0.0, 0.1, 0.0)

        sim.advance(make_players())

        assert sim.ball.vx == pytest.approx(-0.105)
        assert sim.ball.x < px
        assert sim.last_scoring_side == Side.RIGHT

    def test_off_center_hit_curves_the_ball(self):
        sim = make_simulation()
        sim.obstacles = []
        place_ball(sim, paddle_x(Side.LEFT) + 0.3, 1.0, -0.1, 0.0)

        sim.advance(make_players())

        # contact offset 1.0 / 1.25 = 0.8 of the half height
        assert sim.ball.vy == pytest.approx(0.8 * 0.3)

    def test_ball_beyond_paddle_reach_is_not_hit(self):
        sim = make_simulation()
        sim.obstacles = []
        place_ball(sim, paddle_x(Side.LEFT) + 0.3, 2.0, -0.1, 0.0)

        sim.advance(make_players())

        assert sim.ball.vx == pytest.approx(-0.1)
        assert sim.last_scoring_side is None

    def test_speed_grows_every_rally(self):
        sim = make_simulation()
        sim.obstacles = []
        px = paddle_x(Side.LEFT)
        speeds = []
        for _ in range(3):
            place_ball(sim, px + 0.3, 0.0, -abs(sim.ball.vx or 0.1), 0.0)
            sim.advance(make_players())
            speeds.append(abs(sim.ball.vx))
        assert speeds[0] < speeds[1] < speeds[2]


class TestObstacles:
    def test_hit_after_paddle_contact_scores_and_replaces(self):
        sim = make_simulation()
        sim.obstacles = [Obstacle(obstacle_id="target", x=0.0, y=0.0, shape=4, radius=0.5, drift=0.0)]
        sim.last_scoring_side = Side.LEFT
        players = make_players()
        place_ball(sim, -0.6, 0.0, 0.1, 0.0)

        event = sim.advance(players)

        assert event is not None
        assert event.kind == ScoreType.OBSTACLE
        assert event.scorer == Side.LEFT
        assert event.obstacle_id == "target"
        assert players[0].score == 1
        assert sim.obstacles_destroyed == 1
        assert len(sim.obstacles) == 1
        assert sim.obstacles[0].obstacle_id != "target"

    def test_bounce_preserves_speed_and_pushes_ball_out(self):
        sim = make_simulation()
        sim.obstacles = [Obstacle(obstacle_id="target", x=0.0, y=0.0, shape=4, radius=0.5, drift=0.0)]
        sim.last_scoring_side = Side.RIGHT
        place_ball(sim, -0.6, 0.0, 0.1, 0.0)

        sim.advance(make_players())

        assert sim.ball.vx == pytest.approx(-0.1)
        assert sim.ball.x == pytest.approx(-0.7)

    def test_hit_before_any_paddle_contact_destroys_without_scoring(self):
        sim = make_simulation()
        obstacle = Obstacle(obstacle_id="target", x=0.0, y=0.0, shape=4, radius=0.5, drift=0.0)
        sim.obstacles = [obstacle]
        players = make_players()
        place_ball(sim, -0.6, 0.0, 0.1, 0.0)

        event = sim.advance(players)

        assert event is None
        assert [p.score for p in players] == [0, 0]
        assert sim.obstacles_destroyed == 1
        assert "target" not in [o.obstacle_id for o in sim.obstacles]
        assert len(sim.obstacles) == 1
        assert sim.ball.vx < 0

    def test_only_first_overlapping_obstacle_is_destroyed(self):
        sim = make_simulation()
        first = Obstacle(obstacle_id="first", x=0.0, y=0.3, shape=3, radius=0.5, drift=0.0)
        second = Obstacle(obstacle_id="second", x=0.0, y=-0.3, shape=5, radius=0.5, drift=0.0)
        sim.obstacles = [first, second]
        sim.last_scoring_side = Side.LEFT
        place_ball(sim, -0.1, 0.0, 0.1, 0.0)

        event = sim.advance(make_players())

        assert event is not None
        assert event.obstacle_id == "first"
        assert sim.obstacles_destroyed == 1
        assert "second" in [o.obstacle_id for o in sim.obstacles]
        assert len(sim.obstacles) == 2

    def test_replacement_ids_keep_counting(self):
        sim = make_simulation()
        sim.last_scoring_side = Side.LEFT
        target = sim.obstacles[0]
        place_ball(sim, target.x - 0.1, target.y, 0.0, 0.0)

        sim.advance(make_players())

        assert sim.obstacles[-1].obstacle_id == "obs_3"

    def test_obstacles_drift_and_spin(self):
        sim = make_simulation()
        obstacle = Obstacle(obstacle_id="o", x=5.0, y=0.0, shape=6, radius=0.4, drift=0.02)
        sim.obstacles = [obstacle]
        place_ball(sim, -5.0, 0.0, 0.0, 0.0)

        sim.advance(make_players())

        assert obstacle.y == pytest.approx(0.02)
        assert obstacle.rotation == pytest.approx(0.02)

    def test_obstacle_drift_reflects_at_walls(self):
        sim = make_simulation()
        limit = FIELD_HEIGHT / 2 - 0.4
        obstacle = Obstacle(obstacle_id="o", x=5.0, y=limit - 0.01, shape=6, radius=0.4, drift=0.02)
        sim.obstacles = [obstacle]
        place_ball(sim, -5.0, 0.0, 0.0, 0.0)

        sim.advance(make_players())

        assert obstacle.y == pytest.approx(limit)
        assert obstacle.drift == pytest.approx(-0.02)

    @pytest.mark.parametrize("seed", range(5))
    def test_obstacle_count_is_constant_during_play(self, seed):
        sim = make_simulation(seed=seed)
        players = make_players()
        sim.last_scoring_side = Side.LEFT
        rng = random.Random(seed)
        for _ in range(3000):
            players[0].paddle_y = rng.uniform(-PADDLE_LIMIT, PADDLE_LIMIT)
            players[1].paddle_y = rng.uniform(-PADDLE_LIMIT, PADDLE_LIMIT)
            sim.advance(players)
            assert len(sim.obstacles) == 3
            assert len({o.obstacle_id for o in sim.obstacles}) == 3


class TestGoals:
    def test_ball_past_right_goal_line_scores_for_left(self):
        sim = make_simulation()
        sim.obstacles = []
        players = make_players(right=False)
        place_ball(sim, FIELD_WIDTH / 2 + 0.01, 0.0, 0.0, 0.0)

        event = sim.advance(players)

        assert event is not None
        assert event.kind == ScoreType.GOAL
        assert event.scorer == Side.LEFT
        assert event.obstacle_id is None
        assert players[0].score == 1
        assert (sim.ball.x, sim.ball.y) == (0.0, 0.0)
        assert sim.ball.speed > 0

    def test_ball_past_left_goal_line_scores_for_right(self):
        sim = make_simulation()
        sim.obstacles = []
        players = make_players()
        place_ball(sim, -FIELD_WIDTH / 2 + 0.05, 4.5, -0.1, 0.0)

        event = sim.advance(players)

        assert event is not None
        assert event.scorer == Side.RIGHT
        assert players[1].score == 1
        assert players[0].score == 0

    def test_goal_without_scoring_player_only_resets_ball(self):
        sim = make_simulation()
        sim.obstacles = []
        place_ball(sim, FIELD_WIDTH / 2 + 0.01, 4.0, 0.0, 0.0)

        event = sim.advance(make_players(left=False))

        assert event is None
        assert (sim.ball.x, sim.ball.y) == (0.0, 0.0)

    def test_goal_supersedes_same_tick_obstacle_event(self):
        sim = make_simulation()
        sim.obstacles = [Obstacle(obstacle_id="edge", x=7.8, y=0.0, shape=3, radius=0.3, drift=0.0)]
        sim.last_scoring_side = Side.LEFT
        players = make_players(right=False)
        place_ball(sim, 7.85, 0.0, 0.2, 0.0)

        event = sim.advance(players)

        assert event is not None
        assert event.kind == ScoreType.GOAL
        assert players[0].score == 2
        assert sim.obstacles_destroyed == 1

    def test_scores_never_decrease(self):
        sim = make_simulation(seed=11)
        players = make_players()
        previous = [0, 0]
        for _ in range(5000):
            sim.advance(players)
            current = [p.score for p in players]
            assert current[0] >= previous[0]
            assert current[1] >= previous[1]
            previous = current

"""Room model and match lifecycle state machine."""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from arena.logic.bot import BotPolicy
from arena.logic.enums import BotDifficulty, RoomStatus, Side
from arena.logic.events import (
    BroadcastTarget,
    CountdownEvent,
    GameOverEvent,
    GameStartEvent,
    OpponentDisconnectedEvent,
    ParticipantTarget,
    PlayerJoinedEvent,
    RejectedEvent,
    RejectionCode,
    RoomEvent,
    RoomJoinedEvent,
    ScoreEvent,
    SeatInfo,
)
from arena.logic.settings import MAX_PLAYERS, GameSettings, clamp_paddle
from arena.logic.simulation import Simulation
from arena.logic.state import BOT_NICKNAME, BOT_PARTICIPANT_ID, Player
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

logger = structlog.get_logger()

# Inputs acted upon in each state; anything else is ignored. JoinRoom is listed
# everywhere because a join outside WAITING must still be answered with ROOM_FULL.
LEGAL_INPUTS: dict[RoomStatus, tuple[type, ...]] = {
    RoomStatus.WAITING: (JoinRoom, PlayerReady, Leave),
    RoomStatus.READY: (JoinRoom, PlayerReady, Leave),
    RoomStatus.COUNTDOWN: (JoinRoom, CountdownStep, StartMatch, Leave),
    RoomStatus.PLAYING: (JoinRoom, PaddleMove, Tick, Leave),
    RoomStatus.FINISHED: (JoinRoom, Leave),
}


# A fresh room has no players until its creator joins it.
EMPTY_ROOM_GRACE_SECONDS = 60


def default_nickname(rng: random.Random) -> str:
    return f"Player_{rng.randrange(10000)}"


@dataclass
class Room:
    """One isolated match: two seats, one simulation, one lifecycle.

    All mutation goes through handle(), which returns the events to deliver.
    The room never schedules anything itself; the session layer watches
    `status` and `closed` to start or stop the countdown and the tick loop.
    """

    room_id: str
    bot_enabled: bool = False
    bot_difficulty: BotDifficulty = BotDifficulty.MEDIUM
    settings: GameSettings = field(default_factory=GameSettings)
    rng: random.Random = field(default_factory=random.Random)
    status: RoomStatus = RoomStatus.WAITING
    created_at: float = field(default_factory=time.monotonic)
    started_at: float | None = None  # time.monotonic() at game start
    start_time: datetime | None = None  # wall clock at game start
    closed: bool = False
    players: dict[str, Player] = field(default_factory=dict)  # participant_id -> Player
    simulation: Simulation = field(init=False)
    bot: BotPolicy | None = field(init=False)

    def __post_init__(self) -> None:
        self.simulation = Simulation(self.settings, self.rng)
        self.bot = BotPolicy(self.bot_difficulty, self.rng) if self.bot_enabled else None

    # --- Queries ---

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def human_count(self) -> int:
        return sum(1 for p in self.players.values() if not p.is_bot)

    @property
    def is_full(self) -> bool:
        return self.player_count >= MAX_PLAYERS

    @property
    def obstacles_destroyed(self) -> int:
        return self.simulation.obstacles_destroyed

    @property
    def last_scoring_side(self) -> Side | None:
        return self.simulation.last_scoring_side

    @property
    def should_discard(self) -> bool:
        """True once nothing further can happen in this room."""
        return self.closed or self.status == RoomStatus.FINISHED

    def player_on(self, side: Side) -> Player | None:
        for player in self.players.values():
            if player.side == side:
                return player
        return None

    def scores(self) -> dict[Side, int]:
        left = self.player_on(Side.LEFT)
        right = self.player_on(Side.RIGHT)
        return {
            Side.LEFT: left.score if left else 0,
            Side.RIGHT: right.score if right else 0,
        }

    def human_ids(self) -> list[str]:
        return [pid for pid, p in self.players.items() if not p.is_bot]

    def is_stale(self, now: float, ttl_seconds: float) -> bool:
        """A waiting room past its TTL, or one nobody joined within the grace period."""
        if self.status != RoomStatus.WAITING:
            return False
        age = now - self.created_at
        if self.human_count == 0:
            return age > min(ttl_seconds, EMPTY_ROOM_GRACE_SECONDS)
        return age > ttl_seconds

    def elapsed_ms(self) -> float:
        """Match clock in epoch milliseconds, advanced by the monotonic clock."""
        if self.started_at is None or self.start_time is None:
            return 0.0
        return self.start_time.timestamp() * 1000 + (time.monotonic() - self.started_at) * 1000

    # --- Input dispatch ---

    def handle(self, room_input: RoomInput) -> list[RoomEvent]:
        """Apply one input and return the events it produced."""
        if self.closed or not isinstance(room_input, LEGAL_INPUTS[self.status]):
            return []
        if isinstance(room_input, JoinRoom):
            return self._on_join(room_input)
        if isinstance(room_input, PlayerReady):
            return self._on_ready(room_input)
        if isinstance(room_input, PaddleMove):
            return self._on_paddle_move(room_input)
        if isinstance(room_input, Leave):
            return self._on_leave(room_input)
        if isinstance(room_input, CountdownStep):
            return [RoomEvent(CountdownEvent(count=room_input.count), BroadcastTarget())]
        if isinstance(room_input, StartMatch):
            return self._on_start()
        if isinstance(room_input, Tick):
            return self._on_tick()
        return []

    # --- Transitions ---

    def _on_join(self, join: JoinRoom) -> list[RoomEvent]:
        if self.status != RoomStatus.WAITING or self.is_full:
            return [
                RoomEvent(
                    RejectedEvent(code=RejectionCode.ROOM_FULL, message="Room is full"),
                    ParticipantTarget(join.participant_id),
                ),
            ]
        if join.participant_id in self.players:
            return []

        # Sides are assigned from current occupancy, not from arrival order.
        side = Side.LEFT if self.player_on(Side.LEFT) is None else Side.RIGHT
        nickname = join.nickname or default_nickname(self.rng)
        self.players[join.participant_id] = Player(
            participant_id=join.participant_id,
            nickname=nickname,
            side=side,
        )
        logger.info("player joined room", room_id=self.room_id, side=side)

        if self.bot_enabled and self.player_count == 1:
            bot_side = side.opponent
            self.players[BOT_PARTICIPANT_ID] = Player(
                participant_id=BOT_PARTICIPANT_ID,
                nickname=BOT_NICKNAME,
                side=bot_side,
                ready=True,
                is_bot=True,
            )
            logger.info("bot joined room", room_id=self.room_id, side=bot_side, difficulty=self.bot_difficulty)

        seating = self._seating()
        if seating is not None:
            self.status = RoomStatus.READY
            return [RoomEvent(seating, BroadcastTarget())]

        return [
            RoomEvent(
                RoomJoinedEvent(side=side, nickname=nickname),
                ParticipantTarget(join.participant_id),
            ),
        ]

    def _seating(self) -> PlayerJoinedEvent | None:
        """Both seats as announced once the room fills, or None while a side is empty."""
        left = self.player_on(Side.LEFT)
        right = self.player_on(Side.RIGHT)
        if left is None or right is None:
            return None
        return PlayerJoinedEvent(
            left=SeatInfo(nickname=left.nickname, side=Side.LEFT),
            right=SeatInfo(nickname=right.nickname, side=Side.RIGHT),
        )

    def _on_ready(self, ready: PlayerReady) -> list[RoomEvent]:
        player = self.players.get(ready.participant_id)
        if player is None:
            return []
        player.ready = True
        if self.status == RoomStatus.READY and self.is_full and all(p.ready for p in self.players.values()):
            self.status = RoomStatus.COUNTDOWN
            logger.info("countdown started", room_id=self.room_id)
        return []

    def _on_start(self) -> list[RoomEvent]:
        self.status = RoomStatus.PLAYING
        self.started_at = time.monotonic()
        self.start_time = datetime.now(UTC)
        for player in self.players.values():
            player.paddle_y = 0.0
            player.score = 0
        self.simulation.start()
        logger.info("match started", room_id=self.room_id)
        return [RoomEvent(GameStartEvent(start_time=self.start_time.isoformat()), BroadcastTarget())]

    def _on_paddle_move(self, move: PaddleMove) -> list[RoomEvent]:
        player = self.players.get(move.participant_id)
        if player is None or player.is_bot or math.isnan(move.y):
            return []
        player.paddle_y = clamp_paddle(move.y)
        return []

    def _on_leave(self, leave: Leave) -> list[RoomEvent]:
        player = self.players.pop(leave.participant_id, None)
        if player is None:
            return []
        logger.info("player left room", room_id=self.room_id, side=player.side, status=self.status)

        previous = self.status
        if previous == RoomStatus.PLAYING:
            self.status = RoomStatus.FINISHED
            self.closed = True
            logger.info("match forfeited", room_id=self.room_id, side=player.side)
            return self._notify_opponent(leave, forfeit=True)

        if self.human_count == 0:
            self.closed = True
            return []

        if previous in (RoomStatus.READY, RoomStatus.COUNTDOWN):
            self.status = RoomStatus.WAITING
            for remaining in self.players.values():
                remaining.ready = False
            logger.info("room regressed to waiting", room_id=self.room_id, previous=previous)
            return self._notify_opponent(leave, forfeit=False)
        return []

    def _notify_opponent(self, leave: Leave, *, forfeit: bool) -> list[RoomEvent]:
        if self.human_count == 0:
            return []
        return [RoomEvent(OpponentDisconnectedEvent(reason=leave.reason, forfeit=forfeit), BroadcastTarget())]

    def _on_tick(self) -> list[RoomEvent]:
        if self.bot is not None:
            for player in self.players.values():
                if player.is_bot:
                    self.bot.step(player, self.simulation.ball)
        event = self.advance()
        return [RoomEvent(event, BroadcastTarget())] if event is not None else []

    def advance(self) -> ScoreEvent | GameOverEvent | None:
        """Run one simulation step followed by the win check.

        Reaching the win score moves the room to FINISHED; the returned game-over
        event replaces any goal or obstacle event of the same tick.
        """
        event = self.simulation.advance(self.players.values())
        winner = self._winner()
        if winner is None:
            return event

        self.status = RoomStatus.FINISHED
        duration = 0 if self.started_at is None else int(time.monotonic() - self.started_at)
        logger.info("match finished", room_id=self.room_id, winner=winner.side, duration=duration)
        return GameOverEvent(
            winner=SeatInfo(nickname=winner.nickname, side=winner.side),
            duration_seconds=duration,
            obstacles_destroyed=self.simulation.obstacles_destroyed,
        )

    def _winner(self) -> Player | None:
        for side in (Side.LEFT, Side.RIGHT):
            player = self.player_on(side)
            if player is not None and player.score >= self.settings.win_score:
                return player
        return None

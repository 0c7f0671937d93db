"""Manage the countdown and tick schedules of all live rooms."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from arena.logic.settings import GameSettings
from arena.session.timers import CountdownTimer, FixedRateTicker

logger = logging.getLogger(__name__)

# Callback types: (room_id, count) -> Awaitable[None] and (room_id) -> Awaitable[None]
CountdownCallback = Callable[[str, int], Awaitable[None]]
RoomCallback = Callable[[str], Awaitable[None]]


@dataclass
class RoomTimers:
    countdown: CountdownTimer
    ticker: FixedRateTicker


class TimerManager:
    """Own the two independent schedules of each room.

    This class only starts and stops schedules. It does NOT inspect room state;
    the caller (SessionManager) decides which schedule a room's status needs.
    """

    def __init__(
        self,
        *,
        on_countdown: CountdownCallback,
        on_start: RoomCallback,
        on_tick: RoomCallback,
    ) -> None:
        self._timers: dict[str, RoomTimers] = {}
        self._on_countdown = on_countdown
        self._on_start = on_start
        self._on_tick = on_tick

    def create_timers(self, room_id: str, settings: GameSettings) -> None:
        self._timers[room_id] = RoomTimers(
            countdown=CountdownTimer(settings.countdown_from, settings.countdown_interval_seconds),
            ticker=FixedRateTicker(settings.tick_interval),
        )

    def has_room(self, room_id: str) -> bool:
        return room_id in self._timers

    def is_counting_down(self, room_id: str) -> bool:
        timers = self._timers.get(room_id)
        return timers is not None and timers.countdown.running

    def is_ticking(self, room_id: str) -> bool:
        timers = self._timers.get(room_id)
        return timers is not None and timers.ticker.running

    def start_countdown(self, room_id: str) -> None:
        timers = self._timers.get(room_id)
        if timers is None or timers.countdown.running:
            return
        timers.countdown.start(
            lambda count, rid=room_id: self._on_countdown(rid, count),
            lambda rid=room_id: self._on_start(rid),
            name=f"countdown:{room_id}",
        )

    def stop_countdown(self, room_id: str) -> None:
        timers = self._timers.get(room_id)
        if timers is not None:
            timers.countdown.cancel()

    def start_ticker(self, room_id: str) -> None:
        timers = self._timers.get(room_id)
        if timers is None or timers.ticker.running:
            return
        timers.ticker.start(lambda rid=room_id: self._on_tick(rid), name=f"ticker:{room_id}")

    def stop_ticker(self, room_id: str) -> None:
        timers = self._timers.get(room_id)
        if timers is not None:
            timers.ticker.cancel()

    def cleanup_room(self, room_id: str) -> None:
        """Cancel both schedules and forget the room. Idempotent."""
        timers = self._timers.pop(room_id, None)
        if timers is not None:
            timers.countdown.cancel()
            timers.ticker.cancel()

    def cancel_all(self) -> None:
        for room_id in list(self._timers):
            self.cleanup_room(room_id)
        logger.info("all room timers cancelled")

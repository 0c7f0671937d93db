"""
Cancellable per-room schedules: the pre-match countdown and the fixed-rate tick loop.

Both run as asyncio tasks. Stopping is idempotent and safe from inside the task's
own callback (a tick that ends the match stops its own ticker).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine

logger = structlog.get_logger()


class ScheduledTask:
    """Own at most one running asyncio task."""

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Cancel the task if it is still running. Calling twice is harmless."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Cancelling ourselves would abort the callback mid-way; the ticker
            # loop notices its run id changed instead.
            return
        task.cancel()

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        ScheduledTask.cancel(self)
        self._task = asyncio.create_task(coro, name=name)


class CountdownTimer(ScheduledTask):
    """Fire on_step(count) for count = start..1, one interval apart, then on_done()."""

    def __init__(self, start: int, interval: float) -> None:
        super().__init__()
        self._start = start
        self._interval = interval

    def start(
        self,
        on_step: Callable[[int], Awaitable[None]],
        on_done: Callable[[], Awaitable[None]],
        name: str = "countdown",
    ) -> None:
        self._spawn(self._run(on_step, on_done), name)

    async def _run(
        self,
        on_step: Callable[[int], Awaitable[None]],
        on_done: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            for count in range(self._start, 0, -1):
                await asyncio.sleep(self._interval)
                await on_step(count)
            await asyncio.sleep(self._interval)
            await on_done()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("countdown callback failed")


class FixedRateTicker(ScheduledTask):
    """Call on_tick() at a fixed rate until stopped.

    Deadlines advance by exactly one interval per tick, so a slow tick delays the
    next one but does not shift the schedule. When more than a full interval
    behind, the ticker skips ahead instead of bursting.
    """

    def __init__(self, interval: float) -> None:
        super().__init__()
        self._interval = interval
        # Bumped on every start and cancel; a loop runs only while its run id is current.
        self._run_id = 0

    def start(self, on_tick: Callable[[], Awaitable[None]], name: str = "ticker") -> None:
        self.cancel()
        self._run_id += 1
        self._spawn(self._run(on_tick, self._run_id), name)

    def cancel(self) -> None:
        self._run_id += 1
        super().cancel()

    async def _run(self, on_tick: Callable[[], Awaitable[None]], run_id: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        try:
            while run_id == self._run_id:
                await on_tick()
                deadline += self._interval
                delay = deadline - loop.time()
                if delay < -self._interval:
                    deadline = loop.time()
                    delay = 0
                await asyncio.sleep(max(0.0, delay))
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("tick callback failed")

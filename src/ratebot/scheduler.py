"""Cooperative fixed-period tick loop.

One implementation drives both background loops (ingestion and dispatch).
State machine: IDLE -> RUNNING -> STOPPED.

- The first unit of work runs immediately, without an initial wait.
- Units never overlap: the next one starts one period after the previous
  one started, or right after it returns if it overran the period.
- Stopping is cooperative: the shared stop event is checked at the top of
  every iteration and while waiting, and an in-flight unit is allowed to
  finish.
- A failed or timed-out unit is logged; only the stop event ends the loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

from ratebot.logging import get_logger

logger = get_logger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle of a TickScheduler."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class TickScheduler:
    """Invokes ``work`` every ``period`` seconds until ``stop_event`` is set.

    Args:
        name: Used in log events ("ingestion", "dispatch").
        work: Zero-argument coroutine function; its return value is logged.
        period: Seconds between the starts of consecutive units of work.
        work_timeout: Optional bound on a single unit of work.
    """

    def __init__(
        self,
        name: str,
        work: Callable[[], Awaitable[object]],
        period: float,
        work_timeout: float | None = None,
    ) -> None:
        if period <= 0:
            raise ValueError(f"period must be > 0, got {period}")
        self._name = name
        self._work = work
        self._period = period
        self._work_timeout = work_timeout
        self._state = SchedulerState.IDLE
        self._ticks = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def ticks(self) -> int:
        """Number of units of work started so far."""
        return self._ticks

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run the loop until ``stop_event`` is set.

        Raises:
            RuntimeError: If this scheduler was already started.
        """
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"scheduler {self._name} already {self._state.value}")

        self._state = SchedulerState.RUNNING
        logger.info("scheduler_started", scheduler=self._name, period=self._period)
        loop = asyncio.get_running_loop()

        try:
            while not stop_event.is_set():
                started = loop.time()
                await self._run_once()

                remaining = self._period - (loop.time() - started)
                if remaining > 0 and await _wait_or_stop(stop_event, remaining):
                    break
        finally:
            self._state = SchedulerState.STOPPED
            logger.info("scheduler_stopped", scheduler=self._name, ticks=self._ticks)

    async def _run_once(self) -> None:
        """One unit of work; errors are logged and swallowed."""
        self._ticks += 1
        loop = asyncio.get_running_loop()
        started = loop.time()
        logger.debug("tick_started", scheduler=self._name, tick=self._ticks)
        try:
            if self._work_timeout is not None:
                result = await asyncio.wait_for(self._work(), timeout=self._work_timeout)
            else:
                result = await self._work()
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            logger.error(
                "tick_timed_out",
                scheduler=self._name,
                timeout=self._work_timeout,
            )
            return
        except Exception as e:
            logger.error(
                "tick_failed",
                scheduler=self._name,
                error=str(e),
                exc_info=True,
            )
            return
        logger.info(
            "tick_completed",
            scheduler=self._name,
            result=result,
            duration=round(loop.time() - started, 3),
        )


async def _wait_or_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds. True if the stop event fired."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except TimeoutError:
        return False
    return True

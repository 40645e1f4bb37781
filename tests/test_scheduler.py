"""Tests for TickScheduler.

Tests verify:
- First unit runs immediately; state goes IDLE -> RUNNING -> STOPPED
- Units never overlap, even when one overruns the period
- Errors and timeouts are logged and the loop keeps going
- Stop during the wait ends the loop promptly; in-flight work finishes
- A scheduler cannot be started twice
"""

import asyncio

import pytest

from ratebot.scheduler import SchedulerState, TickScheduler


class TestTickScheduler:
    def test_rejects_non_positive_period(self) -> None:
        with pytest.raises(ValueError):
            TickScheduler("bad", lambda: asyncio.sleep(0), period=0)

    @pytest.mark.asyncio
    async def test_first_run_is_immediate(self) -> None:
        stop = asyncio.Event()
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            stop.set()
            return calls

        scheduler = TickScheduler("ingestion", work, period=60)
        assert scheduler.state is SchedulerState.IDLE

        await asyncio.wait_for(scheduler.run(stop), timeout=1.0)

        assert calls == 1
        assert scheduler.ticks == 1
        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_repeats_every_period(self) -> None:
        stop = asyncio.Event()
        calls = 0

        async def work() -> None:
            nonlocal calls
            calls += 1
            if calls == 3:
                stop.set()

        await asyncio.wait_for(TickScheduler("t", work, period=0.01).run(stop), timeout=1.0)

        assert calls == 3

    @pytest.mark.asyncio
    async def test_units_never_overlap(self) -> None:
        stop = asyncio.Event()
        running = 0
        peak = 0
        calls = 0

        async def work() -> None:
            nonlocal running, peak, calls
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.03)
            running -= 1
            calls += 1
            if calls == 3:
                stop.set()

        await asyncio.wait_for(TickScheduler("t", work, period=0.01).run(stop), timeout=1.0)

        assert peak == 1

    @pytest.mark.asyncio
    async def test_error_does_not_stop_loop(self) -> None:
        stop = asyncio.Event()
        calls = 0

        async def work() -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("exchange unreachable")
            stop.set()

        await asyncio.wait_for(TickScheduler("t", work, period=0.01).run(stop), timeout=1.0)

        assert calls == 2

    @pytest.mark.asyncio
    async def test_work_timeout_does_not_stop_loop(self) -> None:
        stop = asyncio.Event()
        calls = 0

        async def work() -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(5)
            stop.set()

        scheduler = TickScheduler("t", work, period=0.01, work_timeout=0.02)
        await asyncio.wait_for(scheduler.run(stop), timeout=1.0)

        assert calls == 2

    @pytest.mark.asyncio
    async def test_stop_during_wait(self) -> None:
        stop = asyncio.Event()
        scheduler = TickScheduler("t", lambda: asyncio.sleep(0), period=60)

        task = asyncio.create_task(scheduler.run(stop))
        await asyncio.sleep(0.02)
        assert scheduler.state is SchedulerState.RUNNING

        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert scheduler.ticks == 1
        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_in_flight_unit_finishes(self) -> None:
        stop = asyncio.Event()
        finished = False

        async def work() -> None:
            nonlocal finished
            stop.set()
            await asyncio.sleep(0.02)
            finished = True

        await asyncio.wait_for(TickScheduler("t", work, period=60).run(stop), timeout=1.0)

        assert finished is True

    @pytest.mark.asyncio
    async def test_already_stopped_event_runs_nothing(self) -> None:
        stop = asyncio.Event()
        stop.set()
        scheduler = TickScheduler("t", lambda: asyncio.sleep(0), period=1)

        await scheduler.run(stop)

        assert scheduler.ticks == 0
        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_cannot_run_twice(self) -> None:
        stop = asyncio.Event()
        stop.set()
        scheduler = TickScheduler("t", lambda: asyncio.sleep(0), period=1)
        await scheduler.run(stop)

        with pytest.raises(RuntimeError):
            await scheduler.run(stop)

from __future__ import annotations

import asyncio
from typing import List

from overlay_engine.widgets import AsyncioTicker, ManualTicker, RenderScheduler


def test_scheduling_collapses_into_one_pending_task() -> None:
    ticker = ManualTicker()
    scheduler = RenderScheduler(ticker)
    calls: List[str] = []

    assert scheduler.schedule(lambda: calls.append("first")) is True
    assert scheduler.schedule(lambda: calls.append("second")) is False

    assert ticker.pending == 1
    ticker.tick()
    assert calls == ["second"]
    assert scheduler.pending is False
    assert scheduler.fired == 1


def test_schedule_after_fire_requests_new_tick() -> None:
    ticker = ManualTicker()
    scheduler = RenderScheduler(ticker)
    calls: List[int] = []

    scheduler.schedule(lambda: calls.append(1))
    ticker.tick()
    scheduler.schedule(lambda: calls.append(2))
    ticker.tick()

    assert calls == [1, 2]


def test_cancel_turns_queued_tick_into_noop() -> None:
    ticker = ManualTicker()
    scheduler = RenderScheduler(ticker)
    calls: List[int] = []

    scheduler.schedule(lambda: calls.append(1))
    scheduler.cancel()
    ticker.tick()

    assert calls == []


def test_disposed_scheduler_ignores_new_work() -> None:
    ticker = ManualTicker()
    scheduler = RenderScheduler(ticker)
    calls: List[int] = []
    scheduler.schedule(lambda: calls.append(1))

    scheduler.dispose()

    assert scheduler.schedule(lambda: calls.append(2)) is False
    ticker.tick()
    assert calls == []
    assert scheduler.disposed is True


def test_asyncio_ticker_runs_on_next_loop_iteration() -> None:
    calls: List[str] = []

    async def scenario() -> None:
        scheduler = RenderScheduler(AsyncioTicker())
        scheduler.schedule(lambda: calls.append("render"))
        assert calls == []
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert calls == ["render"]

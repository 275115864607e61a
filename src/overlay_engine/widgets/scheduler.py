"""Deferred render scheduling on the host's next UI tick."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Protocol

from overlay_engine.runtime import telemetry

RenderTask = Callable[[], None]


class Ticker(Protocol):
    """Runs a callback on the next UI tick.

    The return value may expose ``cancel()``; tickers that cannot cancel
    return anything else.
    """

    def call_soon(self, callback: Callable[[], None]) -> object:
        ...


class ManualTicker:
    """Ticker driven explicitly by the caller, mostly for tests."""

    def __init__(self) -> None:
        self._queue: List[Callable[[], None]] = []

    @property
    def pending(self) -> int:
        return len(self._queue)

    def call_soon(self, callback: Callable[[], None]) -> object:
        self._queue.append(callback)
        return None

    def tick(self) -> int:
        """Run callbacks queued before this tick; return how many ran."""

        queued, self._queue = self._queue, []
        for callback in queued:
            callback()
        return len(queued)


class AsyncioTicker:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_soon(self, callback: Callable[[], None]) -> object:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_soon(callback)


class RenderScheduler:
    """Keeps at most one pending render task.

    Scheduling while a task is pending only replaces the callable; the tick
    already requested will run the latest one.
    """

    def __init__(self, ticker: Ticker, *, logger_name: Optional[str] = None) -> None:
        self.ticker = ticker
        self._logger_name = logger_name
        self._task: Optional[RenderTask] = None
        self._handle: object | None = None
        self._disposed = False
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._task is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def schedule(self, task: RenderTask) -> bool:
        """Queue ``task``; return ``True`` when a new tick was requested."""

        if self._disposed:
            return False
        already_pending = self._task is not None
        self._task = task
        if already_pending:
            return False
        self._handle = self.ticker.call_soon(self._fire)
        return True

    def cancel(self) -> None:
        cancel = getattr(self._handle, "cancel", None)
        if callable(cancel):
            cancel()
        self._handle = None
        self._task = None

    def dispose(self) -> None:
        self.cancel()
        self._disposed = True

    def _fire(self) -> None:
        task, self._task = self._task, None
        self._handle = None
        if task is None or self._disposed:
            return
        self.fired += 1
        with telemetry.span(
            "scheduler::fire", logger_name=self._logger_name, component="scheduler"
        ):
            task()


__all__ = [
    "AsyncioTicker",
    "ManualTicker",
    "RenderScheduler",
    "RenderTask",
    "Ticker",
]

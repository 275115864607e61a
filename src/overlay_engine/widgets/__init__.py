"""Widget containers, their cache, and deferred rendering."""

from .cache import (
    ContainerCache,
    ContainerTeardownError,
    ReconcileReport,
    TeardownFailure,
)
from .container import NullRenderer, RunState, WidgetContainer, WidgetRenderer
from .runner import CodeRunner, RunOutcome, RunTicket, RunnerUnavailableError
from .scheduler import AsyncioTicker, ManualTicker, RenderScheduler, Ticker

__all__ = [
    "AsyncioTicker",
    "CodeRunner",
    "ContainerCache",
    "ContainerTeardownError",
    "ManualTicker",
    "NullRenderer",
    "ReconcileReport",
    "RenderScheduler",
    "RunOutcome",
    "RunState",
    "RunTicket",
    "RunnerUnavailableError",
    "TeardownFailure",
    "Ticker",
    "WidgetContainer",
    "WidgetRenderer",
]

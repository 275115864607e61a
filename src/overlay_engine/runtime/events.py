"""Synchronous event bus the engine uses to announce lifecycle changes."""

from __future__ import annotations

from typing import Callable, Dict

OVERLAY_BUILT = "overlay.built"
OVERLAY_REMAPPED = "overlay.remapped"
CONTAINER_CREATED = "container.created"
CONTAINER_DESTROYED = "container.destroyed"
RENDER_FLUSHED = "render.flushed"
RUN_STARTED = "run.started"
RUN_FINISHED = "run.finished"

ENGINE_EVENTS = (
    OVERLAY_BUILT,
    OVERLAY_REMAPPED,
    CONTAINER_CREATED,
    CONTAINER_DESTROYED,
    RENDER_FLUSHED,
    RUN_STARTED,
    RUN_FINISHED,
)


class EventBus:
    """Minimal publish/subscribe hub keyed by event name."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, list[Callable[[object], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[object], None]) -> None:
        self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Callable[[object], None]) -> None:
        callbacks = self._subscribers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, payload: object | None = None) -> None:
        for callback in list(self._subscribers.get(event, [])):
            callback(payload)

    def clear(self) -> None:
        self._subscribers.clear()

"""Anchor-keyed container cache and lifecycle reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional

from overlay_engine.runtime import telemetry
from overlay_engine.runtime.config import DEFAULT_CONTAINER_CLASS
from overlay_engine.runtime.events import (
    CONTAINER_CREATED,
    CONTAINER_DESTROYED,
    EventBus,
)

from .container import NullRenderer, WidgetContainer, WidgetRenderer


@dataclass(frozen=True, slots=True)
class TeardownFailure:
    anchor: int
    error: Exception


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    created: tuple[int, ...] = ()
    destroyed: tuple[int, ...] = ()
    reused: tuple[int, ...] = ()
    failures: tuple[TeardownFailure, ...] = ()


class ContainerTeardownError(RuntimeError):
    """Raised when one or more containers failed to unmount cleanly."""

    def __init__(self, failures: Iterable[TeardownFailure]) -> None:
        failures_tuple = tuple(failures)
        anchors = [failure.anchor for failure in failures_tuple]
        super().__init__(f"Failed to tear down containers at {anchors}")
        self.failures = failures_tuple


class ContainerCache:
    """Owns every live container; nothing else inserts or removes entries."""

    def __init__(
        self,
        renderer: Optional[WidgetRenderer] = None,
        *,
        class_name: str = DEFAULT_CONTAINER_CLASS,
        bus: Optional[EventBus] = None,
        logger_name: Optional[str] = None,
    ) -> None:
        self.renderer: WidgetRenderer = renderer or NullRenderer()
        self.class_name = class_name
        self.bus = bus or EventBus()
        self._logger_name = logger_name
        self._containers: Dict[int, WidgetContainer] = {}

    def __len__(self) -> int:
        return len(self._containers)

    def __contains__(self, anchor: object) -> bool:
        return anchor in self._containers

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._containers))

    def get(self, anchor: int) -> Optional[WidgetContainer]:
        return self._containers.get(anchor)

    def keys(self) -> frozenset[int]:
        return frozenset(self._containers)

    def items(self) -> list[tuple[int, WidgetContainer]]:
        return sorted(self._containers.items())

    def reconcile(self, active_positions: Iterable[int]) -> ReconcileReport:
        """Make the cache key set equal ``active_positions``.

        Shared anchors keep their container instance. A container that fails
        to unmount is still removed; the failure is reported, not raised.
        A failing mount unmounts whatever this call created and re-raises,
        leaving the previous key set in place.
        """

        active = frozenset(active_positions)
        with telemetry.span(
            "cache::reconcile",
            logger_name=self._logger_name,
            component="cache",
            metadata={"active": len(active), "cached": len(self._containers)},
        ) as handle:
            created = []
            try:
                for anchor in sorted(active - set(self._containers)):
                    self._containers[anchor] = self._create(anchor)
                    created.append(anchor)
            except Exception:
                for anchor in created:
                    self._destroy(anchor)
                raise

            destroyed = []
            failures = []
            for anchor in sorted(set(self._containers) - active):
                failure = self._destroy(anchor)
                destroyed.append(anchor)
                if failure is not None:
                    failures.append(failure)

            reused = tuple(sorted(active - set(created)))
            handle.add_metadata("created", len(created))
            handle.add_metadata("destroyed", len(destroyed))
            return ReconcileReport(
                created=tuple(created),
                destroyed=tuple(destroyed),
                reused=reused,
                failures=tuple(failures),
            )

    def rekey(self, moves: Mapping[int, int]) -> None:
        """Move containers to new anchors without creating or destroying any."""

        pending = {
            old: new
            for old, new in moves.items()
            if old in self._containers and old != new
        }
        targets = list(pending.values())
        if len(set(targets)) != len(targets):
            raise ValueError("rekey targets must be unique")
        staying = set(self._containers) - set(pending)
        occupied = staying.intersection(targets)
        if occupied:
            raise ValueError(f"rekey targets {sorted(occupied)} are already occupied")

        moving = {old: self._containers.pop(old) for old in pending}
        for old, container in moving.items():
            container.anchor = pending[old]
            self._containers[pending[old]] = container

    def clear(self) -> ReconcileReport:
        return self.reconcile(())

    def _create(self, anchor: int) -> WidgetContainer:
        container = WidgetContainer(anchor, class_name=self.class_name)
        self.renderer.mount(container)
        container.attach()
        telemetry.record_event(
            "container.created",
            level="debug",
            data={"anchor": anchor},
            logger_name=self._logger_name,
        )
        self.bus.emit(CONTAINER_CREATED, container)
        return container

    def _destroy(self, anchor: int) -> Optional[TeardownFailure]:
        container = self._containers.pop(anchor)
        failure = None
        try:
            self.renderer.unmount(container)
        except Exception as exc:
            failure = TeardownFailure(anchor=anchor, error=exc)
            telemetry.record_event(
                "container.destroy_failed",
                level="error",
                data={"anchor": anchor, "error": repr(exc)},
                logger_name=self._logger_name,
            )
        finally:
            container.mark_destroyed()
        telemetry.record_event(
            "container.destroyed",
            level="debug",
            data={"anchor": anchor},
            logger_name=self._logger_name,
        )
        self.bus.emit(CONTAINER_DESTROYED, container)
        return failure


__all__ = [
    "ContainerCache",
    "ContainerTeardownError",
    "ReconcileReport",
    "TeardownFailure",
]

"""Overlay engine: keeps code-runner widgets in sync with a document tree."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from overlay_engine.document import DocumentTree, Transaction
from overlay_engine.overlay import (
    Overlay,
    Side,
    WidgetDescriptor,
    build_overlay,
    remap_overlay,
    scan_blocks,
)
from overlay_engine.runtime import telemetry
from overlay_engine.runtime.config import EngineConfig, RebuildPolicy
from overlay_engine.runtime.events import (
    OVERLAY_BUILT,
    OVERLAY_REMAPPED,
    RENDER_FLUSHED,
    RUN_FINISHED,
    RUN_STARTED,
    EventBus,
)
from overlay_engine.widgets import (
    CodeRunner,
    ContainerCache,
    ContainerTeardownError,
    ManualTicker,
    ReconcileReport,
    RenderScheduler,
    RunOutcome,
    RunTicket,
    RunnerUnavailableError,
    Ticker,
    WidgetContainer,
    WidgetRenderer,
)

ErrorHandler = Callable[[Exception], None]


class EngineDisposedError(RuntimeError):
    """Raised when a destroyed engine is used again."""


class UnknownAnchorError(KeyError):
    """Raised when no live widget exists at the requested anchor."""


@dataclass(frozen=True, slots=True)
class Decoration:
    """Host-facing widget placement: ``factory()`` yields the live container."""

    anchor: int
    side: Side
    factory: Callable[[], WidgetContainer]
    spec: WidgetDescriptor


class OverlayEngine:
    """One instance per editor view.

    ``init`` and ``apply`` compute the overlay and reconcile containers
    synchronously; hydration always happens later, on the ticker. If the
    renderer fails to mount a new container the error propagates and the
    engine keeps its previous tree, overlay and containers.
    """

    def __init__(
        self,
        *,
        config: Optional[EngineConfig] = None,
        renderer: Optional[WidgetRenderer] = None,
        ticker: Optional[Ticker] = None,
        runner: Optional[CodeRunner] = None,
        bus: Optional[EventBus] = None,
        error_handler: Optional[ErrorHandler] = None,
        logger_name: Optional[str] = "overlay_engine.engine",
    ) -> None:
        self.config = config or EngineConfig()
        self.bus = bus or EventBus()
        self.runner = runner
        self.error_handler = error_handler
        self._logger_name = logger_name
        self.cache = ContainerCache(
            renderer,
            class_name=self.config.container_class,
            bus=self.bus,
            logger_name=logger_name,
        )
        self.scheduler = RenderScheduler(
            ticker or ManualTicker(), logger_name=logger_name
        )
        self._overlay: Optional[Overlay] = None
        self._tree: Optional[DocumentTree] = None
        self._disposed = False

    @property
    def overlay(self) -> Optional[Overlay]:
        return self._overlay

    @property
    def tree(self) -> Optional[DocumentTree]:
        return self._tree

    @property
    def disposed(self) -> bool:
        return self._disposed

    def init(self, tree: DocumentTree) -> Overlay:
        self._ensure_alive()
        overlay, report = self._rebuild(tree)
        self._finalize(tree, overlay, OVERLAY_BUILT, report)
        return overlay

    def apply(
        self, transaction: Transaction, previous_overlay: Optional[Overlay] = None
    ) -> Overlay:
        self._ensure_alive()
        previous = previous_overlay if previous_overlay is not None else self._overlay
        if previous is None:
            return self.init(transaction.after)

        if self.should_rebuild(transaction):
            overlay, report = self._rebuild(transaction.after)
            self._finalize(transaction.after, overlay, OVERLAY_BUILT, report)
        else:
            overlay, report = self._remap(previous, transaction)
            self._finalize(transaction.after, overlay, OVERLAY_REMAPPED, report)
        return overlay

    def should_rebuild(self, transaction: Transaction) -> bool:
        if not transaction.doc_changed:
            return False
        if self.config.rebuild_policy is RebuildPolicy.ANY_CHANGE:
            return True
        kinds = self.config.block_kinds
        return any(
            node.kind in kinds
            for touched in transaction.touched
            for node, _pos in touched.tree.nodes_between(touched.start, touched.end)
        )

    def render(self, view: Optional[WidgetRenderer] = None) -> int:
        """Hydrate every connected container from the current overlay.

        Returns the number of containers rendered. Safe to call repeatedly.
        """

        self._ensure_alive()
        overlay = self._overlay
        if overlay is None:
            return 0
        renderer = view or self.cache.renderer
        rendered = 0
        with telemetry.span(
            "engine::render",
            logger_name=self._logger_name,
            component="engine",
            metadata={"version": overlay.version, "descriptors": len(overlay)},
        ) as handle:
            for descriptor in overlay:
                container = self.cache.get(descriptor.anchor)
                if container is None or not container.is_connected:
                    continue
                container.hydrate(descriptor, renderer)
                rendered += 1
            handle.add_metadata("rendered", rendered)
        self.bus.emit(RENDER_FLUSHED, rendered)
        return rendered

    def destroy(self) -> None:
        if self._disposed:
            return
        with telemetry.span(
            "engine::destroy",
            logger_name=self._logger_name,
            component="engine",
            metadata={"containers": len(self.cache)},
        ):
            self.scheduler.dispose()
            report = self.cache.clear()
            self._overlay = None
            self._tree = None
            self._disposed = True
        self._escalate(report)

    def decorations(self) -> tuple[Decoration, ...]:
        if self._overlay is None:
            return ()
        return tuple(
            Decoration(
                anchor=descriptor.anchor,
                side=descriptor.side,
                factory=partial(self._container_for, descriptor.anchor),
                spec=descriptor,
            )
            for descriptor in self._overlay
        )

    def start_run(self, anchor: int) -> RunTicket:
        """Mark the widget at ``anchor`` as running.

        The returned ticket follows the container across remaps; hand it to
        ``finish_run`` once the runner reports back.
        """

        self._ensure_alive()
        container = self._container_for(anchor)
        descriptor = (
            self._overlay.find(anchor) if self._overlay is not None else None
        )
        if descriptor is None:
            raise UnknownAnchorError(anchor)
        container.run.running = True
        container.run.output = ""
        container.run.error = ""
        self.bus.emit(RUN_STARTED, container)
        self._schedule_render()
        return RunTicket(container=container, descriptor=descriptor)

    def finish_run(self, ticket: RunTicket, outcome: RunOutcome) -> bool:
        """Store ``outcome`` on the ticket's widget; ``False`` if it is gone."""

        container = ticket.container
        live = (
            not self._disposed
            and not container.is_destroyed
            and self.cache.get(container.anchor) is container
        )
        if not live:
            telemetry.record_event(
                "run.orphaned",
                level="warning",
                data={"anchor": ticket.descriptor.anchor},
                logger_name=self._logger_name,
            )
            return False
        container.run.running = False
        container.run.output = outcome.output
        container.run.error = outcome.error
        self.bus.emit(RUN_FINISHED, container)
        self._schedule_render()
        return True

    def request_run(self, anchor: int) -> RunOutcome:
        if self.runner is None:
            raise RunnerUnavailableError("No code runner configured")
        ticket = self.start_run(anchor)
        payload = ticket.descriptor.payload
        with telemetry.span(
            "engine::run",
            logger_name=self._logger_name,
            component="runner",
            metadata={"anchor": anchor, "language": payload.language},
        ) as handle:
            try:
                outcome = self.runner.run(payload.source, payload.language)
            except Exception as exc:
                handle.add_metadata("runner_error", repr(exc))
                outcome = RunOutcome(error=str(exc) or exc.__class__.__name__)
        self.finish_run(ticket, outcome)
        return outcome

    def _rebuild(self, tree: DocumentTree) -> tuple[Overlay, ReconcileReport]:
        with telemetry.span(
            "engine::rebuild",
            logger_name=self._logger_name,
            component="engine",
            metadata={"version": tree.version},
        ) as handle:
            matches = scan_blocks(
                tree,
                kinds=self.config.block_kinds,
                languages=self.config.languages,
            )
            overlay = build_overlay(tree, matches)
            handle.add_metadata("matches", len(matches))
            report = self.cache.reconcile(overlay.active_positions)
        return overlay, report

    def _remap(
        self, previous: Overlay, transaction: Transaction
    ) -> tuple[Overlay, ReconcileReport]:
        with telemetry.span(
            "engine::remap",
            logger_name=self._logger_name,
            component="engine",
            metadata={
                "version": transaction.after.version,
                "steps": len(transaction.mapping),
            },
        ):
            result = remap_overlay(
                previous, transaction.mapping, version=transaction.after.version
            )
            dropped = self.cache.reconcile(self.cache.keys() - set(result.dropped))
            self.cache.rekey(result.moves)
            settled = self.cache.reconcile(result.overlay.active_positions)
        report = ReconcileReport(
            created=settled.created,
            destroyed=dropped.destroyed + settled.destroyed,
            reused=settled.reused,
            failures=dropped.failures + settled.failures,
        )
        return result.overlay, report

    def _finalize(
        self,
        tree: DocumentTree,
        overlay: Overlay,
        event: str,
        report: ReconcileReport,
    ) -> None:
        self._tree = tree
        self._overlay = overlay
        telemetry.record_event(
            event,
            level="debug",
            data={
                "version": overlay.version,
                "descriptors": len(overlay),
                "created": len(report.created),
                "destroyed": len(report.destroyed),
            },
            logger_name=self._logger_name,
        )
        self.bus.emit(event, overlay)
        self._schedule_render()
        self._escalate(report)

    def _schedule_render(self) -> None:
        self.scheduler.schedule(self._deferred_render)

    def _deferred_render(self) -> None:
        if not self._disposed:
            self.render()

    def _container_for(self, anchor: int) -> WidgetContainer:
        container = self.cache.get(anchor)
        if container is None:
            raise UnknownAnchorError(anchor)
        return container

    def _escalate(self, report: ReconcileReport) -> None:
        if not report.failures:
            return
        error = ContainerTeardownError(report.failures)
        if self.error_handler is None:
            raise error
        self.error_handler(error)

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise EngineDisposedError("Overlay engine has been destroyed")


__all__ = [
    "Decoration",
    "EngineDisposedError",
    "OverlayEngine",
    "UnknownAnchorError",
]

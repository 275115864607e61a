"""Textual adapter wiring the overlay engine into UI callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from overlay_engine.document import DocumentTree, Transaction
from overlay_engine.engine import OverlayEngine
from overlay_engine.overlay import Overlay, WidgetDescriptor
from overlay_engine.runtime.config import EngineConfig
from overlay_engine.runtime.events import ENGINE_EVENTS
from overlay_engine.widgets import (
    CodeRunner,
    RunOutcome,
    RunnerUnavailableError,
    Ticker,
    WidgetContainer,
)

NO_OUTPUT_MESSAGE = "Code executed successfully (no output)"


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(slots=True)
class TextualOverlayHooks:
    """Callbacks the adapter uses to manipulate Textual widgets."""

    mount_widget: Callable[[WidgetContainer], None]
    update_widget: Callable[[WidgetContainer, str], None]
    unmount_widget: Callable[[WidgetContainer], None] = _noop
    update_status: Callable[[str], None] = _noop
    # Optional realtime log callback a host may use to surface debug lines
    log: Callable[[str], None] = _noop


class TextualTicker:
    """Defers callbacks until after the app's next refresh."""

    def __init__(self, app: Any) -> None:
        self.app = app

    def call_soon(self, callback: Callable[[], None]) -> object:
        return self.app.call_after_refresh(callback)


def format_runner_panel(container: WidgetContainer, descriptor: WidgetDescriptor) -> str:
    payload = descriptor.payload
    header = f"[{payload.language}] block @ {payload.block_position}"
    run = container.run
    if run.running:
        return f"{header}\nRunning..."
    if not run.has_result:
        return header
    lines = [header]
    if run.error:
        lines.extend(["Error:", run.error.rstrip()])
    if run.output:
        lines.extend(["Output:", run.output.rstrip()])
    return "\n".join(lines)


class TextualWidgetRenderer:
    def __init__(self, hooks: TextualOverlayHooks) -> None:
        self.hooks = hooks

    def mount(self, container: WidgetContainer) -> None:
        self.hooks.mount_widget(container)

    def render(self, container: WidgetContainer, descriptor: WidgetDescriptor) -> None:
        self.hooks.update_widget(container, format_runner_panel(container, descriptor))

    def unmount(self, container: WidgetContainer) -> None:
        self.hooks.unmount_widget(container)


class TextualOverlayAdapter:
    """Owns one ``OverlayEngine`` for one Textual document view."""

    def __init__(
        self,
        hooks: TextualOverlayHooks,
        *,
        ticker: Ticker,
        config: Optional[EngineConfig] = None,
        runner: Optional[CodeRunner] = None,
    ) -> None:
        self.hooks = hooks
        self.engine = OverlayEngine(
            config=config,
            renderer=TextualWidgetRenderer(hooks),
            ticker=ticker,
            runner=runner,
            error_handler=self._report_error,
        )
        self._subscribe_events()

    @property
    def overlay(self) -> Optional[Overlay]:
        return self.engine.overlay

    def load(self, tree: DocumentTree) -> Overlay:
        overlay = self.engine.init(tree)
        self._log_state("load ->", version=tree.version, widgets=len(overlay))
        return overlay

    def dispatch(self, transaction: Transaction) -> Overlay:
        overlay = self.engine.apply(transaction)
        self._log_state(
            "apply ->",
            label=transaction.label,
            doc_changed=transaction.doc_changed,
            origin=overlay.origin.value,
            widgets=len(overlay),
        )
        return overlay

    def run(self, anchor: int) -> Optional[RunOutcome]:
        try:
            outcome = self.engine.request_run(anchor)
        except RunnerUnavailableError as exc:
            self.hooks.update_status(str(exc))
            return None
        status = "run:error" if outcome.error else "run:ok"
        if not outcome.output and not outcome.error:
            status = NO_OUTPUT_MESSAGE
        self.hooks.update_status(status)
        return outcome

    def close(self) -> None:
        try:
            self.engine.destroy()
        finally:
            self.engine.bus.clear()
        self._log_state("closed ->")

    def _subscribe_events(self) -> None:
        for event in ENGINE_EVENTS:
            self.engine.bus.subscribe(
                event, lambda payload, name=event: self._handle_event(name, payload)
            )

    def _handle_event(self, name: str, payload: object | None) -> None:
        if isinstance(payload, WidgetContainer):
            self._log_state("event ->", event=name, anchor=payload.anchor)
        elif isinstance(payload, Overlay):
            self._log_state("event ->", event=name, widgets=len(payload))
        else:
            self._log_state("event ->", event=name, payload=payload)

    def _report_error(self, error: Exception) -> None:
        self.hooks.update_status(f"error: {error}")
        self._log_state("error ->", error=repr(error))

    def _log_state(self, prefix: str, **fields: object) -> None:
        snapshot: Dict[str, object] = self._state_metadata()
        snapshot.update({k: v for k, v in fields.items() if v is not None})
        parts = [prefix]
        for key, value in snapshot.items():
            parts.append(f"{key}={value!r}")
        self.hooks.log(" ".join(parts))

    def _state_metadata(self) -> Dict[str, object]:
        tree = self.engine.tree
        return {
            "version": tree.version if tree is not None else None,
            "containers": len(self.engine.cache),
            "render_pending": self.engine.scheduler.pending,
        }


__all__ = [
    "NO_OUTPUT_MESSAGE",
    "TextualOverlayAdapter",
    "TextualOverlayHooks",
    "TextualTicker",
    "TextualWidgetRenderer",
    "format_runner_panel",
]

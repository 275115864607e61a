"""Long-lived widget containers and the renderer boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from overlay_engine.overlay import WidgetDescriptor


@dataclass(slots=True)
class RunState:
    """In-widget state that must survive edits to the surrounding document."""

    running: bool = False
    output: str = ""
    error: str = ""

    @property
    def has_result(self) -> bool:
        return bool(self.output or self.error)


class WidgetContainer:
    """Mutable handle backing one rendered widget.

    Containers never reference tree nodes; they only keep the payload of the
    last descriptor they were hydrated from. ``handle`` is reserved for the
    renderer (for example the host toolkit widget it mounted).
    """

    def __init__(self, anchor: int, *, class_name: str) -> None:
        self.anchor = anchor
        self.class_name = class_name
        self.attributes: Dict[str, str] = {}
        self.descriptor: Optional[WidgetDescriptor] = None
        self.run = RunState()
        self.render_count = 0
        self.handle: object | None = None
        self._connected = False
        self._destroyed = False

    @property
    def is_connected(self) -> bool:
        return self._connected and not self._destroyed

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    def attach(self) -> None:
        if self._destroyed:
            raise RuntimeError(f"Container at {self.anchor} was destroyed")
        self._connected = True

    def detach(self) -> None:
        self._connected = False

    def mark_destroyed(self) -> None:
        self._connected = False
        self._destroyed = True

    def hydrate(self, descriptor: WidgetDescriptor, renderer: "WidgetRenderer") -> None:
        payload = descriptor.payload
        self.descriptor = descriptor
        self.attributes["data-code-pos"] = str(payload.block_position)
        self.attributes["data-code-content"] = payload.source
        self.attributes["data-language"] = payload.language
        self.render_count += 1
        renderer.render(self, descriptor)

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else (
            "connected" if self._connected else "detached"
        )
        return f"WidgetContainer(anchor={self.anchor}, {state})"


class WidgetRenderer(Protocol):
    """Host-side drawing of container contents."""

    def mount(self, container: WidgetContainer) -> None:
        """Prepare host resources for a freshly created container."""
        ...

    def render(self, container: WidgetContainer, descriptor: WidgetDescriptor) -> None:
        """Draw ``descriptor`` into ``container``."""
        ...

    def unmount(self, container: WidgetContainer) -> None:
        """Release whatever ``mount`` and ``render`` acquired."""
        ...


class NullRenderer:
    def mount(self, container: WidgetContainer) -> None:
        del container

    def render(self, container: WidgetContainer, descriptor: WidgetDescriptor) -> None:
        del container, descriptor

    def unmount(self, container: WidgetContainer) -> None:
        del container


__all__ = ["NullRenderer", "RunState", "WidgetContainer", "WidgetRenderer"]

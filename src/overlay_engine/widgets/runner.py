"""Boundary to the code execution sandbox."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from overlay_engine.overlay import WidgetDescriptor

from .container import WidgetContainer


@dataclass(frozen=True, slots=True)
class RunOutcome:
    output: str = ""
    error: str = ""


@dataclass(frozen=True, slots=True)
class RunTicket:
    """An in-flight run, bound to its container rather than to a position.

    The container may be rekeyed while the run is pending; ``anchor`` always
    reports where it lives now.
    """

    container: WidgetContainer
    descriptor: WidgetDescriptor

    @property
    def anchor(self) -> int:
        return self.container.anchor


class CodeRunner(Protocol):
    def run(self, source: str, language: str) -> RunOutcome:
        """Execute ``source`` and return captured stdout/stderr."""
        ...


class RunnerUnavailableError(RuntimeError):
    """Raised when a run is requested but no runner was configured."""


__all__ = ["CodeRunner", "RunOutcome", "RunTicket", "RunnerUnavailableError"]

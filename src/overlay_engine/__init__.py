"""Incremental code-runner overlay engine for structured-document editors."""

from .engine import Decoration, EngineDisposedError, OverlayEngine, UnknownAnchorError

__all__ = [
    "Decoration",
    "EngineDisposedError",
    "OverlayEngine",
    "UnknownAnchorError",
    "adapters",
    "document",
    "overlay",
    "runtime",
    "widgets",
]

__version__ = "0.1.0"

"""Textual host adapter for the overlay engine."""

from .controller import (
    TextualOverlayAdapter,
    TextualOverlayHooks,
    TextualTicker,
    TextualWidgetRenderer,
    format_runner_panel,
)

__all__ = [
    "TextualOverlayAdapter",
    "TextualOverlayHooks",
    "TextualTicker",
    "TextualWidgetRenderer",
    "format_runner_panel",
]

"""Scanning, overlay construction, and position remapping."""

from .builder import build_overlay
from .descriptors import (
    CodeRunnerPayload,
    Overlay,
    OverlayOrigin,
    Side,
    WidgetDescriptor,
    WidgetKind,
)
from .remap import RemapResult, remap_overlay
from .scanner import BlockMatch, is_executable_block, scan_blocks

__all__ = [
    "BlockMatch",
    "CodeRunnerPayload",
    "Overlay",
    "OverlayOrigin",
    "RemapResult",
    "Side",
    "WidgetDescriptor",
    "WidgetKind",
    "build_overlay",
    "is_executable_block",
    "remap_overlay",
    "scan_blocks",
]

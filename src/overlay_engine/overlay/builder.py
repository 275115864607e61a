"""Turn block matches into an overlay."""

from __future__ import annotations

from typing import Iterable

from overlay_engine.document import DocumentTree

from .descriptors import Overlay, OverlayOrigin, WidgetDescriptor
from .scanner import BlockMatch


def build_overlay(tree: DocumentTree, matches: Iterable[BlockMatch]) -> Overlay:
    descriptors = tuple(
        WidgetDescriptor.code_runner(
            match.anchor,
            source=match.source,
            language=match.language,
            block_position=match.position,
        )
        for match in matches
    )
    return Overlay(
        descriptors=descriptors, version=tree.version, origin=OverlayOrigin.BUILT
    )


__all__ = ["build_overlay"]

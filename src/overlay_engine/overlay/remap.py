"""Carry an overlay across a transaction that left content untouched."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from overlay_engine.document import Mapping

from .descriptors import Overlay, OverlayOrigin, WidgetDescriptor


@dataclass(frozen=True, slots=True)
class RemapResult:
    overlay: Overlay
    moves: Dict[int, int] = field(default_factory=dict)
    dropped: tuple[int, ...] = ()


def remap_overlay(overlay: Overlay, mapping: Mapping, *, version: int) -> RemapResult:
    """Map every anchor through ``mapping``.

    Descriptors whose anchor was deleted are dropped. If two anchors land on
    the same position only the first survives.
    """

    descriptors: List[WidgetDescriptor] = []
    moves: Dict[int, int] = {}
    dropped: List[int] = []
    seen: set[int] = set()
    for descriptor in overlay:
        anchor = mapping.map(descriptor.anchor, assoc=descriptor.side.assoc)
        if anchor is None or anchor in seen:
            dropped.append(descriptor.anchor)
            continue
        seen.add(anchor)
        block_position = mapping.map_result(descriptor.payload.block_position).pos
        descriptors.append(descriptor.moved(anchor, block_position=block_position))
        moves[descriptor.anchor] = anchor

    remapped = Overlay(
        descriptors=tuple(descriptors), version=version, origin=OverlayOrigin.REMAPPED
    )
    return RemapResult(overlay=remapped, moves=moves, dropped=tuple(dropped))


__all__ = ["RemapResult", "remap_overlay"]

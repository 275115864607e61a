"""Widget descriptors and the immutable overlay that groups them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Optional, Union


class WidgetKind(str, Enum):
    CODE_RUNNER = "code_runner"


class Side(int, Enum):
    """Which side of the anchor a widget sits on."""

    BEFORE = -1
    AFTER = 1

    @property
    def assoc(self) -> int:
        # A widget placed after its anchor belongs to the content before it.
        return -1 if self is Side.AFTER else 1


class OverlayOrigin(str, Enum):
    BUILT = "built"
    REMAPPED = "remapped"


@dataclass(frozen=True, slots=True)
class CodeRunnerPayload:
    """Snapshot of a code block taken when its descriptor was built."""

    source: str
    language: str
    block_position: int


WidgetPayload = Union[CodeRunnerPayload]


@dataclass(frozen=True, slots=True)
class WidgetDescriptor:
    """A widget must exist at ``anchor`` carrying ``payload``."""

    kind: WidgetKind
    anchor: int
    payload: WidgetPayload
    side: Side = Side.AFTER

    def __post_init__(self) -> None:
        if self.anchor < 0:
            raise ValueError("anchor cannot be negative")
        if self.kind is WidgetKind.CODE_RUNNER and not isinstance(
            self.payload, CodeRunnerPayload
        ):
            raise TypeError("code runner descriptors require a CodeRunnerPayload")

    @classmethod
    def code_runner(
        cls, anchor: int, *, source: str, language: str, block_position: int
    ) -> "WidgetDescriptor":
        return cls(
            kind=WidgetKind.CODE_RUNNER,
            anchor=anchor,
            payload=CodeRunnerPayload(
                source=source, language=language, block_position=block_position
            ),
        )

    def moved(self, anchor: int, *, block_position: Optional[int] = None) -> "WidgetDescriptor":
        payload = self.payload
        if block_position is not None:
            payload = replace(payload, block_position=block_position)
        return replace(self, anchor=anchor, payload=payload)


@dataclass(frozen=True, slots=True)
class Overlay:
    """Complete descriptor set for one tree version, ordered by anchor."""

    descriptors: tuple[WidgetDescriptor, ...] = ()
    version: int = 0
    origin: OverlayOrigin = OverlayOrigin.BUILT

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.descriptors, key=lambda item: item.anchor))
        anchors = [item.anchor for item in ordered]
        if len(set(anchors)) != len(anchors):
            raise ValueError("overlay anchors must be unique")
        object.__setattr__(self, "descriptors", ordered)

    @property
    def active_positions(self) -> frozenset[int]:
        return frozenset(item.anchor for item in self.descriptors)

    def find(self, anchor: int) -> Optional[WidgetDescriptor]:
        for descriptor in self.descriptors:
            if descriptor.anchor == anchor:
                return descriptor
        return None

    def __iter__(self) -> Iterator[WidgetDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)


__all__ = [
    "CodeRunnerPayload",
    "Overlay",
    "OverlayOrigin",
    "Side",
    "WidgetDescriptor",
    "WidgetKind",
    "WidgetPayload",
]

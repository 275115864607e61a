"""Position mapping between consecutive tree versions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class MapResult:
    pos: int
    deleted: bool = False


@dataclass(frozen=True, slots=True)
class StepMap:
    """Replacement of ``old_size`` positions at ``start`` by ``new_size`` ones."""

    start: int
    old_size: int
    new_size: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.old_size < 0 or self.new_size < 0:
            raise ValueError("StepMap fields must be non-negative")

    def map_result(self, pos: int, assoc: int = 1) -> MapResult:
        start = self.start
        end = start + self.old_size
        if pos < start:
            return MapResult(pos)
        if pos > end:
            return MapResult(pos + self.new_size - self.old_size)
        if self.old_size == 0:
            return MapResult(start + self.new_size if assoc > 0 else start)
        if pos == start:
            return MapResult(start)
        if pos == end:
            return MapResult(start + self.new_size)
        return MapResult(start + self.new_size if assoc > 0 else start, deleted=True)


class Mapping:
    """Ordered chain of step maps.

    ``map`` returns ``None`` when the content around the position was
    deleted by any step in the chain.
    """

    def __init__(self, maps: Iterable[StepMap] = ()) -> None:
        self._maps: tuple[StepMap, ...] = tuple(maps)

    @property
    def maps(self) -> tuple[StepMap, ...]:
        return self._maps

    def appended(self, step_map: StepMap) -> "Mapping":
        return Mapping(self._maps + (step_map,))

    def map_result(self, pos: int, assoc: int = 1) -> MapResult:
        deleted = False
        for step_map in self._maps:
            result = step_map.map_result(pos, assoc)
            pos = result.pos
            deleted = deleted or result.deleted
        return MapResult(pos, deleted)

    def map(self, pos: int, assoc: int = 1) -> Optional[int]:
        result = self.map_result(pos, assoc)
        return None if result.deleted else result.pos

    def __len__(self) -> int:
        return len(self._maps)

    def __repr__(self) -> str:
        return f"Mapping({list(self._maps)!r})"


__all__ = ["MapResult", "Mapping", "StepMap"]

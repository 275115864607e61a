"""Validation helpers shared by tree edits."""

from __future__ import annotations


class PositionError(ValueError):
    """Raised when an edit targets a position the tree cannot address."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


def ensure_position(size: int, position: int) -> int:
    if position < 0 or position > size:
        raise PositionError(
            f"Position {position} outside document of size {size}", position=position
        )
    return position


def ensure_range(size: int, start: int, end: int) -> tuple[int, int]:
    ensure_position(size, start)
    ensure_position(size, end)
    if end < start:
        raise PositionError(f"Range end {end} before start {start}", position=end)
    return start, end

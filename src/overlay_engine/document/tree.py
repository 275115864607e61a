"""Versioned, immutable document tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Sequence

from .node import DocumentNode
from .validation import PositionError, ensure_position

NodeRewrite = Callable[[DocumentNode], Sequence[DocumentNode]]


@dataclass(frozen=True, slots=True)
class DocumentTree:
    """Top-level block sequence plus a version counter.

    The root has no opening token: its first child starts at position 0.
    Every edit helper returns a new tree with ``version`` bumped by one.
    """

    children: tuple[DocumentNode, ...] = ()
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))

    @classmethod
    def from_blocks(cls, *blocks: DocumentNode, version: int = 0) -> "DocumentTree":
        return cls(children=blocks, version=version)

    @property
    def size(self) -> int:
        return sum(child.size for child in self.children)

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.children)

    def descendants(self) -> Iterator[tuple[DocumentNode, int]]:
        """Yield every block node with its position, in document order."""

        yield from _walk(self.children, 0)

    def nodes_between(self, start: int, end: int) -> Iterator[tuple[DocumentNode, int]]:
        """Yield nodes whose span overlaps ``[start, end]``.

        An empty range only touches nodes that strictly contain it, so an
        insertion at a block boundary does not count as touching either
        neighbour.
        """

        for node, pos in self.descendants():
            node_end = pos + node.size
            if start == end:
                if pos < start < node_end:
                    yield node, pos
            elif pos < end and node_end > start:
                yield node, pos

    def node_at(self, pos: int) -> Optional[DocumentNode]:
        for node, node_pos in self.descendants():
            if node_pos == pos:
                return node
            if node_pos > pos:
                break
        return None

    def textblock_at(self, pos: int) -> tuple[DocumentNode, int]:
        """Return the textblock whose content range contains ``pos``."""

        ensure_position(self.size, pos)
        for node, node_pos in self.descendants():
            if node.is_textblock and node_pos < pos <= node_pos + 1 + len(node.text):
                return node, node_pos
        raise PositionError(f"Position {pos} is not inside a textblock", position=pos)

    def rewrite_node(self, pos: int, rewrite: NodeRewrite) -> "DocumentTree":
        """Replace the node starting at ``pos`` with ``rewrite(node)``."""

        ensure_position(self.size, pos)
        children = _rewrite(self.children, 0, pos, rewrite)
        return DocumentTree(children=children, version=self.version + 1)

    def insert_nodes(self, pos: int, nodes: Iterable[DocumentNode]) -> "DocumentTree":
        """Insert ``nodes`` at the sibling boundary ``pos``."""

        ensure_position(self.size, pos)
        children = _insert(self.children, 0, pos, tuple(nodes))
        return DocumentTree(children=children, version=self.version + 1)


def _walk(
    children: Sequence[DocumentNode], offset: int
) -> Iterator[tuple[DocumentNode, int]]:
    pos = offset
    for child in children:
        yield child, pos
        if child.children:
            yield from _walk(child.children, pos + 1)
        pos += child.size


def _rewrite(
    children: Sequence[DocumentNode], offset: int, target: int, rewrite: NodeRewrite
) -> tuple[DocumentNode, ...]:
    pos = offset
    for index, child in enumerate(children):
        end = pos + child.size
        if pos == target:
            return (
                tuple(children[:index])
                + tuple(rewrite(child))
                + tuple(children[index + 1 :])
            )
        if pos < target < end and child.children:
            inner = _rewrite(child.children, pos + 1, target, rewrite)
            return (
                tuple(children[:index])
                + (child.with_children(inner),)
                + tuple(children[index + 1 :])
            )
        pos = end
    raise PositionError(f"No node starts at position {target}", position=target)


def _insert(
    children: Sequence[DocumentNode],
    offset: int,
    target: int,
    nodes: tuple[DocumentNode, ...],
) -> tuple[DocumentNode, ...]:
    pos = offset
    for index, child in enumerate(children):
        if pos == target:
            return tuple(children[:index]) + nodes + tuple(children[index:])
        end = pos + child.size
        if pos < target < end:
            if not child.children:
                raise PositionError(
                    f"Position {target} is inside leaf block '{child.kind}'",
                    position=target,
                )
            inner = _insert(child.children, pos + 1, target, nodes)
            return (
                tuple(children[:index])
                + (child.with_children(inner),)
                + tuple(children[index + 1 :])
            )
        pos = end
    if pos == target:
        return tuple(children) + nodes
    raise PositionError(f"Position {target} is not a block boundary", position=target)


__all__ = ["DocumentTree"]

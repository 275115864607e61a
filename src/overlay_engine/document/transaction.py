"""Transactions describing the move from one tree version to the next."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import ContextManager, Optional

from overlay_engine.runtime import telemetry

from .mapping import Mapping, StepMap
from .node import DocumentNode
from .tree import DocumentTree
from .validation import PositionError, ensure_position, ensure_range


@dataclass(frozen=True, slots=True)
class TouchedRange:
    """Span a step touched, expressed against the tree it was applied to."""

    tree: DocumentTree
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Transaction:
    before: DocumentTree
    after: DocumentTree
    mapping: Mapping = field(default_factory=Mapping)
    doc_changed: bool = False
    touched: tuple[TouchedRange, ...] = ()
    selection: Optional[int] = None
    label: str = "transaction"

    @classmethod
    def selection_only(
        cls, tree: DocumentTree, selection: Optional[int] = None
    ) -> "Transaction":
        return cls(before=tree, after=tree, selection=selection, label="selection")


class TransactionBuilder(AbstractContextManager["TransactionBuilder"]):
    """Accumulates edit steps against a tree and produces a ``Transaction``."""

    def __init__(self, tree: DocumentTree, *, label: str = "transaction") -> None:
        self.before = tree
        self.label = label
        self._tree = tree
        self._mapping = Mapping()
        self._touched: list[TouchedRange] = []
        self._selection: Optional[int] = None
        self._changed = False
        self._span_cm: Optional[ContextManager[object]] = None

    @property
    def tree(self) -> DocumentTree:
        return self._tree

    def __enter__(self) -> "TransactionBuilder":
        self._span_cm = telemetry.span(
            name=f"document::{self.label}",
            component="document",
            metadata={"version": self.before.version},
        )
        self._span_cm.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._span_cm is not None:
            self._span_cm.__exit__(exc_type, exc, tb)
            self._span_cm = None
        return False

    def insert_text(self, pos: int, text: str) -> "TransactionBuilder":
        node, node_pos = self._tree.textblock_at(pos)
        offset = pos - node_pos - 1
        updated = node.with_text(node.text[:offset] + text + node.text[offset:])
        after = self._tree.rewrite_node(node_pos, lambda _node: (updated,))
        return self._step(after, pos, pos, StepMap(pos, 0, len(text)), len(text))

    def delete_text(self, start: int, end: int) -> "TransactionBuilder":
        ensure_range(self._tree.size, start, end)
        node, node_pos = self._tree.textblock_at(start)
        content_end = node_pos + 1 + len(node.text)
        if end > content_end:
            raise PositionError(
                f"Range {start}-{end} spans beyond textblock '{node.kind}'",
                position=end,
            )
        lo, hi = start - node_pos - 1, end - node_pos - 1
        updated = node.with_text(node.text[:lo] + node.text[hi:])
        after = self._tree.rewrite_node(node_pos, lambda _node: (updated,))
        return self._step(after, start, end, StepMap(start, end - start, 0), 0)

    def set_node_attrs(self, pos: int, **attrs: object) -> "TransactionBuilder":
        node = self._require_node(pos)
        after = self._tree.rewrite_node(pos, lambda current: (current.with_attrs(**attrs),))
        end = pos + node.size
        self._touched.append(TouchedRange(self._tree, pos, end))
        self._touched.append(TouchedRange(after, pos, end))
        self._tree = after
        self._changed = True
        return self

    def set_node_kind(self, pos: int, kind: str) -> "TransactionBuilder":
        node = self._require_node(pos)
        replacement = DocumentNode(
            kind=kind,
            attrs=node.attrs,
            text=node.text,
            children=node.children,
            atom=node.atom,
        )
        after = self._tree.rewrite_node(pos, lambda _node: (replacement,))
        end = pos + node.size
        self._touched.append(TouchedRange(self._tree, pos, end))
        self._touched.append(TouchedRange(after, pos, end))
        self._tree = after
        self._changed = True
        return self

    def insert_node(self, pos: int, *nodes: DocumentNode) -> "TransactionBuilder":
        size = sum(node.size for node in nodes)
        after = self._tree.insert_nodes(pos, nodes)
        return self._step(after, pos, pos, StepMap(pos, 0, size), size)

    def delete_node(self, pos: int) -> "TransactionBuilder":
        node = self._require_node(pos)
        after = self._tree.rewrite_node(pos, lambda _node: ())
        return self._step(
            after, pos, pos + node.size, StepMap(pos, node.size, 0), 0
        )

    def set_selection(self, pos: int) -> "TransactionBuilder":
        self._selection = ensure_position(self._tree.size, pos)
        return self

    def build(self) -> Transaction:
        after = self._tree
        if self._changed:
            after = DocumentTree(children=after.children, version=self.before.version + 1)
        return Transaction(
            before=self.before,
            after=after,
            mapping=self._mapping,
            doc_changed=self._changed,
            touched=tuple(self._touched),
            selection=self._selection,
            label=self.label,
        )

    def _require_node(self, pos: int) -> DocumentNode:
        node = self._tree.node_at(ensure_position(self._tree.size, pos))
        if node is None:
            raise PositionError(f"No node starts at position {pos}", position=pos)
        return node

    def _step(
        self,
        after: DocumentTree,
        start: int,
        end: int,
        step_map: StepMap,
        inserted: int,
    ) -> "TransactionBuilder":
        self._touched.append(TouchedRange(self._tree, start, end))
        self._touched.append(TouchedRange(after, start, start + inserted))
        self._mapping = self._mapping.appended(step_map)
        if self._selection is not None:
            self._selection = step_map.map_result(self._selection).pos
        self._tree = after
        self._changed = True
        return self


__all__ = ["TouchedRange", "Transaction", "TransactionBuilder"]

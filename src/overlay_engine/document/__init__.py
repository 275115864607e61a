"""Immutable document model, position mapping, and transactions."""

from .mapping import MapResult, Mapping, StepMap
from .markdown import parse_markdown
from .node import DocumentNode, atom, code_block, container, paragraph, textblock
from .transaction import TouchedRange, Transaction, TransactionBuilder
from .tree import DocumentTree
from .validation import PositionError, ensure_position

__all__ = [
    "DocumentNode",
    "DocumentTree",
    "MapResult",
    "Mapping",
    "PositionError",
    "StepMap",
    "TouchedRange",
    "Transaction",
    "TransactionBuilder",
    "atom",
    "code_block",
    "container",
    "ensure_position",
    "paragraph",
    "parse_markdown",
    "textblock",
]

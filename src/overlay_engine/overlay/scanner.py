"""Find executable code blocks in a document tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection

from overlay_engine.document import DocumentNode, DocumentTree
from overlay_engine.runtime.config import DEFAULT_BLOCK_KINDS, DEFAULT_LANGUAGES


@dataclass(frozen=True, slots=True)
class BlockMatch:
    node: DocumentNode
    position: int

    @property
    def anchor(self) -> int:
        return self.position + self.node.size

    @property
    def language(self) -> str:
        return self.node.language or ""

    @property
    def source(self) -> str:
        return self.node.text_content


def is_executable_block(
    node: DocumentNode,
    *,
    kinds: Collection[str] = DEFAULT_BLOCK_KINDS,
    languages: Collection[str] = DEFAULT_LANGUAGES,
) -> bool:
    language = node.language
    return node.kind in kinds and language is not None and language in languages


def scan_blocks(
    tree: DocumentTree,
    *,
    kinds: Collection[str] = DEFAULT_BLOCK_KINDS,
    languages: Collection[str] = DEFAULT_LANGUAGES,
) -> tuple[BlockMatch, ...]:
    """Return matching blocks in ascending position order."""

    return tuple(
        BlockMatch(node=node, position=pos)
        for node, pos in tree.descendants()
        if is_executable_block(node, kinds=kinds, languages=languages)
    )


__all__ = ["BlockMatch", "is_executable_block", "scan_blocks"]

"""Load a small markdown subset into a ``DocumentTree``.

Only what the demo and tests need: ATX headings, paragraphs, fenced code
(``code_fence`` nodes carrying the info string as ``language``), bullet
lists, and horizontal rules.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .node import DocumentNode, atom, container, paragraph, textblock
from .tree import DocumentTree

_HEADING = re.compile(r"^(#{1,6})\s+(.*)$")
_FENCE = re.compile(r"^(```|~~~)\s*([^\s`]*)\s*$")
_BULLET = re.compile(r"^[-*+]\s+(.*)$")
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})\s*$")


def parse_markdown(text: str, *, version: int = 0) -> DocumentTree:
    blocks: List[DocumentNode] = []
    pending: List[str] = []
    items: List[DocumentNode] = []
    lines = text.splitlines()
    index = 0

    def flush_paragraph() -> None:
        if pending:
            blocks.append(paragraph(" ".join(line.strip() for line in pending)))
            pending.clear()

    def flush_list() -> None:
        if items:
            blocks.append(container("bullet_list", *items))
            items.clear()

    while index < len(lines):
        line = lines[index]
        fence = _FENCE.match(line)
        if fence:
            flush_paragraph()
            flush_list()
            marker, info = fence.group(1), fence.group(2)
            body: List[str] = []
            index += 1
            while index < len(lines) and not lines[index].startswith(marker):
                body.append(lines[index])
                index += 1
            blocks.append(_fence("\n".join(body), info or None))
            index += 1
            continue

        if not line.strip():
            flush_paragraph()
            flush_list()
        elif _RULE.match(line):
            flush_paragraph()
            flush_list()
            blocks.append(atom("horizontal_rule"))
        elif heading := _HEADING.match(line):
            flush_paragraph()
            flush_list()
            blocks.append(
                textblock("heading", heading.group(2).strip(), level=len(heading.group(1)))
            )
        elif bullet := _BULLET.match(line):
            flush_paragraph()
            items.append(container("list_item", paragraph(bullet.group(1).strip())))
        else:
            flush_list()
            pending.append(line)
        index += 1

    flush_paragraph()
    flush_list()
    return DocumentTree.from_blocks(*blocks, version=version)


def _fence(source: str, language: Optional[str]) -> DocumentNode:
    attrs = {"language": language} if language else {}
    return DocumentNode(kind="code_fence", attrs=attrs, text=source)


__all__ = ["parse_markdown"]

"""Immutable document nodes with linear position sizes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True, slots=True)
class DocumentNode:
    """Block-level node of a document tree.

    A node either holds text (a textblock), holds child blocks, or is an
    atom. Sizes follow the usual linear addressing: opening and closing
    tokens count one position each, text counts one per character and an
    atom occupies a single position.
    """

    kind: str
    attrs: Mapping[str, object] = field(default_factory=dict)
    text: str = ""
    children: tuple["DocumentNode", ...] = ()
    atom: bool = False

    def __post_init__(self) -> None:
        if not self.kind:
            raise ValueError("kind cannot be empty")
        if self.atom and (self.children or self.text):
            raise ValueError(f"atom node '{self.kind}' cannot hold content")
        if self.children and self.text:
            raise ValueError(f"node '{self.kind}' cannot hold both text and children")
        object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))
        object.__setattr__(self, "children", tuple(self.children))

    @property
    def is_textblock(self) -> bool:
        return not self.atom and not self.children

    @property
    def content_size(self) -> int:
        if self.atom:
            return 0
        if self.children:
            return sum(child.size for child in self.children)
        return len(self.text)

    @property
    def size(self) -> int:
        if self.atom:
            return 1
        return self.content_size + 2

    @property
    def text_content(self) -> str:
        if self.children:
            return "".join(child.text_content for child in self.children)
        return self.text

    @property
    def language(self) -> Optional[str]:
        value = self.attrs.get("language")
        return value if isinstance(value, str) else None

    def with_attrs(self, **attrs: object) -> "DocumentNode":
        """Return a copy with ``attrs`` merged in; ``None`` removes a key."""

        merged = dict(self.attrs)
        for key, value in attrs.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return replace(self, attrs=merged)

    def with_text(self, text: str) -> "DocumentNode":
        if not self.is_textblock:
            raise ValueError(f"node '{self.kind}' does not hold text")
        return replace(self, text=text)

    def with_children(self, children: Iterable["DocumentNode"]) -> "DocumentNode":
        return replace(self, children=tuple(children))


def textblock(kind: str, text: str = "", **attrs: object) -> DocumentNode:
    return DocumentNode(kind=kind, attrs=attrs, text=text)


def container(kind: str, *children: DocumentNode, **attrs: object) -> DocumentNode:
    return DocumentNode(kind=kind, attrs=attrs, children=children)


def atom(kind: str, **attrs: object) -> DocumentNode:
    return DocumentNode(kind=kind, attrs=attrs, atom=True)


def paragraph(text: str = "") -> DocumentNode:
    return textblock("paragraph", text)


def code_block(
    text: str = "", language: Optional[str] = None, *, kind: str = "code_block"
) -> DocumentNode:
    attrs = {"language": language} if language is not None else {}
    return DocumentNode(kind=kind, attrs=attrs, text=text)


__all__ = [
    "DocumentNode",
    "atom",
    "code_block",
    "container",
    "paragraph",
    "textblock",
]

"""Markdown helpers and the documentation fragment accumulator."""
from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


def unescape(markdown: Optional[str]) -> str:
    """Decode HTML entities found in FHIR markdown values."""

    if not markdown:
        return ""
    return html.unescape(markdown)


def escape(markdown: Optional[str], *, table: bool = False) -> str:
    """Flatten *markdown* onto one line, optionally escaping table pipes."""

    if not markdown:
        return ""
    text = markdown.replace("\r", "<br/>").replace("\n", "")
    if table:
        text = text.replace("|", "&#124;")
    return text


def escape_pipes(text: str) -> str:
    return text.replace("|", "&#124;")


@dataclass(frozen=True, slots=True)
class DocFragments:
    """Ordered, immutable list of documentation fragments.

    Fragments are joined verbatim; callers choose their own separators so
    each fragment can be asserted on in isolation.
    """

    parts: Tuple[str, ...] = ()

    def add(self, *fragments: Optional[str]) -> "DocFragments":
        kept = tuple(fragment for fragment in fragments if fragment)
        if not kept:
            return self
        return DocFragments(self.parts + kept)

    def extend(self, other: "DocFragments | Iterable[str]") -> "DocFragments":
        if isinstance(other, DocFragments):
            return self.add(*other.parts)
        return self.add(*other)

    def render(self) -> str:
        return "".join(self.parts)

    def __bool__(self) -> bool:
        return bool(self.parts)


__all__ = ["DocFragments", "escape", "escape_pipes", "unescape"]

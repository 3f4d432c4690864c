"""Derive retrieval hints from a student's question."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

_PAGE_HINT_RE = re.compile(r"page\s+(\d{1,3})", re.IGNORECASE)
_GRAPH_INTENT_RE = re.compile(
    r"figure|graph|chart|diagram|plot|curve|illustration|image|visual", re.IGNORECASE
)
_KEYWORD_RE = re.compile(r"[a-z]{4,}")


@dataclass(frozen=True, slots=True)
class QueryContext:
    page_hint: Optional[int] = None
    graph_intent: bool = False
    keywords: frozenset[str] = field(default_factory=frozenset)


def analyze(question: str, explicit_page_hint: Optional[int] = None) -> QueryContext:
    """Extract the page hint, graph intent and keyword set of ``question``."""

    question = question or ""
    page_hint = explicit_page_hint
    if page_hint is None:
        match = _PAGE_HINT_RE.search(question)
        if match:
            page_hint = int(match.group(1))

    return QueryContext(
        page_hint=page_hint,
        graph_intent=bool(_GRAPH_INTENT_RE.search(question)),
        keywords=frozenset(_KEYWORD_RE.findall(question.lower())),
    )


__all__ = ["QueryContext", "analyze"]

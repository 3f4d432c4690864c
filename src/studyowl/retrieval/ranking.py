"""TF-IDF relevance ranking with a boost for figure-bearing fragments."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from studyowl.ingest.models import Fragment

from .query import QueryContext

GRAPH_BOOST = 10.0
TOP_GRAPH_FRAGMENTS = 5
TOP_CONTEXT_FRAGMENTS = 3

_GRAPH_MARKER_RE = re.compile(
    r"\[graph (structure|interpretation)\]|\[figure \d+\]", re.IGNORECASE
)


@dataclass(frozen=True, slots=True)
class ScoredFragment:
    fragment: Fragment
    score: float
    position: int


def has_graph_marker(content: str) -> bool:
    return bool(_GRAPH_MARKER_RE.search(content or ""))


def _term_patterns(keywords: Iterable[str]) -> dict[str, re.Pattern[str]]:
    return {keyword: re.compile(rf"\b{re.escape(keyword)}\b") for keyword in sorted(keywords)}


def score_fragments(candidates: Sequence[Fragment], query: QueryContext) -> list[ScoredFragment]:
    """Score every candidate, preserving input order."""

    patterns = _term_patterns(query.keywords)
    lowered = [(fragment.content or "").lower() for fragment in candidates]
    total = len(candidates)
    idf = {
        keyword: math.log(
            (total + 1) / (sum(1 for text in lowered if pattern.search(text)) + 1)
        )
        for keyword, pattern in patterns.items()
    }

    scored: list[ScoredFragment] = []
    for position, (fragment, text) in enumerate(zip(candidates, lowered)):
        score = 0.0
        if query.graph_intent and has_graph_marker(text):
            score += GRAPH_BOOST
        word_count = len(text.split()) or 1
        for keyword, pattern in patterns.items():
            matches = len(pattern.findall(text))
            score += (matches / word_count) * idf[keyword]
        scored.append(ScoredFragment(fragment=fragment, score=score, position=position))
    return scored


def representatives_per_page(scored: Sequence[ScoredFragment]) -> list[Fragment]:
    """Pick the best-scoring (then longest) fragment of each page, pages ascending."""

    best: dict[int, ScoredFragment] = {}
    for item in scored:
        current = best.get(item.fragment.page_number)
        if current is None or _representative_key(item) > _representative_key(current):
            best[item.fragment.page_number] = item
    return [best[page].fragment for page in sorted(best)]


def _representative_key(item: ScoredFragment) -> tuple[float, int, int]:
    return (item.score, len(item.fragment.content or ""), -item.position)


def rank(candidates: Sequence[Fragment], query: QueryContext) -> list[Fragment]:
    """Select the fragments to show the answering model, best first."""

    if not candidates:
        return []

    scored = score_fragments(candidates, query)
    if not query.keywords:
        return representatives_per_page(scored)

    if query.graph_intent:
        marked = [item for item in scored if has_graph_marker(item.fragment.content)]
        if marked:
            hint = query.page_hint
            marked.sort(
                key=lambda item: (
                    -item.score,
                    0 if hint is not None and item.fragment.page_number == hint else 1,
                    item.position,
                )
            )
            others = [item for item in scored if not has_graph_marker(item.fragment.content)]
            others.sort(key=lambda item: (-item.score, item.position))
            return [
                item.fragment
                for item in marked[:TOP_GRAPH_FRAGMENTS] + others[:TOP_CONTEXT_FRAGMENTS]
            ]

    ordered = sorted(scored, key=lambda item: (-item.score, item.position))
    selected = [item.fragment for item in ordered[:TOP_CONTEXT_FRAGMENTS] if item.score > 0]
    if selected:
        return selected
    return representatives_per_page(scored)


__all__ = [
    "GRAPH_BOOST",
    "ScoredFragment",
    "TOP_CONTEXT_FRAGMENTS",
    "TOP_GRAPH_FRAGMENTS",
    "has_graph_marker",
    "rank",
    "representatives_per_page",
    "score_fragments",
]

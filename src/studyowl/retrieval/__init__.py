"""Query-time fragment selection."""
from __future__ import annotations

from .context import assemble
from .filtering import filter_candidates
from .query import QueryContext, analyze
from .ranking import ScoredFragment, rank, score_fragments

__all__ = [
    "QueryContext",
    "ScoredFragment",
    "analyze",
    "assemble",
    "filter_candidates",
    "rank",
    "score_fragments",
]

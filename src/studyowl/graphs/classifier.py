"""Keyword scoring of text against the graph template catalog."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .catalog import GraphCatalog, GraphTemplate, default_catalog


@dataclass(frozen=True, slots=True)
class Classification:
    domain: str
    template_name: str
    template: GraphTemplate
    match_score: int


def score_template(template: GraphTemplate, text: str) -> int:
    """Count template keywords occurring as case-insensitive substrings of ``text``."""

    lowered = text.lower()
    return sum(1 for keyword in template.keywords if keyword.lower() in lowered)


def classify(text: str, catalog: Optional[GraphCatalog] = None) -> Optional[Classification]:
    """Return the best matching template, or ``None`` when nothing scores.

    Ties keep the earliest template in catalog order.
    """

    if catalog is None:
        catalog = default_catalog()

    best: Optional[Classification] = None
    for template in catalog:
        score = score_template(template, text)
        if score > (best.match_score if best else 0):
            best = Classification(
                domain=template.domain,
                template_name=template.name,
                template=template,
                match_score=score,
            )
    return best


__all__ = ["Classification", "classify", "score_template"]

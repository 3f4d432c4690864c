"""Graph template catalog, classification and enrichment."""
from __future__ import annotations

from .catalog import CurveSpec, GraphCatalog, GraphTemplate, default_catalog
from .classifier import Classification, classify, score_template
from .enrichment import EnrichmentOutcome, Failed, GraphEnricher, Inferred, Templated, render

__all__ = [
    "Classification",
    "CurveSpec",
    "EnrichmentOutcome",
    "Failed",
    "GraphCatalog",
    "GraphEnricher",
    "GraphTemplate",
    "Inferred",
    "Templated",
    "classify",
    "default_catalog",
    "render",
    "score_template",
]

"""Loader for the ordered graph template catalog.

Catalog order is significant: the classifier resolves score ties in favour of
the template that appears first.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator

_CATALOG_PATH = Path(__file__).resolve().with_name("catalog.json")


@dataclass(frozen=True, slots=True)
class CurveSpec:
    name: str
    slope: str
    meaning: str


@dataclass(frozen=True, slots=True)
class GraphTemplate:
    """Canonical structure of a well-known graph type."""

    domain: str
    name: str
    keywords: tuple[str, ...]
    x_axis: str
    y_axis: str
    curves: tuple[CurveSpec, ...]
    insight: str

    @property
    def display_name(self) -> str:
        return self.name.replace("-", " ")


class GraphCatalog:
    """Immutable, ordered collection of :class:`GraphTemplate` entries."""

    def __init__(self, templates: Iterable[GraphTemplate]) -> None:
        self._templates = tuple(templates)

    def __iter__(self) -> Iterator[GraphTemplate]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def domains(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for template in self._templates:
            seen.setdefault(template.domain, None)
        return tuple(seen)

    def get(self, domain: str, name: str) -> GraphTemplate:
        for template in self._templates:
            if template.domain == domain and template.name == name:
                return template
        raise KeyError(f"{domain}/{name}")

    @classmethod
    def from_data(cls, data: list[dict[str, Any]]) -> "GraphCatalog":
        templates: list[GraphTemplate] = []
        for group in data:
            domain = str(group["domain"])
            for entry in group.get("templates", []):
                axes = entry.get("axes") or {}
                templates.append(
                    GraphTemplate(
                        domain=domain,
                        name=str(entry["name"]),
                        keywords=tuple(str(keyword) for keyword in entry.get("keywords", [])),
                        x_axis=str(axes.get("x", "")),
                        y_axis=str(axes.get("y", "")),
                        curves=tuple(
                            CurveSpec(
                                name=str(curve["name"]),
                                slope=str(curve["slope"]),
                                meaning=str(curve["meaning"]),
                            )
                            for curve in entry.get("curves", [])
                        ),
                        insight=str(entry.get("insight", "")),
                    )
                )
        return cls(templates)

    @classmethod
    def load(cls, path: str | Path = _CATALOG_PATH) -> "GraphCatalog":
        with open(path, "r", encoding="utf-8") as handle:
            return cls.from_data(json.load(handle))


@lru_cache(maxsize=1)
def default_catalog() -> GraphCatalog:
    """Return the bundled catalog, loaded once per process."""

    return GraphCatalog.load()


__all__ = ["CurveSpec", "GraphCatalog", "GraphTemplate", "default_catalog"]

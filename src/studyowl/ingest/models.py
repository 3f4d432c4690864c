"""Data models used by the ingestion pipeline."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class LayoutLine:
    """A line of text reported by the layout analyzer.

    ``polygon`` carries the line's position on the page when the analyzer
    provides one. Only positioned lines count as visible figure elements.
    """

    content: str
    polygon: Optional[tuple[float, ...]] = None

    @property
    def positioned(self) -> bool:
        return self.polygon is not None


@dataclass(frozen=True, slots=True)
class TableCell:
    row_index: int
    column_index: int
    content: str


@dataclass(frozen=True, slots=True)
class LayoutTable:
    cells: tuple[TableCell, ...] = ()


@dataclass(frozen=True, slots=True)
class FigureRegion:
    caption: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PageLayout:
    """Structured content of a single page as returned by layout analysis."""

    page_number: int
    lines: tuple[LayoutLine, ...] = ()
    tables: tuple[LayoutTable, ...] = ()
    figures: tuple[FigureRegion, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "page_number": self.page_number,
            "lines": [
                {"content": line.content, "polygon": list(line.polygon) if line.polygon else None}
                for line in self.lines
            ],
            "tables": [
                {
                    "cells": [
                        {
                            "row_index": cell.row_index,
                            "column_index": cell.column_index,
                            "content": cell.content,
                        }
                        for cell in table.cells
                    ]
                }
                for table in self.tables
            ],
            "figures": [{"caption": figure.caption} for figure in self.figures],
        }


class MissingElement(str, enum.Enum):
    AXIS_LABELS = "axis labels"
    LEGEND = "legend"
    TITLE = "title"


@dataclass(frozen=True, slots=True)
class FigureRecord:
    """Figure metadata derived during extraction and consumed by enrichment."""

    index: int
    caption: str
    visible_elements: tuple[str, ...]
    missing_elements: frozenset[MissingElement]
    implied: bool = False

    @property
    def needs_inference(self) -> bool:
        return bool(self.missing_elements)

    @property
    def extracted_text(self) -> str:
        return ", ".join(self.visible_elements)

    @property
    def missing_text(self) -> str:
        ordered = [element.value for element in MissingElement if element in self.missing_elements]
        return ", ".join(ordered) or "none identified"


@dataclass(frozen=True, slots=True)
class PageText:
    """Linearised page text with figure marker blocks."""

    page_number: int
    text: str
    figures: tuple[FigureRecord, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class Fragment:
    """An addressable unit of document content persisted for retrieval."""

    id: str
    document_id: str
    page_number: int
    content: str
    section_title: Optional[str] = None
    chunk_index: int = 0
    student_id: Optional[str] = None
    course_id: Optional[str] = None


__all__ = [
    "FigureRecord",
    "FigureRegion",
    "Fragment",
    "LayoutLine",
    "LayoutTable",
    "MissingElement",
    "PageLayout",
    "PageText",
    "TableCell",
]

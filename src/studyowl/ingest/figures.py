"""Linearise page layouts and detect figures, including implied graphs."""
from __future__ import annotations

import logging
import re
from typing import Iterable

from .models import (
    FigureRecord,
    LayoutLine,
    LayoutTable,
    MissingElement,
    PageLayout,
    PageText,
)

LOGGER = logging.getLogger(__name__)

NO_CAPTION = "No caption provided"
IMPLIED_CAPTION = "Implied graph detected"
IMPLIED_PREVIEW_LIMIT = 10

_AXIS_LABEL_RE = re.compile(r"^(x|y|z)[-\s]?axis|horizontal|vertical", re.IGNORECASE)
_LEGEND_RE = re.compile(r"legend|key", re.IGNORECASE)
_SINGLE_LETTER_RE = re.compile(r"^[A-Z]$", re.IGNORECASE)
_EQUATION_RE = re.compile(r"^[A-Z]{1,3}\s*=\s*.+")
_FIGURE_WORD_RE = re.compile(r"figure|graph|chart|diagram", re.IGNORECASE)
_GRAPH_SECTION_RE = re.compile(
    r"labor market under monopsony|supply.*demand.*curve|equilibrium", re.IGNORECASE
)


def render_table(table: LayoutTable, index: int) -> str:
    rows: dict[int, dict[int, str]] = {}
    for cell in table.cells:
        rows.setdefault(cell.row_index, {})[cell.column_index] = cell.content
    formatted: list[str] = []
    for row_index in sorted(rows):
        row = rows[row_index]
        width = max(row) + 1
        formatted.append(" | ".join(row.get(column, "") for column in range(width)))
    body = "\n".join(formatted)
    return f"\n[TABLE {index}]\n{body}\n[END TABLE {index}]"


def render_figure(figure: FigureRecord) -> str:
    """Render a figure as its ``[FIGURE n] ... [END FIGURE n]`` marker block."""

    if figure.implied:
        visible = ", ".join(figure.visible_elements[:IMPLIED_PREVIEW_LIMIT])
    else:
        visible = figure.extracted_text or "minimal text"
    return (
        f"\n[FIGURE {figure.index}]\n"
        f"Caption: {figure.caption}\n"
        f"Visible Elements: {visible}\n"
        f"Missing: {figure.missing_text}\n"
        f"[END FIGURE {figure.index}]"
    )


def _missing_elements(caption: str, elements: Iterable[str]) -> frozenset[MissingElement]:
    elements = list(elements)
    has_axis_labels = any(_AXIS_LABEL_RE.search(text) for text in elements)
    has_legend = "legend" in caption.lower() or any(_LEGEND_RE.search(text) for text in elements)
    has_title = len(caption) > 10 or any(len(text) > 20 for text in elements)

    missing: set[MissingElement] = set()
    if not has_axis_labels:
        missing.add(MissingElement.AXIS_LABELS)
    if not has_legend:
        missing.add(MissingElement.LEGEND)
    if not has_title:
        missing.add(MissingElement.TITLE)
    return frozenset(missing)


def has_graph_cue(lines: Iterable[LayoutLine], page_text: str) -> bool:
    """Return ``True`` when a page without figure regions still looks like it holds a graph."""

    for line in lines:
        content = line.content.strip()
        if (
            _SINGLE_LETTER_RE.match(content)
            or _EQUATION_RE.match(content)
            or _FIGURE_WORD_RE.search(content)
        ):
            return True
    return bool(_GRAPH_SECTION_RE.search(page_text))


class FigureExtractor:
    """Turn a :class:`PageLayout` into linear text with figure marker blocks."""

    def extract_page(self, layout: PageLayout) -> PageText:
        line_text = "\n".join(line.content for line in layout.lines)
        table_text = "\n".join(
            render_table(table, index) for index, table in enumerate(layout.tables, start=1)
        )

        figures = self._detect_figures(layout)
        if not layout.figures:
            implied = self._detect_implied_figure(layout, line_text)
            if implied is not None:
                LOGGER.debug("Implied graph detected on page %s", layout.page_number)
                figures.append(implied)

        figure_text = "\n".join(render_figure(figure) for figure in figures)
        text = "\n".join(part for part in (line_text, table_text, figure_text) if part)
        return PageText(page_number=layout.page_number, text=text, figures=tuple(figures))

    def extract_pages(self, layouts: Iterable[PageLayout]) -> list[PageText]:
        return [self.extract_page(layout) for layout in layouts]

    def _detect_figures(self, layout: PageLayout) -> list[FigureRecord]:
        elements = tuple(line.content for line in layout.lines if line.positioned)
        records: list[FigureRecord] = []
        for index, region in enumerate(layout.figures, start=1):
            caption = region.caption or NO_CAPTION
            records.append(
                FigureRecord(
                    index=index,
                    caption=caption,
                    visible_elements=elements,
                    missing_elements=_missing_elements(caption, elements),
                )
            )
        return records

    def _detect_implied_figure(self, layout: PageLayout, line_text: str) -> FigureRecord | None:
        if not has_graph_cue(layout.lines, line_text):
            return None
        elements = tuple(
            content for content in (line.content.strip() for line in layout.lines) if content
        )
        return FigureRecord(
            index=1,
            caption=IMPLIED_CAPTION,
            visible_elements=elements,
            missing_elements=frozenset(MissingElement),
            implied=True,
        )


__all__ = [
    "FigureExtractor",
    "IMPLIED_CAPTION",
    "NO_CAPTION",
    "has_graph_cue",
    "render_figure",
    "render_table",
]

"""Layout analysis of uploaded PDFs.

The analyzer contract is deliberately small: it receives the bytes of a PDF
(possibly a sub-document covering only a few pages) and returns one
:class:`PageLayout` per page, numbered relative to that input. The
:func:`analyze_in_batches` helper splits a document, calls the analyzer on each
slice and renumbers the pages to absolute document positions.
"""
from __future__ import annotations

import io
import logging
from dataclasses import replace
from typing import Callable, Iterator, Optional, Protocol

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from studyowl.errors import LayoutAnalysisError

from .models import FigureRegion, LayoutLine, PageLayout

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class LayoutAnalyzer(Protocol):
    def analyze(self, data: bytes) -> list[PageLayout]:
        """Return the layout of every page in ``data``."""


def _open_reader(data: bytes) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(data))
    except (PyPdfError, ValueError, OSError) as exc:
        raise LayoutAnalysisError("Unable to read PDF document", cause=exc) from exc


def count_pages(data: bytes) -> int:
    return len(_open_reader(data).pages)


class PdfLayoutAnalyzer:
    """Text-layer analyzer backed by :mod:`pypdf`.

    Lines come from the page's text layer and carry no position data. Each
    embedded image is reported as an uncaptioned figure region.
    """

    def analyze(self, data: bytes) -> list[PageLayout]:
        reader = _open_reader(data)
        layouts: list[PageLayout] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text() or ""
            except (PyPdfError, ValueError, KeyError) as error:  # pragma: no cover - depends on the PDF
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            lines = tuple(LayoutLine(content=line) for line in text.splitlines() if line.strip())
            layouts.append(
                PageLayout(
                    page_number=index,
                    lines=lines,
                    figures=self._figure_regions(page, index),
                )
            )
        return layouts

    @staticmethod
    def _figure_regions(page, index: int) -> tuple[FigureRegion, ...]:
        try:
            image_count = len(page.images)
        except (PyPdfError, ValueError, KeyError, NotImplementedError) as error:  # pragma: no cover
            LOGGER.warning("Failed to inspect images on PDF page %s: %s", index, error)
            return ()
        return tuple(FigureRegion() for _ in range(image_count))


def iter_page_batches(data: bytes, pages_per_batch: int) -> Iterator[tuple[int, bytes]]:
    """Yield ``(first_page_offset, pdf_bytes)`` for consecutive page slices."""

    reader = _open_reader(data)
    total = len(reader.pages)
    size = max(1, pages_per_batch)
    for offset in range(0, total, size):
        writer = PdfWriter()
        for page in reader.pages[offset : offset + size]:
            writer.add_page(page)
        buffer = io.BytesIO()
        writer.write(buffer)
        yield offset, buffer.getvalue()


def analyze_in_batches(
    analyzer: LayoutAnalyzer,
    data: bytes,
    *,
    pages_per_batch: int = 2,
    on_progress: Optional[ProgressCallback] = None,
) -> list[PageLayout]:
    """Analyze ``data`` slice by slice and return pages with absolute numbers."""

    total = count_pages(data)
    layouts: list[PageLayout] = []
    processed = 0
    for offset, chunk in iter_page_batches(data, pages_per_batch):
        try:
            batch = analyzer.analyze(chunk)
        except LayoutAnalysisError:
            raise
        except Exception as exc:
            raise LayoutAnalysisError(
                f"Layout analysis failed for pages starting at {offset + 1}", cause=exc
            ) from exc
        for position, layout in enumerate(batch):
            layouts.append(replace(layout, page_number=offset + position + 1))
        processed = min(total, offset + max(1, pages_per_batch))
        LOGGER.info("Analyzed pages %s-%s of %s", offset + 1, processed, total)
        if on_progress is not None:
            on_progress(processed, total)
    return layouts


__all__ = [
    "LayoutAnalyzer",
    "PdfLayoutAnalyzer",
    "analyze_in_batches",
    "count_pages",
    "iter_page_batches",
]

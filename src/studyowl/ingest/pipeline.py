"""Turn analysed page layouts into enriched, chunked fragments."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

from studyowl.graphs.enrichment import GraphEnricher

from .chunking import ChunkingConfig, SlidingWindowChunker
from .figures import FigureExtractor
from .models import Fragment, PageLayout, PageText

LOGGER = logging.getLogger(__name__)

_FIGURE_BLOCK_RE = re.compile(r"\[FIGURE[\s\S]*?\[END FIGURE \d+\]", re.IGNORECASE)
DEFAULT_CHUNK_ESTIMATE = 100
MIN_CHUNK_ESTIMATE = 10


@dataclass(slots=True)
class IngestPipelineConfig:
    chunk_size: int = 1000
    chunk_overlap: int = 150
    min_tail_ratio: float = 0.1
    max_chunks_per_page: int = 500


def figure_blocks(text: str) -> list[str]:
    """Return every ``[FIGURE n] ... [END FIGURE n]`` block of ``text`` in order."""

    return [match.group(0) for match in _FIGURE_BLOCK_RE.finditer(text or "")]


class IngestPipeline:
    """Pipeline orchestrating figure extraction, enrichment and chunking."""

    def __init__(
        self,
        enricher: GraphEnricher,
        config: Optional[IngestPipelineConfig] = None,
        *,
        extractor: Optional[FigureExtractor] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.enricher = enricher
        self.extractor = extractor or FigureExtractor()
        self.chunker = SlidingWindowChunker(
            ChunkingConfig(
                size=self.config.chunk_size,
                overlap=self.config.chunk_overlap,
                min_tail_ratio=self.config.min_tail_ratio,
            )
        )

    def prepare_pages(
        self, layouts: Iterable[PageLayout], *, document_id: str | None = None
    ) -> List[PageText]:
        """Linearise every page and splice figure interpretations into it."""

        pages = self.extractor.extract_pages(layouts)
        figure_count = sum(len(page.figures) for page in pages)
        LOGGER.info("Extracted %s pages with %s figures", len(pages), figure_count)
        return self.enricher.enrich_pages(pages, document_id=document_id)

    def estimate_fragment_count(self, pages: Sequence[PageText]) -> int:
        """Rough total used for storage progress: first page's windows times page count."""

        if not pages or not pages[0].text:
            return DEFAULT_CHUNK_ESTIMATE
        sample = sum(1 for _ in self.chunker.chunk(pages[0].text))
        return max(sample * len(pages), MIN_CHUNK_ESTIMATE)

    def page_fragments(
        self,
        page: PageText,
        *,
        document_id: str,
        student_id: str | None = None,
        course_id: str | None = None,
        start_index: int = 0,
    ) -> Iterator[Fragment]:
        """Yield one fragment per figure block, then the page's sliding windows.

        Blank pages yield nothing. The per-page cap applies to the total count,
        figure fragments included.
        """

        if not page.text or not page.text.strip():
            LOGGER.info("Skipping page %s - no text content", page.page_number)
            return

        index = start_index
        emitted = 0
        for figure_number, block in enumerate(figure_blocks(page.text), start=1):
            yield Fragment(
                id=uuid.uuid4().hex,
                document_id=document_id,
                page_number=page.page_number,
                content=block,
                section_title=f"Graph {figure_number}",
                chunk_index=index,
                student_id=student_id,
                course_id=course_id,
            )
            index += 1
            emitted += 1

        for window in self.chunker.chunk(page.text):
            if emitted >= self.config.max_chunks_per_page:
                LOGGER.warning(
                    "Reached max chunks limit for page %s, stopping chunk generation",
                    page.page_number,
                )
                break
            yield Fragment(
                id=uuid.uuid4().hex,
                document_id=document_id,
                page_number=page.page_number,
                content=window.content,
                chunk_index=index,
                student_id=student_id,
                course_id=course_id,
            )
            index += 1
            emitted += 1


__all__ = ["IngestPipeline", "IngestPipelineConfig", "figure_blocks"]

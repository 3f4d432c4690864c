"""Document ingestion: layout analysis, figure extraction and chunking."""
from __future__ import annotations

from .chunking import ChunkStream, ChunkingConfig, SlidingWindowChunker, TextWindow, chunk_text
from .figures import FigureExtractor
from .models import (
    FigureRecord,
    FigureRegion,
    Fragment,
    LayoutLine,
    LayoutTable,
    MissingElement,
    PageLayout,
    PageText,
    TableCell,
)

__all__ = [
    "ChunkStream",
    "ChunkingConfig",
    "FigureExtractor",
    "FigureRecord",
    "FigureRegion",
    "Fragment",
    "LayoutLine",
    "LayoutTable",
    "MissingElement",
    "PageLayout",
    "PageText",
    "SlidingWindowChunker",
    "TableCell",
    "TextWindow",
    "chunk_text",
]

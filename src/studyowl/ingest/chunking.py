"""Sliding-window chunking of page text."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChunkingConfig:
    """Window parameters.

    ``min_tail_ratio`` controls how a short trailing remainder is handled: after
    a window is emitted, chunking stops when fewer than ``size * min_tail_ratio``
    characters remain unconsumed. Set it to ``0`` to keep every tail.
    """

    size: int = 1000
    overlap: int = 150
    min_tail_ratio: float = 0.1

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("chunk size must be positive")
        if self.min_tail_ratio < 0:
            raise ValueError("min_tail_ratio must not be negative")

    @property
    def effective_overlap(self) -> int:
        return max(0, min(self.overlap, self.size - 1))

    @property
    def step(self) -> int:
        return max(1, self.size - self.effective_overlap)


@dataclass(frozen=True, slots=True)
class TextWindow:
    content: str
    start: int
    end: int


class ChunkCursor:
    """Pull-based cursor over the windows of a single text."""

    def __init__(self, text: str, config: ChunkingConfig) -> None:
        self._text = text
        self._config = config
        self._start: int | None = 0 if text else None

    def has_next(self) -> bool:
        return self._start is not None

    def next(self) -> TextWindow:
        if self._start is None:
            raise StopIteration
        start = self._start
        length = len(self._text)
        end = min(start + self._config.size, length)
        window = TextWindow(content=self._text[start:end], start=start, end=end)

        remaining = length - end
        if end >= length or remaining < self._config.size * self._config.min_tail_ratio:
            if remaining:
                LOGGER.debug("Dropping %s trailing characters below tail threshold", remaining)
            self._start = None
        else:
            self._start = start + self._config.step
        return window

    def __iter__(self) -> "ChunkCursor":
        return self

    def __next__(self) -> TextWindow:
        return self.next()


class ChunkStream:
    """Restartable sequence of windows; every iteration starts from offset 0."""

    def __init__(self, text: str, config: ChunkingConfig) -> None:
        self.text = text
        self.config = config

    def cursor(self) -> ChunkCursor:
        return ChunkCursor(self.text, self.config)

    def __iter__(self) -> Iterator[TextWindow]:
        return self.cursor()

    def contents(self) -> list[str]:
        return [window.content for window in self]


class SlidingWindowChunker:
    """Split text into fixed-size overlapping windows."""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, text: str) -> ChunkStream:
        return ChunkStream(text or "", self.config)


def chunk_text(
    text: str,
    size: int = 1000,
    overlap: int = 150,
    *,
    min_tail_ratio: float = 0.1,
) -> ChunkStream:
    """Convenience wrapper returning the window stream for ``text``."""

    return SlidingWindowChunker(
        ChunkingConfig(size=size, overlap=overlap, min_tail_ratio=min_tail_ratio)
    ).chunk(text)


__all__ = [
    "ChunkCursor",
    "ChunkStream",
    "ChunkingConfig",
    "SlidingWindowChunker",
    "TextWindow",
    "chunk_text",
]

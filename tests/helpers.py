"""Fakes shared by the ingestion, chat and API tests."""
from __future__ import annotations

import io
from typing import Sequence

from pypdf import PdfReader, PdfWriter

from studyowl.ingest.models import LayoutLine, PageLayout
from studyowl.llm_provider import LLM, LLMGenerationError


def blank_pdf(pages: int) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class ScriptedAnalyzer:
    """Return pre-defined lines for each page, numbered relative to every slice."""

    def __init__(self, pages: Sequence[Sequence[str]]) -> None:
        self.pages = [tuple(lines) for lines in pages]
        self.calls: list[int] = []
        self._consumed = 0

    def analyze(self, data: bytes) -> list[PageLayout]:
        count = len(PdfReader(io.BytesIO(data)).pages)
        self.calls.append(count)
        layouts = [
            PageLayout(
                page_number=position + 1,
                lines=tuple(LayoutLine(content) for content in self.pages[self._consumed + position]),
            )
            for position in range(count)
        ]
        self._consumed += count
        return layouts


class FailingAnalyzer:
    def analyze(self, data: bytes) -> list[PageLayout]:
        raise RuntimeError("analysis service returned 500")


class RecordingLLM(LLM):
    provider = "fake"

    def __init__(self, answer: str = "**Graph Type:** Monopsony\n- Supply\n- MCL") -> None:
        self.answer = answer
        self.prompts: list[str] = []
        self.calls: list[tuple[int, float]] = []

    @property
    def ready(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return "fake-model"

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        self.calls.append((max_tokens, temperature))
        return self.answer


class BrokenLLM(RecordingLLM):
    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        raise LLMGenerationError("LLM API error: HTTP 503")


MONOPSONY_PAGE = (
    "Labor Market Under Monopsony",
    "W",
    ("A monopsony employer sets the wage below the competitive level. " * 36).strip(),
)

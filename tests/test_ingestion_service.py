"""Tests for the ingestion orchestration and its progress reporting."""
from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import pytest

from studyowl.errors import InputValidationError, LayoutAnalysisError
from studyowl.fragment_store import FragmentStoreUnavailableError, InMemoryFragmentStore
from studyowl.graphs.enrichment import GraphEnricher
from studyowl.ingest.models import LayoutLine, PageLayout
from studyowl.ingest.pipeline import IngestPipeline, IngestPipelineConfig
from studyowl.progress import ProgressStore, Stage
from studyowl.services.ingestion import IngestionService, analysis_progress, storage_progress
from studyowl.settings import get_settings

from helpers import MONOPSONY_PAGE, FailingAnalyzer, RecordingLLM, ScriptedAnalyzer, blank_pdf


class RecordingProgressStore(ProgressStore):
    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[str, int, str]] = []

    def set(self, document_id, state) -> None:
        super().set(document_id, state)
        self.history.append((state.stage.value, state.progress, state.message))


class ExplodingStore(InMemoryFragmentStore):
    def add_fragments(self, fragments):
        raise RuntimeError("connection reset")


class SecondWriteFailsStore(InMemoryFragmentStore):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def add_fragments(self, fragments):
        self.writes += 1
        if self.writes > 1:
            raise RuntimeError("connection reset")
        return super().add_fragments(fragments)


def _service(pages, *, store=None, progress=None, analyzer=None, settings=None, **config) -> IngestionService:
    return IngestionService(
        settings=settings,
        analyzer=analyzer or ScriptedAnalyzer(pages),
        fragment_store=store or InMemoryFragmentStore(),
        progress_store=progress or RecordingProgressStore(),
        pipeline=IngestPipeline(GraphEnricher(RecordingLLM()), IngestPipelineConfig(**config)),
    )


def test_progress_formulas():
    assert analysis_progress(1, 4) == 10
    assert analysis_progress(4, 4) == 40
    assert storage_progress(0, 3) == 40
    assert storage_progress(5, 10) == 68
    assert storage_progress(500, 10) == 95


def test_ingest_pdf_persists_fragments_and_files():
    store = InMemoryFragmentStore()
    progress = RecordingProgressStore()
    pages = [MONOPSONY_PAGE, ("Plain prose about wages on the second page.",), ()]
    service = _service(pages, store=store, progress=progress)

    result = service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(3), student_id="s-1", course_id="c-1")

    fragments = store.list_fragments("doc-1")
    assert result.page_count == 3
    assert result.figure_count == 1
    assert result.fragments_written == len(fragments)
    assert fragments[0].section_title == "Graph 1"
    assert "[GRAPH STRUCTURE]" in fragments[0].content
    assert {fragment.page_number for fragment in fragments} == {1, 2}
    assert all(fragment.student_id == "s-1" and fragment.course_id == "c-1" for fragment in fragments)
    assert [fragment.chunk_index for fragment in fragments] == list(range(len(fragments)))

    assert Path(result.pdf_path).read_bytes().startswith(b"%PDF")
    assert Path(result.pdf_path).parent == Path(get_settings().data_dir).resolve() / "doc-1"
    layout = json.loads(Path(result.layout_path).read_text(encoding="utf-8"))
    assert layout["page_count"] == 3
    assert layout["pages"][0]["lines"][1]["content"] == "W"


def test_ingest_pdf_reports_stages_in_order():
    progress = RecordingProgressStore()
    service = _service([("alpha " * 400,), ("beta " * 400,)], progress=progress)

    service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(2), student_id="s", course_id="c")

    stages = [stage for stage, _, _ in progress.history]
    assert stages[0] == "analyzing"
    assert stages[-1] == "complete"
    assert [Stage(stage).order for stage in stages] == sorted(Stage(stage).order for stage in stages)
    values = [value for _, value, _ in progress.history]
    assert values == sorted(values)
    messages = [message for _, _, message in progress.history]
    assert "Analyzed 2/2 pages" in messages
    assert "Chunking text and preparing for storage..." in messages
    assert messages[-1] == "Ready for study session!"
    assert progress.snapshot("doc-1").progress == 100


def test_writes_are_batched_and_flushed_per_page():
    class CountingStore(InMemoryFragmentStore):
        def __init__(self) -> None:
            super().__init__()
            self.batches: list[int] = []

        def add_fragments(self, fragments):
            self.batches.append(len(fragments))
            return super().add_fragments(fragments)

    store = CountingStore()
    settings = dataclasses.replace(get_settings(), store_batch_size=5)
    service = _service(
        [("x" * 1200,), ("y" * 300,)], store=store, settings=settings, chunk_size=100, chunk_overlap=0
    )

    service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(2), student_id="s", course_id="c")

    assert store.batches == [5, 5, 2, 3]


def test_analysis_failure_evicts_progress():
    progress = RecordingProgressStore()
    service = _service([], progress=progress, analyzer=FailingAnalyzer())

    with pytest.raises(LayoutAnalysisError):
        service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(1), student_id="s", course_id="c")

    assert progress.get("doc-1") is None


def test_storage_failure_aborts_ingestion():
    progress = RecordingProgressStore()
    service = _service([("some text",)], store=ExplodingStore(), progress=progress)

    with pytest.raises(FragmentStoreUnavailableError):
        service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(1), student_id="s", course_id="c")

    assert progress.get("doc-1") is None


def test_failed_ingestion_removes_fragments_already_written():
    store = SecondWriteFailsStore()
    service = _service([("first page text",), ("second page text",)], store=store)

    with pytest.raises(FragmentStoreUnavailableError):
        service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(2), student_id="s", course_id="c")

    assert store.writes == 2
    assert store.list_fragments("doc-1") == []


def test_missing_identifiers_are_rejected():
    service = _service([])

    with pytest.raises(InputValidationError):
        service.ingest_pdf("doc-1", "notes.pdf", blank_pdf(1), student_id="", course_id="c")
    with pytest.raises(InputValidationError):
        service.ingest_pdf("doc-1", "notes.pdf", b"", student_id="s", course_id="c")


def test_ingest_layouts_skips_analysis():
    store = InMemoryFragmentStore()
    service = _service([], store=store)
    layouts = [PageLayout(page_number=1, lines=(LayoutLine("Prose only"),))]

    result = service.ingest_layouts("doc-2", layouts)

    assert result.fragments_written == 1
    assert store.list_fragments("doc-2")[0].content == "Prose only"

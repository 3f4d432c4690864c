from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from studyowl.errors import InputValidationError, UpstreamServiceError
from studyowl.fragment_store import FragmentStore, FragmentStoreUnavailableError, get_fragment_store
from studyowl.graphs.enrichment import GraphEnricher
from studyowl.ingest.layout import LayoutAnalyzer, PdfLayoutAnalyzer, analyze_in_batches
from studyowl.ingest.models import Fragment, PageLayout
from studyowl.ingest.pipeline import IngestPipeline, IngestPipelineConfig
from studyowl.llm_provider import get_llm
from studyowl.logging_config import AUDIT_LOGGER_NAME
from studyowl.progress import ProgressStore, Stage, get_progress_store
from studyowl.settings import Settings, get_settings
from studyowl.storage import save_layout_json, save_upload
from studyowl.telemetry import emit_exception, emit_ingest_event, emit_store_event, traced_duration

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

ANALYSIS_SHARE = 0.4
STORAGE_START = 40
STORAGE_SHARE = 55
STORAGE_CEILING = 95


def analysis_progress(pages_processed: int, total_pages: int) -> int:
    if total_pages <= 0:
        return 0
    return round(pages_processed / total_pages * 100 * ANALYSIS_SHARE)


def storage_progress(written: int, estimate: int) -> int:
    return min(round(STORAGE_START + STORAGE_SHARE * (written / max(estimate, 10))), STORAGE_CEILING)


@dataclass(slots=True)
class IngestResult:
    """Structured result returned from :meth:`IngestionService.ingest_pdf`."""

    document_id: str
    pdf_path: Optional[str]
    layout_path: Optional[str]
    page_count: int
    figure_count: int
    fragments_written: int
    duration_seconds: float


class IngestionService:
    """Upload, analyse, enrich and persist a document while reporting progress."""

    def __init__(
        self,
        *,
        analyzer: LayoutAnalyzer | None = None,
        fragment_store: FragmentStore | None = None,
        progress_store: ProgressStore | None = None,
        pipeline: IngestPipeline | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.analyzer = analyzer or PdfLayoutAnalyzer()
        self.fragment_store = fragment_store or get_fragment_store()
        self.progress = progress_store or get_progress_store()
        self.pipeline = pipeline or IngestPipeline(
            GraphEnricher(
                get_llm(),
                max_tokens=self.settings.enrich_max_tokens,
                temperature=self.settings.enrich_temperature,
            ),
            IngestPipelineConfig(
                chunk_size=self.settings.chunk_size,
                chunk_overlap=self.settings.chunk_overlap,
                min_tail_ratio=self.settings.chunk_min_tail_ratio,
                max_chunks_per_page=self.settings.max_chunks_per_page,
            ),
        )

    def ingest_pdf(
        self,
        document_id: str,
        file_name: str,
        contents: bytes,
        *,
        student_id: str,
        course_id: str,
    ) -> IngestResult:
        if not document_id or not student_id or not course_id:
            raise InputValidationError("document_id, student_id and course_id are required")
        if not contents:
            raise InputValidationError("Uploaded file is empty")

        started = time.perf_counter()
        self.progress.start(document_id)
        emit_ingest_event(
            "ingest.file.start",
            document_id=document_id,
            file_name=file_name,
            size_bytes=len(contents),
        )

        try:
            pdf_path = save_upload(self.settings.data_dir, document_id, file_name, contents)
            self.progress.advance(
                document_id, Stage.ANALYZING, 0, "Running layout analysis..."
            )

            def _on_pages(processed: int, total: int) -> None:
                self.progress.advance(
                    document_id,
                    Stage.ANALYZING,
                    analysis_progress(processed, total),
                    f"Analyzed {processed}/{total} pages",
                )

            with traced_duration("ingest.analyze", logger=LOGGER, document_id=document_id):
                layouts = analyze_in_batches(
                    self.analyzer,
                    contents,
                    pages_per_batch=self.settings.pages_per_batch,
                    on_progress=_on_pages,
                )
            layout_path = save_layout_json(self.settings.data_dir, document_id, layouts)
            result = self._ingest(
                document_id,
                layouts,
                student_id=student_id,
                course_id=course_id,
                started=started,
            )
        except Exception as error:
            self._abandon(document_id, error)
            if isinstance(error, (UpstreamServiceError, InputValidationError)):
                raise
            LOGGER.exception("Ingestion failed for %s", document_id)
            raise UpstreamServiceError(f"Failed to process {file_name}", cause=error) from error

        result.pdf_path = str(pdf_path)
        result.layout_path = str(layout_path)
        emit_ingest_event(
            "ingest.file.complete",
            document_id=document_id,
            file_name=file_name,
            size_bytes=len(contents),
            duration_ms=result.duration_seconds * 1000.0,
            pages=result.page_count,
            figures=result.figure_count,
            fragments=result.fragments_written,
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": document_id,
                "student_id": student_id,
                "course_id": course_id,
                "file_name": file_name,
                "fragment_count": result.fragments_written,
            }
        )
        return result

    def ingest_layouts(
        self,
        document_id: str,
        layouts: Sequence[PageLayout],
        *,
        student_id: str | None = None,
        course_id: str | None = None,
    ) -> IngestResult:
        """Run the post-analysis stages for already analysed pages."""

        started = time.perf_counter()
        if self.progress.get(document_id) is None:
            self.progress.start(document_id)
        try:
            return self._ingest(
                document_id,
                layouts,
                student_id=student_id,
                course_id=course_id,
                started=started,
            )
        except Exception as error:
            self._abandon(document_id, error)
            raise

    def _ingest(
        self,
        document_id: str,
        layouts: Sequence[PageLayout],
        *,
        student_id: str | None,
        course_id: str | None,
        started: float,
    ) -> IngestResult:
        pages = self.pipeline.prepare_pages(layouts, document_id=document_id)
        self.progress.advance(
            document_id, Stage.CHUNKING, STORAGE_START, "Chunking text and preparing for storage..."
        )

        estimate = self.pipeline.estimate_fragment_count(pages)
        written = 0
        next_index = 0
        for page in pages:
            batch: List[Fragment] = []
            for fragment in self.pipeline.page_fragments(
                page,
                document_id=document_id,
                student_id=student_id,
                course_id=course_id,
                start_index=next_index,
            ):
                batch.append(fragment)
                next_index = fragment.chunk_index + 1
                if len(batch) >= self.settings.store_batch_size:
                    written += self._write_batch(document_id, batch)
                    self._report_storage(document_id, written, estimate)
                    batch = []
            if batch:
                written += self._write_batch(document_id, batch)
                self._report_storage(document_id, written, estimate)

        self.progress.complete(document_id)
        LOGGER.info(
            "Wrote %s fragments for document %s across %s pages", written, document_id, len(pages)
        )
        return IngestResult(
            document_id=document_id,
            pdf_path=None,
            layout_path=None,
            page_count=len(pages),
            figure_count=sum(len(page.figures) for page in pages),
            fragments_written=written,
            duration_seconds=time.perf_counter() - started,
        )

    def _abandon(self, document_id: str, error: Exception) -> None:
        """Forget progress and drop fragments already written for a failed document."""

        self.progress.evict(document_id)
        emit_exception(module=__name__, error=error, document_id=document_id)
        try:
            self.fragment_store.delete_document(document_id)
        except Exception as cleanup_error:
            LOGGER.warning(
                "Could not remove partial fragments of %s: %s", document_id, cleanup_error
            )

    def _write_batch(self, document_id: str, batch: Iterable[Fragment]) -> int:
        fragments = list(batch)
        backend = getattr(self.fragment_store, "backend", "unknown")
        try:
            count = self.fragment_store.add_fragments(fragments)
        except FragmentStoreUnavailableError as error:
            emit_store_event(
                "store.write", backend=backend, document_id=document_id, count=len(fragments), error=error
            )
            raise
        except Exception as error:
            emit_store_event(
                "store.write", backend=backend, document_id=document_id, count=len(fragments), error=error
            )
            raise FragmentStoreUnavailableError("Failed to persist fragments", cause=error) from error
        emit_store_event("store.write", backend=backend, document_id=document_id, count=count)
        return count

    def _report_storage(self, document_id: str, written: int, estimate: int) -> None:
        self.progress.advance(
            document_id,
            Stage.STORING,
            storage_progress(written, estimate),
            f"Storing {estimate} chunks in database...",
        )


_ingestion_service: IngestionService | None = None


def get_ingestion_service() -> IngestionService:
    """FastAPI dependency returning the shared :class:`IngestionService`."""

    global _ingestion_service
    if _ingestion_service is None:
        _ingestion_service = IngestionService()
    return _ingestion_service


def reset_ingestion_service() -> None:
    global _ingestion_service
    _ingestion_service = None


__all__ = [
    "IngestResult",
    "IngestionService",
    "analysis_progress",
    "get_ingestion_service",
    "reset_ingestion_service",
    "storage_progress",
]

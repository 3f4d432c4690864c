"""API router for document upload and ingestion progress."""
from __future__ import annotations

import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from studyowl.errors import InputValidationError, UpstreamServiceError
from studyowl.progress import ProgressStore, get_progress_store
from studyowl.services.ingestion import IngestResult, IngestionService, get_ingestion_service
from studyowl.settings import Settings, get_settings

router = APIRouter(prefix="/api/documents", tags=["documents"])

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


class UploadResponse(BaseModel):
    """Response body returned once a document has been ingested."""

    document_id: str
    pdf_blob: str
    json_blob: str
    chunks_written: int


class StatusResponse(BaseModel):
    document_id: str
    stage: str
    progress: int
    elapsed_seconds: int
    estimated_remaining_seconds: int
    message: str


def _is_pdf(upload: UploadFile) -> bool:
    if upload.content_type in PDF_CONTENT_TYPES:
        return True
    return Path(upload.filename or "").suffix.lower() == ".pdf"


@router.post("", response_model=UploadResponse, status_code=201)
async def upload_document(
    file: UploadFile | None = File(None),
    student_id: str | None = Form(None),
    course_id: str | None = Form(None),
    service: IngestionService = Depends(get_ingestion_service),
    settings: Settings = Depends(get_settings),
) -> UploadResponse:
    """Upload a PDF and run the full ingestion pipeline for it."""

    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not student_id or not course_id:
        raise HTTPException(status_code=400, detail="Missing student_id or course_id")
    if not _is_pdf(file):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")

    contents = await file.read()
    if len(contents) > settings.upload_max_bytes:
        raise HTTPException(status_code=400, detail="Uploaded file is too large")

    document_id = uuid.uuid4().hex
    try:
        result: IngestResult = await run_in_threadpool(
            service.ingest_pdf,
            document_id,
            file.filename or "upload.pdf",
            contents,
            student_id=student_id,
            course_id=course_id,
        )
    except InputValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return UploadResponse(
        document_id=result.document_id,
        pdf_blob=result.pdf_path or "",
        json_blob=result.layout_path or "",
        chunks_written=result.fragments_written,
    )


@router.get("/{document_id}/status", response_model=StatusResponse)
def document_status(
    document_id: str,
    progress_store: ProgressStore = Depends(get_progress_store),
) -> StatusResponse:
    """Report ingestion progress for a document still being processed."""

    snapshot = progress_store.snapshot(document_id)
    if snapshot is None:
        raise HTTPException(
            status_code=404, detail="Document not found in progress tracker (unknown or already finalized)"
        )
    return StatusResponse(
        document_id=snapshot.document_id,
        stage=snapshot.stage,
        progress=snapshot.progress,
        elapsed_seconds=snapshot.elapsed_seconds,
        estimated_remaining_seconds=snapshot.estimated_remaining_seconds,
        message=snapshot.message,
    )

"""Utilities for persisting uploaded documents and their analysed layouts on disk."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Final, Sequence
from uuid import uuid4

from studyowl.ingest.models import PageLayout

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    if not filename:
        filename = "upload"
    sanitized = Path(filename).name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    sanitized = sanitized.strip("._") or "upload"
    return sanitized


def _document_dir(data_dir: str | Path, document_id: str) -> Path:
    directory = Path(data_dir) / _sanitize_filename(document_id)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def save_upload(data_dir: str | Path, document_id: str, filename: str, contents: bytes) -> Path:
    """Persist an uploaded file inside the data directory for the given document."""

    sanitized_name = _sanitize_filename(filename)
    base = Path(sanitized_name).stem or "upload"
    suffix = Path(sanitized_name).suffix
    unique_name = f"{base}-{uuid4().hex}{suffix}" if suffix else f"{base}-{uuid4().hex}"
    destination = _document_dir(data_dir, document_id) / unique_name
    destination.write_bytes(contents)
    return destination.resolve()


def save_layout_json(data_dir: str | Path, document_id: str, layouts: Sequence[PageLayout]) -> Path:
    """Write the analysed page layouts next to the uploaded document."""

    destination = _document_dir(data_dir, document_id) / "layout.json"
    payload = {
        "document_id": document_id,
        "page_count": len(layouts),
        "pages": [layout.to_dict() for layout in layouts],
    }
    destination.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return destination.resolve()


__all__ = ["save_layout_json", "save_upload"]

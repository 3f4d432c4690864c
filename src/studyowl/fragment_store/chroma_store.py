"""Chroma-backed persistent fragment store."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import chromadb

from studyowl.ingest.models import Fragment

from .errors import FragmentStoreUnavailableError

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

DEFAULT_COLLECTION_NAME = "studyowl_fragments"

# Retrieval never searches by vector; every record carries the same placeholder
# embedding so Chroma does not compute one.
_PLACEHOLDER_EMBEDDING = [1.0]


def _fragment_metadata(fragment: Fragment) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "document_id": fragment.document_id,
        "page_number": fragment.page_number,
        "chunk_index": fragment.chunk_index,
    }
    # Chroma rejects ``None`` metadata values.
    for key in ("section_title", "student_id", "course_id"):
        value = getattr(fragment, key)
        if value is not None:
            metadata[key] = value
    return metadata


def _fragment_from_record(record_id: str, document: str | None, metadata: Dict[str, Any] | None) -> Fragment:
    metadata = metadata or {}
    return Fragment(
        id=record_id,
        document_id=str(metadata.get("document_id", "")),
        page_number=int(metadata.get("page_number", 0)),
        content=document or "",
        section_title=metadata.get("section_title"),
        chunk_index=int(metadata.get("chunk_index", 0)),
        student_id=metadata.get("student_id"),
        course_id=metadata.get("course_id"),
    )


class ChromaFragmentStore:
    """Adapter storing fragments as documents in a Chroma collection."""

    backend = "chroma"

    def __init__(
        self,
        persist_dir: str | Path,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        client: Optional["ClientAPI"] = None,
    ) -> None:
        self.persist_dir = Path(persist_dir)
        self.collection_name = collection_name
        try:
            if client is not None:
                self._client = client
            else:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            self._collection: "Collection" = self._client.get_or_create_collection(
                name=collection_name
            )
        except FragmentStoreUnavailableError:
            raise
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise FragmentStoreUnavailableError(
                "Failed to initialise Chroma fragment collection",
                cause=exc,
            ) from exc

    def add_fragments(self, fragments: Sequence[Fragment]) -> int:
        if not fragments:
            return 0
        try:
            self._collection.upsert(
                ids=[fragment.id for fragment in fragments],
                documents=[fragment.content for fragment in fragments],
                metadatas=[_fragment_metadata(fragment) for fragment in fragments],
                embeddings=[list(_PLACEHOLDER_EMBEDDING) for _ in fragments],
            )
        except Exception as exc:
            raise FragmentStoreUnavailableError("Failed to write fragments to Chroma", cause=exc) from exc
        return len(fragments)

    def list_fragments(self, document_id: str) -> List[Fragment]:
        try:
            records = self._collection.get(
                where={"document_id": document_id},
                include=["documents", "metadatas"],
            )
        except Exception as exc:
            raise FragmentStoreUnavailableError("Failed to read fragments from Chroma", cause=exc) from exc

        ids = records.get("ids") or []
        documents = records.get("documents") or [None] * len(ids)
        metadatas = records.get("metadatas") or [None] * len(ids)
        fragments = [
            _fragment_from_record(record_id, document, metadata)
            for record_id, document, metadata in zip(ids, documents, metadatas)
        ]
        fragments.sort(key=lambda fragment: (fragment.page_number, fragment.chunk_index))
        return fragments

    def delete_document(self, document_id: str) -> None:
        try:
            self._collection.delete(where={"document_id": document_id})
        except Exception as exc:
            raise FragmentStoreUnavailableError("Failed to delete fragments from Chroma", cause=exc) from exc


__all__ = ["ChromaFragmentStore", "DEFAULT_COLLECTION_NAME"]

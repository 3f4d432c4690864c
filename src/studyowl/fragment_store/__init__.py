"""Fragment persistence behind pluggable backends."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Protocol, Sequence

from studyowl.ingest.models import Fragment
from studyowl.settings import get_settings

from .errors import FragmentStoreUnavailableError
from .memory_store import InMemoryFragmentStore


class FragmentStore(Protocol):
    backend: str

    def add_fragments(self, fragments: Sequence[Fragment]) -> int:
        """Persist a batch of fragments and return how many were written."""

    def list_fragments(self, document_id: str) -> List[Fragment]:
        """Return the committed fragments of a document ordered by page and chunk index."""

    def delete_document(self, document_id: str) -> None:
        """Remove every fragment stored for a document."""


@lru_cache()
def get_fragment_store() -> FragmentStore:
    """Return a lazily initialised fragment store based on configuration."""

    settings = get_settings()
    backend = settings.fragment_store

    if backend == "memory":
        return InMemoryFragmentStore()

    if backend == "chroma":
        from .chroma_store import ChromaFragmentStore

        return ChromaFragmentStore(
            settings.chroma_persist_dir,
            collection_name=settings.chroma_collection,
        )

    raise ValueError(f"Unsupported FRAGMENT_STORE backend: {backend!r}")


def reset_fragment_store_cache() -> None:
    """Clear the cached fragment store (primarily for testing)."""

    get_fragment_store.cache_clear()


__all__ = [
    "FragmentStore",
    "FragmentStoreUnavailableError",
    "InMemoryFragmentStore",
    "get_fragment_store",
    "reset_fragment_store_cache",
]

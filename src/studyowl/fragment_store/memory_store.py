"""Process-local fragment store used by default and in tests."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Sequence

from studyowl.ingest.models import Fragment

LOGGER = logging.getLogger(__name__)


class InMemoryFragmentStore:
    """Keep fragments in a dictionary keyed by document id.

    Each ``add_fragments`` call is applied under a lock, so readers only ever
    see whole committed batches.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._documents: Dict[str, Dict[str, Fragment]] = {}
        self._lock = threading.Lock()

    def add_fragments(self, fragments: Sequence[Fragment]) -> int:
        if not fragments:
            return 0
        with self._lock:
            for fragment in fragments:
                self._documents.setdefault(fragment.document_id, {})[fragment.id] = fragment
        LOGGER.debug("Stored %s fragments in memory", len(fragments))
        return len(fragments)

    def list_fragments(self, document_id: str) -> List[Fragment]:
        with self._lock:
            stored = list(self._documents.get(document_id, {}).values())
        stored.sort(key=lambda fragment: (fragment.page_number, fragment.chunk_index))
        return stored

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            removed = self._documents.pop(document_id, {})
        LOGGER.debug("Removed %s fragments of %s from memory", len(removed), document_id)


__all__ = ["InMemoryFragmentStore"]

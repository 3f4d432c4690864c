"""In-memory ingestion progress tracking with retention-based eviction.

Entries are immutable :class:`ProgressState` values replaced atomically under a
lock, so a status poll never observes a half-updated record. Stages only move
forward; once an entry reaches ``complete`` it stays visible for the
retention window and is then evicted. Progress lives in process memory only.
"""
from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from studyowl.errors import ProgressTransitionError
from studyowl.settings import get_settings

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class Stage(str, enum.Enum):
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    CHUNKING = "chunking"
    STORING = "storing"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]


_STAGE_ORDER = {stage: position for position, stage in enumerate(Stage)}


@dataclass(frozen=True, slots=True)
class ProgressState:
    stage: Stage
    progress: int
    started_at: float
    message: str = ""
    completed_at: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Read model returned to status pollers."""

    document_id: str
    stage: str
    progress: int
    elapsed_seconds: int
    estimated_remaining_seconds: int
    message: str


def estimate_remaining_seconds(progress: int, elapsed: float) -> float:
    if 0 < progress < 100 and elapsed > 0:
        rate = progress / elapsed
        return (100 - progress) / rate
    return 0.0


class ProgressStore:
    """Thread-safe map of document id to :class:`ProgressState`."""

    def __init__(self, *, retention_seconds: float = 10.0, clock: Clock = time.time) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._states: dict[str, ProgressState] = {}
        self._lock = threading.Lock()

    def _expired(self, state: ProgressState, now: float) -> bool:
        return state.completed_at is not None and now - state.completed_at >= self.retention_seconds

    def get(self, document_id: str) -> Optional[ProgressState]:
        now = self._clock()
        with self._lock:
            state = self._states.get(document_id)
            if state is not None and self._expired(state, now):
                del self._states[document_id]
                return None
            return state

    def set(self, document_id: str, state: ProgressState) -> None:
        with self._lock:
            current = self._states.get(document_id)
            if current is not None and state.stage.order < current.stage.order:
                raise ProgressTransitionError(
                    f"Cannot move {document_id} from {current.stage.value} back to {state.stage.value}"
                )
            self._states[document_id] = state

    def evict(self, document_id: str) -> None:
        with self._lock:
            self._states.pop(document_id, None)

    def start(self, document_id: str, message: str = "Starting upload...") -> ProgressState:
        state = ProgressState(
            stage=Stage.UPLOADING,
            progress=0,
            started_at=self._clock(),
            message=message,
        )
        with self._lock:
            self._states[document_id] = state
        return state

    def advance(self, document_id: str, stage: Stage, progress: int, message: str = "") -> ProgressState:
        """Move ``document_id`` to ``stage`` keeping progress monotonic."""

        current = self.get(document_id)
        if current is None:
            current = self.start(document_id)
        value = max(0, min(100, int(progress)))
        if stage is current.stage:
            value = max(value, current.progress)
        completed_at = self._clock() if stage is Stage.COMPLETE else None
        state = replace(
            current,
            stage=stage,
            progress=value,
            message=message,
            completed_at=completed_at,
        )
        self.set(document_id, state)
        return state

    def complete(self, document_id: str, message: str = "Ready for study session!") -> ProgressState:
        return self.advance(document_id, Stage.COMPLETE, 100, message)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, state in self._states.items() if self._expired(state, now)]
            for key in expired:
                del self._states[key]
        if expired:
            LOGGER.debug("Evicted %s completed progress entries", len(expired))
        return len(expired)

    def snapshot(self, document_id: str) -> Optional[ProgressSnapshot]:
        state = self.get(document_id)
        if state is None:
            return None
        elapsed = max(0.0, self._clock() - state.started_at)
        return ProgressSnapshot(
            document_id=document_id,
            stage=state.stage.value,
            progress=state.progress,
            elapsed_seconds=round(elapsed),
            estimated_remaining_seconds=round(estimate_remaining_seconds(state.progress, elapsed)),
            message=state.message,
        )


_progress_store: Optional[ProgressStore] = None
_store_lock = threading.Lock()


def get_progress_store() -> ProgressStore:
    """FastAPI dependency returning the shared :class:`ProgressStore`."""

    global _progress_store
    with _store_lock:
        if _progress_store is None:
            _progress_store = ProgressStore(retention_seconds=get_settings().progress_retention_seconds)
        return _progress_store


def reset_progress_store() -> None:
    global _progress_store
    with _store_lock:
        _progress_store = None


__all__ = [
    "ProgressSnapshot",
    "ProgressState",
    "ProgressStore",
    "Stage",
    "estimate_remaining_seconds",
    "get_progress_store",
    "reset_progress_store",
]

import pytest

from studyowl.errors import ProgressTransitionError
from studyowl.progress import ProgressStore, Stage, estimate_remaining_seconds, get_progress_store


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> ProgressStore:
    return ProgressStore(retention_seconds=10.0, clock=clock)


def test_start_creates_uploading_entry(store):
    state = store.start("doc-1")

    assert state.stage is Stage.UPLOADING
    assert state.progress == 0
    assert store.get("doc-1").message == "Starting upload..."


def test_snapshot_reports_elapsed_and_estimate(store, clock):
    store.start("doc-1")
    clock.advance(20)
    store.advance("doc-1", Stage.ANALYZING, 40, "Analyzed 2/2 pages")

    snapshot = store.snapshot("doc-1")

    assert snapshot.stage == "analyzing"
    assert snapshot.progress == 40
    assert snapshot.elapsed_seconds == 20
    assert snapshot.estimated_remaining_seconds == 30
    assert snapshot.message == "Analyzed 2/2 pages"


def test_estimate_is_zero_without_progress():
    assert estimate_remaining_seconds(0, 12.0) == 0.0
    assert estimate_remaining_seconds(100, 12.0) == 0.0


def test_progress_is_monotonic_within_stage(store):
    store.start("doc-1")
    store.advance("doc-1", Stage.STORING, 70)

    state = store.advance("doc-1", Stage.STORING, 55)

    assert state.progress == 70


def test_backward_stage_transition_is_rejected(store):
    store.start("doc-1")
    store.advance("doc-1", Stage.CHUNKING, 40)

    with pytest.raises(ProgressTransitionError):
        store.advance("doc-1", Stage.ANALYZING, 10)


def test_completed_entry_is_evicted_after_retention(store, clock):
    store.start("doc-1")
    store.complete("doc-1")
    clock.advance(9.5)

    assert store.snapshot("doc-1").progress == 100

    clock.advance(0.5)

    assert store.get("doc-1") is None
    assert store.snapshot("doc-1") is None


def test_in_flight_entries_never_expire(store, clock):
    store.start("doc-1")
    clock.advance(3600)

    assert store.get("doc-1") is not None


def test_purge_expired_and_evict(store, clock):
    store.start("a")
    store.complete("a")
    store.start("b")
    clock.advance(11)

    assert store.purge_expired() == 1

    store.evict("b")
    assert store.get("b") is None


def test_shared_store_uses_configured_retention(monkeypatch):
    monkeypatch.setenv("PROGRESS_RETENTION_SECONDS", "3")
    from studyowl.settings import reset_settings_cache

    reset_settings_cache()

    assert get_progress_store().retention_seconds == 3.0
    assert get_progress_store() is get_progress_store()

"""Shared pytest configuration: stub LLM, in-memory store, fresh caches per test."""
from __future__ import annotations

import os
import tempfile

import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="studyowl-logs-"))
os.environ["LLM_PROVIDER"] = "stub"
os.environ["FRAGMENT_STORE"] = "memory"

from studyowl.fragment_store import reset_fragment_store_cache  # noqa: E402
from studyowl.llm_provider import reset_llm  # noqa: E402
from studyowl.progress import reset_progress_store  # noqa: E402
from studyowl.services.chat import reset_chat_service  # noqa: E402
from studyowl.services.ingestion import reset_ingestion_service  # noqa: E402
from studyowl.settings import reset_settings_cache  # noqa: E402


def _reset_caches() -> None:
    reset_settings_cache()
    reset_fragment_store_cache()
    reset_llm()
    reset_progress_store()
    reset_chat_service()
    reset_ingestion_service()


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("LLM_PROVIDER", "stub")
    monkeypatch.setenv("FRAGMENT_STORE", "memory")
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    _reset_caches()
    yield
    _reset_caches()

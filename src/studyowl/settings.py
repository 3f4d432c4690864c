"""Environment driven configuration for the StudyOwl service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

LOGGER = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.1-70b-versatile"
DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _optional_float_from_env(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; leaving unset", name, value)
        return None


def _list_from_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration resolved once per process."""

    chunk_size: int = 1000
    chunk_overlap: int = 150
    chunk_min_tail_ratio: float = 0.1
    context_max_chars: int = 6000
    pages_per_batch: int = 2
    store_batch_size: int = 50
    max_chunks_per_page: int = 500
    progress_retention_seconds: float = 10.0
    upload_max_bytes: int = 25 * 1024 * 1024
    data_dir: str = "data"
    fragment_store: str = "memory"
    chroma_persist_dir: str = "chroma_db"
    chroma_collection: str = "studyowl_fragments"
    llm_provider: str = "groq"
    llm_base_url: str = GROQ_BASE_URL
    llm_model: str = DEFAULT_MODEL
    llm_api_key: str | None = None
    llm_timeout_seconds: float | None = None
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.2
    enrich_max_tokens: int = 500
    enrich_temperature: float = 0.1
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)


def load_settings() -> Settings:
    """Build a :class:`Settings` instance from the process environment."""

    provider = os.getenv("LLM_PROVIDER", "groq").strip().lower()
    if _env_flag("LLM_STUB"):
        provider = "stub"

    return Settings(
        chunk_size=_int_from_env("CHUNK_SIZE", 1000),
        chunk_overlap=_int_from_env("CHUNK_OVERLAP", 150),
        chunk_min_tail_ratio=_float_from_env("CHUNK_MIN_TAIL_RATIO", 0.1),
        context_max_chars=_int_from_env("CONTEXT_MAX_CHARS", 6000),
        pages_per_batch=max(1, _int_from_env("PAGES_PER_BATCH", 2)),
        store_batch_size=max(1, _int_from_env("STORE_BATCH_SIZE", 50)),
        max_chunks_per_page=max(1, _int_from_env("MAX_CHUNKS_PER_PAGE", 500)),
        progress_retention_seconds=_float_from_env("PROGRESS_RETENTION_SECONDS", 10.0),
        upload_max_bytes=_int_from_env("UPLOAD_MAX_BYTES", 25 * 1024 * 1024),
        data_dir=os.getenv("DATA_DIR", "data"),
        fragment_store=os.getenv("FRAGMENT_STORE", "memory").strip().lower(),
        chroma_persist_dir=os.getenv("CHROMA_PERSIST_DIR", "chroma_db"),
        chroma_collection=os.getenv("CHROMA_COLLECTION", "studyowl_fragments"),
        llm_provider=provider,
        llm_base_url=os.getenv("LLM_BASE_URL", GROQ_BASE_URL).rstrip("/"),
        llm_model=os.getenv("LLM_MODEL", DEFAULT_MODEL),
        llm_api_key=os.getenv("GROQ_API_KEY") or os.getenv("LLM_API_KEY"),
        llm_timeout_seconds=_optional_float_from_env("LLM_TIMEOUT_SECONDS"),
        llm_max_tokens=_int_from_env("LLM_MAX_TOKENS", 1024),
        llm_temperature=_float_from_env("LLM_TEMPERATURE", 0.2),
        enrich_max_tokens=_int_from_env("ENRICH_MAX_TOKENS", 500),
        enrich_temperature=_float_from_env("ENRICH_TEMPERATURE", 0.1),
        cors_origins=_list_from_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached process settings."""

    return load_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "load_settings", "reset_settings_cache"]

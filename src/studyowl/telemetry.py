"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import socket
import subprocess
import sys
import time
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional


LOGGER = logging.getLogger("studyowl.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_BASE_URL",
    "LLM_MAX_TOKENS",
    "LLM_TEMPERATURE",
    "LLM_TIMEOUT_SECONDS",
    "ENRICH_MAX_TOKENS",
    "ENRICH_TEMPERATURE",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "CHUNK_MIN_TAIL_RATIO",
    "CONTEXT_MAX_CHARS",
    "PAGES_PER_BATCH",
    "STORE_BATCH_SIZE",
    "FRAGMENT_STORE",
    "CHROMA_PERSIST_DIR",
    "DATA_DIR",
)


def _safe_getuid() -> Optional[int]:  # pragma: no cover - platform dependent
    try:
        return os.getuid()  # type: ignore[attr-defined]
    except AttributeError:
        return None


def _run_command(command: list[str], *, timeout: float = 5.0) -> tuple[int, str, str]:
    try:
        completed = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as error:  # pragma: no cover - depends on runtime
        return 1, "", str(error)
    return completed.returncode, completed.stdout.strip(), completed.stderr.strip()


def _resolve_git_commit() -> Optional[str]:
    returncode, stdout, _ = _run_command(["git", "rev-parse", "HEAD"])
    if returncode != 0:
        return None
    return stdout.strip() or None


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    document_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if document_id:
        event["document_id"] = document_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    if extra:
        event.update(extra)
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    payload = {
        "commit": _resolve_git_commit(),
        "user": _safe_getuid(),
        "pid": os.getpid(),
        "hostname": socket.gethostname(),
        "cwd": str(Path.cwd()),
    }
    log_event(LOGGER, "app.startup", details=details, extra=payload)


def emit_llm_provider_init(
    *, provider: str, ready: bool, model: str | None, max_tokens: int | None, temperature: float | None
) -> None:
    details = {
        "provider": provider,
        "ready": ready,
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    log_event(LOGGER, "llm.provider.init", details=details)


def emit_inference_request(
    *,
    req_id: str,
    document_id: str | None,
    purpose: str,
    prompt_preview: str,
    prompt_len: int,
    temperature: float,
    max_tokens: int | None,
    sources: Iterable[str] = (),
) -> None:
    details = {
        "purpose": purpose,
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "sources": list(sources),
    }
    log_event(LOGGER, "inference.request", req_id=req_id, document_id=document_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    document_id: str | None,
    purpose: str,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    fallback: bool,
) -> None:
    details = {
        "purpose": purpose,
        "model_used": model_used,
        "answer_preview": answer_preview[:120],
        "fallback": fallback,
    }
    log_event(
        LOGGER,
        "inference.result",
        req_id=req_id,
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_ingest_event(
    step: str,
    *,
    document_id: str,
    file_name: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    figures: int | None = None,
    fragments: int | None = None,
) -> None:
    details = {
        "file": file_name,
        "size_bytes": size_bytes,
        "duration_ms": duration_ms,
        "pages": pages,
        "figures": figures,
        "fragments": fragments,
    }
    log_event(LOGGER, step, document_id=document_id, details=details)


def emit_enrichment_event(
    *,
    page_number: int,
    figure_index: int,
    outcome: str,
    template: str | None = None,
    match_score: int | None = None,
    reason: str | None = None,
) -> None:
    details = {
        "page": page_number,
        "figure": figure_index,
        "outcome": outcome,
        "template": template,
        "match_score": match_score,
        "reason": reason,
    }
    level = "warning" if outcome == "failed" else "info"
    log_event(LOGGER, "enrichment.figure", level=level, details=details)


def emit_store_event(
    step: str,
    *,
    backend: str,
    document_id: str | None,
    count: int,
    error: BaseException | None = None,
) -> None:
    details = {"backend": backend, "count": count}
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, document_id=document_id, details=details, exc=error)


def emit_retriever_event(
    *,
    document_id: str,
    query: str,
    page_hint: int | None,
    graph_intent: bool,
    candidates: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "page_hint": page_hint,
        "graph_intent": graph_intent,
        "candidates": candidates,
        "results": results,
    }
    log_event(
        LOGGER,
        "retriever.select",
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    document_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        document_id=document_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_app_startup_event",
    "emit_enrichment_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_ingest_event",
    "emit_llm_provider_init",
    "emit_retriever_event",
    "emit_store_event",
    "log_event",
    "traced_duration",
]

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from studyowl.api import chat_router, documents_router
from studyowl.llm_provider import get_llm_status
from studyowl.logging_config import configure_logging
from studyowl.progress import get_progress_store
from studyowl.settings import get_settings
from studyowl.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="StudyOwl API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(documents_router)
app.include_router(chat_router)


@app.on_event("startup")
async def _startup() -> None:
    emit_app_startup_event()
    status = get_llm_status()
    if not status.ready:
        LOGGER.warning("Answering model unavailable: %s", status.error)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz")
def healthcheck() -> dict[str, object]:
    """Report the configured LLM backend and tracked ingestions."""

    status = get_llm_status()
    store = get_progress_store()
    store.purge_expired()
    payload: dict[str, object] = {
        "status": "ok",
        "llm_ready": status.ready,
        "provider": status.provider,
        "model_name": status.model_name,
    }
    if status.error:
        payload["reason"] = status.error
    return payload

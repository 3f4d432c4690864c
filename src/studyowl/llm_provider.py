"""Access to the hosted language model used for answers and graph inference."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from studyowl.settings import Settings, get_settings
from studyowl.telemetry import emit_llm_provider_init


LOGGER = logging.getLogger(__name__)

DEFAULT_STUB_RESPONSE = "The answering model is not available right now. Please try again later."


@dataclass(slots=True)
class LLMStatus:
    """Structured status information about the configured LLM backend."""

    ready: bool
    provider: str
    model_name: str
    error: Optional[str] = None


class LLMError(RuntimeError):
    """Base exception raised for LLM provider issues."""


class LLMNotReadyError(LLMError):
    """Raised when the backend is not configured or cannot be reached."""


class LLMGenerationError(LLMError):
    """Raised when text generation fails unexpectedly."""


class LLM:
    """Common interface exposed by language model implementations."""

    provider = "base"

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Generate a response for the provided prompt."""

        raise NotImplementedError

    @property
    def ready(self) -> bool:
        return False

    @property
    def model_name(self) -> str:
        return "stub"

    @property
    def last_error(self) -> Optional[str]:
        return None

    def status(self) -> LLMStatus:
        """Return structured diagnostic information for health checks."""

        return LLMStatus(
            ready=self.ready,
            provider=self.provider,
            model_name=self.model_name,
            error=self.last_error,
        )


class LLMStub(LLM):
    """Fallback implementation returning a fixed message."""

    provider = "stub"

    def __init__(
        self,
        message: str = DEFAULT_STUB_RESPONSE,
        *,
        reason: str | None = None,
    ) -> None:
        self._message = message
        self._reason = reason or "LLM stub is active (model not configured)."

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        return self._message

    @property
    def last_error(self) -> Optional[str]:
        return self._reason

    def update_reason(self, reason: str) -> None:
        self._reason = reason


def extract_completion_text(payload: Any) -> str:
    """Pull the first choice's message content out of a chat-completions response."""

    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return str(content) if content else ""


class ChatCompletionsLLM(LLM):
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint (Groq by default).

    Requests are sent one at a time with no retries; the timeout is unset unless
    configured.
    """

    provider = "chat-completions"

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self.timeout = timeout
        self.chat_url = f"{self.base_url}/chat/completions"
        self._client = client
        self._last_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return bool(self._api_key)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def _http_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            response = self._http_client().post(self.chat_url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            self._last_error = f"timeout: {exc}"
            LOGGER.error("LLM request timed out: %s", exc)
            raise LLMGenerationError("LLM request timed out") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            self._last_error = f"http {status_code}"
            LOGGER.error("LLM HTTP error: %s - %s", status_code, exc.response.text[:200])
            raise LLMGenerationError(f"LLM API error: HTTP {status_code}") from exc
        except httpx.RequestError as exc:
            self._last_error = f"connection: {exc}"
            LOGGER.error("LLM connection error: %s", exc)
            raise LLMNotReadyError(f"Failed to reach LLM endpoint: {exc}") from exc
        except ValueError as exc:
            self._last_error = "invalid json"
            LOGGER.error("LLM returned a non-JSON body: %s", exc)
            raise LLMGenerationError("LLM returned an invalid response") from exc

        self._last_error = None
        return extract_completion_text(body)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


_GLOBAL_LLM: Optional[LLM] = None
_GLOBAL_STUB = LLMStub()
_LOCK = threading.Lock()


def _build_llm(settings: Settings) -> LLM:
    if settings.llm_provider == "stub":
        LOGGER.warning("LLM stub provider selected; using stub responses only.")
        _GLOBAL_STUB.update_reason("LLM_PROVIDER=stub; hosted model disabled.")
        return _GLOBAL_STUB

    if not settings.llm_api_key:
        LOGGER.warning("GROQ_API_KEY is not configured; using stub responses.")
        _GLOBAL_STUB.update_reason("GROQ_API_KEY is not configured.")
        return _GLOBAL_STUB

    return ChatCompletionsLLM(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        timeout=settings.llm_timeout_seconds,
    )


def get_llm() -> LLM:
    """Return a lazily initialised LLM instance or a stub fallback."""

    global _GLOBAL_LLM

    with _LOCK:
        if _GLOBAL_LLM is not None:
            return _GLOBAL_LLM

        settings = get_settings()
        llm = _build_llm(settings)
        emit_llm_provider_init(
            provider=llm.provider,
            ready=llm.ready,
            model=llm.model_name,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )
        _GLOBAL_LLM = llm
        return llm


def reset_llm() -> None:
    """Drop the cached LLM instance (primarily for testing)."""

    global _GLOBAL_LLM

    with _LOCK:
        if isinstance(_GLOBAL_LLM, ChatCompletionsLLM):
            _GLOBAL_LLM.close()
        _GLOBAL_LLM = None


def get_llm_status() -> LLMStatus:
    """Return structured status information about the configured LLM."""

    return get_llm().status()


__all__ = [
    "ChatCompletionsLLM",
    "DEFAULT_STUB_RESPONSE",
    "LLM",
    "LLMError",
    "LLMGenerationError",
    "LLMNotReadyError",
    "LLMStatus",
    "LLMStub",
    "extract_completion_text",
    "get_llm",
    "get_llm_status",
    "reset_llm",
]

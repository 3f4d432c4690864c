"""Tests for the chat-completions client and the provider factory."""
from __future__ import annotations

import json

import httpx
import pytest

from studyowl import llm_provider
from studyowl.llm_provider import (
    ChatCompletionsLLM,
    LLMGenerationError,
    LLMNotReadyError,
    LLMStub,
    extract_completion_text,
    get_llm,
    get_llm_status,
)
from studyowl.settings import reset_settings_cache


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_generate_posts_chat_completion_request():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Marginal cost rises."}}]})

    llm = ChatCompletionsLLM(
        base_url="https://llm.test/v1/",
        model="test-model",
        api_key="secret",
        client=_client(handler),
    )

    answer = llm.generate("Explain MC", max_tokens=1024, temperature=0.2)

    assert answer == "Marginal cost rises."
    assert captured["url"] == "https://llm.test/v1/chat/completions"
    assert captured["auth"] == "Bearer secret"
    assert captured["body"] == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "Explain MC"}],
        "temperature": 0.2,
        "max_tokens": 1024,
    }
    assert llm.status().ready
    assert llm.last_error is None


def test_http_errors_raise_generation_error():
    llm = ChatCompletionsLLM(
        base_url="https://llm.test/v1",
        model="m",
        api_key="k",
        client=_client(lambda request: httpx.Response(429, text="rate limited")),
    )

    with pytest.raises(LLMGenerationError, match="HTTP 429"):
        llm.generate("q", max_tokens=10, temperature=0.0)
    assert llm.last_error == "http 429"


def test_connection_errors_raise_not_ready():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    llm = ChatCompletionsLLM(base_url="https://llm.test/v1", model="m", api_key="k", client=_client(handler))

    with pytest.raises(LLMNotReadyError):
        llm.generate("q", max_tokens=10, temperature=0.0)


def test_timeouts_raise_generation_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    llm = ChatCompletionsLLM(base_url="https://llm.test/v1", model="m", api_key="k", client=_client(handler))

    with pytest.raises(LLMGenerationError, match="timed out"):
        llm.generate("q", max_tokens=10, temperature=0.0)


def test_extract_completion_text_handles_odd_payloads():
    assert extract_completion_text({"choices": []}) == ""
    assert extract_completion_text({"choices": [{"message": {"content": None}}]}) == ""
    assert extract_completion_text(["not", "a", "dict"]) == ""


def test_get_llm_returns_stub_when_provider_is_stub():
    llm = get_llm()

    assert isinstance(llm, LLMStub)
    assert get_llm() is llm
    status = get_llm_status()
    assert status.provider == "stub"
    assert not status.ready
    assert "LLM_PROVIDER=stub" in status.error


def test_get_llm_without_api_key_falls_back_to_stub(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "groq")
    reset_settings_cache()
    llm_provider.reset_llm()

    llm = get_llm()

    assert isinstance(llm, LLMStub)
    assert "GROQ_API_KEY" in llm.last_error


def test_get_llm_builds_http_client_with_key(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "groq")
    monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
    monkeypatch.setenv("LLM_MODEL", "llama-test")
    reset_settings_cache()
    llm_provider.reset_llm()

    llm = get_llm()

    assert isinstance(llm, ChatCompletionsLLM)
    assert llm.model_name == "llama-test"
    assert llm.chat_url == "https://api.groq.com/openai/v1/chat/completions"

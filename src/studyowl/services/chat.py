from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from studyowl.errors import DocumentNotFoundError, InputValidationError
from studyowl.formatting import format_response
from studyowl.fragment_store import FragmentStore, get_fragment_store
from studyowl.llm_provider import LLM, LLMError, get_llm
from studyowl.logging_config import CHAT_AUDIT_LOGGER_NAME
from studyowl.prompt_builder import build_answer_prompt
from studyowl.retrieval import analyze, assemble, filter_candidates, rank
from studyowl.settings import Settings, get_settings
from studyowl.telemetry import (
    emit_exception,
    emit_inference_request,
    emit_inference_result,
    emit_retriever_event,
)

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(CHAT_AUDIT_LOGGER_NAME)

FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."
EMPTY_REPLY = "No response generated"


@dataclass(slots=True)
class ChatResult:
    """Structured result returned from :meth:`ChatService.answer`."""

    reply: str
    context: str
    page_hint: Optional[int]
    graph_intent: bool
    fragment_ids: List[str] = field(default_factory=list)


class ChatService:
    """Answer a student's question from the stored fragments of one document."""

    def __init__(
        self,
        *,
        fragment_store: FragmentStore | None = None,
        llm: LLM | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.fragment_store = fragment_store or get_fragment_store()
        self._llm = llm

    @property
    def llm(self) -> LLM:
        return self._llm or get_llm()

    def answer(
        self,
        document_id: str,
        message: str,
        *,
        page_number: int | None = None,
        conversation_history: Sequence[dict] | None = None,
    ) -> ChatResult:
        if not document_id or not message or not message.strip():
            raise InputValidationError("Missing required fields: message, document_id")

        fragments = self.fragment_store.list_fragments(document_id)
        if not fragments:
            raise DocumentNotFoundError(document_id)

        started = time.perf_counter()
        query = analyze(message, page_number)
        candidates = filter_candidates(fragments, query.page_hint)
        selected = rank(candidates, query)
        context = assemble(selected, self.settings.context_max_chars)
        emit_retriever_event(
            document_id=document_id,
            query=message,
            page_hint=query.page_hint,
            graph_intent=query.graph_intent,
            candidates=len(candidates),
            results=[
                {"id": fragment.id, "page": fragment.page_number, "chars": len(fragment.content)}
                for fragment in selected
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        if conversation_history:
            LOGGER.debug(
                "Ignoring %s prior turns for document %s", len(conversation_history), document_id
            )

        prompt = build_answer_prompt(message, context)
        llm = self.llm
        req_id = uuid.uuid4().hex
        fragment_ids = [fragment.id for fragment in selected]
        emit_inference_request(
            req_id=req_id,
            document_id=document_id,
            purpose="answer",
            prompt_preview=prompt,
            prompt_len=len(prompt),
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
            sources=fragment_ids,
        )
        inference_started = time.perf_counter()
        try:
            raw = llm.generate(
                prompt,
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
            )
        except LLMError as error:
            LOGGER.exception("Answer generation failed for document %s", document_id)
            emit_exception(
                module=f"{__name__}.llm",
                error=error,
                req_id=req_id,
                document_id=document_id,
            )
            raise

        if not raw or not raw.strip():
            LOGGER.warning("Empty completion for document %s", document_id)
            raw = EMPTY_REPLY
        reply = format_response(raw)
        emit_inference_result(
            req_id=req_id,
            document_id=document_id,
            purpose="answer",
            duration_ms=(time.perf_counter() - inference_started) * 1000.0,
            model_used=llm.model_name,
            answer_preview=reply,
            fallback=not llm.ready,
        )
        AUDIT_LOGGER.info(
            {
                "event": "query",
                "document_id": document_id,
                "question": message,
                "sources": fragment_ids,
            }
        )
        return ChatResult(
            reply=reply,
            context=context,
            page_hint=query.page_hint,
            graph_intent=query.graph_intent,
            fragment_ids=fragment_ids,
        )


_chat_service: ChatService | None = None


def get_chat_service() -> ChatService:
    """FastAPI dependency returning the shared :class:`ChatService`."""

    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


def reset_chat_service() -> None:
    global _chat_service
    _chat_service = None


__all__ = [
    "ChatResult",
    "ChatService",
    "EMPTY_REPLY",
    "FALLBACK_REPLY",
    "get_chat_service",
    "reset_chat_service",
]

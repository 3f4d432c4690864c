"""API router answering questions about an ingested document."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from studyowl.errors import DocumentNotFoundError, InputValidationError, UpstreamServiceError
from studyowl.llm_provider import LLMError
from studyowl.services.chat import FALLBACK_REPLY, ChatService, get_chat_service

router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    """Request body accepted by the chat endpoint."""

    document_id: str | None = Field(None, description="Document the question refers to.")
    message: str | None = Field(None, description="Student question.")
    page_number: int | None = Field(None, ge=1, description="Page the student is currently viewing.")
    conversation_history: list[dict[str, Any]] | None = Field(
        None, description="Earlier turns of the conversation; accepted but not used for retrieval."
    )


class ChatResponse(BaseModel):
    reply: str


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """Answer a question grounded in the fragments of one document."""

    if not request.message or not request.document_id:
        raise HTTPException(status_code=400, detail="Missing required fields: message, document_id")

    try:
        result = await run_in_threadpool(
            service.answer,
            request.document_id,
            request.message,
            page_number=request.page_number,
            conversation_history=request.conversation_history,
        )
    except InputValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail="No content found for this document. Please upload it first."
        ) from exc
    except (LLMError, UpstreamServiceError) as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": str(exc), "fallback_reply": FALLBACK_REPLY},
        ) from exc
    return ChatResponse(reply=result.reply)

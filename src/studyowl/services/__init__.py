"""Service layer orchestrating ingestion and chat."""
from __future__ import annotations

from .chat import ChatResult, ChatService, get_chat_service
from .ingestion import IngestResult, IngestionService, get_ingestion_service

__all__ = [
    "ChatResult",
    "ChatService",
    "IngestResult",
    "IngestionService",
    "get_chat_service",
    "get_ingestion_service",
]

"""HTTP routers exposed by the StudyOwl service."""
from __future__ import annotations

from .chat import router as chat_router
from .documents import router as documents_router

__all__ = ["chat_router", "documents_router"]

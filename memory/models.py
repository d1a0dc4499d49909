"""Conversation log data models."""

from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, Field

from schemas.chat import ToolUsage
from schemas.products import ProductSummary

# Shape version of tools_used / products_recommended in logged messages
LOG_SCHEMA_VERSION = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession(BaseModel):
    """A logged conversation, owned by the identity that started it."""
    id: str
    owner: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_helpful: Optional[bool] = None
    notes: Optional[str] = None


class LoggedMessage(BaseModel):
    """One append-only turn in a session log."""
    session_id: str
    role: str  # "user" or "assistant"
    content: str
    tools_used: Optional[List[ToolUsage]] = None
    products_recommended: Optional[List[ProductSummary]] = None
    schema_version: int = LOG_SCHEMA_VERSION
    created_at: datetime = Field(default_factory=utcnow)

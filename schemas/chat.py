"""Chat request/response schemas."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from .products import ProductSummary


class ConversationTurn(BaseModel):
    """A single user or assistant turn supplied by the caller."""
    role: Literal["user", "assistant"]
    content: str

    model_config = {"frozen": True}


class ChatRequest(BaseModel):
    """Inbound chat request from the storefront."""
    message: str = ""
    history: List[ConversationTurn] = Field(default_factory=list)
    session_id: Optional[str] = None

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("history", mode="before")
    @classmethod
    def keep_dialogue_turns(cls, value: Any) -> List[Dict[str, str]]:
        # Callers replay whatever they stored client-side; keep only user/assistant turns
        if not isinstance(value, list):
            return []
        turns = []
        for item in value:
            if isinstance(item, dict) and item.get("role") in ("user", "assistant"):
                turns.append({"role": item["role"], "content": str(item.get("content") or "")})
        return turns


class ChatResponse(BaseModel):
    """Successful chat response."""
    reply: str
    products: List[ProductSummary] = Field(default_factory=list)
    session_id: str


class ToolUsage(BaseModel):
    """One executed tool call, as recorded in the conversation log."""
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Dict[str, Any] = Field(default_factory=dict)


class SessionFeedback(BaseModel):
    """Caller feedback on a chat session."""
    is_helpful: bool

"""Pydantic schemas for the byteStore Shopping Assistant."""

from .products import ProductCategory, ProductSummary, PRODUCT_COLUMNS
from .chat import ConversationTurn, ChatRequest, ChatResponse, ToolUsage, SessionFeedback

__all__ = [
    "ProductCategory",
    "ProductSummary",
    "PRODUCT_COLUMNS",
    "ConversationTurn",
    "ChatRequest",
    "ChatResponse",
    "ToolUsage",
    "SessionFeedback",
]

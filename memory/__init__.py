"""Conversation logging."""

from .models import ChatSession, LoggedMessage, LOG_SCHEMA_VERSION
from .store import ConversationStore
from .sqlite_store import SQLiteConversationStore
from .supabase_store import SupabaseConversationStore
from .conversation_logger import ConversationLogger

__all__ = [
    "ChatSession",
    "LoggedMessage",
    "LOG_SCHEMA_VERSION",
    "ConversationStore",
    "SQLiteConversationStore",
    "SupabaseConversationStore",
    "ConversationLogger",
]

"""Conversation log stored in Supabase `chat_sessions` / `chat_messages`."""

import logging
from datetime import datetime
from typing import List, Optional

from utils.supabase_rest import SupabaseRestClient
from .models import ChatSession, LoggedMessage
from .store import ConversationStore

logger = logging.getLogger(__name__)


class SupabaseConversationStore(ConversationStore):
    """Conversation log written through the Supabase REST API."""

    SESSIONS_TABLE = "chat_sessions"
    MESSAGES_TABLE = "chat_messages"

    def __init__(self, client: SupabaseRestClient):
        self.client = client

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        rows = self.client.select(self.SESSIONS_TABLE, {
            "select": "id,user_id,created_at,updated_at,is_helpful,notes",
            "id": f"eq.{session_id}",
            "limit": "1",
        })
        if not rows:
            return None

        row = rows[0]
        return ChatSession(
            id=row["id"],
            owner=row["user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            is_helpful=row.get("is_helpful"),
            notes=row.get("notes"),
        )

    def create_session(self, session: ChatSession) -> None:
        self.client.insert(self.SESSIONS_TABLE, {
            "id": session.id,
            "user_id": session.owner,
            "created_at": session.created_at.isoformat(),
            "updated_at": session.updated_at.isoformat(),
        })

    def touch_session(self, session_id: str, updated_at: datetime) -> None:
        self.client.update(
            self.SESSIONS_TABLE,
            {"id": f"eq.{session_id}"},
            {"updated_at": updated_at.isoformat()},
        )

    def set_feedback(self, session_id: str, is_helpful: bool) -> None:
        self.client.update(
            self.SESSIONS_TABLE,
            {"id": f"eq.{session_id}"},
            {"is_helpful": is_helpful},
        )

    def add_message(self, message: LoggedMessage) -> None:
        self.client.insert(self.MESSAGES_TABLE, message.model_dump(mode="json"))

    def get_messages(self, session_id: str) -> List[LoggedMessage]:
        rows = self.client.select(self.MESSAGES_TABLE, {
            "select": "session_id,role,content,tools_used,products_recommended,schema_version,created_at",
            "session_id": f"eq.{session_id}",
            "order": "created_at.asc",
        })
        return [LoggedMessage(**row) for row in rows]

"""SQLite-based store for chat sessions and logged messages."""

import sqlite3
import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional, List

from .models import ChatSession, LoggedMessage
from .store import ConversationStore

logger = logging.getLogger(__name__)


class SQLiteConversationStore(ConversationStore):
    """SQLite-based persistent conversation log."""

    def __init__(self, db_path: str = "data/bytestore.db"):
        """
        Initialize SQLite conversation store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chat_sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                is_helpful INTEGER,
                notes TEXT
            )
        """)

        # seq keeps insertion order when created_at collides
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                tools_used TEXT,
                products_recommended TEXT,
                schema_version INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                FOREIGN KEY (session_id) REFERENCES chat_sessions(id)
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_chat_sessions_user_id ON chat_sessions(user_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_chat_messages_session_id ON chat_messages(session_id)"
        )

        conn.commit()
        conn.close()
        logger.info(f"Conversation log initialized at {self.db_path}")

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM chat_sessions WHERE id = ?",
            (session_id,)
        ).fetchone()
        conn.close()

        if not row:
            return None

        return ChatSession(
            id=row["id"],
            owner=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            is_helpful=None if row["is_helpful"] is None else bool(row["is_helpful"]),
            notes=row["notes"],
        )

    def create_session(self, session: ChatSession) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO chat_sessions (id, user_id, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            """,
            (session.id, session.owner, session.created_at.isoformat(), session.updated_at.isoformat())
        )
        conn.commit()
        conn.close()

    def touch_session(self, session_id: str, updated_at: datetime) -> None:
        conn = self._get_connection()
        conn.execute(
            "UPDATE chat_sessions SET updated_at = ? WHERE id = ?",
            (updated_at.isoformat(), session_id)
        )
        conn.commit()
        conn.close()

    def set_feedback(self, session_id: str, is_helpful: bool) -> None:
        conn = self._get_connection()
        conn.execute(
            "UPDATE chat_sessions SET is_helpful = ? WHERE id = ?",
            (int(is_helpful), session_id)
        )
        conn.commit()
        conn.close()

    def add_message(self, message: LoggedMessage) -> None:
        tools_json = None
        if message.tools_used is not None:
            tools_json = json.dumps(
                [t.model_dump(mode="json") for t in message.tools_used], ensure_ascii=False
            )
        products_json = None
        if message.products_recommended is not None:
            products_json = json.dumps(
                [p.model_dump(mode="json") for p in message.products_recommended], ensure_ascii=False
            )

        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO chat_messages
            (session_id, role, content, tools_used, products_recommended, schema_version, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.session_id, message.role, message.content, tools_json,
                products_json, message.schema_version, message.created_at.isoformat(),
            )
        )
        conn.commit()
        conn.close()

    def get_messages(self, session_id: str) -> List[LoggedMessage]:
        conn = self._get_connection()
        rows = conn.execute(
            """
            SELECT * FROM chat_messages
            WHERE session_id = ?
            ORDER BY created_at, seq
            """,
            (session_id,)
        ).fetchall()
        conn.close()

        return [
            LoggedMessage(
                session_id=row["session_id"],
                role=row["role"],
                content=row["content"],
                tools_used=json.loads(row["tools_used"]) if row["tools_used"] else None,
                products_recommended=(
                    json.loads(row["products_recommended"])
                    if row["products_recommended"] is not None
                    else None
                ),
                schema_version=row["schema_version"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

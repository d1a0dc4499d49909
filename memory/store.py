"""Conversation log storage interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .models import ChatSession, LoggedMessage


class ConversationStore(ABC):
    """Persistence for the conversation log."""

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get a session, or None if it does not exist."""
        pass

    @abstractmethod
    def create_session(self, session: ChatSession) -> None:
        """Insert a new session row."""
        pass

    @abstractmethod
    def touch_session(self, session_id: str, updated_at: datetime) -> None:
        """Set a session's updated_at."""
        pass

    @abstractmethod
    def set_feedback(self, session_id: str, is_helpful: bool) -> None:
        """Record whether the session was helpful."""
        pass

    @abstractmethod
    def add_message(self, message: LoggedMessage) -> None:
        """Append a message to a session."""
        pass

    @abstractmethod
    def get_messages(self, session_id: str) -> List[LoggedMessage]:
        """All messages of a session, oldest first."""
        pass

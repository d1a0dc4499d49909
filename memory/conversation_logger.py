"""Fire-and-forget conversation logging."""

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from schemas.chat import ToolUsage
from schemas.products import ProductSummary
from .models import ChatSession, LoggedMessage, utcnow
from .store import ConversationStore

logger = logging.getLogger(__name__)


def _normalize_session_id(value: str) -> Optional[str]:
    """Canonical UUID string, or None if value is not a UUID."""
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        return None


class ConversationLogger:
    """
    Records chat turns for audit and analytics.

    Writes never fail the caller: errors are logged and dropped. In background
    mode writes run on a single worker thread, so they reach the store in the
    order they were issued.
    """

    def __init__(self, store: ConversationStore, background: bool = True):
        """
        Initialize conversation logger.

        Args:
            store: Conversation store
            background: Run writes off the request path
        """
        self.store = store
        self.executor: Optional[ThreadPoolExecutor] = None
        if background:
            self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="chat-log")

    def _run(self, description: str, write: Callable[[], None]) -> Optional[Future]:
        def guarded():
            try:
                write()
            except Exception as e:
                logger.warning(f"Conversation log write failed ({description}): {e}")

        if self.executor is None:
            guarded()
            return None
        return self.executor.submit(guarded)

    def resolve_session(self, owner: str, requested_id: Optional[str] = None) -> str:
        """
        Pick the session id for this turn, creating the session if needed.

        An unknown UUID is adopted as a new session. Malformed ids, sessions
        owned by another identity and failed lookups all get a fresh id.

        Args:
            owner: Verified caller identity
            requested_id: Session id supplied by the caller, if any

        Returns:
            Session id to use for the turn
        """
        session_id = _normalize_session_id(requested_id) if requested_id else None
        if requested_id and session_id is None:
            logger.warning("Session id is not a UUID, issuing a new session")

        if session_id:
            try:
                existing = self.store.get_session(session_id)
            except Exception as e:
                logger.warning(f"Session lookup failed, issuing a new session: {e}")
                existing = None
                session_id = None

            if existing is not None:
                if existing.owner == owner:
                    return session_id
                logger.warning("Session id belongs to another identity, issuing a new session")
                session_id = None

        session = ChatSession(id=session_id or str(uuid.uuid4()), owner=owner)
        self._run("create session", lambda: self.store.create_session(session))
        logger.info(f"Started chat session {session.id}")
        return session.id

    def log_user_turn(self, session_id: str, content: str) -> Optional[Future]:
        """Append the shopper's message."""
        message = LoggedMessage(session_id=session_id, role="user", content=content)
        return self._run("user turn", lambda: self.store.add_message(message))

    def log_assistant_turn(
        self,
        session_id: str,
        content: str,
        tools_used: Optional[List[ToolUsage]] = None,
        products: Optional[List[ProductSummary]] = None
    ) -> Optional[Future]:
        """
        Append the assistant's reply.

        Args:
            session_id: Session id
            content: Reply text
            tools_used: Tool calls made during the turn (None or empty stores NULL)
            products: Products committed via show_products (None if it never ran)
        """
        message = LoggedMessage(
            session_id=session_id,
            role="assistant",
            content=content,
            tools_used=tools_used or None,
            products_recommended=products,
        )
        return self._run("assistant turn", lambda: self.store.add_message(message))

    def touch_session(self, session_id: str) -> Optional[Future]:
        """Mark the session as updated now."""
        now = utcnow()
        return self._run("touch session", lambda: self.store.touch_session(session_id, now))

    def get_owned_session(self, owner: str, session_id: str) -> Optional[ChatSession]:
        """Return the session if it exists and belongs to owner. Store errors propagate."""
        session = self.store.get_session(session_id)
        if session is None or session.owner != owner:
            return None
        return session

    def get_history(self, owner: str, session_id: str) -> Optional[List[LoggedMessage]]:
        """Messages of an owned session, oldest first; None if not found or not owned."""
        if self.get_owned_session(owner, session_id) is None:
            return None
        return self.store.get_messages(session_id)

    def record_feedback(self, owner: str, session_id: str, is_helpful: bool) -> bool:
        """Store helpfulness feedback. Returns False if the session is not the owner's."""
        if self.get_owned_session(owner, session_id) is None:
            return False
        self.store.set_feedback(session_id, is_helpful)
        return True

    def flush(self, timeout: Optional[float] = None):
        """Wait for queued writes to finish."""
        if self.executor is not None:
            self.executor.submit(lambda: None).result(timeout=timeout)

    def close(self):
        """Drain queued writes and stop the worker."""
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

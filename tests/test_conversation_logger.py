"""Tests for conversation logging and session ownership."""

import shutil
import tempfile
import uuid
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

from memory.conversation_logger import ConversationLogger
from memory.models import ChatSession, LOG_SCHEMA_VERSION
from memory.sqlite_store import SQLiteConversationStore
from memory.supabase_store import SupabaseConversationStore
from schemas.chat import ToolUsage
from schemas.products import ProductSummary


class TestConversationLogger:
    """Test the logger against a SQLite store with inline writes."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.mkdtemp()
        self.store = SQLiteConversationStore(db_path=str(Path(self.tmp_dir) / "log.db"))
        self.logger = ConversationLogger(self.store, background=False)

    def teardown_method(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_new_session_created(self):
        """Test a turn without a session id starts a session owned by the caller."""
        session_id = self.logger.resolve_session("user-1")

        session = self.store.get_session(session_id)
        assert session.owner == "user-1"
        assert session.is_helpful is None

    def test_own_session_reused(self):
        """Test the caller's existing session id is kept."""
        session_id = self.logger.resolve_session("user-1")

        assert self.logger.resolve_session("user-1", session_id) == session_id

    def test_foreign_session_not_reused(self):
        """Test another identity's session id yields a fresh session."""
        session_id = self.logger.resolve_session("user-1")

        other = self.logger.resolve_session("user-2", session_id)

        assert other != session_id
        assert self.store.get_session(other).owner == "user-2"
        assert self.store.get_session(session_id).owner == "user-1"

    def test_unknown_session_id_adopted(self):
        """Test a caller-chosen UUID that does not exist yet is created as given."""
        requested = str(uuid.uuid4())

        session_id = self.logger.resolve_session("user-1", requested)

        assert session_id == requested
        assert self.store.get_session(requested).owner == "user-1"

    def test_malformed_session_id_replaced(self):
        """Test a session id that is not a UUID is replaced by a fresh one."""
        session_id = self.logger.resolve_session("user-1", "abc")

        assert session_id != "abc"
        uuid.UUID(session_id)
        assert self.store.get_session(session_id).owner == "user-1"
        assert self.store.get_session("abc") is None

    def test_turns_logged_in_order(self):
        """Test user and assistant turns are stored in order with their payloads."""
        session_id = self.logger.resolve_session("user-1")
        product = ProductSummary(id="p2", name="Samsung 25W Adapter", price=Decimal("350"), category="accessory")
        usage = ToolUsage(tool_name="show_products", arguments={"ids": ["p2"]}, result={"products": []})

        self.logger.log_user_turn(session_id, "عايز شاحن")
        self.logger.log_assistant_turn(session_id, "اتفضل", tools_used=[usage], products=[product])

        messages = self.logger.get_history("user-1", session_id)
        assert [m.role for m in messages] == ["user", "assistant"]
        assert messages[0].tools_used is None
        assert messages[0].products_recommended is None
        assert messages[1].tools_used[0].tool_name == "show_products"
        assert messages[1].products_recommended[0].id == "p2"
        assert all(m.schema_version == LOG_SCHEMA_VERSION for m in messages)

    def test_no_tools_stores_null(self):
        """Test an empty tool list and absent products are stored as null."""
        session_id = self.logger.resolve_session("user-1")

        self.logger.log_assistant_turn(session_id, "Hi!", tools_used=[], products=None)

        message = self.store.get_messages(session_id)[0]
        assert message.tools_used is None
        assert message.products_recommended is None

    def test_empty_show_products_stored_as_empty_list(self):
        """Test an explicit empty product set is distinguishable from none."""
        session_id = self.logger.resolve_session("user-1")

        self.logger.log_assistant_turn(session_id, "Nothing fits.", products=[])

        assert self.store.get_messages(session_id)[0].products_recommended == []

    def test_feedback_requires_ownership(self):
        """Test only the owner can record feedback."""
        session_id = self.logger.resolve_session("user-1")

        assert self.logger.record_feedback("user-2", session_id, True) is False
        assert self.store.get_session(session_id).is_helpful is None

        assert self.logger.record_feedback("user-1", session_id, False) is True
        assert self.store.get_session(session_id).is_helpful is False

    def test_history_requires_ownership(self):
        """Test another identity cannot read a session."""
        session_id = self.logger.resolve_session("user-1")

        assert self.logger.get_history("user-2", session_id) is None
        assert self.logger.get_history("user-1", "missing") is None


class TestConversationLoggerFailures:
    """Test that logging never fails the caller."""

    def test_write_errors_are_swallowed(self):
        """Test store failures are logged, not raised."""
        store = Mock()
        store.get_session.return_value = None
        store.create_session.side_effect = RuntimeError("disk full")
        store.add_message.side_effect = RuntimeError("disk full")
        logger = ConversationLogger(store, background=False)

        session_id = logger.resolve_session("user-1")
        logger.log_user_turn(session_id, "hello")
        logger.log_assistant_turn(session_id, "hi")
        logger.touch_session(session_id)

        assert store.add_message.call_count == 2

    def test_lookup_failure_issues_new_session(self):
        """Test a failing session lookup starts a new session instead of trusting the id."""
        store = Mock()
        store.get_session.side_effect = RuntimeError("timeout")
        logger = ConversationLogger(store, background=False)
        requested = str(uuid.uuid4())

        session_id = logger.resolve_session("user-1", requested)

        assert session_id != requested
        created = store.create_session.call_args[0][0]
        assert created.id == session_id
        assert created.owner == "user-1"

    def test_malformed_id_never_reaches_supabase(self):
        """Test a non-UUID id is not sent to a uuid-keyed Supabase table."""
        client = Mock()
        client.select.return_value = []
        logger = ConversationLogger(SupabaseConversationStore(client), background=False)

        session_id = logger.resolve_session("user-1", "abc")
        logger.log_user_turn(session_id, "hello")

        uuid.UUID(session_id)
        client.select.assert_not_called()
        session_row = client.insert.call_args_list[0][0][1]
        message_row = client.insert.call_args_list[1][0][1]
        assert session_row["id"] == session_id
        assert message_row["session_id"] == session_id

    def test_background_writes_preserve_order(self):
        """Test queued writes reach the store in issue order."""
        written = []
        store = Mock()
        store.get_session.return_value = ChatSession(id="s-1", owner="user-1")
        store.add_message.side_effect = lambda message: written.append(message.content)
        logger = ConversationLogger(store, background=True)

        for i in range(20):
            logger.log_user_turn("s-1", f"message {i}")
        logger.flush(timeout=5)

        assert written == [f"message {i}" for i in range(20)]

        logger.log_user_turn("s-1", "after flush")
        logger.close()

        assert written[-1] == "after flush"

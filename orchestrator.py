"""Chatbot orchestrator: admission, rate limiting, agent loop and logging."""

import logging
from datetime import datetime
from typing import Optional

from config.settings import Settings
from schemas.chat import ChatRequest, ChatResponse

# Admission
from ratelimit.rate_limiter import (
    RateLimiter, RateLimiterError, SQLiteRateLimiter, SupabaseRateLimiter,
)

# Catalog
from retrieval.catalog_provider import CatalogProvider
from retrieval.query_normalizer import QueryNormalizer
from retrieval.sqlite_catalog import SQLiteCatalog
from retrieval.supabase_catalog import SupabaseCatalog

# LLM components
from llm.factory import create_model_gateway, LLMProvider
from llm.gateway import ModelGateway, ModelGatewayError

# Agent loop
from react.tools import build_default_tools
from react.loop import AgentLoop
from react.prompts import RATE_LIMITED_REPLY, detect_language

# Logging
from memory.conversation_logger import ConversationLogger
from memory.store import ConversationStore
from memory.sqlite_store import SQLiteConversationStore
from memory.supabase_store import SupabaseConversationStore

from utils.supabase_rest import SupabaseRestClient

logger = logging.getLogger(__name__)


class InvalidRequestError(Exception):
    """Malformed or empty chat request."""


class RateLimitedError(Exception):
    """Caller exhausted the current rate-limit window."""

    def __init__(self, message: str, retry_after: int, reset_at: datetime):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after
        self.reset_at = reset_at


class RateLimiterUnavailableError(Exception):
    """The rate limiting backend failed, so the request cannot be admitted."""


class UpstreamError(Exception):
    """The model provider failed; no reply was produced."""


class ChatbotOrchestrator:
    """Runs one chat turn end-to-end for a verified identity."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        agent: AgentLoop,
        conversation_logger: ConversationLogger,
        window_seconds: int = 600,
        max_count: int = 20
    ):
        """
        Initialize orchestrator.

        Args:
            rate_limiter: Per-identity admission gate
            agent: Agent loop
            conversation_logger: Turn logger
            window_seconds: Rate-limit window length
            max_count: Requests admitted per window
        """
        self.rate_limiter = rate_limiter
        self.agent = agent
        self.conversation_logger = conversation_logger
        self.window_seconds = window_seconds
        self.max_count = max_count

    def handle(self, identity: str, request: ChatRequest) -> ChatResponse:
        """
        Process one chat message.

        Args:
            identity: Verified caller identity
            request: Chat request

        Returns:
            ChatResponse with reply, products and session id

        Raises:
            InvalidRequestError: Empty message
            RateLimitedError: Window exhausted for this identity
            RateLimiterUnavailableError: Rate limit backend failed
            UpstreamError: Model provider failed
        """
        message = request.message.strip()
        if not message:
            raise InvalidRequestError("Missing message")

        try:
            decision = self.rate_limiter.check_and_increment(
                identity, self.window_seconds, self.max_count
            )
        except RateLimiterError as e:
            logger.error(f"Rate limit check failed: {e}")
            raise RateLimiterUnavailableError("Rate limiting backend error") from e

        if not decision.allowed:
            logger.info(f"Rate limited identity until {decision.reset_at.isoformat()}")
            raise RateLimitedError(
                RATE_LIMITED_REPLY[detect_language(message)],
                retry_after=decision.retry_after_seconds(),
                reset_at=decision.reset_at,
            )

        session_id = self.conversation_logger.resolve_session(identity, request.session_id)
        self.conversation_logger.log_user_turn(session_id, message)

        try:
            result = self.agent.run(message, request.history)
        except ModelGatewayError as e:
            logger.error(f"Agent turn failed for session {session_id}: {e}")
            raise UpstreamError(str(e)) from e

        self.conversation_logger.log_assistant_turn(
            session_id,
            result.reply,
            tools_used=result.tools_used,
            products=result.shown_products,
        )
        self.conversation_logger.touch_session(session_id)

        return ChatResponse(reply=result.reply, products=result.products, session_id=session_id)


def build_orchestrator(
    settings: Optional[Settings] = None,
    gateway: Optional[ModelGateway] = None
) -> ChatbotOrchestrator:
    """
    Wire the orchestrator from settings.

    Args:
        settings: Application settings
        gateway: Prebuilt model gateway (default: built from settings credentials)
    """
    settings = settings or Settings()

    rate_limiter: RateLimiter
    catalog: CatalogProvider
    store: ConversationStore

    if settings.uses_supabase():
        client = SupabaseRestClient(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.catalog_timeout_seconds,
        )
        rate_limiter = SupabaseRateLimiter(client)
        catalog = SupabaseCatalog(client)
        store = SupabaseConversationStore(client)
        logger.info(f"Using Supabase backend at {settings.supabase_url}")
    else:
        rate_limiter = SQLiteRateLimiter(settings.db_path)
        catalog = SQLiteCatalog(settings.db_path)
        store = SQLiteConversationStore(settings.db_path)
        logger.info(f"Using SQLite backend at {settings.db_path}")

    if gateway is None:
        gateway = create_model_gateway(
            LLMProvider(settings.llm_provider),
            api_keys=settings.llm_api_keys,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
        logger.info(
            f"Model gateway: {settings.llm_provider} ({settings.llm_model}) "
            f"with {len(settings.llm_api_keys)} credential(s)"
        )

    agent = AgentLoop(
        gateway=gateway,
        tools=build_default_tools(catalog, QueryNormalizer()),
        max_iterations=settings.max_agent_iterations,
        max_history_turns=settings.max_history_turns,
    )

    return ChatbotOrchestrator(
        rate_limiter=rate_limiter,
        agent=agent,
        conversation_logger=ConversationLogger(store, background=settings.background_logging),
        window_seconds=settings.rate_limit_window_seconds,
        max_count=settings.rate_limit_max_count,
    )

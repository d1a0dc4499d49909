"""HTTP surface for the shopping assistant."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings
from orchestrator import (
    ChatbotOrchestrator,
    InvalidRequestError,
    RateLimitedError,
    RateLimiterUnavailableError,
    UpstreamError,
    build_orchestrator,
)
from schemas.chat import ChatRequest, ChatResponse, SessionFeedback
from .auth import IdentityVerifier, build_identity_verifier, get_identity

logger = logging.getLogger(__name__)


def _message(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[ChatbotOrchestrator] = None,
    identity_verifier: Optional[IdentityVerifier] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings
        orchestrator: Prebuilt orchestrator (default: wired from settings)
        identity_verifier: Prebuilt verifier (default: from settings)
    """
    settings = settings or Settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    identity_verifier = identity_verifier or build_identity_verifier(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        orchestrator.conversation_logger.close()

    app = FastAPI(title="byteStore Shopping Assistant", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.identity_verifier = identity_verifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return _message(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        if request.url.path == "/chat":
            return _message(400, "Missing message")
        return _message(400, "Malformed request")

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError):
        return _message(400, str(exc))

    @app.exception_handler(RateLimitedError)
    async def rate_limited(request: Request, exc: RateLimitedError):
        response = _message(429, exc.message, retry_after=exc.retry_after)
        response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(RateLimiterUnavailableError)
    async def limiter_unavailable(request: Request, exc: RateLimiterUnavailableError):
        return _message(500, str(exc))

    @app.exception_handler(UpstreamError)
    async def upstream_error(request: Request, exc: UpstreamError):
        return _message(500, "Internal error", details=str(exc))

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return _message(500, "Internal error", details=str(exc))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/chat", response_model=ChatResponse)
    def chat(payload: ChatRequest, identity: str = Depends(get_identity)):
        return orchestrator.handle(identity, payload)

    @app.get("/sessions/{session_id}/messages")
    def session_messages(session_id: str, identity: str = Depends(get_identity)):
        history = orchestrator.conversation_logger.get_history(identity, session_id)
        if history is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return [m.model_dump(mode="json") for m in history]

    @app.post("/sessions/{session_id}/feedback")
    def session_feedback(
        session_id: str,
        feedback: SessionFeedback,
        identity: str = Depends(get_identity),
    ):
        if not orchestrator.conversation_logger.record_feedback(identity, session_id, feedback.is_helpful):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"session_id": session_id, "is_helpful": feedback.is_helpful}

    return app

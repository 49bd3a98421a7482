"""
API routes: chat, clear history, direct generation, ping, health.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from drumtutor.orchestrator import ConversationStore, PipelineError

from .models import (
    ChatRequest,
    ChatResponse,
    ClearHistoryRequest,
    ClearHistoryResponse,
    ErrorReply,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_SESSION_ID = os.getenv("DEFAULT_SESSION_ID", "default")

ERROR_REPLY = "⚠️ Sorry, something went wrong while answering your question. Please try again in a moment."
UNAVAILABLE_REPLY = "⚠️ The tutor is not available right now. Please try again later."
INVALID_QUESTION_REPLY = "⚠️ Please type a question before sending."


def _get_state(request: Request) -> tuple[Any, ConversationStore, Any, str]:
    agent = getattr(request.app.state, "agent", None)
    store = getattr(request.app.state, "store", None)
    if store is None:
        store = ConversationStore()
        request.app.state.store = store
    client = getattr(request.app.state, "client", None)
    index_name = getattr(request.app.state, "index_name", "")
    return agent, store, client, index_name


@router.post("/gpt", response_model=ChatResponse, responses={500: {"model": ErrorReply}, 503: {"model": ErrorReply}})
async def chat(request: Request, body: ChatRequest) -> ChatResponse | JSONResponse:
    """Answer a student question within a session."""
    agent, _, _, _ = _get_state(request)
    session_id = body.session_id or DEFAULT_SESSION_ID
    if agent is None:
        return JSONResponse(status_code=503, content={"reply": UNAVAILABLE_REPLY})
    try:
        resp = await agent.handle(session_id, body.text)
    except PipelineError as e:
        logger.error("Chat failed for session %s at %s: %s", session_id, e.step, e.cause)
        return JSONResponse(status_code=500, content={"reply": ERROR_REPLY})
    except Exception:
        logger.exception("Unexpected error for session %s", session_id)
        return JSONResponse(status_code=500, content={"reply": ERROR_REPLY})
    return ChatResponse(
        reply=resp.answer,
        session_id=resp.session_id,
        conversation_count=resp.conversation_count,
    )


@router.post("/clear-history", response_model=ClearHistoryResponse)
async def clear_history(request: Request, body: ClearHistoryRequest | None = None) -> ClearHistoryResponse:
    """Forget a session's transcript. Unknown sessions are fine."""
    _, store, _, _ = _get_state(request)
    session_id = (body.session_id if body else None) or DEFAULT_SESSION_ID
    store.clear(session_id)
    logger.info("Cleared history for session %s", session_id)
    return ClearHistoryResponse(message="Conversation history cleared", session_id=session_id)


@router.post("/generate", response_model=GenerateResponse)
async def generate(request: Request, body: GenerateRequest) -> GenerateResponse | JSONResponse:
    """Send the text straight to the completion model (no retrieval, no history)."""
    _, _, client, _ = _get_state(request)
    if client is None:
        return JSONResponse(status_code=503, content={"reply": UNAVAILABLE_REPLY})
    try:
        reply = await client.complete([{"role": "user", "content": body.text}])
    except Exception as e:
        logger.error("Direct generation failed: %s", e)
        return JSONResponse(status_code=500, content={"reply": ERROR_REPLY})
    return GenerateResponse(reply=reply)


@router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check."""
    _, store, _, index_name = _get_state(request)
    return HealthResponse(
        status="ok",
        index_name=index_name,
        active_sessions=store.active_sessions(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


async def chat_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed /gpt bodies get a chat-renderable reply; other routes keep FastAPI's 422 detail."""
    if request.url.path == "/gpt":
        logger.info("Rejected /gpt request: %s", exc.errors())
        return JSONResponse(status_code=422, content={"reply": INVALID_QUESTION_REPLY})
    return await request_validation_exception_handler(request, exc)

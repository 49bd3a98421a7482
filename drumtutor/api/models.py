"""
Request and response models for the tutor API.

Wire names are camelCase (sessionId, conversationCount) to match the chat front end.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request body for POST /gpt."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., min_length=1, description="Student question")
    session_id: Optional[str] = Field(None, alias="sessionId", description="Session ID for conversation history")


class ChatResponse(BaseModel):
    """Response for POST /gpt."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str
    session_id: str = Field(..., alias="sessionId")
    conversation_count: int = Field(0, alias="conversationCount")


class ErrorReply(BaseModel):
    """Error body rendered by the front end as a chat message."""

    reply: str


class ClearHistoryRequest(BaseModel):
    """Request body for POST /clear-history."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")


class ClearHistoryResponse(BaseModel):
    """Response for POST /clear-history."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    session_id: str = Field(..., alias="sessionId")


class GenerateRequest(BaseModel):
    """Request body for POST /generate."""

    text: str = Field(..., min_length=1)


class GenerateResponse(BaseModel):
    """Response for POST /generate."""

    reply: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    index_name: str = Field("", alias="index-name")
    active_sessions: int = Field(0, alias="activeSessions")
    timestamp: str

"""Pydantic schemas for chat operations."""

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from studyspace.db.models import ChatRole
from studyspace.schemas.base import BaseSchema, IDMixin, TimestampMixin


class ChatMessage(BaseSchema):
    """One role-tagged entry of a chat transcript."""

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sources_used: list[str] = Field(default_factory=list)


# Request schemas
class ChatHistoryUpsert(BaseSchema):
    """Create or replace the transcript of a session."""

    session_id: str = Field(..., min_length=1, max_length=255)
    title: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    source_ids: list[str] = Field(default_factory=list)
    settings: dict[str, Any] | None = None


class ChatTurn(BaseSchema):
    """Prior turn sent along with a new message."""

    role: Literal["user", "assistant"]
    content: str


class ChatSendRequest(BaseSchema):
    """Request to send a chat message.

    When `source_ids` is omitted the user's active sources are used.
    When `session_id` is given the exchange is appended to that session.
    """

    message: str = Field(..., min_length=1, max_length=20000)
    history: list[ChatTurn] = Field(default_factory=list)
    source_ids: list[UUID] | None = None
    session_id: str | None = Field(None, max_length=255)


# Response schemas
class ChatHistoryRead(BaseSchema, IDMixin, TimestampMixin):
    user_id: UUID
    session_id: str
    title: str
    messages: list[ChatMessage]
    source_ids: list[str]
    settings: dict[str, Any]
    is_active: bool
    last_message_at: datetime


class ChatHistoryResponse(BaseSchema):
    success: bool = True
    chat: ChatHistoryRead


class ChatHistoryListResponse(BaseSchema):
    success: bool = True
    chats: list[ChatHistoryRead]


class ChatSendResponse(BaseSchema):
    success: bool = True
    message: str
    context_truncated: bool = False
    session_id: str | None = None
    sources_used: list[str] = Field(default_factory=list)

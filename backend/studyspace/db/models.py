"""
ORM models: users, their sources, notes (incl. generated study materials)
and chat sessions.

Column types are portable (JSON, Uuid) so the schema runs on SQLite; every
user-owned table cascades on user deletion.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyspace.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_user_settings() -> dict[str, Any]:
    return {"theme": "dark", "language": "uz", "notifications": True}


def default_chat_settings() -> dict[str, Any]:
    return {"model": "google/gemini-2.0-flash-001", "temperature": 0.4, "maxTokens": 1000}


# =============================================================================
# ENUMS
# =============================================================================


class SourceType(str, PyEnum):
    """How a source was added."""

    FILE = "file"
    LINK = "link"
    TEXT = "text"
    YOUTUBE = "youtube"


class ExtractionStatus(str, PyEnum):
    """PDF text extraction status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"  # Not a PDF, nothing to extract


class NoteType(str, PyEnum):
    """Kind of note / generated study material."""

    QUIZ = "quiz"
    FLASHCARD = "flashcard"
    MINDMAP = "mindmap"
    PRESENTATION = "presentation"
    INFOGRAPHIC = "infographic"
    REMINDERS = "reminders"  # Free-text summary
    TOPIC_COMPLETE = "topicComplete"
    NOTE = "note"  # Hand-written note


class ChatRole(str, PyEnum):
    """Role in chat conversation."""

    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# MODELS
# =============================================================================


class User(Base):
    """
    User account with password credentials.

    The settings blob carries UI preferences (theme, language, notifications)
    and may carry the user's own OpenRouter key.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(String(150), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[str] = mapped_column(Text, nullable=False, default="")
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=default_user_settings)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    sources: Mapped[list["Source"]] = relationship(
        "Source", back_populates="user", cascade="all, delete-orphan"
    )
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="user", cascade="all, delete-orphan"
    )
    chat_histories: Mapped[list["ChatHistory"]] = relationship(
        "ChatHistory", back_populates="user", cascade="all, delete-orphan"
    )


class Source(Base):
    """
    User-provided document used as grounding context.

    `content` holds the raw text, link, or base64 PDF body. For PDFs the
    extracted text is what gets sent to the model.
    """

    __tablename__ = "sources"
    __table_args__ = (Index("idx_sources_user_id", "user_id"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=SourceType.FILE.value)
    file_type: Mapped[str] = mapped_column(String(50), nullable=False, default="unknown")
    size: Mapped[int] = mapped_column(nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Extracted content for LLM context
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extraction_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ExtractionStatus.PENDING.value
    )
    extraction_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    page_count: Mapped[Optional[int]] = mapped_column(nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sources")

    @property
    def is_pdf(self) -> bool:
        return (self.file_type or "").lower() == "pdf" or self.name.lower().endswith(".pdf")

    @property
    def context_text(self) -> str:
        """Text this source contributes to prompts; PDFs never send their base64 body."""
        if self.extracted_text:
            return self.extracted_text
        if self.is_pdf:
            return ""
        return self.content or ""


class Note(Base):
    """
    Note or generated study material.

    Exactly one typed payload column is populated, the one matching `type`.
    `source_ids` is a soft reference (no foreign key) to the sources used.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_user_id", "user_id"),
        Index("idx_notes_user_type", "user_id", "type"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=NoteType.REMINDERS.value)
    source_count: Mapped[int] = mapped_column(nullable=False, default=0)
    source_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Typed payloads
    quiz_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    flashcard_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    mind_map_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    presentation_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    infographic_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3B82F6")
    is_pinned: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="notes")


class ChatHistory(Base):
    """
    Chat session transcript.

    Messages are stored as an ordered JSON list of role-tagged entries,
    one row per (user, session_id).
    """

    __tablename__ = "chat_history"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="unique_user_chat_session"),
        Index("idx_chat_history_user_id", "user_id"),
        Index("idx_chat_history_session_id", "session_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="New Chat")
    messages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    source_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=default_chat_settings)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="chat_histories")

"""Note schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from studyspace.db.models import NoteType
from studyspace.schemas.base import BaseSchema
from studyspace.schemas.materials import FlashcardData, MindMapData, PresentationData, QuizData

# Payload field each note type is allowed to carry
PAYLOAD_FIELD_BY_TYPE: dict[str, str] = {
    NoteType.QUIZ.value: "quiz_data",
    NoteType.FLASHCARD.value: "flashcard_data",
    NoteType.MINDMAP.value: "mind_map_data",
    NoteType.PRESENTATION.value: "presentation_data",
    NoteType.INFOGRAPHIC.value: "infographic_image_url",
}
PAYLOAD_FIELDS = tuple(PAYLOAD_FIELD_BY_TYPE.values())


def check_payload_matches_type(note_type: str, payloads: dict[str, Any]) -> None:
    """Raise ValueError if a typed payload is set for a note of another type."""
    allowed = PAYLOAD_FIELD_BY_TYPE.get(note_type)
    for field in PAYLOAD_FIELDS:
        if payloads.get(field) is not None and field != allowed:
            raise ValueError(f"{field} is only allowed on notes of its own type, not '{note_type}'")


class NotePayloads(BaseSchema):
    """Typed payload fields shared by create/update/read."""

    quiz_data: QuizData | None = None
    flashcard_data: FlashcardData | None = None
    mind_map_data: MindMapData | None = None
    presentation_data: PresentationData | None = None
    infographic_image_url: str | None = None


class NoteCreate(NotePayloads):
    """Schema for creating a note."""

    title: str = Field(default="Untitled", min_length=1, max_length=255)
    content: str = ""
    type: NoteType = NoteType.NOTE
    source_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    color: str = Field(default="#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")
    is_pinned: bool = False

    @model_validator(mode="after")
    def payload_matches_type(self) -> "NoteCreate":
        check_payload_matches_type(self.type.value, {f: getattr(self, f) for f in PAYLOAD_FIELDS})
        return self


class NoteUpdate(NotePayloads):
    """Schema for updating a note. All fields optional; type cannot change."""

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = None
    tags: list[str] | None = None
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_pinned: bool | None = None
    is_archived: bool | None = None


class NoteRead(NotePayloads):
    """Schema for reading note data."""

    id: UUID
    user_id: UUID
    title: str
    content: str
    type: str
    source_count: int
    source_ids: list[str]
    tags: list[str]
    color: str
    is_pinned: bool
    is_archived: bool
    created_at: datetime
    updated_at: datetime


class NoteResponse(BaseSchema):
    success: bool = True
    message: str | None = None
    note: NoteRead


class NoteListResponse(BaseSchema):
    success: bool = True
    notes: list[NoteRead]
    total: int


class NoteStats(BaseSchema):
    """Counters shown on the profile page."""

    total_notes: int
    by_type: dict[str, int]
    pinned: int
    archived: int
    total_sources: int
    active_sources: int
    chat_sessions: int


class NoteStatsResponse(BaseSchema):
    success: bool = True
    stats: NoteStats

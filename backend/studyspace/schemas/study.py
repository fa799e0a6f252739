"""Schemas for AI study-material generation."""

from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from studyspace.schemas.base import BaseSchema
from studyspace.schemas.notes import NoteRead

GeneratableType = Literal["quiz", "flashcard", "mindmap", "presentation", "infographic", "reminders"]


class MaterialGenerateRequest(BaseSchema):
    """Generate one study material from sources or a text selection.

    `source_ids` defaults to the user's active sources. `custom_context`
    replaces the sources with a user-selected passage.
    """

    type: GeneratableType
    source_ids: list[UUID] | None = None
    config: dict[str, Any] | None = None
    custom_context: str | None = Field(None, max_length=500_000)


class TopicCompleteRequest(BaseSchema):
    """Mark a topic as finished and get a hard quiz over its PDF sources."""

    source_ids: list[UUID] | None = None
    selected_source_id: UUID | None = None
    topic: str | None = Field(None, max_length=255)


class GenerationResponse(BaseSchema):
    success: bool = True
    note: NoteRead
    context_truncated: bool = False


class TopicCompleteResponse(BaseSchema):
    success: bool = True
    marker_note: NoteRead
    quiz_note: NoteRead
    context_truncated: bool = False

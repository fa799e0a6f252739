"""API routes for AI-generated study materials."""

import logging

from fastapi import APIRouter, status

from studyspace.api.deps import CurrentUser, DbSession, LLMClient, load_context_sources
from studyspace.db.models import Note
from studyspace.schemas.notes import NoteRead
from studyspace.schemas.study import (
    GenerationResponse,
    MaterialGenerateRequest,
    TopicCompleteRequest,
    TopicCompleteResponse,
)
from studyspace.services.study_generator import GeneratedMaterial, StudyGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/materials", tags=["materials"])


def _note(user_id, material: GeneratedMaterial) -> Note:
    return Note(user_id=user_id, **material.to_note_fields())


@router.post("", response_model=GenerationResponse, status_code=status.HTTP_201_CREATED)
async def generate_material(
    request: MaterialGenerateRequest,
    db: DbSession,
    user: CurrentUser,
    llm: LLMClient,
):
    """
    Generate a study material and save it as a note.

    Grounded in the active sources unless `sourceIds` is given, or in
    `customContext` (a user-selected passage) when present.
    """
    sources = [] if request.custom_context else await load_context_sources(db, user.id, request.source_ids)
    generator = StudyGenerator(llm, language=(user.settings or {}).get("language"))

    material = await generator.generate(
        request.type,
        sources,
        request.config,
        custom_context=request.custom_context,
    )

    note = _note(user.id, material)
    db.add(note)
    await db.commit()
    await db.refresh(note)

    logger.info("Generated %s note %s for user %s", material.type, note.id, user.id)
    return GenerationResponse(note=NoteRead.model_validate(note), context_truncated=material.context_truncated)


@router.post("/topic-complete", response_model=TopicCompleteResponse, status_code=status.HTTP_201_CREATED)
async def topic_complete(
    request: TopicCompleteRequest,
    db: DbSession,
    user: CurrentUser,
    llm: LLMClient,
):
    """
    Mark a topic as completed and create a hard quiz over its PDF sources.

    `selectedSourceId` narrows the topic to one PDF.
    """
    if request.selected_source_id is not None:
        source_ids = [request.selected_source_id]
    else:
        source_ids = request.source_ids
    sources = await load_context_sources(db, user.id, source_ids)

    generator = StudyGenerator(llm, language=(user.settings or {}).get("language"))
    marker, quiz = await generator.topic_complete(sources, topic=request.topic)

    marker_note = _note(user.id, marker)
    quiz_note = _note(user.id, quiz)
    db.add_all([marker_note, quiz_note])
    await db.commit()
    await db.refresh(marker_note)
    await db.refresh(quiz_note)

    return TopicCompleteResponse(
        marker_note=NoteRead.model_validate(marker_note),
        quiz_note=NoteRead.model_validate(quiz_note),
        context_truncated=quiz.context_truncated,
    )

"""Notes CRUD routes."""

from typing import Literal
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy import func, or_, select

from studyspace.api.deps import CurrentUser, DbSession, get_user_resource_or_404
from studyspace.db.models import ChatHistory, Note, Source
from studyspace.schemas.base import SuccessResponse
from studyspace.schemas.notes import (
    PAYLOAD_FIELDS,
    NoteCreate,
    NoteListResponse,
    NoteRead,
    NoteResponse,
    NoteStats,
    NoteStatsResponse,
    NoteUpdate,
    check_payload_matches_type,
)
from studyspace.services.exporter import ExportError, export_note

router = APIRouter(prefix="/notes", tags=["notes"])


def _payload_columns(data: NoteCreate | NoteUpdate, fields) -> dict:
    """Typed payloads as stored (camelCase JSON), limited to `fields`."""
    columns = {}
    for name in fields:
        value = getattr(data, name)
        columns[name] = value.model_dump(by_alias=True, mode="json") if isinstance(value, BaseModel) else value
    return columns


@router.get("", response_model=NoteListResponse)
async def list_notes(
    current_user: CurrentUser,
    db: DbSession,
    type: str | None = None,
    tag: str | None = None,
    q: str | None = None,
    archived: bool = False,
) -> NoteListResponse:
    """
    List notes for the current user, pinned first then most recently updated.

    Filters:
    - type: Note type (quiz, flashcard, ...)
    - tag: Notes carrying this tag
    - q: Search in title and content
    - archived: If true, list archived notes instead of active ones
    """
    query = select(Note).where(Note.user_id == current_user.id, Note.is_archived.is_(archived))

    if type:
        query = query.where(Note.type == type)
    if q:
        search_pattern = f"%{q}%"
        query = query.where(
            or_(
                Note.title.ilike(search_pattern),
                Note.content.ilike(search_pattern),
            )
        )

    query = query.order_by(Note.is_pinned.desc(), Note.updated_at.desc())

    result = await db.execute(query)
    notes = list(result.scalars())
    if tag:
        # Tags are a JSON list; filter in Python to stay portable
        notes = [n for n in notes if tag in (n.tags or [])]

    return NoteListResponse(notes=[NoteRead.model_validate(n) for n in notes], total=len(notes))


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> NoteResponse:
    """Create a note. Only the payload matching its type may be set."""
    note = Note(
        user_id=current_user.id,
        title=data.title,
        content=data.content,
        type=data.type.value,
        source_ids=data.source_ids,
        source_count=len(data.source_ids),
        tags=data.tags,
        color=data.color,
        is_pinned=data.is_pinned,
        **_payload_columns(data, PAYLOAD_FIELDS),
    )

    db.add(note)
    await db.commit()
    await db.refresh(note)

    return NoteResponse(message="Note created", note=NoteRead.model_validate(note))


@router.get("/stats", response_model=NoteStatsResponse)
async def note_stats(current_user: CurrentUser, db: DbSession) -> NoteStatsResponse:
    """Counters for the profile page."""
    by_type_result = await db.execute(
        select(Note.type, func.count())
        .where(Note.user_id == current_user.id)
        .group_by(Note.type)
    )
    by_type = {note_type: count for note_type, count in by_type_result.all()}

    async def count(model, *conditions) -> int:
        result = await db.execute(
            select(func.count()).select_from(model).where(model.user_id == current_user.id, *conditions)
        )
        return result.scalar() or 0

    stats = NoteStats(
        total_notes=sum(by_type.values()),
        by_type=by_type,
        pinned=await count(Note, Note.is_pinned.is_(True)),
        archived=await count(Note, Note.is_archived.is_(True)),
        total_sources=await count(Source),
        active_sources=await count(Source, Source.is_active.is_(True)),
        chat_sessions=await count(ChatHistory),
    )
    return NoteStatsResponse(stats=stats)


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> NoteResponse:
    """Get a specific note."""
    note = await get_user_resource_or_404(db, Note, note_id, current_user.id)
    return NoteResponse(note=NoteRead.model_validate(note))


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: UUID,
    data: NoteUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> NoteResponse:
    """Update a note. A payload for another note type is rejected."""
    note = await get_user_resource_or_404(db, Note, note_id, current_user.id)

    update_data = data.model_dump(exclude_unset=True)
    sent_payloads = [field for field in PAYLOAD_FIELDS if field in update_data]
    try:
        check_payload_matches_type(note.type, {f: update_data[f] for f in sent_payloads})
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    for field, value in update_data.items():
        if field not in PAYLOAD_FIELDS and value is not None:
            setattr(note, field, value)
    for field, value in _payload_columns(data, sent_payloads).items():
        setattr(note, field, value)

    await db.commit()
    await db.refresh(note)

    return NoteResponse(message="Note updated", note=NoteRead.model_validate(note))


@router.delete("/{note_id}", response_model=SuccessResponse)
async def delete_note(
    note_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SuccessResponse:
    """Delete a note."""
    note = await get_user_resource_or_404(db, Note, note_id, current_user.id)
    await db.delete(note)
    await db.commit()
    return SuccessResponse(message="Note deleted")


# =============================================================================
# PIN / ARCHIVE
# =============================================================================


async def _set_flag(db: DbSession, note_id: UUID, user_id: UUID, **values) -> NoteResponse:
    note = await get_user_resource_or_404(db, Note, note_id, user_id)
    for field, value in values.items():
        setattr(note, field, value(note) if callable(value) else value)
    await db.commit()
    await db.refresh(note)
    return NoteResponse(note=NoteRead.model_validate(note))


@router.put("/{note_id}/pin", response_model=NoteResponse)
async def toggle_pin(note_id: UUID, current_user: CurrentUser, db: DbSession) -> NoteResponse:
    """Pin or unpin a note."""
    return await _set_flag(db, note_id, current_user.id, is_pinned=lambda note: not note.is_pinned)


@router.put("/{note_id}/archive", response_model=NoteResponse)
async def archive_note(note_id: UUID, current_user: CurrentUser, db: DbSession) -> NoteResponse:
    """Archive a note. Archived notes are hidden from the default list."""
    return await _set_flag(db, note_id, current_user.id, is_archived=True, is_pinned=False)


@router.put("/{note_id}/restore", response_model=NoteResponse)
async def restore_note(note_id: UUID, current_user: CurrentUser, db: DbSession) -> NoteResponse:
    """Bring an archived note back."""
    return await _set_flag(db, note_id, current_user.id, is_archived=False)


# =============================================================================
# EXPORT
# =============================================================================


@router.get("/{note_id}/export")
async def export(
    note_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    format: Literal["pdf", "pptx", "png"] = "pdf",
) -> Response:
    """Download a note as PDF, a presentation as PPTX or an infographic as PNG."""
    note = await get_user_resource_or_404(db, Note, note_id, current_user.id)
    try:
        exported = export_note(note, format)
    except ExportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={
            "Content-Disposition": (
                f'attachment; filename="{exported.filename}"; '
                f"filename*=UTF-8''{quote(exported.display_name)}"
            )
        },
    )

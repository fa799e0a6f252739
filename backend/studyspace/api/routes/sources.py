"""API routes for source upload and management."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select, update

from studyspace.api.deps import CurrentUser, DbSession, LLMClient, get_user_resource_or_404
from studyspace.config import get_settings
from studyspace.db.models import ExtractionStatus, Source
from studyspace.schemas.base import SuccessResponse
from studyspace.schemas.sources import (
    BulkActiveRequest,
    SourceCreate,
    SourceDetail,
    SourceListResponse,
    SourceProcessResponse,
    SourceRead,
    SourceResponse,
    SourceUpdate,
)
from studyspace.services import pdf_processor
from studyspace.services.study_generator import StudyGenerator

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/sources", tags=["sources"])


# =============================================================================
# HELPERS
# =============================================================================


def _check_size(content: str) -> None:
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Source is larger than {settings.max_upload_bytes // (1024 * 1024)}MB.",
        )


async def _extract(source: Source) -> dict:
    """
    Run text extraction for a PDF source and record the outcome on it.

    A failed extraction keeps the source and stores the error.
    """
    if not source.is_pdf:
        source.extraction_status = ExtractionStatus.SKIPPED.value
        source.extraction_error = None
        return {"text": "", "page_count": 0, "status": ExtractionStatus.SKIPPED.value}

    logger.info("Extracting text from PDF: %s", source.name)
    result = await pdf_processor.extract_from_content(source.content)

    source.extraction_status = result["status"]
    source.page_count = result["page_count"] or None
    if result["status"] == ExtractionStatus.SUCCESS.value:
        source.extracted_text = result["text"]
        source.extraction_error = None
        logger.info(
            "PDF processed successfully: %s (%d pages, %d chars)",
            source.name, result["page_count"], len(result["text"]),
        )
    else:
        source.extracted_text = None
        source.extraction_error = result.get("error", "unknown extraction error")
        logger.error("PDF text extraction failed for %s: %s", source.name, source.extraction_error)
    return result


def _extraction_message(source: Source) -> str | None:
    if source.extraction_status == ExtractionStatus.FAILED.value:
        return f"Source saved, but no text could be extracted: {source.extraction_error}"
    return None


# =============================================================================
# SOURCE CRUD
# =============================================================================


@router.get("", response_model=SourceListResponse)
async def list_sources(
    db: DbSession,
    user: CurrentUser,
    active_only: bool = False,
):
    """List user's sources, newest first."""
    query = select(Source).where(Source.user_id == user.id)
    if active_only:
        query = query.where(Source.is_active.is_(True))
    result = await db.execute(query.order_by(Source.created_at.desc()))
    sources = result.scalars().all()

    return SourceListResponse(
        sources=[SourceRead.model_validate(s) for s in sources],
        total=len(sources),
    )


@router.post("", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
async def create_source(
    request: SourceCreate,
    db: DbSession,
    user: CurrentUser,
):
    """
    Add a source. PDF bodies (base64) have their text extracted right away.

    When extraction fails the source is still stored; the response carries
    extractionStatus="failed" and the reason.
    """
    _check_size(request.content)

    source = Source(
        user_id=user.id,
        name=request.name,
        content=request.content,
        type=request.type,
        file_type=request.file_type.lower(),
        size=len(request.content),
        is_active=request.is_active,
        tags=request.tags,
    )
    await _extract(source)

    db.add(source)
    await db.commit()
    await db.refresh(source)

    return SourceResponse(message=_extraction_message(source), source=SourceDetail.model_validate(source))


@router.put("/bulk/active", response_model=SuccessResponse)
async def bulk_set_active(
    request: BulkActiveRequest,
    db: DbSession,
    user: CurrentUser,
):
    """Enable or disable many sources at once. Ids of other users are ignored."""
    result = await db.execute(
        update(Source)
        .where(Source.id.in_(request.source_ids), Source.user_id == user.id)
        .values(is_active=request.is_active)
    )
    await db.commit()
    return SuccessResponse(message=f"{result.rowcount} sources updated")


@router.get("/{source_id}", response_model=SourceResponse)
async def get_source(
    source_id: UUID,
    db: DbSession,
    user: CurrentUser,
):
    """Get a source including its body and extracted text."""
    source = await get_user_resource_or_404(db, Source, source_id, user.id)
    return SourceResponse(source=SourceDetail.model_validate(source))


@router.put("/{source_id}", response_model=SourceResponse)
async def update_source(
    source_id: UUID,
    request: SourceUpdate,
    db: DbSession,
    user: CurrentUser,
):
    """Update a source. New PDF content is re-extracted."""
    source = await get_user_resource_or_404(db, Source, source_id, user.id)

    update_data = request.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is not None:
            setattr(source, field, value)

    if request.content is not None:
        _check_size(request.content)
        source.size = len(request.content)
        await _extract(source)

    await db.commit()
    await db.refresh(source)

    return SourceResponse(message=_extraction_message(source), source=SourceDetail.model_validate(source))


@router.delete("/{source_id}", response_model=SuccessResponse)
async def delete_source(
    source_id: UUID,
    db: DbSession,
    user: CurrentUser,
):
    """Delete a source. Notes keep their (informational) source ids."""
    source = await get_user_resource_or_404(db, Source, source_id, user.id)
    await db.delete(source)
    await db.commit()
    return SuccessResponse(message="Source deleted")


# =============================================================================
# PROCESSING
# =============================================================================


@router.post("/{source_id}/process", response_model=SourceProcessResponse)
async def process_source(
    source_id: UUID,
    db: DbSession,
    user: CurrentUser,
):
    """Re-run text extraction for a PDF source."""
    source = await get_user_resource_or_404(db, Source, source_id, user.id)
    if not source.is_pdf:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF sources can be processed.",
        )

    result = await _extract(source)
    await db.commit()

    return SourceProcessResponse(
        success=result["status"] == ExtractionStatus.SUCCESS.value,
        status=result["status"],
        page_count=result["page_count"],
        text_length=len(result["text"]),
        error=result.get("error"),
    )


@router.post("/{source_id}/summarize", response_model=SourceResponse)
async def summarize_source(
    source_id: UUID,
    db: DbSession,
    user: CurrentUser,
    llm: LLMClient,
):
    """Store a short AI analysis (3-5 bullet points) of the source."""
    source = await get_user_resource_or_404(db, Source, source_id, user.id)

    generator = StudyGenerator(llm, language=(user.settings or {}).get("language"))
    summary, truncated = await generator.summarize_text([source])
    source.summary = summary

    await db.commit()
    await db.refresh(source)

    message = "Summary based on the beginning of the source" if truncated else None
    return SourceResponse(message=message, source=SourceDetail.model_validate(source))


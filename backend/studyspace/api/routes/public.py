"""Unauthenticated, read-only routes."""

from fastapi import APIRouter
from sqlalchemy import select

from studyspace.api.deps import DbSession
from studyspace.db.models import Source
from studyspace.schemas.sources import SourceListResponse, SourceRead
from studyspace.services.accounts import get_admin_user

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/sources", response_model=SourceListResponse)
async def public_sources(db: DbSession) -> SourceListResponse:
    """Sources published by the admin account."""
    admin = await get_admin_user(db)
    if admin is None:
        return SourceListResponse(sources=[], total=0)

    result = await db.execute(
        select(Source).where(Source.user_id == admin.id).order_by(Source.created_at.desc())
    )
    sources = result.scalars().all()
    return SourceListResponse(sources=[SourceRead.model_validate(s) for s in sources], total=len(sources))

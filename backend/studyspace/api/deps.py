"""
Request dependencies: the signed-in user, the database session, the
caller's OpenRouter client and user-scoped lookups.

Every lookup of a user-owned row filters on user_id, so a row belonging to
someone else is indistinguishable from a missing one (404).
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyspace.config import get_settings
from studyspace.db.models import Source, User
from studyspace.db.session import get_db
from studyspace.services.llm_client import OpenRouterClient

settings = get_settings()

SESSION_COOKIE = "access_token"


# =============================================================================
# TOKENS
# =============================================================================


def create_access_token(user_id: UUID) -> str:
    """Signed session token carrying only the user id (`sub`) and expiry."""
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    claims = {"sub": str(user_id), "exp": expires_at}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID | None:
    """User id from a token, or None when it is malformed, forged or expired."""
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        subject = claims.get("sub")
        return UUID(subject) if subject else None
    except (JWTError, ValueError):
        return None


# =============================================================================
# CURRENT USER
# =============================================================================


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> str:
    """Bearer header first, then the session cookie."""
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    if access_token:
        return access_token
    raise _unauthorized("Not authenticated")


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """The account behind the token; unknown or disabled accounts are 401."""
    user_id = decode_access_token(token)
    user = await db.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise _unauthorized("Could not validate credentials")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# AI CLIENT
# =============================================================================


async def get_llm_client(
    user: CurrentUser,
    x_openrouter_key: Annotated[str | None, Header()] = None,
) -> OpenRouterClient:
    """
    OpenRouter client for the current request.

    Key precedence: `X-OpenRouter-Key` header, the user's stored key,
    then the server-wide key.
    """
    api_key = (
        x_openrouter_key
        or (user.settings or {}).get("openrouter_api_key")
        or settings.openrouter_api_key
    )
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OpenRouter API key configured. Add one in your settings.",
        )
    return OpenRouterClient(api_key, settings)


LLMClient = Annotated[OpenRouterClient, Depends(get_llm_client)]


# =============================================================================
# USER-SCOPED LOOKUPS
# =============================================================================


async def get_user_resource_or_404(
    db: AsyncSession,
    model: type,
    resource_id: UUID,
    user_id: UUID,
):
    """Row of `model` with this id owned by user_id, else 404 ("Note not found")."""
    result = await db.execute(select(model).where(model.id == resource_id, model.user_id == user_id))
    resource = result.scalar_one_or_none()
    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{model.__name__} not found")

    return resource


async def load_context_sources(
    db: AsyncSession,
    user_id: UUID,
    source_ids: list[UUID] | None = None,
) -> list[Source]:
    """
    Sources to ground a prompt in, in a stable order.

    With no ids, the user's active sources in upload order. With ids, exactly
    those sources in the order given; an unknown or foreign id is a 400.
    """
    if source_ids is None:
        result = await db.execute(
            select(Source)
            .where(Source.user_id == user_id, Source.is_active.is_(True))
            .order_by(Source.created_at.asc())
        )
        return list(result.scalars().all())

    if not source_ids:
        return []

    result = await db.execute(
        select(Source).where(Source.id.in_(source_ids), Source.user_id == user_id)
    )
    by_id = {source.id: source for source in result.scalars().all()}
    if any(source_id not in by_id for source_id in source_ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="One or more source IDs are invalid or do not belong to you.",
        )
    return [by_id[source_id] for source_id in dict.fromkeys(source_ids)]

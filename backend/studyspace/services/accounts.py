"""User account helpers shared by auth routes and startup."""

import logging

import bcrypt
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyspace.config import get_settings
from studyspace.db.models import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or a password over the 72 byte limit
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_user_by_login(db: AsyncSession, login: str) -> User | None:
    """Look a user up by username or (case-insensitive) email."""
    login = login.strip()
    result = await db.execute(
        select(User).where(or_(User.username == login, User.email == normalize_email(login)))
    )
    return result.scalars().first()


async def username_or_email_taken(
    db: AsyncSession,
    *,
    username: str | None = None,
    email: str | None = None,
    exclude_user: User | None = None,
) -> bool:
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == normalize_email(email))
    if not conditions:
        return False
    stmt = select(func.count()).select_from(User).where(or_(*conditions))
    if exclude_user is not None:
        stmt = stmt.where(User.id != exclude_user.id)
    result = await db.execute(stmt)
    return (result.scalar() or 0) > 0


async def get_admin_user(db: AsyncSession) -> User | None:
    settings = get_settings()
    result = await db.execute(select(User).where(User.username == settings.admin_username))
    return result.scalar_one_or_none()


async def ensure_admin_user(db: AsyncSession) -> User | None:
    """
    Create the admin account when an admin password is configured.

    An existing admin is left untouched. The caller commits.
    """
    settings = get_settings()
    if not settings.admin_password:
        return None

    admin = await get_admin_user(db)
    if admin is not None:
        return admin

    admin = User(
        username=settings.admin_username,
        email=normalize_email(settings.admin_email),
        password_hash=hash_password(settings.admin_password),
    )
    db.add(admin)
    await db.flush()
    logger.info("Created admin user %s", settings.admin_username)
    return admin

"""
Authentication Routes

Endpoints:
- POST /auth/register - Create an account and start a session
- POST /auth/login - Username-or-email + password login
- GET /auth/profile - Current user profile
- PUT /auth/profile - Update profile (settings are merged)
- POST /auth/logout - Clear session

The JWT is returned in the response body and set as an HttpOnly cookie;
clients may use either.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response, status

from studyspace.api.deps import SESSION_COOKIE, CurrentUser, DbSession, create_access_token
from studyspace.config import get_settings
from studyspace.db.models import User, default_user_settings
from studyspace.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from studyspace.schemas.base import SuccessResponse
from studyspace.schemas.user import UserRead, UserResponse, UserUpdate
from studyspace.services.accounts import (
    find_user_by_login,
    hash_password,
    normalize_email,
    username_or_email_taken,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


def _set_session_cookie(response: Response, token: str, max_age: int) -> None:
    # For cross-domain deployments use samesite="none" + secure=True
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.cookie_cross_domain or settings.environment != "development",
        samesite="none" if settings.cookie_cross_domain else "lax",
        max_age=max_age,
    )


def _session(response: Response, user: User, message: str) -> AuthResponse:
    token = create_access_token(user.id)
    expires_in = settings.jwt_expire_minutes * 60
    _set_session_cookie(response, token, expires_in)
    return AuthResponse(
        message=message,
        token=token,
        expires_in=expires_in,
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, response: Response, db: DbSession) -> AuthResponse:
    """Create an account. Usernames and emails are unique."""
    if await username_or_email_taken(db, username=request.username, email=request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already exists",
        )

    user = User(
        username=request.username,
        email=normalize_email(request.email),
        password_hash=hash_password(request.password),
        settings=default_user_settings(),
        last_login_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return _session(response, user, "Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, response: Response, db: DbSession) -> AuthResponse:
    """Log in with a username or email."""
    user = await find_user_by_login(db, request.username)
    if user is None or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    return _session(response, user, "Login successful")


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser) -> UserResponse:
    """Get the current authenticated user's profile."""
    return UserResponse(user=UserRead.model_validate(current_user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(request: UserUpdate, current_user: CurrentUser, db: DbSession) -> UserResponse:
    """
    Update the current user's profile.

    `settings` is merged into the stored settings; a key sent as null is removed.
    """
    if await username_or_email_taken(
        db, username=request.username, email=request.email, exclude_user=current_user
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already exists",
        )

    if request.username is not None:
        current_user.username = request.username
    if request.email is not None:
        current_user.email = normalize_email(request.email)
    if request.avatar is not None:
        current_user.avatar = request.avatar
    if request.password is not None:
        current_user.password_hash = hash_password(request.password)
    if request.settings is not None:
        merged = dict(current_user.settings or {})
        for key, value in request.settings.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        current_user.settings = merged

    await db.commit()
    await db.refresh(current_user)

    return UserResponse(message="Profile updated", user=UserRead.model_validate(current_user))


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response) -> SuccessResponse:
    """
    Clear the authentication cookie.

    A JWT the client kept elsewhere remains valid until expiry.
    """
    response.delete_cookie(
        key=SESSION_COOKIE,
        httponly=True,
        secure=settings.cookie_cross_domain or settings.environment != "development",
        samesite="none" if settings.cookie_cross_domain else "lax",
    )
    return SuccessResponse(message="Logged out")

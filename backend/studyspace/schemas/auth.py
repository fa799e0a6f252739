"""Authentication schemas."""

from typing import Annotated

from pydantic import EmailStr, Field, StringConstraints

from studyspace.schemas.base import BaseSchema
from studyspace.schemas.user import NewPassword, UserRead


class RegisterRequest(BaseSchema):
    """Request schema for account registration."""

    username: str = Field(..., min_length=3, max_length=150)
    email: EmailStr
    password: NewPassword


class LoginRequest(BaseSchema):
    """Request schema for password login."""

    username: str = Field(..., min_length=1, description="Username or email")
    password: Annotated[str, StringConstraints(strip_whitespace=False, min_length=1)]


class AuthResponse(BaseSchema):
    """Response schema for successful authentication."""

    success: bool = True
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiry in seconds")
    user: UserRead

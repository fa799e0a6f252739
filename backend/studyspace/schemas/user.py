"""User schemas."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import AfterValidator, EmailStr, Field, StringConstraints, field_validator

from studyspace.schemas.base import BaseSchema

# Keys of the settings blob that are never echoed back to clients
PRIVATE_SETTINGS_KEYS = frozenset({"openrouter_api_key"})

# bcrypt only hashes the first 72 bytes and refuses longer input
BCRYPT_MAX_BYTES = 72


def _check_bcrypt_length(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


# Passwords are taken verbatim, surrounding whitespace included
NewPassword = Annotated[
    str,
    StringConstraints(strip_whitespace=False, min_length=6),
    AfterValidator(_check_bcrypt_length),
]


class UserRead(BaseSchema):
    """Schema for reading user data."""

    id: UUID
    username: str
    email: str
    avatar: str
    settings: dict[str, Any]
    created_at: datetime
    last_login_at: datetime | None = None

    @field_validator("settings")
    @classmethod
    def hide_private_settings(cls, value: dict[str, Any]) -> dict[str, Any]:
        visible = {k: v for k, v in value.items() if k not in PRIVATE_SETTINGS_KEYS}
        visible["hasApiKey"] = bool(value.get("openrouter_api_key"))
        return visible


class UserUpdate(BaseSchema):
    """Schema for updating user profile. Settings are merged, not replaced."""

    username: str | None = Field(None, min_length=3, max_length=150)
    email: EmailStr | None = None
    avatar: str | None = None
    password: NewPassword | None = None
    settings: dict[str, Any] | None = None


class UserResponse(BaseSchema):
    """Envelope for profile endpoints."""

    success: bool = True
    message: str | None = None
    user: UserRead

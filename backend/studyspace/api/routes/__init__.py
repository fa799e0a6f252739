"""API routes package."""

from studyspace.api.routes import (
    auth,
    chat,
    materials,
    notes,
    public,
    sources,
)

__all__ = [
    "auth",
    "chat",
    "materials",
    "notes",
    "public",
    "sources",
]

"""Pydantic schemas for API request/response validation."""

from studyspace.schemas.user import UserRead, UserResponse, UserUpdate
from studyspace.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from studyspace.schemas.sources import (
    BulkActiveRequest,
    SourceCreate,
    SourceDetail,
    SourceRead,
    SourceUpdate,
)
from studyspace.schemas.notes import NoteCreate, NoteRead, NoteUpdate
from studyspace.schemas.chat import ChatHistoryRead, ChatHistoryUpsert, ChatSendRequest
from studyspace.schemas.materials import (
    FlashcardData,
    MindMapData,
    PresentationData,
    QuizData,
)
from studyspace.schemas.study import MaterialGenerateRequest, TopicCompleteRequest

__all__ = [
    # User
    "UserRead",
    "UserResponse",
    "UserUpdate",
    # Auth
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    # Sources
    "BulkActiveRequest",
    "SourceCreate",
    "SourceDetail",
    "SourceRead",
    "SourceUpdate",
    # Notes
    "NoteCreate",
    "NoteRead",
    "NoteUpdate",
    # Chat
    "ChatHistoryRead",
    "ChatHistoryUpsert",
    "ChatSendRequest",
    # Materials
    "FlashcardData",
    "MindMapData",
    "PresentationData",
    "QuizData",
    # Generation
    "MaterialGenerateRequest",
    "TopicCompleteRequest",
]

"""Pydantic schemas for source operations."""

from uuid import UUID

from pydantic import Field, computed_field

from studyspace.schemas.base import BaseSchema, IDMixin, TimestampMixin


# Request schemas
class SourceCreate(BaseSchema):
    """Upload or paste a source.

    For PDFs, `content` is the base64 body (a `data:application/pdf;base64,`
    prefix is accepted); text is extracted on create.
    """

    name: str = Field(..., min_length=1, max_length=255)
    content: str = ""
    type: str = Field(default="file", pattern="^(file|link|text|youtube)$")
    file_type: str = Field(default="unknown", max_length=50)
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True


class SourceUpdate(BaseSchema):
    """Schema for updating a source. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = None
    is_active: bool | None = None
    tags: list[str] | None = None


class BulkActiveRequest(BaseSchema):
    """Enable or disable many sources at once."""

    source_ids: list[UUID] = Field(..., min_length=1)
    is_active: bool


# Response schemas
class SourceRead(BaseSchema, IDMixin, TimestampMixin):
    """Source metadata without the (possibly large) body."""

    user_id: UUID
    name: str
    type: str
    file_type: str
    size: int
    is_active: bool
    tags: list[str]
    extraction_status: str
    extraction_error: str | None = None
    page_count: int | None = None
    summary: str | None = None
    extracted_text: str | None = Field(default=None, exclude=True)

    @computed_field
    @property
    def text_length(self) -> int:
        return len(self.extracted_text) if self.extracted_text else 0


class SourceDetail(SourceRead):
    """Source including its body and extracted text."""

    content: str
    extracted_text: str | None = None


class SourceResponse(BaseSchema):
    success: bool = True
    message: str | None = None
    source: SourceDetail


class SourceListResponse(BaseSchema):
    success: bool = True
    sources: list[SourceRead]
    total: int


class SourceProcessResponse(BaseSchema):
    """Response from PDF processing."""

    success: bool = True
    status: str
    page_count: int
    text_length: int
    error: str | None = None

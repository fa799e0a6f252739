"""Canonical study-material schemas and generation settings.

Every AI response is coerced into one of these shapes before it is stored
or returned (see services.normalizer).
"""

from typing import Literal

from pydantic import Field, model_validator

from studyspace.schemas.base import BaseSchema


# =============================================================================
# CANONICAL PAYLOADS
# =============================================================================


class QuizQuestion(BaseSchema):
    """Multiple-choice question."""

    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=1)
    correct_answer_index: int = Field(..., ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def check_answer_index(self) -> "QuizQuestion":
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correctAnswerIndex is out of range for the given options")
        return self


class QuizData(BaseSchema):
    title: str
    questions: list[QuizQuestion]


class Flashcard(BaseSchema):
    question: str
    answer: str


class FlashcardData(BaseSchema):
    title: str
    cards: list[Flashcard]


class MindMapNode(BaseSchema):
    label: str
    children: list["MindMapNode"] = Field(default_factory=list)


class MindMapData(BaseSchema):
    title: str
    root_node: MindMapNode


class Slide(BaseSchema):
    title: str
    content: list[str] = Field(default_factory=list)
    code: str | None = None
    image_url: str | None = None


class PresentationData(BaseSchema):
    title: str
    slides: list[Slide]


# =============================================================================
# GENERATION SETTINGS
# =============================================================================


class QuizConfig(BaseSchema):
    question_count: Literal["less", "standard", "more"] = "standard"
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    topic: str | None = None

    @property
    def target_count(self) -> int:
        return {"less": 5, "standard": 10, "more": 20}[self.question_count]


class FlashcardConfig(BaseSchema):
    card_count: Literal["less", "standard", "more"] = "standard"
    style: Literal["concepts", "definitions", "qa"] = "qa"
    topic: str | None = None

    @property
    def target_count(self) -> int:
        return {"less": 10, "standard": 15, "more": 30}[self.card_count]


class PresentationConfig(BaseSchema):
    slide_count: Literal["short", "standard", "detailed"] = "standard"
    audience: Literal["general", "professional", "academic"] = "general"
    topic: str | None = None

    @property
    def target_count(self) -> int:
        return {"short": 5, "standard": 10, "detailed": 15}[self.slide_count]


class MindMapConfig(BaseSchema):
    complexity: Literal["simple", "standard", "complex"] = "standard"
    topic: str | None = None


class InfographicConfig(BaseSchema):
    style: Literal["minimalist", "detailed", "vibrant"] = "detailed"
    layout: Literal["1:1", "9:16", "16:9"] = "1:1"
    topic: str | None = None


MaterialConfig = QuizConfig | FlashcardConfig | PresentationConfig | MindMapConfig | InfographicConfig

"""AI generation of study materials from sources."""

import base64
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ValidationError

from studyspace.config import Settings, get_settings
from studyspace.db.models import NoteType
from studyspace.schemas.materials import (
    FlashcardConfig,
    InfographicConfig,
    MindMapConfig,
    PresentationConfig,
    PresentationData,
    QuizConfig,
)
from studyspace.schemas.notes import PAYLOAD_FIELD_BY_TYPE
from studyspace.services.context_builder import ContextPayload, ContextSource, TextSource, build_context
from studyspace.services.llm_client import AIServiceError, OpenRouterClient
from studyspace.services.normalizer import normalize_material, parse_model_json
from studyspace.services.quiz_shuffler import shuffle_quiz_options

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"uz": "Uzbek", "ru": "Russian", "en": "English"}

NOTE_TITLES = {
    NoteType.QUIZ.value: "Quiz",
    NoteType.FLASHCARD.value: "Flashcards",
    NoteType.MINDMAP.value: "Mind map",
    NoteType.PRESENTATION.value: "Presentation",
    NoteType.INFOGRAPHIC.value: "Infographic",
    NoteType.REMINDERS.value: "Summary",
}

CONFIG_MODELS: dict[str, type[BaseModel]] = {
    NoteType.QUIZ.value: QuizConfig,
    NoteType.FLASHCARD.value: FlashcardConfig,
    NoteType.MINDMAP.value: MindMapConfig,
    NoteType.PRESENTATION.value: PresentationConfig,
    NoteType.INFOGRAPHIC.value: InfographicConfig,
}

DIFFICULTY_HINTS = {
    "easy": "Keep the questions simple and focused on the core concepts.",
    "medium": "Use a moderate level of difficulty.",
    "hard": (
        "Make the questions deep, analytical and demanding, with plausible distractors "
        "but a single unambiguous correct answer. Pay attention to details."
    ),
}

FLASHCARD_STYLE_HINTS = {
    "concepts": "Each card names a key concept on the front and explains it on the back.",
    "definitions": "Each card has a term on the front and its precise definition on the back.",
    "qa": "Each card has a question on the front and a concise answer on the back.",
}

COMPLEXITY_HINTS = {
    "simple": "Keep the hierarchy shallow: a few main branches, one level of detail.",
    "standard": "Use a balanced hierarchy of two or three levels.",
    "complex": "Build a detailed hierarchy of three or four levels.",
}

AUDIENCE_HINTS = {
    "general": "Write for a general audience.",
    "professional": "Write for working professionals.",
    "academic": "Write for an academic audience, precise and well structured.",
}

INFOGRAPHIC_STYLES = {
    "minimalist": "minimalist, clean, simple, modern, white space, elegant",
    "detailed": "detailed, intricate, comprehensive, informative, data-rich",
    "vibrant": "vibrant, colorful, energetic, eye-catching, bold colors",
}

INFOGRAPHIC_LAYOUTS = {
    "1:1": "square layout, balanced composition",
    "9:16": "vertical layout, portrait orientation",
    "16:9": "horizontal layout, landscape orientation",
}

IMAGE_SIZES = {"1:1": "1024x1024", "9:16": "768x1024", "16:9": "1024x576"}

# (width, height) of the placeholder drawn when no image model answers
PLACEHOLDER_SIZES = {"1:1": (600, 600), "9:16": (450, 800), "16:9": (800, 450)}

# (background, primary, text)
PLACEHOLDER_COLORS = {
    "minimalist": ("#ffffff", "#1a1a1a", "#374151"),
    "vibrant": ("#1e3a8a", "#3b82f6", "#ffffff"),
    "detailed": ("#f8fafc", "#0f172a", "#334155"),
}

_QUIZ_FORMAT = """{
  "title": "Topic title",
  "questions": [
    {
      "question": "Question text",
      "options": ["A", "B", "C", "D"],
      "correctAnswerIndex": 0,
      "explanation": "Why this answer is correct"
    }
  ]
}"""

_FLASHCARD_FORMAT = """{
  "title": "Topic",
  "cards": [
    {"question": "Front side", "answer": "Back side"}
  ]
}"""

_MINDMAP_FORMAT = """{
  "title": "Topic",
  "rootNode": {
    "label": "Central idea",
    "children": [
      {"label": "Branch", "children": []}
    ]
  }
}"""

_PRESENTATION_FORMAT = """{
  "title": "Presentation title",
  "slides": [
    {"title": "Slide title", "content": ["Point 1", "Point 2"], "code": null}
  ]
}"""


class GenerationError(Exception):
    """Generation could not start or finish for a client-side reason."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def language_name(code: str | None) -> str:
    return LANGUAGE_NAMES.get((code or "").lower(), "English")


@dataclass
class GeneratedMaterial:
    """A generated note, ready to be persisted."""

    type: str
    title: str
    content: str = ""
    payload: BaseModel | None = None
    image_url: str | None = None
    context_truncated: bool = False
    source_ids: list[str] = field(default_factory=list)

    def to_note_fields(self) -> dict[str, Any]:
        """Column values for a Note row; only the payload matching `type` is set."""
        fields: dict[str, Any] = {
            "type": self.type,
            "title": self.title[:255],
            "content": self.content,
            "source_ids": self.source_ids,
            "source_count": len(self.source_ids),
        }
        payload_field = PAYLOAD_FIELD_BY_TYPE.get(self.type)
        if payload_field == "infographic_image_url":
            fields[payload_field] = self.image_url
        elif payload_field and self.payload is not None:
            fields[payload_field] = self.payload.model_dump(by_alias=True, mode="json")
        return fields


def _source_ids(sources: Sequence[ContextSource]) -> list[str]:
    return [str(s.id) for s in sources if getattr(s, "id", None) is not None]


def placeholder_infographic(config: InfographicConfig, context: str) -> str:
    """SVG data URL shown when every image model fails."""
    width, height = PLACEHOLDER_SIZES.get(config.layout, (600, 600))
    background, primary, text = PLACEHOLDER_COLORS.get(config.style, PLACEHOLDER_COLORS["detailed"])
    words = min(len(context.split()), 100)
    svg = f"""<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">
  <rect width="100%" height="100%" fill="{background}"/>
  <rect x="20" y="20" width="{width - 40}" height="{height - 40}" fill="none" stroke="{primary}" stroke-width="3" stroke-dasharray="10,5"/>
  <circle cx="{width / 2}" cy="{height / 3}" r="60" fill="{primary}"/>
  <text x="{width / 2}" y="{height / 2}" text-anchor="middle" font-family="Arial" font-size="24" font-weight="bold" fill="{text}">Infographic</text>
  <text x="{width / 2}" y="{height / 2 + 40}" text-anchor="middle" font-family="Arial" font-size="16" fill="{text}">{config.style} / {config.layout}</text>
  <text x="{width / 2}" y="{height / 2 + 80}" text-anchor="middle" font-family="Arial" font-size="14" fill="{text}" opacity="0.8">Based on {words} words</text>
  <circle cx="{width * 0.2}" cy="{height * 0.8}" r="15" fill="{primary}" opacity="0.3"/>
  <circle cx="{width * 0.8}" cy="{height * 0.8}" r="15" fill="{primary}" opacity="0.3"/>
  <rect x="{width * 0.35}" y="{height * 0.75}" width="{width * 0.3}" height="10" fill="{primary}" opacity="0.5"/>
</svg>"""
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


class StudyGenerator:
    """
    Turns sources into study materials.

    One instance per request: it carries the caller's LLM client and
    output language.
    """

    def __init__(self, llm: OpenRouterClient, *, language: str | None = None, settings: Settings | None = None):
        self.llm = llm
        self.settings = settings or get_settings()
        self.language = language_name(language)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _context(
        self,
        sources: Sequence[ContextSource],
        custom_context: str | None = None,
        *,
        max_chars: int | None = None,
    ) -> ContextPayload:
        if custom_context and custom_context.strip():
            sources = [TextSource(name="Selection", text=custom_context)]
        payload = build_context(
            sources,
            max_chars=max_chars or self.settings.max_context_chars,
            per_source_max_chars=self.settings.max_source_chars,
        )
        if not payload.context:
            raise GenerationError(
                "No source text available. Add a source or activate one with extractable text."
            )
        return payload

    def _parse_config(self, material_type: str, config: dict[str, Any] | None) -> BaseModel:
        try:
            return CONFIG_MODELS[material_type].model_validate(config or {})
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise GenerationError(f"Invalid {material_type} settings: {location}: {first['msg']}") from e

    def _title(self, material_type: str, custom_context: str | None) -> str:
        title = NOTE_TITLES[material_type]
        if custom_context and custom_context.strip():
            title += " (selection)"
        return title

    def _system_prompt(self, material_type: str, config: BaseModel) -> str:
        topic = getattr(config, "topic", None)
        topic_hint = f"Focus on the topic: {topic}. " if topic else ""
        language = f"Write all content in {self.language}."

        if material_type == NoteType.QUIZ.value:
            return (
                f"You are an expert tutor. {topic_hint}Create a multiple-choice quiz of EXACTLY "
                f"{config.target_count} questions, each with exactly 4 options. The count is essential. "
                f"{DIFFICULTY_HINTS[config.difficulty]} {language}\n"
                f"Return only JSON in this format:\n{_QUIZ_FORMAT}"
            )
        if material_type == NoteType.FLASHCARD.value:
            return (
                f"Create study flashcards. {topic_hint}There must be EXACTLY {config.target_count} cards. "
                f"{FLASHCARD_STYLE_HINTS[config.style]} {language}\n"
                f"Return only JSON in this format:\n{_FLASHCARD_FORMAT}"
            )
        if material_type == NoteType.MINDMAP.value:
            return (
                f"Build a hierarchical mind map. {topic_hint}{COMPLEXITY_HINTS[config.complexity]} {language}\n"
                f"Return only JSON in this format:\n{_MINDMAP_FORMAT}"
            )
        return (
            f"Create the content of a presentation of EXACTLY {config.target_count} slides. {topic_hint}"
            f"{AUDIENCE_HINTS[config.audience]} Include a short code snippet in `code` only when the "
            f"material is about programming. {language}\n"
            f"Return only JSON in this format:\n{_PRESENTATION_FORMAT}"
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def generate(
        self,
        material_type: str,
        sources: Sequence[ContextSource],
        config: dict[str, Any] | None = None,
        *,
        custom_context: str | None = None,
    ) -> GeneratedMaterial:
        """Generate any material type."""
        if material_type == NoteType.REMINDERS.value:
            return await self.summarize(sources, custom_context=custom_context)
        if material_type == NoteType.INFOGRAPHIC.value:
            return await self.generate_infographic(sources, config, custom_context=custom_context)
        return await self.generate_material(material_type, sources, config, custom_context=custom_context)

    async def generate_material(
        self,
        material_type: str,
        sources: Sequence[ContextSource],
        config: dict[str, Any] | BaseModel | None = None,
        *,
        custom_context: str | None = None,
        title: str | None = None,
    ) -> GeneratedMaterial:
        """
        Generate a structured material (quiz, flashcards, mind map, presentation).

        The reply is normalized to the canonical schema. Quizzes, flashcards and
        slides are cut to the requested count and quiz options are shuffled.

        Raises:
            GenerationError: Bad settings or no source text
            AIServiceError: The AI call failed
            MaterialShapeError: The reply could not be normalized
        """
        if material_type not in (
            NoteType.QUIZ.value,
            NoteType.FLASHCARD.value,
            NoteType.MINDMAP.value,
            NoteType.PRESENTATION.value,
        ):
            raise GenerationError(f"Unsupported material type: {material_type}")

        if not isinstance(config, BaseModel):
            config = self._parse_config(material_type, config)
        context = self._context(sources, custom_context)
        title = title or self._title(material_type, custom_context)

        reply = await self.llm.complete(
            [
                {"role": "system", "content": self._system_prompt(material_type, config)},
                {"role": "user", "content": f"Create the {material_type} from these sources:\n\n{context.context}"},
            ],
            model=self.settings.material_model,
            json_mode=True,
        )
        payload = normalize_material(material_type, parse_model_json(reply, material_type), title)

        target = getattr(config, "target_count", None)
        if material_type == NoteType.QUIZ.value:
            if len(payload.questions) < target:
                logger.warning("Quiz has %d questions, %d requested", len(payload.questions), target)
            payload = shuffle_quiz_options(payload.model_copy(update={"questions": payload.questions[:target]}))
            content = f"{len(payload.questions)} questions"
        elif material_type == NoteType.FLASHCARD.value:
            payload = payload.model_copy(update={"cards": payload.cards[:target]})
            content = f"{len(payload.cards)} cards"
        elif material_type == NoteType.PRESENTATION.value:
            payload = payload.model_copy(update={"slides": payload.slides[:target]})
            if self.settings.generate_slide_images:
                payload = await self._add_slide_images(payload)
            content = f"{len(payload.slides)} slides"
        else:
            content = payload.root_node.label

        return GeneratedMaterial(
            type=material_type,
            title=title,
            content=content,
            payload=payload,
            context_truncated=context.was_truncated,
            source_ids=[] if custom_context else _source_ids(sources),
        )

    async def _add_slide_images(self, presentation: PresentationData) -> PresentationData:
        slides = []
        for slide in presentation.slides:
            prompt = (
                f"Professional presentation slide visualization for: {slide.title}. "
                "Modern business style, clean design. No text inside the image."
            )
            try:
                image_url = await self.llm.generate_image(prompt, model=self.settings.slide_image_model)
            except AIServiceError as e:
                logger.warning("Slide image for %r failed: %s", slide.title, e.message)
                image_url = None
            slides.append(slide.model_copy(update={"image_url": image_url}))
        return presentation.model_copy(update={"slides": slides})

    async def generate_infographic(
        self,
        sources: Sequence[ContextSource],
        config: dict[str, Any] | None = None,
        *,
        custom_context: str | None = None,
    ) -> GeneratedMaterial:
        """Generate an infographic image, falling back to an SVG placeholder."""
        config = self._parse_config(NoteType.INFOGRAPHIC.value, config)
        context = self._context(sources, custom_context)
        excerpt = context.context[: self.settings.infographic_context_chars]
        topic = config.topic or "information visualization"
        prompt = (
            f"Professional infographic illustration about: {topic}.\n"
            f"Style: {INFOGRAPHIC_STYLES[config.style]}.\n"
            f"Layout: {INFOGRAPHIC_LAYOUTS[config.layout]}.\n"
            f"Content: {excerpt}\n"
            "Important: no text inside the image, only visual elements."
        )

        image_url = None
        for model in [self.settings.image_model, *self.settings.image_fallback_models]:
            try:
                image_url = await self.llm.generate_image(prompt, model=model, size=IMAGE_SIZES[config.layout])
                logger.info("Infographic generated with %s", model)
                break
            except AIServiceError as e:
                logger.warning("Image model %s failed: %s", model, e.message)

        if image_url is None:
            logger.warning("All image models failed, using placeholder infographic")
            image_url = placeholder_infographic(config, context.context)

        return GeneratedMaterial(
            type=NoteType.INFOGRAPHIC.value,
            title=self._title(NoteType.INFOGRAPHIC.value, custom_context),
            content=f"{topic} ({config.style}, {config.layout})",
            image_url=image_url,
            context_truncated=context.was_truncated,
            source_ids=[] if custom_context else _source_ids(sources),
        )

    async def summarize_text(self, sources: Sequence[ContextSource], custom_context: str | None = None) -> tuple[str, bool]:
        """Return (3-5 bullet point analysis, context_truncated)."""
        context = self._context(sources, custom_context, max_chars=self.settings.max_summary_chars)
        reply = await self.llm.complete(
            [
                {
                    "role": "user",
                    "content": (
                        "Analyze the following source material and explain its 3-5 most important points "
                        f"as short bullet points in {self.language}. Do not write a heading, only the "
                        f"bullet points.\n\n{context.context}"
                    ),
                }
            ],
            model=self.settings.chat_model,
            temperature=self.settings.summary_temperature,
        )
        return reply.strip(), context.was_truncated

    async def summarize(
        self,
        sources: Sequence[ContextSource],
        *,
        custom_context: str | None = None,
    ) -> GeneratedMaterial:
        text, truncated = await self.summarize_text(sources, custom_context)
        if not text:
            raise AIServiceError("AI service returned an empty summary")
        return GeneratedMaterial(
            type=NoteType.REMINDERS.value,
            title=self._title(NoteType.REMINDERS.value, custom_context),
            content=text,
            context_truncated=truncated,
            source_ids=[] if custom_context else _source_ids(sources),
        )

    async def topic_complete(
        self,
        sources: Sequence[ContextSource],
        *,
        topic: str | None = None,
    ) -> tuple[GeneratedMaterial, GeneratedMaterial]:
        """
        Close a topic: a marker note plus a hard, long quiz over its PDFs.

        Only PDF sources with extracted text are used.
        """
        pdfs = [s for s in sources if getattr(s, "is_pdf", False) and s.context_text]
        if not pdfs:
            raise GenerationError("Topic completion needs at least one PDF source with extracted text.")

        if not topic:
            stems = [PurePath(s.name).stem for s in pdfs]
            topic = stems[0] if len(stems) == 1 else ", ".join(stems)
        topic = topic[:200]

        quiz = await self.generate_material(
            NoteType.QUIZ.value,
            pdfs,
            QuizConfig(question_count="more", difficulty="hard", topic=topic),
            title=f"{topic} quiz",
        )
        marker = GeneratedMaterial(
            type=NoteType.TOPIC_COMPLETE.value,
            title=f"{topic} completed",
            content=f"Topic completed: {topic}. Final quiz: {len(quiz.payload.questions)} questions.",
            context_truncated=quiz.context_truncated,
            source_ids=_source_ids(pdfs),
        )
        return marker, quiz

"""Coerce heterogeneous AI JSON into the canonical study-material schemas.

Models return flashcards as bare arrays, use front/back instead of
question/answer, wrap payloads in code fences, and so on. Everything is
normalized here so the rest of the app only sees one shape per type.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from studyspace.schemas.materials import (
    Flashcard,
    FlashcardData,
    MindMapData,
    MindMapNode,
    PresentationData,
    QuizData,
    QuizQuestion,
    Slide,
)

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")

_QUESTION_KEYS = ("question", "front", "q", "term", "prompt")
_ANSWER_KEYS = ("answer", "back", "a", "definition")
_CARD_LIST_KEYS = ("cards", "flashcards", "items")
_QUIZ_LIST_KEYS = ("questions", "quiz", "items")
_OPTION_KEYS = ("options", "choices", "answers")
_INDEX_KEYS = ("correctAnswerIndex", "correct_answer_index", "answerIndex", "answer_index", "correctIndex")
_ANSWER_TEXT_KEYS = ("answer", "correct_answer", "correctAnswer")
_ROOT_KEYS = ("rootNode", "root_node", "root")
_LABEL_KEYS = ("label", "name", "title", "text")
_CHILD_KEYS = ("children", "nodes")
_SLIDE_CONTENT_KEYS = ("content", "bullets", "points")


class MaterialShapeError(ValueError):
    """AI payload could not be coerced into the expected material shape."""

    def __init__(self, material_type: str, detail: str):
        self.material_type = material_type
        self.detail = detail
        super().__init__(f"AI returned an unrecognized {material_type} response: {detail}")


def _first(mapping: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_model_json(text: str, material_type: str = "JSON") -> Any:
    """Strip Markdown code fences and decode the model's JSON reply."""
    cleaned = _CODE_FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise MaterialShapeError(material_type, "empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MaterialShapeError(material_type, f"invalid JSON ({e.msg})") from e


# =============================================================================
# FLASHCARDS
# =============================================================================


def normalize_flashcards(payload: Any, default_title: str = "Flashcards") -> FlashcardData:
    """
    Accepts `[{front, back}]`, `[{question, answer}]`, `{title, cards: [...]}`
    (or `flashcards`/`items` instead of `cards`).
    """
    title = default_title
    raw_cards: Any = None

    if isinstance(payload, list):
        raw_cards = payload
    elif isinstance(payload, dict):
        title = _text(payload.get("title")) or default_title
        raw_cards = _first(payload, _CARD_LIST_KEYS)

    if not isinstance(raw_cards, list):
        raise MaterialShapeError("flashcard", "no list of cards found")

    cards = []
    for raw in raw_cards:
        if not isinstance(raw, dict):
            continue
        question = _text(_first(raw, _QUESTION_KEYS))
        answer = _text(_first(raw, _ANSWER_KEYS))
        if question or answer:
            cards.append(Flashcard(question=question, answer=answer))

    if not cards:
        raise MaterialShapeError("flashcard", "no usable cards")
    return FlashcardData(title=title, cards=cards)


# =============================================================================
# QUIZ
# =============================================================================


def _correct_index(raw: dict, options: list[str]) -> int | None:
    index = _first(raw, _INDEX_KEYS)
    if isinstance(index, bool):
        return None
    if isinstance(index, int):
        return index
    if isinstance(index, str) and index.strip().isdigit():
        return int(index.strip())

    answer = _first(raw, _ANSWER_TEXT_KEYS)
    if isinstance(answer, str):
        answer = answer.strip()
        if answer in options:
            return options.index(answer)
        # "B" style letter answers
        if len(answer) == 1 and answer.isalpha():
            letter_index = ord(answer.upper()) - ord("A")
            if 0 <= letter_index < len(options):
                return letter_index
    return None


def normalize_quiz(payload: Any, default_title: str = "Quiz") -> QuizData:
    """
    Accepts `{title, questions: [...]}` or a bare list of questions.

    Questions with fewer than two options or without a resolvable correct
    answer are dropped.
    """
    title = default_title
    raw_questions: Any = None

    if isinstance(payload, list):
        raw_questions = payload
    elif isinstance(payload, dict):
        title = _text(payload.get("title")) or default_title
        raw_questions = _first(payload, _QUIZ_LIST_KEYS)

    if not isinstance(raw_questions, list):
        raise MaterialShapeError("quiz", "no list of questions found")

    questions = []
    for raw in raw_questions:
        if not isinstance(raw, dict):
            continue
        raw_options = _first(raw, _OPTION_KEYS)
        if not isinstance(raw_options, list):
            continue
        options = [_text(option) for option in raw_options]
        if len(options) < 2:
            continue
        index = _correct_index(raw, options)
        if index is None or not 0 <= index < len(options):
            continue
        text = _text(_first(raw, ("question", "q", "prompt")))
        if not text:
            continue
        questions.append(
            QuizQuestion(
                question=text,
                options=options,
                correct_answer_index=index,
                explanation=_text(raw.get("explanation")),
            )
        )

    if not questions:
        raise MaterialShapeError("quiz", "no usable questions")
    return QuizData(title=title, questions=questions)


# =============================================================================
# MIND MAP
# =============================================================================


def _node(raw: Any, depth: int = 0) -> MindMapNode | None:
    if isinstance(raw, str):
        return MindMapNode(label=raw.strip()) if raw.strip() else None
    if not isinstance(raw, dict) or depth > 12:
        return None
    label = _text(_first(raw, _LABEL_KEYS))
    if not label:
        return None
    raw_children = _first(raw, _CHILD_KEYS)
    if not isinstance(raw_children, list):
        raw_children = []
    children = [child for child in (_node(c, depth + 1) for c in raw_children) if child is not None]
    return MindMapNode(label=label, children=children)


def normalize_mind_map(payload: Any, default_title: str = "Mind map") -> MindMapData:
    """Accepts `{title, rootNode|root|root_node}` or a bare root node."""
    if not isinstance(payload, dict):
        raise MaterialShapeError("mindmap", "expected an object")

    raw_root = _first(payload, _ROOT_KEYS)
    if raw_root is None and _first(payload, _CHILD_KEYS):
        raw_root = payload  # the payload itself is the root node
    root = _node(raw_root)
    if root is None:
        raise MaterialShapeError("mindmap", "no root node")

    title = _text(payload.get("title")) if raw_root is not payload else ""
    return MindMapData(title=title or root.label or default_title, root_node=root)


# =============================================================================
# PRESENTATION
# =============================================================================


def normalize_presentation(payload: Any, default_title: str = "Presentation") -> PresentationData:
    """Accepts `{title, slides}` or a bare list of slides."""
    title = default_title
    raw_slides: Any = None

    if isinstance(payload, list):
        raw_slides = payload
    elif isinstance(payload, dict):
        title = _text(payload.get("title")) or default_title
        raw_slides = payload.get("slides")

    if not isinstance(raw_slides, list):
        raise MaterialShapeError("presentation", "no list of slides found")

    slides = []
    for raw in raw_slides:
        if not isinstance(raw, dict):
            continue
        content = _first(raw, _SLIDE_CONTENT_KEYS) or []
        if isinstance(content, str):
            content = [line.strip(" -*•") for line in content.splitlines()]
        elif not isinstance(content, list):
            content = []
        bullets = [_text(item) for item in content if _text(item)]
        slide_title = _text(raw.get("title"))
        if not slide_title and not bullets:
            continue
        slides.append(
            Slide(
                title=slide_title or title,
                content=bullets,
                code=_text(raw.get("code")) or None,
                image_url=_text(_first(raw, ("imageUrl", "image_url"))) or None,
            )
        )

    if not slides:
        raise MaterialShapeError("presentation", "no usable slides")
    return PresentationData(title=title, slides=slides)


_NORMALIZERS = {
    "quiz": normalize_quiz,
    "flashcard": normalize_flashcards,
    "mindmap": normalize_mind_map,
    "presentation": normalize_presentation,
}


def normalize_material(material_type: str, payload: Any, default_title: str):
    """Dispatch to the normalizer for material_type."""
    try:
        normalizer = _NORMALIZERS[material_type]
    except KeyError:
        raise MaterialShapeError(material_type, "no structured schema for this type") from None
    try:
        return normalizer(payload, default_title)
    except ValidationError as e:
        logger.warning("Normalized %s payload failed validation: %s", material_type, e)
        raise MaterialShapeError(material_type, "payload failed validation") from e
    except (TypeError, AttributeError) as e:
        logger.warning("Unexpected %s payload structure: %s", material_type, e)
        raise MaterialShapeError(material_type, "unexpected value types") from e

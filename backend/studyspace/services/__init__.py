"""Business logic services."""

from studyspace.services.context_builder import ContextPayload, TextSource, build_context
from studyspace.services.llm_client import AIServiceError, OpenRouterClient
from studyspace.services.normalizer import MaterialShapeError
from studyspace.services.pdf_processor import pdf_processor
from studyspace.services.quiz_shuffler import shuffle_quiz_options

__all__ = [
    "AIServiceError",
    "ContextPayload",
    "MaterialShapeError",
    "OpenRouterClient",
    "TextSource",
    "build_context",
    "pdf_processor",
    "shuffle_quiz_options",
]

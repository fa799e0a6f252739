"""Bounded prompt-context assembly from sources.

The model only ever sees text produced here, so the character budget is
enforced in one place.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

SEPARATOR = "\n\n"


class ContextSource(Protocol):
    """Anything with a name and some text (ORM Source rows, ad-hoc selections)."""

    name: str

    @property
    def context_text(self) -> str: ...


@dataclass(frozen=True)
class TextSource:
    """In-memory source, used for user-selected passages."""

    name: str
    text: str

    @property
    def context_text(self) -> str:
        return self.text


@dataclass(frozen=True)
class ContextPayload:
    context: str
    was_truncated: bool


def trim_text(text: str, max_chars: int) -> tuple[str, bool]:
    """Cut text to max_chars; returns (text, was_cut)."""
    if len(text) <= max_chars:
        return text, False
    return text[: max(max_chars, 0)], True


def build_context(
    sources: Iterable[ContextSource],
    *,
    max_chars: int,
    per_source_max_chars: int,
    include_headers: bool = True,
) -> ContextPayload:
    """
    Concatenate source texts into one blob no longer than max_chars.

    Sources are taken in order. Each contributes a header line plus at most
    min(per_source_max_chars, remaining budget) characters; pieces are joined
    by a blank line and both headers and separators count toward the budget.
    Sources without text are skipped entirely.

    was_truncated is True exactly when some source contributed less than its
    full text, including sources dropped because the budget ran out.
    """
    pieces: list[str] = []
    total = 0
    truncated = False

    for source in sources:
        text = source.context_text
        if not text:
            continue

        separator = SEPARATOR if pieces else ""
        header = f"[SOURCE: {source.name}]\n" if include_headers else ""
        remaining = max_chars - total - len(separator) - len(header)
        if remaining <= 0:
            truncated = True
            break

        piece_text, was_cut = trim_text(text, min(per_source_max_chars, remaining))
        truncated = truncated or was_cut

        pieces.append(header + piece_text)
        total += len(separator) + len(header) + len(piece_text)

    if truncated:
        logger.warning("Prompt context truncated to %d chars (limit %d)", total, max_chars)

    return ContextPayload(context=SEPARATOR.join(pieces), was_truncated=truncated)

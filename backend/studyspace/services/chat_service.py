"""Chat service with streaming support and source-grounded context."""

import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyspace.config import Settings, get_settings
from studyspace.db.models import ChatHistory, ChatRole
from studyspace.services.context_builder import ContextPayload, ContextSource, build_context
from studyspace.services.llm_client import OpenRouterClient
from studyspace.services.study_generator import language_name

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are a study assistant. Your answers must be precise, academic and grounded in the sources below. \
When the sources do not cover the question, say so instead of guessing. Respond in {language}.

---

## Sources

{context}"""

_NO_SOURCES = "No sources are active."

# Title of a new session, taken from its first message
_TITLE_MAX_CHARS = 60


@dataclass
class PreparedChat:
    messages: list[dict]
    context: ContextPayload
    sources_used: list[str]


class ChatService:
    """Answers chat messages from the user's sources."""

    def __init__(self, llm: OpenRouterClient, *, language: str | None = None, settings: Settings | None = None):
        self.llm = llm
        self.settings = settings or get_settings()
        self.language = language_name(language)

    def prepare(
        self,
        user_message: str,
        conversation_history: list[dict],
        sources: Sequence[ContextSource],
    ) -> PreparedChat:
        """
        Build the message list sent to the model.

        Args:
            user_message: Current user message
            conversation_history: Previous messages (list of dicts with 'role' and 'content')
            sources: Grounding sources, in order

        Returns:
            PreparedChat with the messages, the context payload and names of sources used
        """
        context = build_context(
            sources,
            max_chars=self.settings.max_context_chars,
            per_source_max_chars=self.settings.max_source_chars,
        )
        system_prompt = _SYSTEM_PROMPT.format(
            language=self.language,
            context=context.context or _NO_SOURCES,
        )
        messages = [{"role": "system", "content": system_prompt}]
        messages += [{"role": m["role"], "content": m["content"]} for m in conversation_history]
        messages.append({"role": "user", "content": user_message})
        return PreparedChat(
            messages=messages,
            context=context,
            sources_used=[s.name for s in sources if s.context_text],
        )

    async def get_full_response(self, prepared: PreparedChat) -> str:
        """Get a non-streaming reply."""
        return await self.llm.complete(
            prepared.messages,
            model=self.settings.chat_model,
            temperature=self.settings.chat_temperature,
        )

    async def stream_response(self, prepared: PreparedChat) -> AsyncIterator[str]:
        """Yield reply text chunks as the model produces them."""
        async for chunk in self.llm.stream(
            prepared.messages,
            model=self.settings.chat_model,
            temperature=self.settings.chat_temperature,
        ):
            yield chunk


async def append_exchange(
    db: AsyncSession,
    user_id: UUID,
    session_id: str,
    user_message: str,
    reply: str,
    *,
    sources_used: list[str],
    source_ids: list[str],
) -> ChatHistory:
    """
    Append one user/assistant exchange to a session, creating it if missing.

    The caller commits.
    """
    result = await db.execute(
        select(ChatHistory).where(ChatHistory.user_id == user_id, ChatHistory.session_id == session_id)
    )
    chat = result.scalar_one_or_none()
    now = datetime.now(timezone.utc)

    if chat is None:
        title = user_message.strip().splitlines()[0][:_TITLE_MAX_CHARS] if user_message.strip() else "New Chat"
        chat = ChatHistory(user_id=user_id, session_id=session_id, title=title, messages=[])
        db.add(chat)

    timestamp = now.isoformat()
    # Reassign so SQLAlchemy sees the JSON column change
    chat.messages = [
        *chat.messages,
        {"role": ChatRole.USER.value, "content": user_message, "timestamp": timestamp, "sourcesUsed": []},
        {"role": ChatRole.ASSISTANT.value, "content": reply, "timestamp": timestamp, "sourcesUsed": sources_used},
    ]
    chat.source_ids = source_ids
    chat.last_message_at = now
    await db.flush()
    logger.info("Appended exchange to chat session %s", session_id)
    return chat

"""API routes for chat history and source-grounded chat with streaming support."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import delete, select
from sse_starlette.sse import EventSourceResponse

from studyspace.api.deps import CurrentUser, DbSession, LLMClient, load_context_sources
from studyspace.config import sanitize_error
from studyspace.db.models import ChatHistory
from studyspace.db.session import AsyncSessionLocal
from studyspace.schemas.base import SuccessResponse
from studyspace.schemas.chat import (
    ChatHistoryListResponse,
    ChatHistoryRead,
    ChatHistoryResponse,
    ChatHistoryUpsert,
    ChatSendRequest,
    ChatSendResponse,
)
from studyspace.services.chat_service import ChatService, append_exchange
from studyspace.services.llm_client import AIServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


# =============================================================================
# HISTORY
# =============================================================================


@router.get("/history", response_model=ChatHistoryListResponse)
async def list_history(db: DbSession, user: CurrentUser):
    """List the user's chat sessions, most recent first."""
    result = await db.execute(
        select(ChatHistory)
        .where(ChatHistory.user_id == user.id)
        .order_by(ChatHistory.last_message_at.desc())
    )
    return ChatHistoryListResponse(
        chats=[ChatHistoryRead.model_validate(c) for c in result.scalars()]
    )


@router.post("/history", response_model=ChatHistoryResponse)
async def upsert_history(request: ChatHistoryUpsert, db: DbSession, user: CurrentUser):
    """Create a session or replace its transcript."""
    result = await db.execute(
        select(ChatHistory).where(
            ChatHistory.user_id == user.id,
            ChatHistory.session_id == request.session_id,
        )
    )
    chat = result.scalar_one_or_none()
    if chat is None:
        chat = ChatHistory(user_id=user.id, session_id=request.session_id)
        db.add(chat)

    chat.messages = [m.model_dump(by_alias=True, mode="json") for m in request.messages]
    chat.source_ids = request.source_ids
    chat.last_message_at = datetime.now(timezone.utc)
    if request.title:
        chat.title = request.title
    if request.settings is not None:
        chat.settings = {**(chat.settings or {}), **request.settings}

    await db.commit()
    await db.refresh(chat)

    return ChatHistoryResponse(chat=ChatHistoryRead.model_validate(chat))


@router.delete("/history/{session_id}", response_model=SuccessResponse)
async def delete_history(session_id: str, db: DbSession, user: CurrentUser):
    """Delete a chat session."""
    result = await db.execute(
        delete(ChatHistory).where(ChatHistory.user_id == user.id, ChatHistory.session_id == session_id)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    await db.commit()
    return SuccessResponse(message="Chat deleted")


# =============================================================================
# CHAT
# =============================================================================


@router.post("/send", response_model=ChatSendResponse)
async def send_message(request: ChatSendRequest, db: DbSession, user: CurrentUser, llm: LLMClient):
    """
    Ask a question about the sources and get the full reply.

    Uses the active sources unless `sourceIds` is given. With a `sessionId`
    the exchange is appended to that chat history.
    """
    sources = await load_context_sources(db, user.id, request.source_ids)
    service = ChatService(llm, language=(user.settings or {}).get("language"))
    prepared = service.prepare(
        request.message,
        [turn.model_dump() for turn in request.history],
        sources,
    )

    reply = await service.get_full_response(prepared)

    if request.session_id:
        await append_exchange(
            db,
            user.id,
            request.session_id,
            request.message,
            reply,
            sources_used=prepared.sources_used,
            source_ids=[str(s.id) for s in sources],
        )
        await db.commit()

    return ChatSendResponse(
        message=reply,
        context_truncated=prepared.context.was_truncated,
        session_id=request.session_id,
        sources_used=prepared.sources_used,
    )


@router.post("/stream")
async def stream_message(request: ChatSendRequest, db: DbSession, user: CurrentUser, llm: LLMClient):
    """
    Send a chat message and stream the response using Server-Sent Events (SSE).

    Events:
    - 'message': Text chunks from the assistant
    - 'done': Streaming complete (data is "truncated" when the context was cut)
    - 'error': Error occurred
    """
    sources = await load_context_sources(db, user.id, request.source_ids)
    service = ChatService(llm, language=(user.settings or {}).get("language"))
    prepared = service.prepare(
        request.message,
        [turn.model_dump() for turn in request.history],
        sources,
    )
    source_ids = [str(s.id) for s in sources]
    user_id = user.id

    async def event_generator():
        """Generate SSE events for streaming response."""
        full_response = ""

        try:
            async for chunk in service.stream_response(prepared):
                full_response += chunk
                yield {"event": "message", "data": chunk}

            if request.session_id:
                # The request session may already be closed once streaming starts
                async with AsyncSessionLocal() as stream_db:
                    await append_exchange(
                        stream_db,
                        user_id,
                        request.session_id,
                        request.message,
                        full_response,
                        sources_used=prepared.sources_used,
                        source_ids=source_ids,
                    )
                    await stream_db.commit()

            yield {"event": "done", "data": "truncated" if prepared.context.was_truncated else ""}

        except AIServiceError as e:
            logger.warning("Chat stream failed: %s", e.message)
            yield {"event": "error", "data": e.message}
        except Exception as e:
            logger.exception("Error during chat streaming")
            safe_msg = sanitize_error(e, generic_message="An error occurred during chat.")
            yield {"event": "error", "data": safe_msg}

    return EventSourceResponse(event_generator())

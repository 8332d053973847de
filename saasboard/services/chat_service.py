"""Chat relay service: persist the user turn, stream the reply, persist the result."""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from saasboard.config import Settings, get_settings
from saasboard.core import (
    AppError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    get_logger,
    stream_id_ctx,
)
from saasboard.db.models import ROLE_ASSISTANT, ROLE_USER, Conversation
from saasboard.db.repositories import (
    create_conversation,
    create_message,
    get_conversation_messages,
    get_user_conversation,
    touch_conversation,
)
from saasboard.providers.base import BaseProvider, ChatMessage, ChatRequest
from saasboard.services.guard import ConversationGuard

logger = get_logger(__name__)

TITLE_MAX_LENGTH = 50
TITLE_ELLIPSIS = "..."
# Extra time a conversation stays claimed beyond the upstream timeout.
GUARD_GRACE_SECONDS = 30.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def make_title(message: str) -> str:
    """Derive a conversation title from its first message."""
    if len(message) > TITLE_MAX_LENGTH:
        return message[: TITLE_MAX_LENGTH - len(TITLE_ELLIPSIS)] + TITLE_ELLIPSIS
    return message


def format_event(event_type: str, text: str = "", conversation_id: str = "") -> str:
    """Serialize one downstream event frame.

    ``text`` and ``conversationId`` are omitted when empty, so only ``start``
    carries the conversation id.
    """
    event: dict[str, str] = {"type": event_type}
    if text:
        event["text"] = text
    if conversation_id:
        event["conversationId"] = conversation_id
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@dataclass
class RelayContext:
    """Everything the relay needs once the user turn has been stored."""

    subject_id: str
    conversation_id: str
    created: bool
    history: list[ChatMessage] = field(default_factory=list)
    # Proof of the conversation claim; only this token can release it
    claim_token: str | None = None


class ChatService:
    """Runs the pre-stream bookkeeping and the streaming relay for chat turns."""

    def __init__(
        self,
        provider: BaseProvider,
        session_factory: Callable[[], Session],
        settings: Settings | None = None,
        guard: ConversationGuard | None = None,
    ):
        self.provider = provider
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.guard = guard or ConversationGuard(
            self.settings.upstream_timeout_seconds + GUARD_GRACE_SECONDS
        )

    def prepare(
        self, subject_id: str, conversation_id: str | None, message: str
    ) -> RelayContext:
        """
        Validate the turn, store the user message and load history.

        Runs before any byte of the response is sent, so every failure here
        is an ordinary HTTP error. On success the conversation is claimed;
        ``relay`` releases it.

        Raises:
            ValidationError: empty message.
            NotFoundError: conversation missing or owned by someone else.
            ConflictError: a reply is already streaming into the conversation.
            PersistenceError: the user message could not be stored.
        """
        if not message or not message.strip():
            raise ValidationError("Message is required")

        with self.session_factory() as db:
            conversation: Conversation | None = None
            claim_token: str | None = None
            if conversation_id:
                conversation = get_user_conversation(db, subject_id, conversation_id)
                if conversation is None:
                    raise NotFoundError("Conversation not found")
                claim_token = self.guard.claim(conversation.id)
                if claim_token is None:
                    raise ConflictError("A reply is already streaming for this conversation")

            created = conversation is None
            try:
                if conversation is None:
                    conversation = create_conversation(
                        db, subject_id, make_title(message), commit=False
                    )
                    claim_token = self.guard.claim(conversation.id)
                create_message(db, conversation.id, ROLE_USER, message, commit=False)
                db.commit()
                history = get_conversation_messages(db, conversation.id)
            except SQLAlchemyError as exc:
                db.rollback()
                if conversation is not None and claim_token is not None:
                    self.guard.release(conversation.id, claim_token)
                logger.error(
                    "Failed to store user message",
                    data={"conversation_id": conversation_id, "error": str(exc)},
                )
                raise PersistenceError("Failed to save message") from exc

        return RelayContext(
            subject_id=subject_id,
            conversation_id=conversation.id,
            created=created,
            history=[ChatMessage(role=m.role, content=m.content) for m in history],
            claim_token=claim_token,
        )

    def _build_request(self, context: RelayContext) -> ChatRequest:
        return ChatRequest(
            messages=context.history,
            model=self.settings.chat_model,
            max_tokens=self.settings.chat_max_tokens,
            temperature=self.settings.chat_temperature,
        )

    def _save_reply(self, conversation_id: str, content: str) -> None:
        """Store the assistant turn and bump the conversation in one transaction."""
        with self.session_factory() as db:
            try:
                create_message(db, conversation_id, ROLE_ASSISTANT, content, commit=False)
                conversation = db.get(Conversation, conversation_id)
                if conversation is not None:
                    touch_conversation(db, conversation, commit=False)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("Error saving response") from exc

    async def relay(self, context: RelayContext) -> AsyncIterator[str]:
        """
        Stream the upstream reply as event frames.

        Frames are emitted in the order start, content*, then end or error.
        Nothing is read from upstream ahead of what has been forwarded. An
        upstream failure or a disconnect drops the partial reply; only a
        completed reply is persisted.
        """
        conversation_id = context.conversation_id
        stream_id = str(uuid.uuid4())
        stream_id_ctx.set(stream_id)
        log_data = {"stream_id": stream_id, "conversation_id": conversation_id}

        upstream = self.provider.chat_stream(self._build_request(context))
        chunks: list[str] = []
        try:
            yield format_event("start", conversation_id=conversation_id)
            logger.info(
                "Chat relay started",
                data={**log_data, "history_length": len(context.history)},
            )

            try:
                async for chunk in upstream:
                    if not chunk.content:
                        continue
                    chunks.append(chunk.content)
                    yield format_event("content", text=chunk.content)
            except AppError as exc:
                logger.warning(
                    "Upstream error during chat relay",
                    data={**log_data, "code": exc.code.value, "chunks": len(chunks)},
                )
                yield format_event("error", text=exc.message)
                return
            except Exception as exc:
                logger.exception(
                    "Unexpected error during chat relay",
                    exc_info=exc,
                    data=log_data,
                )
                yield format_event("error", text="An unexpected error occurred")
                return

            content = "".join(chunks)
            try:
                self._save_reply(conversation_id, content)
            except PersistenceError as exc:
                logger.error("Failed to store assistant reply", data=log_data)
                yield format_event("error", text=exc.message)
                return

            logger.info(
                "Chat relay finished",
                data={**log_data, "chunks": len(chunks), "chars": len(content)},
            )
            yield format_event("end")
        except (asyncio.CancelledError, GeneratorExit):
            logger.info(
                "Chat relay aborted by client",
                data={**log_data, "chunks": len(chunks)},
            )
            raise
        finally:
            # Release before awaiting; a cancelled task may not get past the await.
            if context.claim_token is not None:
                self.guard.release(conversation_id, context.claim_token)
            await upstream.aclose()

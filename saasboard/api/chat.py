"""Chat endpoints: streaming relay, history and conversation list."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from saasboard.auth import RequireSubject, require_subject
from saasboard.core import NotFoundError, ValidationError, get_logger, rate_limit
from saasboard.core.logging import request_id_ctx
from saasboard.db import get_db
from saasboard.db.models import Conversation, Message
from saasboard.db.repositories import (
    get_conversation_messages,
    get_user_conversation,
    list_user_conversations,
)
from saasboard.services.chat_service import SSE_HEADERS, ChatService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/chat",
    tags=["chat"],
    dependencies=[Depends(require_subject), Depends(rate_limit("chat"))],
)


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field("", max_length=100_000)
    conversation_id: str | None = Field(None, alias="conversationId")


class ConversationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    created_at: str


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _conversation_to_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        user_id=conversation.user_id,
        title=conversation.title,
        created_at=conversation.created_at.isoformat(),
        updated_at=conversation.updated_at.isoformat(),
    )


def _message_to_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        created_at=message.created_at.isoformat(),
    )


def _serialize_rows(rows: list[Any], serializer: Any, kind: str) -> list[Any]:
    """Serialize rows one by one; a row that cannot be read is skipped, not fatal."""
    result = []
    for row in rows:
        try:
            result.append(serializer(row))
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning(
                "Skipping unreadable row",
                data={"kind": kind, "id": getattr(row, "id", None), "error": str(exc)},
            )
    return result


@router.post("")
def send_message_route(
    body: SendMessageRequest,
    subject_id: RequireSubject,
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """
    Send a message and stream the reply as server-sent events.

    The user message is stored before the response starts; the first event
    carries the conversation id so a new conversation is immediately known.
    """
    context = chat_service.prepare(subject_id, body.conversation_id, body.message)
    headers = dict(SSE_HEADERS)
    request_id = request_id_ctx.get()
    if request_id:
        headers["X-Request-ID"] = request_id
    return StreamingResponse(
        chat_service.relay(context),
        media_type="text/event-stream",
        headers=headers,
    )


@router.get("/history")
def history_route(
    subject_id: RequireSubject,
    conversation_id: str | None = Query(None, alias="conversationId"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    if not conversation_id:
        raise ValidationError("conversationId is required")

    conversation = get_user_conversation(db, subject_id, conversation_id)
    if not conversation:
        raise NotFoundError("Conversation not found")

    messages = get_conversation_messages(db, conversation_id)
    return {"messages": _serialize_rows(messages, _message_to_response, "message")}


@router.get("/conversations")
def conversations_route(
    subject_id: RequireSubject,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    conversations = list_user_conversations(db, subject_id)
    return {
        "conversations": _serialize_rows(
            conversations, _conversation_to_response, "conversation"
        )
    }

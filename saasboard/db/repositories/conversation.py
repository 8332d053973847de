"""Repository helpers for conversations and messages."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from saasboard.core.time import utcnow
from saasboard.db.models import Conversation, Message

CONVERSATION_LIST_LIMIT = 50


def create_conversation(
    db: Session, user_id: str, title: str, *, commit: bool = True
) -> Conversation:
    """Create a new conversation for the given user."""
    conversation = Conversation(user_id=user_id, title=title)
    db.add(conversation)
    if commit:
        db.commit()
        db.refresh(conversation)
    else:
        db.flush()
    return conversation


def get_user_conversation(
    db: Session, user_id: str, conversation_id: str
) -> Conversation | None:
    """Fetch conversation owned by user.

    Returns None both when the conversation does not exist and when it
    belongs to another user.
    """
    stmt = select(Conversation).where(
        Conversation.id == conversation_id,
        Conversation.user_id == user_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def list_user_conversations(
    db: Session, user_id: str, limit: int = CONVERSATION_LIST_LIMIT
) -> list[Conversation]:
    """List the user's most recently updated conversations."""
    stmt = (
        select(Conversation)
        .where(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def touch_conversation(
    db: Session, conversation: Conversation, *, commit: bool = True
) -> Conversation:
    """Refresh the conversation's updated_at timestamp."""
    conversation.updated_at = utcnow()
    if commit:
        db.commit()
    return conversation


def create_message(
    db: Session,
    conversation_id: str,
    role: str,
    content: str,
    *,
    commit: bool = True,
) -> Message:
    """Append a chat message; it takes the next ``seq`` in its conversation."""
    last_seq = db.execute(
        select(func.max(Message.seq)).where(Message.conversation_id == conversation_id)
    ).scalar_one()
    message = Message(
        conversation_id=conversation_id,
        role=role,
        content=content,
        seq=(last_seq or 0) + 1,
    )
    db.add(message)
    if commit:
        db.commit()
        db.refresh(message)
    else:
        db.flush()
    return message


def get_conversation_messages(db: Session, conversation_id: str) -> list[Message]:
    """Messages of a conversation, oldest first; same-instant messages in insertion order."""
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.seq.asc())
    )
    return list(db.execute(stmt).scalars().all())

"""Database repositories for data access."""

from saasboard.db.repositories.conversation import (
    CONVERSATION_LIST_LIMIT,
    create_conversation,
    create_message,
    get_conversation_messages,
    get_user_conversation,
    list_user_conversations,
    touch_conversation,
)
from saasboard.db.repositories.user import (
    create_user,
    delete_user,
    email_exists,
    get_user_by_email,
    get_user_by_id,
)

__all__ = [
    # User
    "get_user_by_id",
    "get_user_by_email",
    "create_user",
    "delete_user",
    "email_exists",
    # Conversations
    "CONVERSATION_LIST_LIMIT",
    "create_conversation",
    "list_user_conversations",
    "get_user_conversation",
    "touch_conversation",
    "get_conversation_messages",
    "create_message",
]

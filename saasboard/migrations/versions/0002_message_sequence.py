"""Add per-conversation message sequence

Revision ID: 0002
Revises: 0001
Create Date: 2025-02-10

Messages written in the same clock tick share a created_at value; seq gives
them a stable order. Existing rows are numbered by (created_at, id).
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "messages",
        sa.Column("seq", sa.Integer(), nullable=False, server_default="0"),
    )
    op.execute(
        """
        UPDATE messages SET seq = (
            SELECT COUNT(*) FROM messages AS earlier
            WHERE earlier.conversation_id = messages.conversation_id
              AND (
                earlier.created_at < messages.created_at
                OR (earlier.created_at = messages.created_at AND earlier.id <= messages.id)
              )
        )
        """
    )
    op.create_index(
        "uq_messages_conversation_id_seq",
        "messages",
        ["conversation_id", "seq"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_messages_conversation_id_seq", table_name="messages")
    with op.batch_alter_table("messages") as batch_op:
        batch_op.drop_column("seq")

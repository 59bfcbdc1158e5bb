"""consultation room messages, summaries and the board room

Revision ID: 0002_room_board
Revises: 0001_initial
Create Date: 2026-10-19 15:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_room_board"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _user_fk(name: str, *, nullable: bool = True, ondelete: str = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def _consultation_fk() -> sa.Column:
    return sa.Column(
        "consultation_id",
        sa.Integer(),
        sa.ForeignKey("consultations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "consultation_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        _consultation_fk(),
        _user_fk("sender_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_consultation_messages_consultation", "consultation_messages", ["consultation_id", "created_at"])
    op.create_index("idx_consultation_messages_sender", "consultation_messages", ["sender_id"])

    op.create_table(
        "consultation_summaries",
        sa.Column("id", sa.Integer(), primary_key=True),
        _consultation_fk(),
        _user_fk("created_by_id"),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("action_items", sa.JSON(), nullable=False),
        sa.Column("key_decisions", sa.JSON(), nullable=False),
        sa.Column("follow_up_tasks", sa.JSON(), nullable=False),
        sa.Column("resources_shared", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        *_timestamps(),
    )
    op.create_index("idx_consultation_summaries_consultation", "consultation_summaries", ["consultation_id", "status"])

    op.create_table(
        "board_room_posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("author_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("reply_to_id", sa.Integer(), sa.ForeignKey("board_room_posts.id", ondelete="CASCADE"), nullable=True),
        sa.Column("thread_depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reply_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hidden_reason", sa.String(512), nullable=True),
        _user_fk("hidden_by_id"),
        *_timestamps(),
    )
    op.create_index("idx_board_room_posts_feed", "board_room_posts", ["is_hidden", "is_pinned", "created_at"])
    op.create_index("idx_board_room_posts_reply_to", "board_room_posts", ["reply_to_id"])

    op.create_table(
        "board_room_post_likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("board_room_posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("post_id", "user_id", name="uq_board_room_post_likes_user"),
    )


def downgrade() -> None:
    for table in ("board_room_post_likes", "board_room_posts", "consultation_summaries", "consultation_messages"):
        op.drop_table(table)

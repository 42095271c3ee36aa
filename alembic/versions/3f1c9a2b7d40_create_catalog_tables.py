"""create catalog tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-19 09:12:31.417203

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create events, sessions, stream_links and processed_posts.

    Sessions and stream links cascade on delete of their parent. The
    processed_posts ledger has no foreign key to events.
    """
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("country", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name", "round", name="uq_events_name_round"),
    )
    op.create_index("ix_events_name", "events", ["name"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=True),
        sa.Column("duration", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "name", name="uq_sessions_event_name"),
    )
    op.create_index("ix_sessions_event_id", "sessions", ["event_id"])

    op.create_table(
        "stream_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quality", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("filename", sa.String(), nullable=True),
        sa.Column("size", sa.BigInteger(), nullable=True),
        sa.Column("source", sa.String(), nullable=False, server_default="Sky F1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "session_id", "quality", "url", name="uq_stream_links_session_quality_url"
        ),
    )
    op.create_index("ix_stream_links_session_id", "stream_links", ["session_id"])

    op.create_table(
        "processed_posts",
        sa.Column("post_id", sa.String(), nullable=False),
        sa.Column("quality", sa.String(), nullable=False),
        sa.Column("post_url", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("event_name", sa.String(), nullable=False),
        sa.Column("event_round", sa.Integer(), nullable=False),
        sa.Column("created_utc", sa.Integer(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "is_fully_processed", sa.Boolean(), nullable=False, server_default="0"
        ),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("job_id", sa.String(), nullable=True),
        sa.Column("job_status", sa.String(), nullable=True),
        sa.Column("job_last_checked", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("post_id", "quality"),
    )
    op.create_index("ix_processed_posts_event_name", "processed_posts", ["event_name"])
    op.create_index("ix_processed_posts_reference", "processed_posts", ["reference"])


def downgrade() -> None:
    """Drop the catalog tables, children first."""
    op.drop_index("ix_processed_posts_reference", table_name="processed_posts")
    op.drop_index("ix_processed_posts_event_name", table_name="processed_posts")
    op.drop_table("processed_posts")
    op.drop_index("ix_stream_links_session_id", table_name="stream_links")
    op.drop_table("stream_links")
    op.drop_index("ix_sessions_event_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_events_name", table_name="events")
    op.drop_table("events")

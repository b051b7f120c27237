"""Task ledger keyed by (message_id, kind, language) with event audit trail."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "chat_tasks",
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("language", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("result", sa.Text(), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("message_id", "kind", "language"),
        sa.CheckConstraint(
            "status IN ('processing', 'done', 'failed')",
            name="ck_chat_tasks_status",
        ),
        sa.CheckConstraint(
            "status != 'done' OR result IS NOT NULL",
            name="ck_chat_tasks_done_has_result",
        ),
    )
    op.create_index(
        "idx_chat_tasks_status_updated",
        "chat_tasks",
        ["status", "updated_at"],
        unique=False,
    )

    op.create_table(
        "chat_task_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("language", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("status_from", sa.String(), nullable=True),
        sa.Column("status_to", sa.String(), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["message_id", "kind", "language"],
            ["chat_tasks.message_id", "chat_tasks.kind", "chat_tasks.language"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_chat_task_events_key_time",
        "chat_task_events",
        ["message_id", "kind", "language", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_chat_task_events_event_type",
        "chat_task_events",
        ["event_type"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_chat_task_events_event_type", table_name="chat_task_events")
    op.drop_index("idx_chat_task_events_key_time", table_name="chat_task_events")
    op.drop_table("chat_task_events")
    op.drop_index("idx_chat_tasks_status_updated", table_name="chat_tasks")
    op.drop_table("chat_tasks")

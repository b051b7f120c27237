"""SQLModel ORM tables for the task ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKeyConstraint, Index, Text
from sqlmodel import Field, SQLModel


class ChatTask(SQLModel, table=True):
    __tablename__ = "chat_tasks"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_chat_tasks_status_updated", "status", "updated_at"),
    )

    message_id: str = Field(primary_key=True)
    kind: str = Field(primary_key=True)
    language: str = Field(primary_key=True)
    status: str
    result: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    attempt: int = 1
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ChatTaskEvent(SQLModel, table=True):
    __tablename__ = "chat_task_events"  # type: ignore[bad-override]
    __table_args__ = (
        ForeignKeyConstraint(
            ["message_id", "kind", "language"],
            ["chat_tasks.message_id", "chat_tasks.kind", "chat_tasks.language"],
            ondelete="CASCADE",
        ),
        Index("idx_chat_task_events_key_time", "message_id", "kind", "language", "created_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    message_id: str
    kind: str
    language: str
    event_type: str = Field(index=True)
    status_from: str | None = None
    status_to: str | None = None
    details_json: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

"""Domain models for the task ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

AUTO_LANGUAGE = "auto"


class TaskKind(str, Enum):
    """Kinds of expensive work a chat command can request."""

    STT = "stt"
    TRANSLATE = "translate"


class TaskStatus(str, Enum):
    """Durable task lifecycle states."""

    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class BeginResult(str, Enum):
    """Outcome of the ledger's check-and-set gate."""

    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True, slots=True)
class TaskKey:
    """Composite identity deduplicating work across message, kind, and language."""

    message_id: str
    kind: TaskKind
    language: str

    def __post_init__(self) -> None:
        if not self.message_id:
            raise ValueError("TaskKey.message_id must be a non-empty string.")
        normalized = self.language.strip().lower()
        if not normalized:
            raise ValueError("TaskKey.language must be a language code or 'auto'.")
        object.__setattr__(self, "language", normalized)

    def __str__(self) -> str:
        return f"{self.message_id}/{self.kind.value}/{self.language}"


@dataclass(slots=True)
class TaskRecord:
    """Readable ledger row."""

    key: TaskKey
    status: TaskStatus
    result: str | None
    attempt: int
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class TaskEventView:
    """Task event entry for audit trail."""

    event_id: int
    key: TaskKey
    event_type: str
    status_from: TaskStatus | None
    status_to: TaskStatus | None
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)

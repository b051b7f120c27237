"""Persistent task ledger backed by SQLModel + SQLite."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path

from alembic.util import CommandError
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from chat_tasks.errors import StorageError, TaskStateError
from chat_tasks.ledger.models import (
    BeginResult,
    TaskEventView,
    TaskKey,
    TaskKind,
    TaskRecord,
    TaskStatus,
)
from chat_tasks.storage.alembic_runner import upgrade_head
from chat_tasks.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from chat_tasks.storage.sqlmodel_models import ChatTask, ChatTaskEvent

logger = logging.getLogger(__name__)


class TaskLedger:
    """Only writer of the task store; every state transition goes through here."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        with _storage_errors("schema migration"):
            upgrade_head(self.db_path)

    def lookup(self, key: TaskKey) -> TaskRecord | None:
        """Return the record for ``key`` or ``None``; pure read."""

        with _storage_errors("lookup"), Session(self.engine) as session:
            row = session.exec(select(ChatTask).where(*_key_clause(key))).one_or_none()
            return _to_record(row) if row is not None else None

    def begin_processing(self, key: TaskKey) -> BeginResult:
        """Atomically gate a new attempt for ``key``.

        Inserts a ``processing`` record when none exists, or restarts a
        ``done``/``failed`` record. An existing ``processing`` record is left
        untouched and ``ALREADY_EXISTS`` is returned; callers must drop the
        request in that case.
        """

        with _storage_errors("begin_processing"):
            while True:
                now = to_db_datetime(utc_now())
                with Session(self.engine) as session:
                    # The insert takes the SQLite write lock, so the read and the
                    # conditional update below cannot interleave with another writer.
                    inserted = session.exec(
                        sqlite_insert(ChatTask)
                        .values(
                            message_id=key.message_id,
                            kind=key.kind.value,
                            language=key.language,
                            status=TaskStatus.PROCESSING.value,
                            result=None,
                            attempt=1,
                            created_at=now,
                            updated_at=now,
                        )
                        .on_conflict_do_nothing(
                            index_elements=["message_id", "kind", "language"],
                        ),
                    )
                    if inserted.rowcount == 1:
                        self._add_event(
                            session=session,
                            key=key,
                            event_type="begun",
                            status_from=None,
                            status_to=TaskStatus.PROCESSING,
                            details={"attempt": 1},
                        )
                        session.commit()
                        logger.info("Task %s accepted (attempt 1)", key)
                        return BeginResult.SUCCESS

                    row = session.exec(select(ChatTask).where(*_key_clause(key))).one_or_none()
                    if row is None:
                        session.rollback()
                        continue

                    previous = TaskStatus(row.status)
                    if previous is TaskStatus.PROCESSING:
                        session.rollback()
                        logger.info("Task %s already processing, dropping request", key)
                        return BeginResult.ALREADY_EXISTS

                    attempt = row.attempt + 1
                    result = session.exec(
                        sa_update(ChatTask)
                        .where(*_key_clause(key), col(ChatTask.status) == previous.value)
                        .values(
                            status=TaskStatus.PROCESSING.value,
                            result=None,
                            attempt=attempt,
                            updated_at=now,
                        ),
                    )
                    if result.rowcount != 1:
                        session.rollback()
                        continue

                    self._add_event(
                        session=session,
                        key=key,
                        event_type="restarted",
                        status_from=previous,
                        status_to=TaskStatus.PROCESSING,
                        details={"attempt": attempt},
                    )
                    session.commit()
                    logger.info(
                        "Task %s restarted from %s (attempt %d)",
                        key,
                        previous.value,
                        attempt,
                    )
                    return BeginResult.SUCCESS

    def complete(self, key: TaskKey, result: str) -> None:
        """Transition a processing record to ``done`` with its result."""

        if result is None or not result.strip():
            raise ValueError(f"Completed task {key} requires a non-empty result.")

        now = to_db_datetime(utc_now())
        with _storage_errors("complete"), Session(self.engine) as session:
            updated = session.exec(
                sa_update(ChatTask)
                .where(*_key_clause(key), col(ChatTask.status) == TaskStatus.PROCESSING.value)
                .values(status=TaskStatus.DONE.value, result=result, updated_at=now),
            )
            if updated.rowcount != 1:
                row = session.exec(select(ChatTask).where(*_key_clause(key))).one_or_none()
                session.rollback()
                if row is None:
                    raise TaskStateError(f"Task not found: {key}")
                raise TaskStateError(f"Task {key} cannot complete from status={row.status}")

            self._add_event(
                session=session,
                key=key,
                event_type="completed",
                status_from=TaskStatus.PROCESSING,
                status_to=TaskStatus.DONE,
                details={"result_chars": len(result)},
            )
            session.commit()
        logger.info("Task %s completed (%d chars)", key, len(result))

    def fail(self, key: TaskKey) -> bool:
        """Mark a record ``failed``; safe to repeat.

        Returns ``False`` without modification when the record is already
        ``done``, since a finished attempt never regresses.
        """

        now = to_db_datetime(utc_now())
        with _storage_errors("fail"), Session(self.engine) as session:
            updated = session.exec(
                sa_update(ChatTask)
                .where(*_key_clause(key), col(ChatTask.status) == TaskStatus.PROCESSING.value)
                .values(status=TaskStatus.FAILED.value, result=None, updated_at=now),
            )
            if updated.rowcount == 1:
                self._add_event(
                    session=session,
                    key=key,
                    event_type="failed",
                    status_from=TaskStatus.PROCESSING,
                    status_to=TaskStatus.FAILED,
                    details={},
                )
                session.commit()
                logger.info("Task %s failed", key)
                return True

            row = session.exec(select(ChatTask).where(*_key_clause(key))).one_or_none()
            session.rollback()
            if row is None:
                raise TaskStateError(f"Task not found: {key}")
            if row.status == TaskStatus.FAILED.value:
                return True
            logger.warning("Refusing to fail task %s from status=%s", key, row.status)
            return False

    def recover_stale(self, *, older_than_seconds: int) -> list[TaskKey]:
        """Fail ``processing`` records abandoned by a crashed process."""

        cutoff = to_db_datetime(utc_now() - timedelta(seconds=older_than_seconds))
        recovered: list[TaskKey] = []
        with _storage_errors("recover_stale"), Session(self.engine) as session:
            rows = session.exec(
                select(ChatTask).where(
                    ChatTask.status == TaskStatus.PROCESSING.value,
                    col(ChatTask.updated_at) < cutoff,
                ),
            ).all()
            now = to_db_datetime(utc_now())
            for row in rows:
                key = _to_key(row)
                updated = session.exec(
                    sa_update(ChatTask)
                    .where(
                        *_key_clause(key),
                        col(ChatTask.status) == TaskStatus.PROCESSING.value,
                        col(ChatTask.updated_at) < cutoff,
                    )
                    .values(status=TaskStatus.FAILED.value, result=None, updated_at=now),
                )
                if updated.rowcount != 1:
                    continue
                self._add_event(
                    session=session,
                    key=key,
                    event_type="stale_recovered",
                    status_from=TaskStatus.PROCESSING,
                    status_to=TaskStatus.FAILED,
                    details={"older_than_seconds": older_than_seconds},
                )
                recovered.append(key)
            session.commit()

        for key in recovered:
            logger.warning("Recovered stale processing task %s", key)
        return recovered

    def list_tasks(
        self,
        *,
        status: TaskStatus | None = None,
        limit: int = 50,
    ) -> list[TaskRecord]:
        """List recently updated tasks, optionally filtered by status."""

        with _storage_errors("list_tasks"), Session(self.engine) as session:
            statement = select(ChatTask).order_by(col(ChatTask.updated_at).desc()).limit(limit)
            if status is not None:
                statement = statement.where(ChatTask.status == status.value)
            rows = session.exec(statement).all()
            return [_to_record(row) for row in rows]

    def history(self, key: TaskKey) -> list[TaskEventView]:
        """Return the audit trail for ``key`` in chronological order."""

        with _storage_errors("history"), Session(self.engine) as session:
            event_rows = session.exec(
                select(ChatTaskEvent)
                .where(
                    ChatTaskEvent.message_id == key.message_id,
                    ChatTaskEvent.kind == key.kind.value,
                    ChatTaskEvent.language == key.language,
                )
                .order_by(col(ChatTaskEvent.created_at).asc(), col(ChatTaskEvent.id).asc()),
            ).all()

        events: list[TaskEventView] = []
        for row in event_rows:
            details = {}
            if row.details_json:
                parsed = json.loads(row.details_json)
                if isinstance(parsed, dict):
                    details = parsed
            events.append(
                TaskEventView(
                    event_id=row.id or 0,
                    key=key,
                    event_type=row.event_type,
                    status_from=TaskStatus(row.status_from) if row.status_from else None,
                    status_to=TaskStatus(row.status_to) if row.status_to else None,
                    created_at=to_utc_aware_datetime(row.created_at),
                    details=details,
                ),
            )
        return events

    def _add_event(  # noqa: PLR0913
        self,
        *,
        session: Session,
        key: TaskKey,
        event_type: str,
        status_from: TaskStatus | None,
        status_to: TaskStatus | None,
        details: dict[str, object],
    ) -> None:
        session.add(
            ChatTaskEvent(
                message_id=key.message_id,
                kind=key.kind.value,
                language=key.language,
                event_type=event_type,
                status_from=status_from.value if status_from is not None else None,
                status_to=status_to.value if status_to is not None else None,
                details_json=json.dumps(details, ensure_ascii=False, sort_keys=True)
                if details
                else None,
                created_at=to_db_datetime(utc_now()),
            ),
        )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, CommandError) as error:
        raise StorageError(f"Ledger {operation} failed: {error}") from error


def _key_clause(key: TaskKey) -> tuple:
    return (
        col(ChatTask.message_id) == key.message_id,
        col(ChatTask.kind) == key.kind.value,
        col(ChatTask.language) == key.language,
    )


def _to_key(row: ChatTask) -> TaskKey:
    return TaskKey(message_id=row.message_id, kind=TaskKind(row.kind), language=row.language)


def _to_record(row: ChatTask) -> TaskRecord:
    return TaskRecord(
        key=_to_key(row),
        status=TaskStatus(row.status),
        result=row.result,
        attempt=row.attempt,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )

"""Controllers for chat-tasks CLI commands."""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from chat_tasks import services
from chat_tasks.config import Settings
from chat_tasks.dispatch.transport import (
    AttachmentRef,
    ConsoleTransport,
    InboundMessage,
    QuotedMessage,
)
from chat_tasks.errors import MediaError
from chat_tasks.ledger.models import TaskKey, TaskKind, TaskStatus
from chat_tasks.ledger.repository import TaskLedger
from chat_tasks.media.workdir import ScratchWorkdirManager

LOCAL_CHAT_ID = "console"
LOCAL_SENDER_ID = "console-user"
RESULT_PREVIEW_CHARS = 60


@dataclass(slots=True)
class DispatchCommand:
    """CLI input for one simulated chat event."""

    db_path: Path | None
    text: str
    message_id: str | None
    quoted_message_id: str | None = None
    quoted_text: str | None = None
    attachment_path: Path | None = None
    chat_id: str = LOCAL_CHAT_ID
    sender_id: str = LOCAL_SENDER_ID


@dataclass(slots=True)
class TranscribeCommand:
    """CLI input for a ledger-free transcription run."""

    media_path: Path
    language: str | None


@dataclass(slots=True)
class TranslateCommand:
    """CLI input for a ledger-free translation run."""

    text: str
    target_language: str


@dataclass(slots=True)
class ListTasksCommand:
    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class ShowTaskCommand:
    db_path: Path | None
    message_id: str
    kind: str
    language: str


@dataclass(slots=True)
class RecoverCommand:
    """CLI input for stale task and scratch recovery."""

    db_path: Path | None
    older_than_seconds: int | None


class ChatTasksCliController:
    """Controller that keeps CLI handlers thin."""

    def dispatch(self, command: DispatchCommand) -> list[str]:
        settings = _settings(command.db_path)
        lines: list[str] = []
        transport = ConsoleTransport(emit=lines.append)
        with _ledger(settings) as ledger:
            dispatcher = services.build_dispatcher(settings, ledger=ledger, transport=transport)
            recovered = dispatcher.start(
                stale_processing_after_seconds=settings.ledger.stale_processing_after_seconds,
                scratch_stale_after_seconds=settings.media.scratch_stale_after_seconds,
            )
            outcome = dispatcher.handle(_inbound_message(command))

        if recovered:
            lines.insert(0, f"Recovered stale tasks: {len(recovered)}")
        lines.append(f"Outcome: {outcome.value}")
        return lines

    def transcribe(self, command: TranscribeCommand) -> list[str]:
        settings = _settings(None)
        language = (command.language or settings.dispatch.default_stt_language).lower()
        transcriber = services.build_transcriber(settings)
        # The pipeline consumes its input file, so it works on an inbox copy.
        media_copy = _copy_to_inbox(command.media_path, settings.media.inbox_dir)
        return [transcriber.transcribe(media_copy, language)]

    def translate(self, command: TranslateCommand) -> list[str]:
        settings = _settings(None)
        orchestrator = services.build_translator(settings)
        return [orchestrator.translate(command.text, command.target_language.lower())]

    def list_tasks(self, command: ListTasksCommand) -> list[str]:
        settings = _settings(command.db_path)
        status_filter = _parse_status(command.status)
        with _ledger(settings) as ledger:
            records = ledger.list_tasks(status=status_filter, limit=command.limit)

        lines = [f"Tasks: {len(records)}"]
        for record in records:
            lines.append(
                f"  {record.key} status={record.status.value} attempt={record.attempt} "
                f"updated_at={record.updated_at.isoformat()} "
                f"result={_preview(record.result)}",
            )
        return lines

    def show_task(self, command: ShowTaskCommand) -> list[str]:
        settings = _settings(command.db_path)
        key = TaskKey(
            message_id=command.message_id,
            kind=TaskKind(command.kind.strip().lower()),
            language=command.language,
        )
        with _ledger(settings) as ledger:
            record = ledger.lookup(key)
            events = ledger.history(key)
        if record is None:
            return [f"Task not found: {key}"]

        lines = [
            f"Task: {record.key}",
            f"Status: {record.status.value}",
            f"Attempt: {record.attempt}",
            f"Created: {record.created_at.isoformat()}",
            f"Updated: {record.updated_at.isoformat()}",
            f"Result: {record.result if record.result is not None else '-'}",
            f"Events: {len(events)}",
        ]
        for event in events:
            lines.append(
                f"  {event.created_at.isoformat()} {event.event_type} "
                f"{event.status_from.value if event.status_from else '-'} -> "
                f"{event.status_to.value if event.status_to else '-'}",
            )
        return lines

    def recover(self, command: RecoverCommand) -> list[str]:
        settings = _settings(command.db_path)
        older_than = command.older_than_seconds
        if older_than is None:
            older_than = settings.ledger.stale_processing_after_seconds
        with _ledger(settings) as ledger:
            recovered = ledger.recover_stale(older_than_seconds=older_than)
        removed = ScratchWorkdirManager(settings.media.scratch_dir).sweep_stale(
            older_than_seconds=settings.media.scratch_stale_after_seconds,
        )

        lines = [f"Recovered stale tasks: {len(recovered)}"]
        lines.extend(f"  {key}" for key in recovered)
        lines.append(f"Removed scratch directories: {len(removed)}")
        return lines


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


def _inbound_message(command: DispatchCommand) -> InboundMessage:
    attachment = None
    if command.attachment_path is not None:
        attachment = AttachmentRef(
            ref=str(command.attachment_path),
            filename=command.attachment_path.name,
        )

    if command.quoted_message_id is None:
        return InboundMessage(
            message_id=command.message_id,
            chat_id=command.chat_id,
            sender_id=command.sender_id,
            text=command.text,
            attachment=attachment,
        )
    return InboundMessage(
        message_id=command.message_id,
        chat_id=command.chat_id,
        sender_id=command.sender_id,
        text=command.text,
        quoted=QuotedMessage(
            message_id=command.quoted_message_id,
            text=command.quoted_text,
            attachment=attachment,
        ),
    )


def _copy_to_inbox(media_path: Path, inbox_dir: Path) -> Path:
    if not media_path.is_file():
        raise MediaError(f"Media file not found: {media_path}")
    inbox_dir.mkdir(parents=True, exist_ok=True)
    destination = inbox_dir / f"media-{uuid4().hex}{media_path.suffix}"
    shutil.copyfile(media_path, destination)
    return destination


def _parse_status(value: str | None) -> TaskStatus | None:
    if value is None:
        return None
    return TaskStatus(value.strip().lower())


def _preview(result: str | None) -> str:
    if result is None:
        return "-"
    flat = " ".join(result.split())
    if len(flat) <= RESULT_PREVIEW_CHARS:
        return repr(flat)
    return repr(flat[:RESULT_PREVIEW_CHARS] + "...")


@contextmanager
def _ledger(settings: Settings) -> Iterator[TaskLedger]:
    ledger = services.build_ledger(settings)
    try:
        yield ledger
    finally:
        ledger.close()

"""Command dispatcher: chat event -> ledger gate -> pipeline -> reply."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from chat_tasks.dispatch.commands import TaskRequest, parse_command
from chat_tasks.dispatch.keys import derive_task_key
from chat_tasks.dispatch.transport import (
    AttachmentRef,
    ChatTransport,
    InboundMessage,
    ReplyOptions,
)
from chat_tasks.errors import ChatTaskError, KeyDerivationError, ProviderError, StorageError
from chat_tasks.ledger.models import BeginResult, TaskKey, TaskKind, TaskStatus
from chat_tasks.ledger.repository import TaskLedger
from chat_tasks.transcription.pipeline import ChunkedTranscriber
from chat_tasks.translation.orchestrator import TranslationOrchestrator

logger = logging.getLogger(__name__)

STT_USAGE_HINT = "Please reply to a voice or video message with /stt."
APOLOGIES = {
    TaskKind.STT: "Sorry, the message could not be transcribed.",
    TaskKind.TRANSLATE: "Sorry, something went wrong during translation.",
}


class DispatchOutcome(str, Enum):
    """What the dispatcher did with one inbound event."""

    IGNORED = "ignored"
    REJECTED = "rejected"
    REPLAYED = "replayed"
    DROPPED_IN_FLIGHT = "dropped_in_flight"
    ABORTED = "aborted"
    COMPLETED = "completed"
    FAILED = "failed"


class CommandDispatcher:
    """Runs each distinct (message, kind, language) at most once.

    Every pipeline exception path ends in ``ledger.fail`` so no task is left
    in ``processing``; duplicates of an in-flight task get no reply.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        ledger: TaskLedger,
        transcriber: ChunkedTranscriber,
        translator: TranslationOrchestrator,
        transport: ChatTransport,
        inbox_dir: Path,
        default_stt_language: str,
    ) -> None:
        self.ledger = ledger
        self.transcriber = transcriber
        self.translator = translator
        self.transport = transport
        self.inbox_dir = inbox_dir
        self.default_stt_language = default_stt_language

    def start(
        self,
        *,
        stale_processing_after_seconds: int,
        scratch_stale_after_seconds: int,
    ) -> list[TaskKey]:
        """Recover state abandoned by a previous process before handling events."""

        recovered = self.ledger.recover_stale(older_than_seconds=stale_processing_after_seconds)
        self.transcriber.workdirs.sweep_stale(older_than_seconds=scratch_stale_after_seconds)
        return recovered

    def handle(self, message: InboundMessage) -> DispatchOutcome:
        """Process one inbound event and reply where appropriate."""

        request = parse_command(message.text, default_stt_language=self.default_stt_language)
        if request is None:
            return DispatchOutcome.IGNORED

        attachment = _attachment_of(message)
        if request.kind is TaskKind.STT and attachment is None:
            self._reply(message, request, STT_USAGE_HINT)
            return DispatchOutcome.REJECTED
        query = _query_of(message, request)
        if request.kind is TaskKind.TRANSLATE and not query:
            return DispatchOutcome.IGNORED

        try:
            key = derive_task_key(message, request)
        except KeyDerivationError as error:
            logger.warning("Dropping %s request: %s", request.kind.value, error)
            return DispatchOutcome.IGNORED

        try:
            record = self.ledger.lookup(key)
            if record is not None and record.status is TaskStatus.DONE and record.result:
                logger.info("Replaying stored result for task %s", key)
                self._reply(message, request, record.result)
                return DispatchOutcome.REPLAYED
            if record is not None and record.status is TaskStatus.PROCESSING:
                logger.info("Task %s is in flight, dropping duplicate request", key)
                return DispatchOutcome.DROPPED_IN_FLIGHT
            if self.ledger.begin_processing(key) is BeginResult.ALREADY_EXISTS:
                return DispatchOutcome.DROPPED_IN_FLIGHT
        except StorageError:
            logger.exception("Ledger unavailable, aborting request for task %s", key)
            return DispatchOutcome.ABORTED

        try:
            result = self._run(key=key, attachment=attachment, query=query)
        except Exception as error:  # noqa: BLE001
            self._log_failure(key, error)
            self._fail(key)
            self._reply(message, request, APOLOGIES[request.kind])
            return DispatchOutcome.FAILED

        try:
            self.ledger.complete(key, result)
        except ChatTaskError:
            logger.exception("Could not record result for task %s", key)
            self._fail(key)
            self._reply(message, request, APOLOGIES[request.kind])
            return DispatchOutcome.FAILED

        self._reply(message, request, result)
        return DispatchOutcome.COMPLETED

    def _run(self, *, key: TaskKey, attachment: AttachmentRef | None, query: str) -> str:
        if key.kind is TaskKind.STT:
            if attachment is None:
                raise ValueError(f"Task {key} has no attachment to transcribe.")
            media_path = self.transport.download_attachment(attachment, self.inbox_dir)
            result = self.transcriber.transcribe(media_path, key.language)
        else:
            result = self.translator.translate(query, key.language)

        if not result.strip():
            raise ProviderError(f"Task {key} produced an empty result.", transient=False)
        return result

    def _fail(self, key: TaskKey) -> None:
        try:
            self.ledger.fail(key)
        except ChatTaskError:
            logger.exception("Could not mark task %s as failed", key)

    def _reply(self, message: InboundMessage, request: TaskRequest, text: str) -> None:
        target_id = message.sender_id if request.private else message.chat_id
        options = ReplyOptions(
            quote_message_id=None if request.private else message.message_id,
            private=request.private,
        )
        try:
            self.transport.send_reply(target_id, text, options)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to deliver reply to %s", target_id)

    @staticmethod
    def _log_failure(key: TaskKey, error: Exception) -> None:
        if isinstance(error, ChatTaskError):
            logger.error(
                "Task %s failed: %s: %s (transient=%s)",
                key,
                error.__class__.__name__,
                error,
                error.transient,
            )
        else:
            logger.exception("Task %s failed with unexpected error", key)


def _attachment_of(message: InboundMessage) -> AttachmentRef | None:
    if message.quoted is not None:
        return message.quoted.attachment
    return message.attachment


def _query_of(message: InboundMessage, request: TaskRequest) -> str:
    if message.quoted is not None and message.quoted.text:
        return message.quoted.text.strip()
    return request.query

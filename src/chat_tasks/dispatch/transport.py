"""Chat transport boundary: inbound message shape and reply/download interface."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from chat_tasks.errors import MediaError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AttachmentRef:
    """Opaque transport handle for a media attachment."""

    ref: str
    mimetype: str | None = None
    filename: str | None = None

    @property
    def suffix(self) -> str:
        if self.filename and "." in self.filename:
            return "." + self.filename.rsplit(".", 1)[1].lower()
        if self.mimetype and "/" in self.mimetype:
            subtype = self.mimetype.split("/", 1)[1].split(";", 1)[0].strip().lower()
            return f".{subtype}" if subtype.isalnum() else ".bin"
        return ".bin"


@dataclass(frozen=True, slots=True)
class QuotedMessage:
    """The message a command replies to."""

    message_id: str | None
    text: str | None = None
    attachment: AttachmentRef | None = None


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """Transport-neutral inbound chat event."""

    message_id: str | None
    chat_id: str
    sender_id: str
    text: str
    quoted: QuotedMessage | None = None
    attachment: AttachmentRef | None = None


@dataclass(frozen=True, slots=True)
class ReplyOptions:
    """Delivery hints passed to the transport with each reply."""

    quote_message_id: str | None = None
    private: bool = False


class ChatTransport(Protocol):
    """Protocol implemented by chat transports."""

    def send_reply(self, target_id: str, text: str, options: ReplyOptions) -> None:
        """Deliver ``text`` to ``target_id``."""

    def download_attachment(self, attachment: AttachmentRef, destination_dir: Path) -> Path:
        """Store the attachment under ``destination_dir`` and return its path."""


@dataclass(slots=True)
class SentReply:
    """Reply captured by the console transport."""

    target_id: str
    text: str
    options: ReplyOptions


@dataclass(slots=True)
class ConsoleTransport:
    """Local transport: attachments are file paths, replies go to ``emit``."""

    emit: Callable[[str], None] = print
    replies: list[SentReply] = field(default_factory=list)

    def send_reply(self, target_id: str, text: str, options: ReplyOptions) -> None:
        self.replies.append(SentReply(target_id=target_id, text=text, options=options))
        scope = "private" if options.private else "chat"
        self.emit(f"[{scope} -> {target_id}] {text}")

    def download_attachment(self, attachment: AttachmentRef, destination_dir: Path) -> Path:
        source = Path(attachment.ref)
        if not source.is_file():
            raise MediaError(f"Attachment not found: {attachment.ref}")
        destination_dir.mkdir(parents=True, exist_ok=True)
        suffix = source.suffix or attachment.suffix
        destination = destination_dir / f"media-{uuid4().hex}{suffix}"
        shutil.copyfile(source, destination)
        logger.debug("Copied attachment %s to %s", source, destination)
        return destination

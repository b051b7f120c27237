"""Chat command dispatch: the boundary between a chat transport and the task core."""

from chat_tasks.dispatch.commands import TaskRequest, parse_command
from chat_tasks.dispatch.dispatcher import CommandDispatcher, DispatchOutcome
from chat_tasks.dispatch.keys import derive_task_key
from chat_tasks.dispatch.transport import (
    AttachmentRef,
    ChatTransport,
    ConsoleTransport,
    InboundMessage,
    QuotedMessage,
    ReplyOptions,
)

__all__ = [
    "AttachmentRef",
    "ChatTransport",
    "CommandDispatcher",
    "ConsoleTransport",
    "DispatchOutcome",
    "InboundMessage",
    "QuotedMessage",
    "ReplyOptions",
    "TaskRequest",
    "derive_task_key",
    "parse_command",
]

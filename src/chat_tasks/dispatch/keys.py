"""Task key derivation from inbound chat events."""

from __future__ import annotations

from chat_tasks.dispatch.commands import TaskRequest
from chat_tasks.dispatch.transport import InboundMessage
from chat_tasks.errors import KeyDerivationError
from chat_tasks.ledger.models import TaskKey


def derive_task_key(message: InboundMessage, request: TaskRequest) -> TaskKey:
    """Key the task on the replied-to message, else on the command message.

    A reply and a direct command on the same content therefore share one key.
    """

    if message.quoted is not None:
        message_id = message.quoted.message_id
        source = "quoted message"
    else:
        message_id = message.message_id
        source = "command message"

    if message_id is None or not message_id.strip():
        raise KeyDerivationError(f"Cannot derive task key: {source} has no id.")
    return TaskKey(message_id=message_id.strip(), kind=request.kind, language=request.language)

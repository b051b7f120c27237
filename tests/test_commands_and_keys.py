from __future__ import annotations

import allure
import pytest

from chat_tasks.dispatch.commands import TaskRequest, parse_command
from chat_tasks.dispatch.keys import derive_task_key
from chat_tasks.dispatch.transport import AttachmentRef, InboundMessage, QuotedMessage
from chat_tasks.errors import KeyDerivationError
from chat_tasks.ledger.models import TaskKey, TaskKind

pytestmark = [
    allure.epic("Dispatch"),
    allure.feature("Command Parsing"),
]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("/stt", TaskRequest(kind=TaskKind.STT, language="ro")),
        ("/stt/EN", TaskRequest(kind=TaskKind.STT, language="en")),
        ("/stt!", TaskRequest(kind=TaskKind.STT, language="ro", private=True)),
        ("/translate", TaskRequest(kind=TaskKind.TRANSLATE, language="auto")),
        (
            "/translate/de some text",
            TaskRequest(kind=TaskKind.TRANSLATE, language="de", query="some text"),
        ),
        (
            "/translate! hola\namigos ",
            TaskRequest(
                kind=TaskKind.TRANSLATE,
                language="auto",
                private=True,
                query="hola\namigos",
            ),
        ),
        (
            "  /translate/fr!   bonjour",
            TaskRequest(kind=TaskKind.TRANSLATE, language="fr", private=True, query="bonjour"),
        ),
    ],
)
def test_parse_command(text: str, expected: TaskRequest) -> None:
    assert parse_command(text, default_stt_language="ro") == expected


@pytest.mark.parametrize(
    "text",
    [None, "", "hello", "stt", "/sttx", "/translated text", "/stt/english", "/help", "/stt/e"],
)
def test_parse_command_ignores_non_commands(text: str | None) -> None:
    assert parse_command(text, default_stt_language="ro") is None


def test_parse_command_uses_configured_stt_default() -> None:
    request = parse_command("/stt", default_stt_language="DE")

    assert request == TaskRequest(kind=TaskKind.STT, language="de")


def test_reply_is_keyed_on_quoted_message() -> None:
    message = InboundMessage(
        message_id="cmd-9",
        chat_id="chat",
        sender_id="alice",
        text="/stt/en",
        quoted=QuotedMessage(message_id="voice-1", attachment=AttachmentRef(ref="f")),
    )
    request = TaskRequest(kind=TaskKind.STT, language="en")

    assert derive_task_key(message, request) == TaskKey("voice-1", TaskKind.STT, "en")


def test_direct_command_is_keyed_on_own_message() -> None:
    message = InboundMessage(
        message_id="cmd-9",
        chat_id="chat",
        sender_id="alice",
        text="/translate hi",
    )
    request = TaskRequest(kind=TaskKind.TRANSLATE, language="auto", query="hi")

    assert derive_task_key(message, request) == TaskKey("cmd-9", TaskKind.TRANSLATE, "auto")


def test_reply_and_direct_command_on_same_message_share_a_key() -> None:
    request = TaskRequest(kind=TaskKind.TRANSLATE, language="de")
    direct = InboundMessage(message_id="m-1", chat_id="c", sender_id="s", text="/translate/de x")
    reply = InboundMessage(
        message_id="m-2",
        chat_id="c",
        sender_id="s",
        text="/translate/de",
        quoted=QuotedMessage(message_id="m-1", text="x"),
    )

    assert derive_task_key(direct, request) == derive_task_key(reply, request)


@pytest.mark.parametrize("quoted_id", [None, "", "   "])
def test_quoted_message_without_id_cannot_be_keyed(quoted_id: str | None) -> None:
    message = InboundMessage(
        message_id="cmd-1",
        chat_id="chat",
        sender_id="alice",
        text="/stt",
        quoted=QuotedMessage(message_id=quoted_id),
    )

    with pytest.raises(KeyDerivationError, match="quoted message has no id"):
        derive_task_key(message, TaskRequest(kind=TaskKind.STT, language="ro"))


def test_command_message_without_id_cannot_be_keyed() -> None:
    message = InboundMessage(message_id=None, chat_id="chat", sender_id="alice", text="/stt")

    with pytest.raises(KeyDerivationError, match="command message has no id"):
        derive_task_key(message, TaskRequest(kind=TaskKind.STT, language="ro"))


def test_attachment_suffix_falls_back_to_mimetype() -> None:
    assert AttachmentRef(ref="x", filename="note.OGG").suffix == ".ogg"
    assert AttachmentRef(ref="x", mimetype="audio/ogg; codecs=opus").suffix == ".ogg"
    assert AttachmentRef(ref="x", mimetype="audio/x-m4a").suffix == ".bin"
    assert AttachmentRef(ref="x").suffix == ".bin"

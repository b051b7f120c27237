"""Chat command parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

from chat_tasks.ledger.models import AUTO_LANGUAGE, TaskKind

# /stt, /stt/de, /translate some text, /translate/de! some text
_COMMAND_RE = re.compile(
    r"^/(?P<command>stt|translate)"
    r"(?:/(?P<language>[A-Za-z]{2,3}))?"
    r"(?P<private>!)?"
    r"(?=\s|$)(?P<rest>.*)$",
    re.DOTALL,
)


@dataclass(frozen=True, slots=True)
class TaskRequest:
    """Parsed command: what to run, in which language, and how to reply."""

    kind: TaskKind
    language: str
    private: bool = False
    query: str = ""


def parse_command(text: str | None, *, default_stt_language: str) -> TaskRequest | None:
    """Parse a command message, or return ``None`` for ordinary chat text.

    Speech-to-text defaults to ``default_stt_language``; translation defaults
    to ``auto``. A trailing ``!`` on the command asks for a private reply.
    """

    if not text:
        return None
    match = _COMMAND_RE.match(text.strip())
    if match is None:
        return None

    kind = TaskKind.STT if match.group("command") == "stt" else TaskKind.TRANSLATE
    language = (match.group("language") or "").lower()
    if not language:
        language = default_stt_language.lower() if kind is TaskKind.STT else AUTO_LANGUAGE
    return TaskRequest(
        kind=kind,
        language=language,
        private=match.group("private") is not None,
        query=match.group("rest").strip(),
    )

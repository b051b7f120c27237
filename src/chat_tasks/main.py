"""CLI entrypoint for chat-tasks."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from chat_tasks import __version__
from chat_tasks.controllers import (
    ChatTasksCliController,
    DispatchCommand,
    ListTasksCommand,
    RecoverCommand,
    ShowTaskCommand,
    TranscribeCommand,
    TranslateCommand,
)
from chat_tasks.errors import ChatTaskError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = ChatTasksCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="chat-tasks")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for diagnostics written to stderr.",
)
def chat_tasks_cli(log_level: str) -> None:
    """Chat-triggered speech-to-text and translation tasks."""

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)


@chat_tasks_cli.command("dispatch")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--message-id", default=None, help="Id of the command message.")
@click.option("--quoted-id", default=None, help="Id of the message the command replies to.")
@click.option("--quoted-text", default=None, help="Text of the replied-to message.")
@click.option(
    "--attachment",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Local media file attached to the replied-to (or command) message.",
)
@click.option("--chat-id", default="console", show_default=True, help="Chat to reply into.")
@click.option(
    "--sender-id",
    default="console-user",
    show_default=True,
    help="Sender that receives private replies.",
)
@click.argument("text")
def dispatch(  # noqa: PLR0913
    db_path: Path | None,
    message_id: str | None,
    quoted_id: str | None,
    quoted_text: str | None,
    attachment: Path | None,
    chat_id: str,
    sender_id: str,
    text: str,
) -> None:
    """Handle one chat command, for example `/stt/en` or `/translate/de! Hallo`."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.dispatch(
                DispatchCommand(
                    db_path=db_path,
                    text=text,
                    message_id=message_id,
                    quoted_message_id=quoted_id,
                    quoted_text=quoted_text,
                    attachment_path=attachment,
                    chat_id=chat_id,
                    sender_id=sender_id,
                ),
            ),
        ),
    )


@chat_tasks_cli.command("transcribe")
@click.option(
    "--language",
    default=None,
    help="Language hint, or `auto`. Defaults to CHAT_TASKS_DEFAULT_STT_LANGUAGE.",
)
@click.argument("media_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
def transcribe(language: str | None, media_path: Path) -> None:
    """Transcribe a local audio or video file without touching the ledger."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.transcribe(
                TranscribeCommand(media_path=media_path, language=language),
            ),
        ),
    )


@chat_tasks_cli.command("translate")
@click.option(
    "--to",
    "target_language",
    default="auto",
    show_default=True,
    help="Target language code, or `auto` for home/target direction selection.",
)
@click.argument("text")
def translate(target_language: str, text: str) -> None:
    """Translate text without touching the ledger."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.translate(
                TranslateCommand(text=text, target_language=target_language),
            ),
        ),
    )


@chat_tasks_cli.group()
def tasks() -> None:
    """Task ledger commands."""


@tasks.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice(["processing", "done", "failed"], case_sensitive=False),
    default=None,
    help="Only show tasks in this status.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of tasks to print.",
)
def tasks_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recent tasks, most recently updated first."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.list_tasks(
                ListTasksCommand(db_path=db_path, status=status, limit=limit),
            ),
        ),
    )


@tasks.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("message_id")
@click.argument("kind", type=click.Choice(["stt", "translate"], case_sensitive=False))
@click.argument("language")
def tasks_show(db_path: Path | None, message_id: str, kind: str, language: str) -> None:
    """Show one task record and its event history."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.show_task(
                ShowTaskCommand(
                    db_path=db_path,
                    message_id=message_id,
                    kind=kind,
                    language=language,
                ),
            ),
        ),
    )


@tasks.command("recover")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--older-than-seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Staleness threshold. Defaults to CHAT_TASKS_STALE_PROCESSING_AFTER_SECONDS.",
)
def tasks_recover(db_path: Path | None, older_than_seconds: int | None) -> None:
    """Fail abandoned `processing` tasks and remove stale scratch directories."""

    _emit_lines(
        _guarded(
            lambda: CONTROLLER.recover(
                RecoverCommand(db_path=db_path, older_than_seconds=older_than_seconds),
            ),
        ),
    )


def _guarded(action: Callable[[], list[str]]) -> list[str]:
    try:
        return action()
    except (ChatTaskError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    chat_tasks_cli()

"""Component wiring from explicit settings."""

from __future__ import annotations

from chat_tasks.config import Settings
from chat_tasks.dispatch.dispatcher import CommandDispatcher
from chat_tasks.dispatch.transport import ChatTransport
from chat_tasks.ledger.repository import TaskLedger
from chat_tasks.media.ffmpeg import FfmpegMediaTool
from chat_tasks.media.workdir import ScratchWorkdirManager
from chat_tasks.providers.base import SpeechToTextProvider, TranslationProvider
from chat_tasks.providers.openai_provider import (
    OpenAiSpeechToText,
    OpenAiTranslator,
    build_openai_client,
)
from chat_tasks.transcription.pipeline import ChunkedTranscriber
from chat_tasks.translation.orchestrator import TranslationOrchestrator


def build_stt_provider(settings: Settings) -> SpeechToTextProvider:
    settings.validate_for_providers()
    client = build_openai_client(settings.provider, api_key=settings.provider.stt_api_key)
    return OpenAiSpeechToText(client, model=settings.provider.stt_model)


def build_translation_provider(settings: Settings) -> TranslationProvider:
    settings.validate_for_providers()
    client = build_openai_client(settings.provider)
    return OpenAiTranslator(client, model=settings.provider.chat_model)


def build_transcriber(
    settings: Settings,
    provider: SpeechToTextProvider | None = None,
) -> ChunkedTranscriber:
    media = settings.media
    return ChunkedTranscriber(
        media_tool=FfmpegMediaTool(
            ffmpeg_binary=media.ffmpeg_binary,
            ffprobe_binary=media.ffprobe_binary,
            sample_rate=media.sample_rate,
            timeout_seconds=media.tool_timeout_seconds,
        ),
        provider=provider or build_stt_provider(settings),
        workdirs=ScratchWorkdirManager(media.scratch_dir),
        chunk_seconds=media.chunk_seconds,
        parallel_requests=media.parallel_requests,
    )


def build_translator(
    settings: Settings,
    provider: TranslationProvider | None = None,
) -> TranslationOrchestrator:
    return TranslationOrchestrator(
        provider=provider or build_translation_provider(settings),
        home_language=settings.translation.home_language,
        target_language=settings.translation.target_language,
    )


def build_ledger(settings: Settings) -> TaskLedger:
    """Open the ledger and bring its schema to head."""

    ledger = TaskLedger(settings.ledger.db_path, busy_timeout_ms=settings.ledger.busy_timeout_ms)
    ledger.init_schema()
    return ledger


def build_dispatcher(
    settings: Settings,
    *,
    ledger: TaskLedger,
    transport: ChatTransport,
) -> CommandDispatcher:
    return CommandDispatcher(
        ledger=ledger,
        transcriber=build_transcriber(settings),
        translator=build_translator(settings),
        transport=transport,
        inbox_dir=settings.media.inbox_dir,
        default_stt_language=settings.dispatch.default_stt_language,
    )

"""Shared test fixtures."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from chat_tasks.errors import MediaError
from chat_tasks.ledger.repository import TaskLedger
from chat_tasks.media.workdir import ScratchWorkdirManager
from chat_tasks.transcription.pipeline import ChunkedTranscriber
from chat_tasks.translation.orchestrator import TranslationOrchestrator

_SEGMENT_INDEX_RE = re.compile(r"segment_(\d{4})")


class FakeMediaTool:
    """In-process stand-in for ffmpeg that writes small placeholder files."""

    def __init__(self, *, duration: float, extract_error: Exception | None = None) -> None:
        self.duration = duration
        self.extract_error = extract_error
        self.clips: list[tuple[float, float, Path]] = []

    def extract_audio_track(self, input_path: Path, output_path: Path) -> Path:
        if self.extract_error is not None:
            raise self.extract_error
        if not input_path.is_file():
            raise MediaError(f"Media file not found: {input_path}")
        output_path.write_bytes(b"RIFF-audio")
        return output_path

    def probe_duration(self, audio_path: Path) -> float:
        assert audio_path.is_file()
        return self.duration

    def clip_segment(
        self,
        audio_path: Path,
        *,
        start_seconds: float,
        duration_seconds: float,
        output_path: Path,
    ) -> Path:
        assert audio_path.is_file()
        self.clips.append((start_seconds, duration_seconds, output_path))
        output_path.write_bytes(f"{start_seconds}:{duration_seconds}".encode())
        return output_path


class FakeSpeechToText:
    """Returns a scripted text per segment index and records every call."""

    def __init__(
        self,
        texts: list[str],
        *,
        delays: list[float] | None = None,
        fail_on: int | None = None,
    ) -> None:
        self.texts = texts
        self.delays = delays
        self.fail_on = fail_on
        self.calls: list[tuple[int, str]] = []
        self.completion_order: list[int] = []
        self._lock = threading.Lock()

    def transcribe_segment(self, file_path: Path, language_hint: str) -> str:
        assert file_path.is_file()
        match = _SEGMENT_INDEX_RE.search(file_path.name)
        assert match is not None
        index = int(match.group(1))
        with self._lock:
            self.calls.append((index, language_hint))
        if self.delays is not None:
            time.sleep(self.delays[index])
        if self.fail_on == index:
            raise RuntimeError(f"provider exploded on segment {index}")
        with self._lock:
            self.completion_order.append(index)
        return self.texts[index]


class FakeTranslationProvider:
    """Detects a fixed language and echoes the direction it was asked for."""

    def __init__(
        self,
        *,
        detected: str = "fr",
        translate: Callable[[str, str, str], str] | None = None,
        detect_error: Exception | None = None,
    ) -> None:
        self.detected = detected
        self._translate = translate
        self.detect_error = detect_error
        self.detect_calls: list[str] = []
        self.translate_calls: list[tuple[str, str, str]] = []

    def detect_language(self, text: str) -> str:
        self.detect_calls.append(text)
        if self.detect_error is not None:
            raise self.detect_error
        return self.detected

    def translate(self, text: str, *, source_language: str, target_language: str) -> str:
        self.translate_calls.append((text, source_language, target_language))
        if self._translate is not None:
            return self._translate(text, source_language, target_language)
        return f"[{source_language}->{target_language}] {text}"


@pytest.fixture()
def ledger(tmp_path: Path) -> Iterator[TaskLedger]:
    task_ledger = TaskLedger(tmp_path / "ledger.db")
    task_ledger.init_schema()
    try:
        yield task_ledger
    finally:
        task_ledger.close()


@pytest.fixture()
def media_file(tmp_path: Path) -> Path:
    path = tmp_path / "voice.ogg"
    path.write_bytes(b"OggS-voice-note")
    return path


@pytest.fixture()
def scratch_root(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


def make_transcriber(
    *,
    scratch_root: Path,
    media_tool: FakeMediaTool,
    provider: FakeSpeechToText,
    chunk_seconds: float = 240,
    parallel_requests: int = 1,
) -> ChunkedTranscriber:
    return ChunkedTranscriber(
        media_tool=media_tool,
        provider=provider,
        workdirs=ScratchWorkdirManager(scratch_root),
        chunk_seconds=chunk_seconds,
        parallel_requests=parallel_requests,
    )


def make_translator(
    provider: FakeTranslationProvider,
    *,
    home_language: str = "ro",
    target_language: str = "en",
) -> TranslationOrchestrator:
    return TranslationOrchestrator(
        provider=provider,
        home_language=home_language,
        target_language=target_language,
    )

"""Provider interfaces consumed by the pipelines."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class SpeechToTextProvider(Protocol):
    """Length-limited speech-to-text call on one audio segment."""

    def transcribe_segment(self, file_path: Path, language_hint: str) -> str:
        """Return the text spoken in ``file_path``."""


class TranslationProvider(Protocol):
    """Language detection and translation calls."""

    def detect_language(self, text: str) -> str:
        """Return the lowercase ISO 639-1 code of ``text``."""

    def translate(self, text: str, *, source_language: str, target_language: str) -> str:
        """Translate ``text`` from ``source_language`` into ``target_language``."""

"""Media extraction facility interface."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class MediaTool(Protocol):
    """Protocol implemented by audio extraction/splitting backends."""

    def extract_audio_track(self, input_path: Path, output_path: Path) -> Path:
        """Decode the whole clip once into a normalized audio file."""

    def probe_duration(self, audio_path: Path) -> float:
        """Return the duration of ``audio_path`` in seconds."""

    def clip_segment(
        self,
        audio_path: Path,
        *,
        start_seconds: float,
        duration_seconds: float,
        output_path: Path,
    ) -> Path:
        """Cut ``[start, start + duration)`` of ``audio_path`` into ``output_path``."""

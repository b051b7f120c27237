"""Subprocess-based audio extraction, probing, and clipping via ffmpeg."""

from __future__ import annotations

import logging
import math
import subprocess
from pathlib import Path

from chat_tasks.errors import MediaError, SegmentationError
from chat_tasks.media.failure_classifier import (
    FFMPEG_FAILURE_CLASSIFIER_VERSION,
    classify_tool_failure,
)

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 400


class FfmpegMediaTool:
    """Extract once to 16-bit mono PCM WAV, then cut segments by stream copy."""

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        sample_rate: int = 16_000,
        timeout_seconds: float = 300.0,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.sample_rate = sample_rate
        self.timeout_seconds = timeout_seconds

    def extract_audio_track(self, input_path: Path, output_path: Path) -> Path:
        if not input_path.is_file():
            raise MediaError(f"Media file not found: {input_path}")
        if input_path.stat().st_size == 0:
            raise MediaError(f"Media file is empty: {input_path}")

        self._run(
            stage="extract",
            args=[
                self.ffmpeg_binary,
                "-nostdin",
                "-hide_banner",
                "-loglevel",
                "error",
                "-y",
                "-i",
                str(input_path),
                "-vn",
                "-map",
                "0:a:0",
                "-ac",
                "1",
                "-ar",
                str(self.sample_rate),
                "-c:a",
                "pcm_s16le",
                str(output_path),
            ],
        )
        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise MediaError(f"No audio could be extracted from {input_path.name}")
        return output_path

    def probe_duration(self, audio_path: Path) -> float:
        completed = self._run(
            stage="probe",
            args=[
                self.ffprobe_binary,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(audio_path),
            ],
        )
        raw = completed.stdout.strip()
        try:
            duration = float(raw)
        except ValueError as error:
            raise MediaError(
                f"Cannot determine media duration (ffprobe reported {raw!r})",
            ) from error
        if not math.isfinite(duration) or duration < 0:
            raise MediaError(f"Invalid media duration: {raw!r}")
        return duration

    def clip_segment(
        self,
        audio_path: Path,
        *,
        start_seconds: float,
        duration_seconds: float,
        output_path: Path,
    ) -> Path:
        self._run(
            stage="clip",
            args=[
                self.ffmpeg_binary,
                "-nostdin",
                "-hide_banner",
                "-loglevel",
                "error",
                "-y",
                "-ss",
                f"{start_seconds:.3f}",
                "-t",
                f"{duration_seconds:.3f}",
                "-i",
                str(audio_path),
                "-c",
                "copy",
                str(output_path),
            ],
        )
        if not output_path.is_file():
            raise SegmentationError(f"Segment was not written: {output_path.name}")
        return output_path

    def _run(self, *, stage: str, args: list[str]) -> subprocess.CompletedProcess[str]:
        command_head = args[0]
        try:
            completed = subprocess.run(  # noqa: S603
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as error:
            raise SegmentationError(
                f"Media tool not found: {command_head}",
                transient=False,
            ) from error
        except subprocess.TimeoutExpired as error:
            raise SegmentationError(
                f"{command_head} {stage} timed out after {self.timeout_seconds:.0f}s",
                transient=True,
            ) from error
        except OSError as error:
            raise SegmentationError(
                f"{command_head} failed to start: {error}",
                transient=True,
            ) from error

        if completed.returncode != 0:
            stderr = completed.stderr or ""
            classification = classify_tool_failure(
                stage=stage,
                exit_code=completed.returncode,
                stderr=stderr,
            )
            logger.warning(
                "%s %s failed: exit=%d rule=%s pattern=%s classifier=v%d",
                command_head,
                stage,
                completed.returncode,
                classification.matched_rule,
                classification.matched_pattern,
                FFMPEG_FAILURE_CLASSIFIER_VERSION,
            )
            raise classification.to_error(
                f"{command_head} {stage} failed with exit code {completed.returncode}: "
                f"{stderr.strip()[-_STDERR_TAIL_CHARS:]}",
            )
        return completed

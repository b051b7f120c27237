"""Chunked transcription: one transcript from an arbitrarily long media file."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from chat_tasks.errors import ChatTaskError, MediaError, ProviderError
from chat_tasks.media.base import MediaTool
from chat_tasks.media.segments import MediaSegment, plan_segments
from chat_tasks.media.workdir import ScratchWorkdirManager, remove_file
from chat_tasks.providers.base import SpeechToTextProvider

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = "\n\n"
EXTRACTED_AUDIO_NAME = "audio.wav"


class ChunkedTranscriber:
    """Extract audio once, cut fixed-length segments, transcribe them in order.

    The scratch directory and the input media file are removed before
    ``transcribe`` returns or raises.
    """

    def __init__(
        self,
        *,
        media_tool: MediaTool,
        provider: SpeechToTextProvider,
        workdirs: ScratchWorkdirManager,
        chunk_seconds: float = 240,
        parallel_requests: int = 1,
    ) -> None:
        if chunk_seconds <= 0:
            raise ValueError(f"chunk_seconds must be > 0, got {chunk_seconds!r}")
        if parallel_requests <= 0:
            raise ValueError(f"parallel_requests must be > 0, got {parallel_requests!r}")
        self.media_tool = media_tool
        self.provider = provider
        self.workdirs = workdirs
        self.chunk_seconds = chunk_seconds
        self.parallel_requests = parallel_requests

    def transcribe(self, media_path: Path, language_hint: str) -> str:
        """Return the full transcript of ``media_path``.

        Raises:
            MediaError: unreadable, empty, or zero-duration input.
            SegmentationError: extraction or splitting tool failure.
            ProviderError: any speech-to-text call failed; no partial
                transcript is returned.
        """

        try:
            with self.workdirs.session(media_path.stem) as workdir:
                return self._transcribe_in(workdir, media_path, language_hint)
        finally:
            remove_file(media_path)

    def _transcribe_in(self, workdir: Path, media_path: Path, language_hint: str) -> str:
        audio_path = self.media_tool.extract_audio_track(
            media_path,
            workdir / EXTRACTED_AUDIO_NAME,
        )
        duration = self.media_tool.probe_duration(audio_path)
        segments = plan_segments(
            duration_seconds=duration,
            chunk_seconds=self.chunk_seconds,
            directory=workdir,
            suffix=audio_path.suffix,
        )
        if not segments:
            raise MediaError(f"Media has no audible duration: {media_path.name}")

        logger.info(
            "Transcribing %s: duration=%.1fs segments=%d chunk=%ss",
            media_path.name,
            duration,
            len(segments),
            self.chunk_seconds,
        )
        if self.parallel_requests == 1 or len(segments) == 1:
            texts = [
                self._transcribe_segment(audio_path, segment, language_hint)
                for segment in segments
            ]
        else:
            for segment in segments:
                self._clip(audio_path, segment)
            texts = self._transcribe_parallel(segments, language_hint)
        return SEGMENT_SEPARATOR.join(texts)

    def _transcribe_parallel(self, segments: list[MediaSegment], language_hint: str) -> list[str]:
        executor = ThreadPoolExecutor(
            max_workers=min(self.parallel_requests, len(segments)),
            thread_name_prefix="stt",
        )
        try:
            # map() yields in submission order, not completion order.
            texts = list(
                executor.map(
                    lambda segment: self._call_provider(segment, language_hint),
                    segments,
                ),
            )
        except BaseException:
            # Segments not yet sent to the provider are dropped.
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return texts

    def _transcribe_segment(
        self,
        audio_path: Path,
        segment: MediaSegment,
        language_hint: str,
    ) -> str:
        self._clip(audio_path, segment)
        try:
            return self._call_provider(segment, language_hint)
        finally:
            remove_file(segment.file_path)

    def _clip(self, audio_path: Path, segment: MediaSegment) -> None:
        self.media_tool.clip_segment(
            audio_path,
            start_seconds=segment.start_offset_seconds,
            duration_seconds=segment.duration_seconds,
            output_path=segment.file_path,
        )

    def _call_provider(self, segment: MediaSegment, language_hint: str) -> str:
        try:
            text = self.provider.transcribe_segment(segment.file_path, language_hint)
        except ChatTaskError:
            raise
        except Exception as error:  # noqa: BLE001
            raise ProviderError(
                f"Speech-to-text failed on segment {segment.sequence_index}: {error}",
            ) from error
        logger.debug(
            "Segment %d [%.1fs..%.1fs] transcribed (%d chars)",
            segment.sequence_index,
            segment.start_offset_seconds,
            segment.end_offset_seconds,
            len(text),
        )
        return text

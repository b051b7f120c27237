"""Fixed-length segment planning for length-limited speech-to-text calls."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path

# Probed durations are rounded to this many decimals so float noise such as
# 480.0000001 cannot produce a spurious trailing micro-segment.
DURATION_PRECISION = 3


@dataclass(frozen=True, slots=True)
class MediaSegment:
    """One bounded-duration slice of the extracted audio track."""

    sequence_index: int
    file_path: Path
    start_offset_seconds: float
    duration_seconds: float

    @property
    def end_offset_seconds(self) -> float:
        return round(self.start_offset_seconds + self.duration_seconds, DURATION_PRECISION)


def plan_segments(
    *,
    duration_seconds: float,
    chunk_seconds: float,
    directory: Path,
    suffix: str = ".wav",
) -> list[MediaSegment]:
    """Partition ``[0, duration)`` into contiguous ``chunk_seconds`` windows.

    Returns ``ceil(duration / chunk)`` segments; all but the last are exactly
    ``chunk_seconds`` long and the last carries the remainder, so no trailing
    audio is dropped and no two windows overlap.
    """

    if chunk_seconds <= 0:
        raise ValueError(f"chunk_seconds must be > 0, got {chunk_seconds!r}")
    duration = round(duration_seconds, DURATION_PRECISION)
    if duration <= 0:
        return []

    count = math.ceil(duration / chunk_seconds)
    segments: list[MediaSegment] = []
    for index in range(count):
        start = round(index * chunk_seconds, DURATION_PRECISION)
        length = round(min(chunk_seconds, duration - start), DURATION_PRECISION)
        segments.append(
            MediaSegment(
                sequence_index=index,
                file_path=directory / f"segment_{index:04d}{suffix}",
                start_offset_seconds=start,
                duration_seconds=length,
            ),
        )
    return segments

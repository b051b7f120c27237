"""Deterministic classification of ffmpeg/ffprobe failures."""

from __future__ import annotations

from dataclasses import dataclass

from chat_tasks.errors import MediaError, SegmentationError

FFMPEG_FAILURE_CLASSIFIER_VERSION = 1

_BAD_INPUT_PATTERNS: tuple[str, ...] = (
    "invalid data found when processing input",
    "does not contain any stream",
    "output file does not contain any stream",
    "matches no streams",
    "moov atom not found",
    "could not find codec parameters",
    "invalid argument",
    "end of file",
    "no such file or directory",
    "unknown format",
    "header missing",
)
_RESOURCE_PATTERNS: tuple[str, ...] = (
    "no space left on device",
    "cannot allocate memory",
    "resource temporarily unavailable",
    "too many open files",
)


@dataclass(slots=True)
class ToolFailureClassification:
    """Normalized tool failure classification result."""

    bad_input: bool
    transient: bool
    matched_rule: str
    matched_pattern: str | None

    def to_error(self, message: str) -> MediaError | SegmentationError:
        """Build the pipeline error matching this classification."""

        if self.bad_input:
            return MediaError(message)
        return SegmentationError(message, transient=self.transient)


def classify_tool_failure(
    *,
    stage: str,
    exit_code: int,
    stderr: str,
) -> ToolFailureClassification:
    """Classify a non-zero ffmpeg/ffprobe exit.

    Only the extraction and probe stages can blame the input; a clip that
    fails after a successful extraction is a tooling problem.
    """

    haystack = stderr.lower()

    pattern = _first_match(haystack, _RESOURCE_PATTERNS)
    if pattern is not None:
        return ToolFailureClassification(
            bad_input=False,
            transient=True,
            matched_rule="resource_exhausted",
            matched_pattern=pattern,
        )

    if stage in {"extract", "probe"}:
        pattern = _first_match(haystack, _BAD_INPUT_PATTERNS)
        if pattern is not None:
            return ToolFailureClassification(
                bad_input=True,
                transient=False,
                matched_rule="bad_input",
                matched_pattern=pattern,
            )

    return ToolFailureClassification(
        bad_input=False,
        transient=exit_code < 0,
        matched_rule="killed_by_signal" if exit_code < 0 else "fallback_tool_failure",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

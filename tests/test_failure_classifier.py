from __future__ import annotations

import allure

from chat_tasks.errors import MediaError, SegmentationError
from chat_tasks.media.failure_classifier import (
    FFMPEG_FAILURE_CLASSIFIER_VERSION,
    classify_tool_failure,
)

pytestmark = [
    allure.epic("Transcription"),
    allure.feature("Media Tooling"),
]


def test_classifier_version_is_stable() -> None:
    assert FFMPEG_FAILURE_CLASSIFIER_VERSION == 1


def test_classifier_blames_input_during_extraction() -> None:
    classified = classify_tool_failure(
        stage="extract",
        exit_code=1,
        stderr="Stream map '0:a:0' matches no streams.",
    )
    assert classified.bad_input is True
    assert classified.transient is False
    assert classified.matched_rule == "bad_input"
    assert classified.matched_pattern == "matches no streams"
    assert isinstance(classified.to_error("boom"), MediaError)


def test_classifier_prefers_resource_exhaustion_over_bad_input() -> None:
    classified = classify_tool_failure(
        stage="extract",
        exit_code=1,
        stderr="Invalid argument\nNo space left on device",
    )
    assert classified.bad_input is False
    assert classified.transient is True
    assert classified.matched_rule == "resource_exhausted"
    error = classified.to_error("boom")
    assert isinstance(error, SegmentationError)
    assert error.transient is True


def test_classifier_never_blames_input_while_clipping() -> None:
    classified = classify_tool_failure(
        stage="clip",
        exit_code=1,
        stderr="moov atom not found",
    )
    assert classified.bad_input is False
    assert classified.matched_rule == "fallback_tool_failure"
    assert classified.transient is False


def test_classifier_treats_signal_kill_as_transient() -> None:
    classified = classify_tool_failure(stage="probe", exit_code=-9, stderr="")
    assert classified.matched_rule == "killed_by_signal"
    assert classified.transient is True
    assert classified.matched_pattern is None

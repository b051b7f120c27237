from __future__ import annotations

import subprocess
from pathlib import Path

import allure
import pytest

from chat_tasks.errors import MediaError, SegmentationError
from chat_tasks.media.ffmpeg import FfmpegMediaTool

pytestmark = [
    allure.epic("Transcription"),
    allure.feature("Media Tooling"),
]


class _FakeRun:
    def __init__(
        self,
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        raises: BaseException | None = None,
        writes_output: bool = True,
    ) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.writes_output = writes_output
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        self.calls.append(args)
        assert kwargs["check"] is False
        assert kwargs["timeout"] == 30.0
        if self.raises is not None:
            raise self.raises
        if self.writes_output and self.returncode == 0 and args[0] == "ffmpeg":
            Path(args[-1]).write_bytes(b"pcm")
        return subprocess.CompletedProcess(
            args=args,
            returncode=self.returncode,
            stdout=self.stdout,
            stderr=self.stderr,
        )


@pytest.fixture()
def tool() -> FfmpegMediaTool:
    return FfmpegMediaTool(timeout_seconds=30.0)


def test_extract_builds_mono_pcm_command(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    media_file: Path,
    tmp_path: Path,
) -> None:
    fake_run = _FakeRun()
    monkeypatch.setattr(subprocess, "run", fake_run)
    output = tmp_path / "audio.wav"

    assert tool.extract_audio_track(media_file, output) == output

    args = fake_run.calls[0]
    assert args[0] == "ffmpeg"
    assert args[args.index("-i") + 1] == str(media_file)
    assert args[args.index("-ac") + 1] == "1"
    assert args[args.index("-ar") + 1] == "16000"
    assert args[args.index("-c:a") + 1] == "pcm_s16le"
    assert "-vn" in args
    assert args[-1] == str(output)


def test_extract_rejects_missing_and_empty_input(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    fake_run = _FakeRun()
    monkeypatch.setattr(subprocess, "run", fake_run)
    empty = tmp_path / "empty.ogg"
    empty.write_bytes(b"")

    with pytest.raises(MediaError, match="not found"):
        tool.extract_audio_track(tmp_path / "missing.ogg", tmp_path / "a.wav")
    with pytest.raises(MediaError, match="empty"):
        tool.extract_audio_track(empty, tmp_path / "a.wav")
    assert fake_run.calls == []


def test_extract_without_output_is_media_error(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    media_file: Path,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeRun(writes_output=False))

    with pytest.raises(MediaError, match="No audio could be extracted"):
        tool.extract_audio_track(media_file, tmp_path / "audio.wav")


def test_extract_of_corrupt_input_is_media_error(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    media_file: Path,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        _FakeRun(returncode=1, stderr="voice.ogg: Invalid data found when processing input"),
    )

    with pytest.raises(MediaError, match="exit code 1"):
        tool.extract_audio_track(media_file, tmp_path / "audio.wav")


def test_probe_parses_duration(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    fake_run = _FakeRun(stdout="500.032000\n")
    monkeypatch.setattr(subprocess, "run", fake_run)

    assert tool.probe_duration(tmp_path / "audio.wav") == pytest.approx(500.032)
    assert fake_run.calls[0][0] == "ffprobe"


@pytest.mark.parametrize("stdout", ["N/A", "", "-3"])
def test_probe_rejects_unusable_duration(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
    stdout: str,
) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeRun(stdout=stdout))

    with pytest.raises(MediaError):
        tool.probe_duration(tmp_path / "audio.wav")


def test_clip_uses_stream_copy_with_offsets(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    fake_run = _FakeRun()
    monkeypatch.setattr(subprocess, "run", fake_run)
    output = tmp_path / "segment_0002.wav"

    tool.clip_segment(
        tmp_path / "audio.wav",
        start_seconds=480,
        duration_seconds=20,
        output_path=output,
    )

    args = fake_run.calls[0]
    assert args[args.index("-ss") + 1] == "480.000"
    assert args[args.index("-t") + 1] == "20.000"
    assert args[args.index("-c") + 1] == "copy"
    assert output.exists()


def test_clip_failure_is_segmentation_error_even_for_input_patterns(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeRun(returncode=1, stderr="Invalid argument"))

    with pytest.raises(SegmentationError) as error_info:
        tool.clip_segment(
            tmp_path / "audio.wav",
            start_seconds=0,
            duration_seconds=1,
            output_path=tmp_path / "segment_0000.wav",
        )
    assert error_info.value.transient is False


def test_missing_binary_is_permanent_segmentation_error(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeRun(raises=FileNotFoundError("ffprobe")))

    with pytest.raises(SegmentationError, match="not found") as error_info:
        tool.probe_duration(tmp_path / "audio.wav")
    assert error_info.value.transient is False


def test_timeout_is_transient_segmentation_error(
    monkeypatch: pytest.MonkeyPatch,
    tool: FfmpegMediaTool,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        _FakeRun(raises=subprocess.TimeoutExpired(cmd="ffprobe", timeout=30.0)),
    )

    with pytest.raises(SegmentationError, match="timed out") as error_info:
        tool.probe_duration(tmp_path / "audio.wav")
    assert error_info.value.transient is True

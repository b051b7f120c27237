"""Runtime configuration for the task ledger, media pipeline, and providers."""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

_LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2,3}$")


@dataclass(slots=True)
class LedgerSettings:
    """Persistent task ledger settings."""

    db_path: Path = Path(".chat_tasks.db")
    busy_timeout_ms: int = 5_000
    stale_processing_after_seconds: int = 1_800


@dataclass(slots=True)
class MediaSettings:
    """Audio extraction and segmentation settings."""

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    chunk_seconds: int = 240
    sample_rate: int = 16_000
    tool_timeout_seconds: float = 300.0
    scratch_dir: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "chat-tasks-scratch",
    )
    inbox_dir: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "chat-tasks-inbox",
    )
    parallel_requests: int = 1
    scratch_stale_after_seconds: int = 3_600


@dataclass(slots=True)
class ProviderSettings:
    """External speech-to-text and translation provider settings."""

    api_key: str | None = None
    stt_api_key: str | None = None
    base_url: str | None = None
    stt_model: str = "whisper-1"
    chat_model: str = "gpt-4.1-nano"
    timeout_seconds: float = 120.0


@dataclass(slots=True)
class TranslationSettings:
    """Bidirectional translation language pair."""

    home_language: str = "ro"
    target_language: str = "en"


@dataclass(slots=True)
class DispatchSettings:
    """Chat command dispatch settings."""

    default_stt_language: str = "ro"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    media: MediaSettings = field(default_factory=MediaSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    translation: TranslationSettings = field(default_factory=TranslationSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        media_defaults = MediaSettings()
        home_language = os.getenv("CHAT_TASKS_HOME_LANGUAGE", "ro").strip().lower()
        api_key = os.getenv("CHAT_TASKS_OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY")
        return cls(
            ledger=LedgerSettings(
                db_path=db_path or Path(os.getenv("CHAT_TASKS_DB_PATH", ".chat_tasks.db")),
                busy_timeout_ms=int(os.getenv("CHAT_TASKS_SQLITE_BUSY_TIMEOUT_MS", "5000")),
                stale_processing_after_seconds=int(
                    os.getenv("CHAT_TASKS_STALE_PROCESSING_AFTER_SECONDS", "1800"),
                ),
            ),
            media=MediaSettings(
                ffmpeg_binary=os.getenv("CHAT_TASKS_FFMPEG_BINARY", "ffmpeg"),
                ffprobe_binary=os.getenv("CHAT_TASKS_FFPROBE_BINARY", "ffprobe"),
                chunk_seconds=int(os.getenv("CHAT_TASKS_CHUNK_SECONDS", "240")),
                sample_rate=int(os.getenv("CHAT_TASKS_SAMPLE_RATE", "16000")),
                tool_timeout_seconds=float(
                    os.getenv("CHAT_TASKS_TOOL_TIMEOUT_SECONDS", "300"),
                ),
                scratch_dir=_env_path("CHAT_TASKS_SCRATCH_DIR", media_defaults.scratch_dir),
                inbox_dir=_env_path("CHAT_TASKS_INBOX_DIR", media_defaults.inbox_dir),
                parallel_requests=int(os.getenv("CHAT_TASKS_PARALLEL_REQUESTS", "1")),
                scratch_stale_after_seconds=int(
                    os.getenv("CHAT_TASKS_SCRATCH_STALE_AFTER_SECONDS", "3600"),
                ),
            ),
            provider=ProviderSettings(
                api_key=api_key,
                stt_api_key=os.getenv("CHAT_TASKS_OPENAI_STT_API_KEY") or api_key,
                base_url=os.getenv("CHAT_TASKS_OPENAI_BASE_URL") or None,
                stt_model=os.getenv("CHAT_TASKS_STT_MODEL", "whisper-1"),
                chat_model=os.getenv("CHAT_TASKS_CHAT_MODEL", "gpt-4.1-nano"),
                timeout_seconds=float(os.getenv("CHAT_TASKS_PROVIDER_TIMEOUT_SECONDS", "120")),
            ),
            translation=TranslationSettings(
                home_language=home_language,
                target_language=os.getenv("CHAT_TASKS_TARGET_LANGUAGE", "en").strip().lower(),
            ),
            dispatch=DispatchSettings(
                default_stt_language=os.getenv(
                    "CHAT_TASKS_DEFAULT_STT_LANGUAGE",
                    home_language,
                )
                .strip()
                .lower(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any value is out of range."""

        if self.ledger.busy_timeout_ms <= 0:
            raise ValueError("CHAT_TASKS_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.ledger.stale_processing_after_seconds <= 0:
            raise ValueError("CHAT_TASKS_STALE_PROCESSING_AFTER_SECONDS must be > 0.")
        if self.media.chunk_seconds <= 0:
            raise ValueError("CHAT_TASKS_CHUNK_SECONDS must be > 0.")
        if self.media.sample_rate <= 0:
            raise ValueError("CHAT_TASKS_SAMPLE_RATE must be > 0.")
        if self.media.tool_timeout_seconds <= 0:
            raise ValueError("CHAT_TASKS_TOOL_TIMEOUT_SECONDS must be > 0.")
        if self.media.parallel_requests <= 0:
            raise ValueError("CHAT_TASKS_PARALLEL_REQUESTS must be > 0.")
        if self.provider.timeout_seconds <= 0:
            raise ValueError("CHAT_TASKS_PROVIDER_TIMEOUT_SECONDS must be > 0.")

        _validate_language("CHAT_TASKS_HOME_LANGUAGE", self.translation.home_language)
        _validate_language("CHAT_TASKS_TARGET_LANGUAGE", self.translation.target_language)
        _validate_language(
            "CHAT_TASKS_DEFAULT_STT_LANGUAGE",
            self.dispatch.default_stt_language,
        )
        if self.translation.home_language == self.translation.target_language:
            raise ValueError(
                "CHAT_TASKS_HOME_LANGUAGE and CHAT_TASKS_TARGET_LANGUAGE must differ, "
                f"got {self.translation.home_language!r} for both.",
            )

    def validate_for_providers(self) -> None:
        """Raise configuration error if provider credentials are missing."""

        if not self.provider.api_key:
            raise ValueError(
                "An API key is required. Set CHAT_TASKS_OPENAI_API_KEY or OPENAI_API_KEY.",
            )


def is_language_code(value: str) -> bool:
    """Whether ``value`` looks like a lowercase ISO 639 code."""

    return bool(_LANGUAGE_CODE_RE.match(value))


def _validate_language(name: str, value: str) -> None:
    if not is_language_code(value):
        raise ValueError(
            f"Invalid language code for {name}: {value!r}. "
            "Expected a lowercase ISO 639 code such as 'en' or 'ro'.",
        )


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    return Path(value) if value else default

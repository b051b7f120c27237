"""OpenAI-backed speech-to-text, language detection, and translation."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import httpx
import openai
from openai import OpenAI

from chat_tasks.config import ProviderSettings, is_language_code
from chat_tasks.errors import ProviderError, SegmentationError
from chat_tasks.ledger.models import AUTO_LANGUAGE

logger = logging.getLogger(__name__)

DETECT_PROMPT = (
    "Detect the language of the following text and respond with only its "
    'ISO 639-1 code (e.g. ro, de, en):\n\n"{text}"'
)
TRANSLATE_SYSTEM_PROMPT = "You are a helpful translation assistant."
TRANSLATE_PROMPT = (
    "Translate this from {source} to {target}. Reply with the translation only:\n\n\"{text}\""
)
CONNECT_TIMEOUT_SECONDS = 10.0

_CODE_TOKEN_RE = re.compile(r"\b[a-z]{2,3}\b")


def build_openai_client(
    settings: ProviderSettings,
    *,
    api_key: str | None = None,
    max_retries: int = 2,
) -> OpenAI:
    """Create an OpenAI client with a bounded per-request timeout."""

    return OpenAI(
        api_key=api_key or settings.api_key,
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds, connect=CONNECT_TIMEOUT_SECONDS),
        max_retries=max_retries,
    )


class OpenAiSpeechToText:
    """Audio transcription endpoint, one request per segment."""

    def __init__(self, client: OpenAI, *, model: str = "whisper-1") -> None:
        self._client = client
        self.model = model

    def transcribe_segment(self, file_path: Path, language_hint: str) -> str:
        kwargs: dict[str, object] = {"model": self.model}
        if language_hint and language_hint != AUTO_LANGUAGE:
            kwargs["language"] = language_hint
        try:
            with file_path.open("rb") as handle:
                response = self._client.audio.transcriptions.create(file=handle, **kwargs)
        except OSError as error:
            raise SegmentationError(f"Cannot read segment {file_path.name}: {error}") from error
        except openai.APIError as error:
            raise _provider_error("transcription", error) from error

        text = getattr(response, "text", None)
        if not isinstance(text, str):
            raise ProviderError("Transcription response has no text field.", transient=False)
        return text.strip()


class OpenAiTranslator:
    """Chat-completion prompts for language detection and translation."""

    def __init__(self, client: OpenAI, *, model: str = "gpt-4.1-nano") -> None:
        self._client = client
        self.model = model

    def detect_language(self, text: str) -> str:
        raw = self._complete(
            operation="language detection",
            messages=[{"role": "user", "content": DETECT_PROMPT.format(text=text)}],
            temperature=0.0,
        )
        return normalize_language_code(raw)

    def translate(self, text: str, *, source_language: str, target_language: str) -> str:
        return self._complete(
            operation="translation",
            messages=[
                {"role": "system", "content": TRANSLATE_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": TRANSLATE_PROMPT.format(
                        source=source_language,
                        target=target_language,
                        text=text,
                    ),
                },
            ],
            temperature=0.3,
        )

    def _complete(
        self,
        *,
        operation: str,
        messages: list[dict[str, str]],
        temperature: float,
    ) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
            )
        except openai.APIError as error:
            raise _provider_error(operation, error) from error

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError(f"Empty {operation} response from {self.model}.")
        return content.strip()


def normalize_language_code(raw: str) -> str:
    """Reduce a model's detection answer such as ``"FR."`` to ``fr``."""

    tokens = _CODE_TOKEN_RE.findall(raw.strip().lower())
    two_letter = [token for token in tokens if len(token) == 2]
    code = (two_letter or tokens or [""])[0]
    if not is_language_code(code):
        raise ProviderError(
            f"Unrecognized language code from detection: {raw[:40]!r}",
            transient=False,
        )
    return code


def _provider_error(operation: str, error: openai.APIError) -> ProviderError:
    if isinstance(error, openai.APITimeoutError):
        message = f"OpenAI {operation} timed out"
    elif isinstance(error, openai.APIStatusError):
        message = f"OpenAI {operation} failed with HTTP {error.status_code}"
    else:
        message = f"OpenAI {operation} failed: {error.__class__.__name__}"
    transient = isinstance(
        error,
        openai.APIConnectionError | openai.RateLimitError | openai.InternalServerError,
    )
    logger.warning("%s (transient=%s)", message, transient)
    return ProviderError(message, transient=transient)

"""External speech-to-text and translation providers."""

from chat_tasks.providers.base import SpeechToTextProvider, TranslationProvider
from chat_tasks.providers.openai_provider import (
    OpenAiSpeechToText,
    OpenAiTranslator,
    build_openai_client,
)

__all__ = [
    "OpenAiSpeechToText",
    "OpenAiTranslator",
    "SpeechToTextProvider",
    "TranslationProvider",
    "build_openai_client",
]

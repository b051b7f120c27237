"""Directed and auto (home-language bidirectional) translation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from chat_tasks.errors import ChatTaskError, ProviderError
from chat_tasks.ledger.models import AUTO_LANGUAGE
from chat_tasks.providers.base import TranslationProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TranslationDirection:
    """Resolved source and target of one translation call."""

    source_language: str
    target_language: str


class TranslationOrchestrator:
    """Detect the source language, then translate in the resolved direction."""

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        home_language: str,
        target_language: str,
    ) -> None:
        self.provider = provider
        self.home_language = home_language.lower()
        self.target_language = target_language.lower()

    def translate(self, text: str, target_language: str = AUTO_LANGUAGE) -> str:
        """Translate ``text`` to ``target_language``, or bidirectionally for ``auto``."""

        detected = self._call("language detection", self.provider.detect_language, text)
        direction = self.resolve_direction(detected=detected, requested=target_language)
        logger.info(
            "Translating %d chars %s -> %s (requested=%s)",
            len(text),
            direction.source_language,
            direction.target_language,
            target_language,
        )
        return self._call(
            "translation",
            lambda value: self.provider.translate(
                value,
                source_language=direction.source_language,
                target_language=direction.target_language,
            ),
            text,
        )

    def resolve_direction(self, *, detected: str, requested: str) -> TranslationDirection:
        """Pick the translation direction for a detected source language.

        A directed request always goes ``detected -> requested``, even when the
        two are equal. ``auto`` translates away from the home language, or back
        into it.
        """

        detected = detected.lower()
        requested = requested.lower()
        if requested != AUTO_LANGUAGE:
            return TranslationDirection(source_language=detected, target_language=requested)
        if detected == self.home_language:
            return TranslationDirection(
                source_language=self.home_language,
                target_language=self.target_language,
            )
        return TranslationDirection(source_language=detected, target_language=self.home_language)

    @staticmethod
    def _call(operation: str, func: Callable[[str], str], text: str) -> str:
        try:
            return func(text)
        except ChatTaskError:
            raise
        except Exception as error:  # noqa: BLE001
            raise ProviderError(f"{operation} failed: {error}") from error

"""
Translation between English and Bahasa Malaysia.

A TranslationService performs the raw text translation; the TranslationAdapter
enforces supported languages, input limits and output checks on top of it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..errors import ContextTooLargeError, MalformedResponseError, TransformError
from ..providers.base import BaseProvider, ProviderError
from .language import detect_language
from .models import TranslationResult
from .prompts import build_translation_prompt
from .validation import sanitize_response

logger = logging.getLogger(__name__)


class TranslationService(ABC):
    """Abstract text translation capability."""

    @abstractmethod
    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """
        Translate ``text`` between two language codes.

        Raises:
            Exception: Implementation specific; the adapter maps failures
        """
        pass


class ProviderTranslationService(TranslationService):
    """Translation backed by an LLM provider."""

    def __init__(self, provider: BaseProvider, max_tokens: int = 4096):
        self.provider = provider
        self.max_tokens = max_tokens

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        system_prompt, messages = build_translation_prompt(text, source_language, target_language)
        return await asyncio.to_thread(
            self.provider.generate,
            messages,
            system_prompt=system_prompt,
            max_tokens=self.max_tokens,
            temperature=0.1,
        )


class TranslationAdapter:
    """Validates translation requests and responses around a TranslationService."""

    def __init__(self, service: TranslationService, config: Optional[Dict[str, Any]] = None):
        translation_config = (config or {}).get("translation", {})
        self.service = service
        self.languages = list(translation_config.get("languages", ["en", "ms"]))
        self.max_chars = int(translation_config.get("max_chars", 20000))
        self.detect_source = bool(translation_config.get("detect_source", False))

    def _infer_source(self, text: str, target_language: str) -> str:
        if self.detect_source:
            return detect_language(text)
        others = [lang for lang in self.languages if lang != target_language]
        return others[0] if others else target_language

    async def translate(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> TranslationResult:
        """
        Translate proposal text into ``target_language``.

        Args:
            text: Text to translate
            target_language: Target language code
            source_language: Source language code; inferred when omitted

        Returns:
            TranslationResult

        Raises:
            ValueError: If a language is unsupported or the text is empty
            ContextTooLargeError: If the text exceeds ``translation.max_chars``
            MalformedResponseError: If the service returns no text
            TransformError: If the service call fails
        """
        if target_language not in self.languages:
            raise ValueError(
                f"Unsupported target language: {target_language}. Supported: {self.languages}"
            )
        if source_language is not None and source_language not in self.languages:
            raise ValueError(
                f"Unsupported source language: {source_language}. Supported: {self.languages}"
            )
        if not text or not text.strip():
            raise ValueError("Nothing to translate")
        if len(text) > self.max_chars:
            raise ContextTooLargeError(
                f"Text is {len(text)} characters (translation limit {self.max_chars})",
                size=len(text),
                limit=self.max_chars,
            )

        source = source_language or self._infer_source(text, target_language)
        if source == target_language:
            logger.info(f"Text already in {target_language}, skipping translation")
            return TranslationResult(text, target_language, source)

        logger.info(f"Translating {len(text)} characters from {source} to {target_language}")
        try:
            translated = await self.service.translate(text, source, target_language)
        except ProviderError as e:
            raise TransformError(f"Translation service failed: {e}", original_error=e) from e
        except Exception as e:
            logger.error(f"Unexpected translation error: {e}")
            raise TransformError(f"Translation failed: {e}", original_error=e) from e

        translated = sanitize_response(translated) if isinstance(translated, str) else ""
        if not translated:
            raise MalformedResponseError(
                f"Translation to {target_language} returned no text", task_type="TRANSLATION"
            )
        return TranslationResult(translated, target_language, source)

"""Tests for the translation adapter and provider-backed translation service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tenderly.ai.translation import ProviderTranslationService, TranslationAdapter
from tenderly.errors import ContextTooLargeError, MalformedResponseError, TransformError
from tenderly.providers.base import ProviderQuotaError


def _service(result=None, side_effect=None):
    service = MagicMock()
    service.translate = AsyncMock(return_value=result, side_effect=side_effect)
    return service


class TestTranslationAdapter:
    @pytest.mark.asyncio
    async def test_source_inferred_as_opposite_language(self, config):
        service = _service("Ringkasan")
        adapter = TranslationAdapter(service, config)

        result = await adapter.translate("Summary", "ms")

        assert result.content == "Ringkasan"
        assert result.source_language == "en"
        assert result.target_language == "ms"
        service.translate.assert_awaited_once_with("Summary", "en", "ms")

    @pytest.mark.asyncio
    async def test_source_detected_when_enabled(self, config):
        config["translation"]["detect_source"] = True
        service = _service("unused")
        adapter = TranslationAdapter(service, config)

        result = await adapter.translate("The company will deliver the project.", "en")

        assert result.content == "The company will deliver the project."
        service.translate.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_language(self, config):
        adapter = TranslationAdapter(_service("x"), config)
        with pytest.raises(ValueError):
            await adapter.translate("Hello", "fr")
        with pytest.raises(ValueError):
            await adapter.translate("Hello", "ms", source_language="de")

    @pytest.mark.asyncio
    async def test_text_over_limit(self, config):
        config["translation"]["max_chars"] = 10
        service = _service("x")
        adapter = TranslationAdapter(service, config)

        with pytest.raises(ContextTooLargeError):
            await adapter.translate("A" * 11, "ms")
        service.translate.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_translation(self, config):
        adapter = TranslationAdapter(_service("   "), config)
        with pytest.raises(MalformedResponseError):
            await adapter.translate("Summary", "ms")

    @pytest.mark.asyncio
    async def test_service_failure(self, config):
        quota = ProviderQuotaError("throttled", provider_name="bedrock")
        adapter = TranslationAdapter(_service(side_effect=quota), config)

        with pytest.raises(TransformError) as exc_info:
            await adapter.translate("Summary", "ms")
        assert exc_info.value.original_error is quota

    @pytest.mark.asyncio
    async def test_provider_service_round_trip(self, provider, config, sample_proposal):
        adapter = TranslationAdapter(ProviderTranslationService(provider), config)

        to_malay = await adapter.translate(sample_proposal, "ms")
        assert "## Latar Belakang Syarikat" in to_malay.content

        back = await adapter.translate(to_malay.content, "en")
        assert back.content == sample_proposal
        assert "TASK TYPE: TRANSLATION" in provider.last_messages[-1]["content"]

#!/usr/bin/env python3
"""
AI Provider Factory for Tenderly

Creates LLM provider instances based on configuration and environment variables.
Supports switching between providers via the AI_PROVIDER environment variable.
"""

import logging
import os
from typing import Any, Dict, Optional

from .base import BaseProvider, ProviderError, ProviderUnavailableError
from .fake import FakeProvider

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Factory for creating AI provider instances."""

    @staticmethod
    def create_provider(
        config: Dict[str, Any], provider_override: Optional[str] = None
    ) -> BaseProvider:
        """
        Create an AI provider instance based on configuration and environment.

        Args:
            config: Configuration dictionary
            provider_override: Optional provider name to override environment/config

        Returns:
            Initialized provider instance

        Raises:
            ProviderError: If provider creation fails
        """
        # Priority: override > env var > config > default
        provider_name = (
            provider_override
            or os.getenv("AI_PROVIDER")
            or config.get("llm", {}).get("primary", "bedrock")
        ).lower()

        if os.getenv("NO_NETWORK") == "1":
            logger.info("NO_NETWORK=1 detected, forcing fake provider for offline mode")
            provider_name = "fake"

        if provider_name == "bedrock":
            return ProviderFactory._create_bedrock_provider(config)
        elif provider_name == "fake":
            return FakeProvider(config)
        else:
            raise ProviderError(
                f"Unknown provider: {provider_name}. Supported providers: bedrock, fake"
            )

    @staticmethod
    def _create_bedrock_provider(config: Dict[str, Any]) -> BaseProvider:
        """Create Bedrock provider instance."""
        from .bedrock import BedrockProvider

        try:
            provider = BedrockProvider(config)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(
                f"Failed to create Bedrock provider: {e}", provider_name="bedrock", original_error=e
            ) from e

        if not provider.is_available():
            raise ProviderUnavailableError(
                "Bedrock provider is not available. Check the inference profile ARN and AWS "
                "credentials.",
                provider_name="bedrock",
            )
        return provider

    @staticmethod
    def get_available_providers() -> Dict[str, bool]:
        """
        Get information about available providers.

        Returns:
            Dictionary mapping provider names to availability status
        """
        return {
            "bedrock": os.getenv("NO_NETWORK") != "1"
            and (
                all(os.getenv(k) for k in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"))
                or os.path.exists(os.path.expanduser("~/.aws/credentials"))
            ),
            # Fake provider is always available
            "fake": True,
        }


def create_ai_provider(
    config: Dict[str, Any], provider_override: Optional[str] = None
) -> BaseProvider:
    """
    Convenience function to create an AI provider.

    Args:
        config: Configuration dictionary
        provider_override: Optional provider name override

    Returns:
        Initialized provider instance
    """
    return ProviderFactory.create_provider(config, provider_override)

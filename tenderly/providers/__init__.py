# AI Providers package

from .base import BaseProvider, ProviderError
from .factory import ProviderFactory, create_ai_provider
from .fake import FakeProvider

__all__ = ["create_ai_provider", "BaseProvider", "FakeProvider", "ProviderError", "ProviderFactory"]

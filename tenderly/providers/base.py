#!/usr/bin/env python3
"""
Base AI Provider Interface for Tenderly

Defines the standard interface that all LLM providers must implement.
Enables swapping between different LLM providers (Bedrock, fake, ...) behind
the AI transform and translation adapters.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional


def _estimate_words(messages: Any) -> int:
    if isinstance(messages, str):
        return len(messages.split())
    if isinstance(messages, list):
        return sum(len(str(m.get("content", "")).split()) for m in messages if isinstance(m, dict))
    return 0


def _write_log_entry(log_entry: Dict[str, Any]) -> None:
    log_dir = os.path.join(os.getenv("LLM_LOG_DIR", "logs"))
    if os.path.isdir(log_dir) and not os.access(log_dir, os.W_OK):
        log_dir = "/tmp/logs"
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "llm_calls.log")

    with open(log_path, "a") as f:
        f.write(json.dumps(log_entry) + "\n")


def log_call(func):
    """
    Decorator to log LLM provider calls with timing and token usage.

    Logs to logs/llm_calls.log in JSON format:
    {"ts": timestamp, "provider": name, "latency_ms": X, "tokens_in": Y, "tokens_out": Z, ...}
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        start_time = time.time()
        provider_info = self.get_provider_info() if hasattr(self, "get_provider_info") else {}
        provider_name = provider_info.get("name", "unknown")
        messages = args[0] if args else kwargs.get("messages")

        try:
            result = func(self, *args, **kwargs)
        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            _write_log_entry(
                {
                    "ts": datetime.now().isoformat(),
                    "provider": provider_name,
                    "latency_ms": latency_ms,
                    "tokens_in": None,
                    "tokens_out": None,
                    "error": str(e),
                    "status": "failed",
                }
            )
            raise

        latency_ms = int((time.time() - start_time) * 1000)
        cost_info = self.get_cost_info() if hasattr(self, "get_cost_info") else None
        metadata = cost_info or {}

        log_entry = {
            "ts": datetime.now().isoformat(),
            "provider": provider_name,
            "latency_ms": latency_ms,
            "tokens_in": metadata.get("tokens_in", _estimate_words(messages)),
            "tokens_out": metadata.get("tokens_out", len(str(result).split()) if result else 0),
        }
        if "model" in provider_info:
            log_entry["model"] = provider_info["model"]
        if "cost_usd" in metadata:
            log_entry["cost_usd"] = metadata["cost_usd"]

        _write_log_entry(log_entry)
        return result

    return wrapper


class BaseProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def generate(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.1,
    ) -> str:
        """
        Generate a completion for a conversation.

        Args:
            messages: Conversation in ``[{"role": ..., "content": ...}]`` form
            system_prompt: Optional system instructions
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Generated text

        Raises:
            ProviderError: If generation fails
            ProviderTimeoutError: If the request times out
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the provider is available and properly configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @abstractmethod
    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about the provider.

        Returns:
            Dictionary with provider metadata (name, model, version, etc.)
        """
        pass

    def get_cost_info(self) -> Optional[Dict[str, Any]]:
        """
        Get cost information for the last request (if supported).

        Returns:
            Dictionary with cost data or None if not supported
        """
        return None


class ProviderError(Exception):
    """Base exception for AI provider errors."""

    def __init__(
        self,
        message: str,
        provider_name: str = "unknown",
        original_error: Optional[Exception] = None,
    ):
        self.provider_name = provider_name
        self.original_error = original_error
        super().__init__(message)


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is not available or misconfigured."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request times out."""

    def __init__(
        self,
        message: str,
        provider_name: str = "unknown",
        timeout_seconds: int = 0,
        original_error: Optional[Exception] = None,
    ):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, provider_name, original_error)


class ProviderQuotaError(ProviderError):
    """Raised when a provider quota is exceeded."""

    pass

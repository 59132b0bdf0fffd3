#!/usr/bin/env python3
"""
AWS Bedrock provider for Tenderly.

Invokes Anthropic models through a Bedrock inference profile with consistent
error classification. Retries are limited to ``max_retries`` (1 by default);
retry policy for the proposal workflow belongs to the caller.
"""

import json
import logging
import os
import random
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from .base import (
    BaseProvider,
    ProviderError,
    ProviderQuotaError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    log_call,
)

logger = logging.getLogger(__name__)


def _normalize_messages(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Anthropic requires a leading user turn and alternating roles."""
    normalized: List[Dict[str, str]] = []
    for message in messages:
        role = "assistant" if message.get("role") == "assistant" else "user"
        if not normalized and role == "assistant":
            continue
        if normalized and normalized[-1]["role"] == role:
            normalized[-1]["content"] += "\n\n" + message.get("content", "")
        else:
            normalized.append({"role": role, "content": message.get("content", "")})
    return normalized


class BedrockProvider(BaseProvider):
    """Bedrock provider using an Anthropic inference profile."""

    def __init__(self, config: Dict[str, Any], client=None):
        """
        Initialize the Bedrock provider.

        Args:
            config: Configuration dictionary with an ``llm.bedrock`` section
            client: Optional bedrock-runtime client (for testing)
        """
        bedrock_config = config.get("llm", {}).get("bedrock", {})
        self.inference_profile_arn = bedrock_config.get("inference_profile_arn") or os.getenv(
            "BEDROCK_IP_ARN", ""
        )
        self.region = bedrock_config.get("region", "us-east-2")
        self.max_retries = max(1, int(bedrock_config.get("max_retries", 1)))
        self.last_cost_info: Optional[Dict[str, Any]] = None

        if os.getenv("NO_NETWORK") == "1" and client is None:
            raise ProviderUnavailableError(
                "NO_NETWORK=1 is set. Cannot initialize Bedrock client in offline mode.",
                provider_name="bedrock",
            )

        try:
            self.client = client or boto3.client("bedrock-runtime", region_name=self.region)
        except (ClientError, BotoCoreError) as e:
            raise ProviderUnavailableError(
                f"Failed to initialize Bedrock client: {e}", provider_name="bedrock", original_error=e
            ) from e

    def _model_id(self) -> str:
        return self.inference_profile_arn

    def is_available(self) -> bool:
        return bool(self.client) and self.inference_profile_arn.startswith("arn:aws:bedrock:")

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            "name": "bedrock",
            "display_name": "AWS Bedrock",
            "available": self.is_available(),
            "model": self.inference_profile_arn.split("/")[-1] if self.inference_profile_arn else "",
            "region": self.region,
        }

    def get_cost_info(self) -> Optional[Dict[str, Any]]:
        return self.last_cost_info

    def _invoke(self, body: Dict[str, Any]) -> str:
        start = time.time()
        response = self.client.invoke_model(
            modelId=self._model_id(),
            body=json.dumps(body),
            contentType="application/json",
        )
        response_body = json.loads(response["body"].read())
        usage = response_body.get("usage", {})
        self.last_cost_info = {
            "timestamp": time.time(),
            "model": self._model_id(),
            "tokens_in": usage.get("input_tokens", 0),
            "tokens_out": usage.get("output_tokens", 0),
            "latency_ms": int((time.time() - start) * 1000),
        }
        return "".join(
            block.get("text", "")
            for block in response_body.get("content", [])
            if block.get("type", "text") == "text"
        )

    def _classify(self, error: Exception) -> ProviderError:
        error_str = str(error)
        if "AccessDeniedException" in error_str or "UnrecognizedClient" in error_str:
            return ProviderUnavailableError(
                f"Bedrock access denied for {self.inference_profile_arn}: {error}",
                provider_name="bedrock",
                original_error=error,
            )
        if "ThrottlingException" in error_str or "ServiceQuotaExceeded" in error_str:
            return ProviderQuotaError(
                f"Bedrock quota exceeded: {error}", provider_name="bedrock", original_error=error
            )
        if any(
            network_err in error_str
            for network_err in ["ReadTimeout", "TimeoutError", "ModelTimeoutException"]
        ):
            return ProviderTimeoutError(
                f"Bedrock request timed out: {error}", provider_name="bedrock", original_error=error
            )
        return ProviderError(f"Bedrock API error: {error}", provider_name="bedrock", original_error=error)

    @log_call
    def generate(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.1,
    ) -> str:
        if not self.inference_profile_arn:
            raise ProviderUnavailableError(
                "No inference_profile_arn configured for Bedrock", provider_name="bedrock"
            )

        body = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": _normalize_messages(messages),
        }
        if system_prompt:
            body["system"] = system_prompt

        last_exception: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                return self._invoke(body)
            except ParamValidationError as e:
                raise ProviderError(
                    f"Parameter validation failed: {e}", provider_name="bedrock", original_error=e
                ) from e
            except (ClientError, BotoCoreError) as e:
                last_exception = e

            error_str = str(last_exception)
            if attempt < self.max_retries - 1 and not any(
                err in error_str for err in ["AccessDeniedException", "ValidationException"]
            ):
                wait_time = (2**attempt) + random.uniform(0, 1)
                logger.warning(
                    f"Bedrock call failed (attempt {attempt + 1}/{self.max_retries}): "
                    f"{last_exception}. Retrying in {wait_time:.1f}s"
                )
                time.sleep(wait_time)
            else:
                break

        logger.error(f"Bedrock call failed: {last_exception}")
        raise self._classify(last_exception) from last_exception

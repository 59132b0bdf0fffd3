"""
AI Transform Adapter

Turns a typed TransformRequest into a validated TransformResult using an LLM
provider. Every failure leaves through the TransformError family.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from ..errors import ContextTooLargeError, MalformedResponseError, TransformError
from ..providers.base import BaseProvider, ProviderError
from .models import Insight, TaskType, TransformRequest, TransformResult
from .prompts import TASK_SETTINGS, build_prompt, prompt_size
from .validation import assess_quality, log_ai_metrics, sanitize_response, validate_structure

logger = logging.getLogger(__name__)


class AITransformAdapter:
    """Runs AI tasks against a provider with bounded context and validated output."""

    def __init__(self, provider: BaseProvider, config: Optional[Dict[str, Any]] = None):
        ai_config = (config or {}).get("ai", {})
        self.provider = provider
        self.max_prompt_chars = int(ai_config.get("max_prompt_chars", 48000))
        self.history_windows = {
            TaskType.CHAT_ASSISTANCE: int(ai_config.get("chat_history_window", 5)),
            TaskType.PROPOSAL_IMPROVEMENT: int(ai_config.get("improvement_history_window", 10)),
        }

    def _bounded(self, request: TransformRequest) -> TransformRequest:
        window = self.history_windows.get(request.task_type, 0)
        history = request.history[-window:] if window > 0 else []
        if len(history) == len(request.history):
            return request
        return TransformRequest(
            task_type=request.task_type,
            tender=request.tender,
            company=request.company,
            current_content=request.current_content,
            user_instruction=request.user_instruction,
            history=history,
        )

    def _call_provider(self, system_prompt, messages, task_type: TaskType) -> str:
        settings = TASK_SETTINGS.get(task_type, {})
        return self.provider.generate(
            messages,
            system_prompt=system_prompt,
            max_tokens=int(settings.get("max_tokens", 4096)),
            temperature=settings.get("temperature", 0.1),
        )

    async def run(self, request: TransformRequest) -> TransformResult:
        """
        Execute one AI task.

        Args:
            request: Self-sufficient task request

        Returns:
            Validated TransformResult

        Raises:
            ContextTooLargeError: If the prompt exceeds ``ai.max_prompt_chars``
            MalformedResponseError: If the response fails structural validation
            TransformError: If the provider call fails
        """
        if request.task_type == TaskType.PROPOSAL_IMPROVEMENT and not (
            request.current_content and request.current_content.strip()
        ):
            raise TransformError("Proposal improvement requires current content")

        request = self._bounded(request)
        system_prompt, messages = build_prompt(request)

        size = prompt_size(system_prompt, messages)
        if size > self.max_prompt_chars:
            raise ContextTooLargeError(
                f"Prompt for {request.task_type.value} is {size} characters "
                f"(limit {self.max_prompt_chars})",
                size=size,
                limit=self.max_prompt_chars,
            )

        logger.info(f"Running AI task {request.task_type.value} ({size} prompt chars)")
        try:
            raw = await asyncio.to_thread(
                self._call_provider, system_prompt, messages, request.task_type
            )
        except ProviderError as e:
            logger.error(f"AI provider failed for {request.task_type.value}: {e}")
            raise TransformError(
                f"AI service failed for {request.task_type.value}: {e}", original_error=e
            ) from e
        except Exception as e:
            logger.error(f"Unexpected AI provider error for {request.task_type.value}: {e}")
            raise TransformError(
                f"Unexpected AI service error for {request.task_type.value}: {e}", original_error=e
            ) from e

        if not isinstance(raw, str):
            raise MalformedResponseError(
                f"AI service returned {type(raw).__name__} instead of text",
                task_type=request.task_type.value,
            )

        return self._to_result(request, raw)

    def _to_result(self, request: TransformRequest, raw: str) -> TransformResult:
        task_type = request.task_type
        insights = []

        if task_type == TaskType.PROPOSAL_IMPROVEMENT:
            data = validate_structure(task_type, raw)
            content = sanitize_response(data["improvedContent"])
            if not content:
                raise MalformedResponseError(
                    "Improved content is empty after sanitizing", task_type=task_type.value
                )
            insights = [Insight(str(i["change"]), str(i["explanation"])) for i in data["insights"]]
            scored_text = content + "\n" + " ".join(i.change + " " + i.explanation for i in insights)
        elif task_type == TaskType.ELIGIBILITY_CHECK:
            data = validate_structure(task_type, raw)
            content = json.dumps(data)
            scored_text = " ".join(item for values in data.values() for item in values)
        else:
            content = sanitize_response(raw)
            data = validate_structure(task_type, content)
            scored_text = content

        quality = assess_quality(scored_text, task_type, request.tender, request.company)
        log_ai_metrics(task_type, quality, request.tender)

        return TransformResult(
            task_type=task_type, content=content, insights=insights, data=data, quality=quality
        )

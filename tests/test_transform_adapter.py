"""Tests for the AI transform adapter."""

import json
from unittest.mock import MagicMock

import pytest

from tenderly.ai.models import ChatMessage, TaskType, TransformRequest
from tenderly.ai.transform_adapter import AITransformAdapter
from tenderly.errors import ContextTooLargeError, MalformedResponseError, TransformError
from tenderly.providers.base import ProviderTimeoutError


def _provider(response=None, side_effect=None):
    provider = MagicMock()
    provider.generate.return_value = response
    provider.generate.side_effect = side_effect
    return provider


class TestAITransformAdapter:
    """Prompting, bounding and validation around a provider."""

    @pytest.mark.asyncio
    async def test_generation_with_fake_provider(self, transform_adapter, tender, company):
        result = await transform_adapter.run(
            TransformRequest(TaskType.PROPOSAL_GENERATION, tender, company)
        )

        assert result.task_type == TaskType.PROPOSAL_GENERATION
        assert result.content.startswith("# Proposal for Road Maintenance Works")
        assert result.quality is not None
        assert result.quality.is_valid
        assert result.data is None

    @pytest.mark.asyncio
    async def test_improvement_returns_insights(self, transform_adapter, tender, company, sample_proposal):
        result = await transform_adapter.run(
            TransformRequest(
                TaskType.PROPOSAL_IMPROVEMENT, tender, company, current_content=sample_proposal
            )
        )

        assert "## Quality Assurance" in result.content
        assert len(result.insights) == 1
        assert result.insights[0].explanation

    @pytest.mark.asyncio
    async def test_improvement_requires_content(self, transform_adapter, tender, company):
        with pytest.raises(TransformError):
            await transform_adapter.run(
                TransformRequest(TaskType.PROPOSAL_IMPROVEMENT, tender, company, current_content=" ")
            )

    @pytest.mark.asyncio
    async def test_eligibility_payload(self, transform_adapter, tender, company):
        result = await transform_adapter.run(
            TransformRequest(TaskType.ELIGIBILITY_CHECK, tender, company)
        )

        assert set(result.data) == {"matched_criteria", "missing_criteria", "insufficient_data"}
        assert any("CIDB G4" in item for item in result.data["matched_criteria"])
        assert any("ISO 9001" in item for item in result.data["missing_criteria"])
        assert json.loads(result.content) == result.data

    @pytest.mark.asyncio
    async def test_chat_history_is_bounded(self, config, tender, company):
        provider = _provider("Address ISO 9001 in the Compliance section.")
        adapter = AITransformAdapter(provider, config)
        history = [ChatMessage("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(12)]

        await adapter.run(
            TransformRequest(
                TaskType.CHAT_ASSISTANCE, tender, company, user_instruction="What next?", history=history
            )
        )

        messages = provider.generate.call_args.args[0]
        assert len(messages) == 6  # 5 history turns + the task prompt
        assert messages[0]["content"] == "turn 7"
        assert "USER QUESTION: What next?" in messages[-1]["content"]

    @pytest.mark.asyncio
    async def test_generation_ignores_history(self, config, tender, company):
        provider = _provider(
            "# Proposal\n## Executive Summary\n## Company Background\n## Technical Approach\n"
            "## Compliance\n## Conclusion"
        )
        adapter = AITransformAdapter(provider, config)

        await adapter.run(
            TransformRequest(
                TaskType.PROPOSAL_GENERATION, tender, company, history=[ChatMessage("user", "hi")]
            )
        )
        assert len(provider.generate.call_args.args[0]) == 1

    @pytest.mark.asyncio
    async def test_task_settings_are_passed(self, config, tender, company):
        provider = _provider("A short summary of the DBKL tender requirement.")
        adapter = AITransformAdapter(provider, config)

        await adapter.run(TransformRequest(TaskType.SUMMARIZE, tender, company))

        kwargs = provider.generate.call_args.kwargs
        assert kwargs["max_tokens"] == 300
        assert kwargs["temperature"] == 0.2
        assert "NEVER invent facts" in kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_oversized_prompt_is_rejected_not_truncated(self, config, tender, company):
        config["ai"]["max_prompt_chars"] = 2000
        provider = _provider("unused")
        adapter = AITransformAdapter(provider, config)

        with pytest.raises(ContextTooLargeError) as exc_info:
            await adapter.run(
                TransformRequest(
                    TaskType.PROPOSAL_IMPROVEMENT, tender, company, current_content="x" * 5000
                )
            )

        assert exc_info.value.limit == 2000
        assert exc_info.value.size > 2000
        provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_becomes_transform_error(self, config, tender, company):
        timeout = ProviderTimeoutError("timed out", provider_name="bedrock")
        adapter = AITransformAdapter(_provider(side_effect=timeout), config)

        with pytest.raises(TransformError) as exc_info:
            await adapter.run(TransformRequest(TaskType.SUMMARIZE, tender, company))
        assert exc_info.value.original_error is timeout

    @pytest.mark.asyncio
    async def test_malformed_improvement(self, config, tender, company):
        adapter = AITransformAdapter(_provider("Here is a better proposal!"), config)

        with pytest.raises(MalformedResponseError) as exc_info:
            await adapter.run(
                TransformRequest(
                    TaskType.PROPOSAL_IMPROVEMENT, tender, company, current_content="Draft"
                )
            )
        assert exc_info.value.task_type == "PROPOSAL_IMPROVEMENT"

    @pytest.mark.asyncio
    async def test_generation_missing_sections(self, config, tender, company):
        adapter = AITransformAdapter(_provider("# Proposal\n\nWe are great."), config)

        with pytest.raises(MalformedResponseError) as exc_info:
            await adapter.run(TransformRequest(TaskType.PROPOSAL_GENERATION, tender, company))
        assert "missing section: Compliance" in exc_info.value.issues

    @pytest.mark.asyncio
    async def test_disclaimers_are_stripped(self, config, tender, company):
        adapter = AITransformAdapter(
            _provider(
                "As an AI language model, This DBKL tender covers road maintenance.\n"
                "**Disclaimer**: verify with the agency."
            ),
            config,
        )

        result = await adapter.run(TransformRequest(TaskType.SUMMARIZE, tender, company))
        assert result.content == "This DBKL tender covers road maintenance."

    @pytest.mark.asyncio
    async def test_non_text_response(self, config, tender, company):
        adapter = AITransformAdapter(_provider({"text": "x"}), config)
        with pytest.raises(MalformedResponseError):
            await adapter.run(TransformRequest(TaskType.SUMMARIZE, tender, company))

    @pytest.mark.asyncio
    async def test_eligibility_criteria_must_be_text(self, config, tender, company):
        response = json.dumps(
            {"matched_criteria": [{"req": "CIDB"}], "missing_criteria": [], "insufficient_data": []}
        )
        adapter = AITransformAdapter(_provider(response), config)

        with pytest.raises(MalformedResponseError) as exc_info:
            await adapter.run(TransformRequest(TaskType.ELIGIBILITY_CHECK, tender, company))
        assert exc_info.value.issues == ["matched_criteria must contain only strings"]

#!/usr/bin/env python3
"""
Fake AI Provider for Tenderly

Implements the BaseProvider interface with deterministic fake responses.
Used for offline testing and CI environments without requiring real LLM access.
"""

import json
import re
import time
from typing import Any, Dict, List, Optional

from .base import BaseProvider, log_call

# Heading translations used for fake en <-> ms translation.
_EN_MS_GLOSSARY = [
    ("Proposal for", "Cadangan untuk"),
    ("Executive Summary", "Ringkasan Eksekutif"),
    ("Company Background", "Latar Belakang Syarikat"),
    ("Technical Approach", "Pendekatan Teknikal"),
    ("Compliance", "Pematuhan"),
    ("Conclusion", "Kesimpulan"),
    ("Certifications", "Pensijilan"),
    ("Experience", "Pengalaman"),
]


class FakeProvider(BaseProvider):
    """Fake provider that generates deterministic task responses for testing."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize fake provider.

        Args:
            config: Optional configuration (ignored for fake provider)
        """
        self.config = config or {}
        self.call_count = 0
        self.last_messages: List[Dict[str, str]] = []

    @log_call
    def generate(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.1,
    ) -> str:
        """
        Generate a fake response based on the task marker in the prompt.

        Args:
            messages: Conversation messages; the last one carries the task
            system_prompt: Ignored
            max_tokens: Ignored
            temperature: Ignored

        Returns:
            Deterministic response text for the task
        """
        self.call_count += 1
        self.last_messages = list(messages)
        prompt = messages[-1]["content"] if messages else ""
        task = self._field(prompt, "TASK TYPE") or "CHAT_ASSISTANCE"

        if task == "PROPOSAL_GENERATION":
            return self._proposal_response(prompt)
        elif task == "PROPOSAL_IMPROVEMENT":
            return self._improvement_response(prompt)
        elif task == "ELIGIBILITY_CHECK":
            return self._eligibility_response(prompt)
        elif task == "SUMMARIZE":
            return self._summary_response(prompt)
        elif task == "TRANSLATION":
            return self._translation_response(prompt)
        else:
            return self._chat_response(prompt)

    def is_available(self) -> bool:
        """
        Fake provider is always available.

        Returns:
            Always True
        """
        return True

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            "name": "fake",
            "display_name": "Fake Provider (Testing)",
            "available": True,
            "model": "fake-model-v1",
            "call_count": self.call_count,
            "description": "Deterministic fake responses for offline testing",
        }

    def get_cost_info(self) -> Optional[Dict[str, Any]]:
        prompt = self.last_messages[-1]["content"] if self.last_messages else ""
        return {
            "timestamp": time.time(),
            "model": "fake-model-v1",
            "tokens_in": len(prompt.split()) or 50,
            "tokens_out": 100,
            "latency_ms": 50,  # Fake 50ms latency
            "cost_usd": 0.0,  # Free fake calls
        }

    @staticmethod
    def _field(prompt: str, name: str) -> str:
        match = re.search(rf"^{re.escape(name)}: (.*)$", prompt, re.MULTILINE)
        return match.group(1).strip() if match else ""

    @staticmethod
    def _block(prompt: str, header: str) -> str:
        """Text after ``header`` up to the next blank-line separated section."""
        match = re.search(rf"{re.escape(header)}\n(.*?)(?:\n\n[A-Z][A-Z ]+:|\Z)", prompt, re.DOTALL)
        return match.group(1).strip() if match else ""

    def _proposal_response(self, prompt: str) -> str:
        title = self._field(prompt, "Title")
        company = self._field(prompt, "Name")
        certifications = self._field(prompt, "Certifications")
        experience = self._field(prompt, "Experience")
        requirements = self._field(prompt, "Requirements")

        return f"""# Proposal for {title}

## Executive Summary
{company} is pleased to submit this proposal for {title}. Our team combines the certifications \
and experience required to deliver the project on schedule.

## Company Background
{company} holds the following certifications: {certifications}. Experience: {experience}.

## Technical Approach
We will address each tender requirement ({requirements}) through detailed project planning, \
quality assurance and regular progress reporting.

## Compliance
Our qualifications map to the stated requirements: {requirements}.

## Conclusion
We look forward to the opportunity to deliver this project for the agency."""

    def _improvement_response(self, prompt: str) -> str:
        current = self._block(prompt, "CURRENT PROPOSAL CONTENT:")
        improved = current.rstrip() + (
            "\n\n## Quality Assurance\n"
            "Every deliverable is reviewed against the tender requirements before handover."
        )
        return json.dumps(
            {
                "improvedContent": improved,
                "insights": [
                    {
                        "change": "Added quality assurance section",
                        "explanation": (
                            "A dedicated quality section shows evaluators how compliance "
                            "with the requirements is verified."
                        ),
                    }
                ],
            }
        )

    def _eligibility_response(self, prompt: str) -> str:
        requirements = [
            r.strip() for r in self._field(prompt, "Requirements").split(",") if r.strip()
        ]
        certifications = self._field(prompt, "Certifications").lower()
        matched, missing = [], []
        for requirement in requirements:
            if any(word in certifications for word in requirement.lower().split() if len(word) > 3):
                matched.append(f"Requirement met: {requirement} - found in company profile")
            else:
                missing.append(f"Requirement not met: {requirement} - not found in company profile")
        return json.dumps(
            {
                "matched_criteria": matched,
                "missing_criteria": missing,
                "insufficient_data": [],
            }
        )

    def _summary_response(self, prompt: str) -> str:
        title = self._field(prompt, "Title")
        agency = self._field(prompt, "Agency")
        requirements = self._field(prompt, "Requirements")
        budget = self._field(prompt, "Budget")
        return (
            f"This tender from {agency} covers {title}. Key requirements include {requirements}. "
            f"The budget is {budget}."
        )

    def _translation_response(self, prompt: str) -> str:
        source = self._field(prompt, "SOURCE LANGUAGE")
        target = self._field(prompt, "TARGET LANGUAGE")
        match = re.search(r"TEXT:\n(.*)\Z", prompt, re.DOTALL)
        text = match.group(1) if match else ""

        pairs = _EN_MS_GLOSSARY if (source, target) == ("en", "ms") else [
            (ms, en) for en, ms in _EN_MS_GLOSSARY
        ]
        for original, translated in pairs:
            text = text.replace(original, translated)
        return text

    def _chat_response(self, prompt: str) -> str:
        question = self._field(prompt, "USER QUESTION").lower()
        requirements = self._field(prompt, "Requirements")
        if "requirement" in question or "criteria" in question:
            return (
                f"The key criteria include: {requirements}. Address each of them explicitly "
                "in the Compliance section."
            )
        if "budget" in question or "price" in question or "cost" in question:
            return (
                f"The tender budget is {self._field(prompt, 'Budget')}. Structure pricing to be "
                "competitive while covering delivery costs."
            )
        return (
            "Focus on the requirements where your profile is strongest and reference your "
            "certifications directly in the Compliance section."
        )

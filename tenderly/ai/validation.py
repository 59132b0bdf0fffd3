"""Structural validation, sanitizing and quality scoring of AI responses."""

import json
import logging
import re
from typing import Any, Dict, Optional

from ..errors import MalformedResponseError
from .models import CompanyContext, QualityReport, TaskType, TenderContext

logger = logging.getLogger(__name__)

HALLUCINATION_INDICATORS = [
    "as an ai language model",
    "i cannot provide",
    "i apologize",
    "it is likely that",
    "probably",
    "might be",
    "could potentially",
    "generally speaking",
    "typically",
    "usually",
    "in most cases",
    "it is common",
    "often",
    "sometimes",
]

OFF_TOPIC_INDICATORS = [
    "legal advice",
    "financial advice",
    "investment recommendation",
    "guarantee",
    "promise",
    "ensure success",
    "definitely win",
    "certain to succeed",
]

REQUIRED_ELEMENTS = {
    TaskType.SUMMARIZE: ["tender", "requirement", "agency"],
    TaskType.ELIGIBILITY_CHECK: ["requirement", "company", "certification"],
    TaskType.PROPOSAL_GENERATION: ["executive summary", "company", "approach"],
    TaskType.PROPOSAL_IMPROVEMENT: ["enhanced", "improved", "better"],
}

# Each proposal section with its accepted English and Bahasa Malaysia headings.
PROPOSAL_SECTIONS = {
    "Executive Summary": ("executive summary", "ringkasan eksekutif"),
    "Company Background": ("company background", "latar belakang syarikat"),
    "Technical Approach": ("technical approach", "pendekatan teknikal"),
    "Compliance": ("compliance", "pematuhan"),
    "Conclusion": ("conclusion", "kesimpulan"),
}

ELIGIBILITY_KEYS = ("matched_criteria", "missing_criteria", "insufficient_data")

_DISCLAIMER_PATTERNS = [
    (re.compile(r"^(As an AI language model,?|I'm an AI assistant,?|As an AI,?)\s*", re.I), ""),
    (re.compile(r"\*\*?Disclaimer\*\*?:.*$", re.I | re.M), ""),
    (re.compile(r"\*\*?Note\*\*?:.*$", re.I | re.M), ""),
    (re.compile(r"Please note that.*$", re.I | re.M), ""),
    (re.compile(r"It's important to note that.*$", re.I | re.M), ""),
]


def sanitize_response(content: str) -> str:
    """Strip AI disclaimers and collapse runs of blank lines."""
    sanitized = content or ""
    for pattern, replacement in _DISCLAIMER_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    sanitized = re.sub(r"\n\s*\n\s*\n", "\n\n", sanitized)
    return sanitized.strip()


def _strip_code_fence(content: str) -> str:
    match = re.match(r"^```(?:json)?\s*\n(.*?)\n?```$", content.strip(), re.DOTALL)
    return match.group(1).strip() if match else content.strip()


def _parse_json_object(content: str, task_type: TaskType) -> Dict[str, Any]:
    text = _strip_code_fence(content)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models sometimes wrap the object in prose
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError(
                f"{task_type.value} response is not valid JSON",
                task_type=task_type.value,
                issues=["invalid JSON"],
            )
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"{task_type.value} response is not valid JSON: {e}",
                task_type=task_type.value,
                issues=["invalid JSON"],
            ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{task_type.value} response must be a JSON object",
            task_type=task_type.value,
            issues=["not a JSON object"],
        )
    return data


def _validate_eligibility(content: str) -> Dict[str, Any]:
    data = _parse_json_object(content, TaskType.ELIGIBILITY_CHECK)
    present = [key for key in ELIGIBILITY_KEYS if key in data]
    if not present:
        raise MalformedResponseError(
            "Eligibility response has none of the expected criteria lists",
            task_type=TaskType.ELIGIBILITY_CHECK.value,
            issues=[f"missing {', '.join(ELIGIBILITY_KEYS)}"],
        )
    issues = [f"{key} must be a list" for key in present if not isinstance(data[key], list)]
    issues += [
        f"{key} must contain only strings"
        for key in present
        if isinstance(data[key], list) and not all(isinstance(item, str) for item in data[key])
    ]
    if issues:
        raise MalformedResponseError(
            "Eligibility response has malformed criteria lists",
            task_type=TaskType.ELIGIBILITY_CHECK.value,
            issues=issues,
        )
    return {key: data.get(key, []) for key in ELIGIBILITY_KEYS}


def _validate_proposal(content: str) -> None:
    issues = []
    if not re.search(r"^#{1,3}\s+\S", content, re.MULTILINE):
        issues.append("missing markdown heading")
    lower = content.lower()
    for section, markers in PROPOSAL_SECTIONS.items():
        if not any(marker in lower for marker in markers):
            issues.append(f"missing section: {section}")
    if issues:
        raise MalformedResponseError(
            "Generated proposal is missing required structure",
            task_type=TaskType.PROPOSAL_GENERATION.value,
            issues=issues,
        )


def _validate_improvement(content: str) -> Dict[str, Any]:
    data = _parse_json_object(content, TaskType.PROPOSAL_IMPROVEMENT)
    improved = data.get("improvedContent")
    if not isinstance(improved, str) or not improved.strip():
        raise MalformedResponseError(
            "Improvement response has no improvedContent",
            task_type=TaskType.PROPOSAL_IMPROVEMENT.value,
            issues=["missing improvedContent"],
        )

    insights = data.get("insights", [])
    if not isinstance(insights, list) or not all(
        isinstance(i, dict) and "change" in i and "explanation" in i for i in insights
    ):
        raise MalformedResponseError(
            "Improvement insights must be a list of {change, explanation}",
            task_type=TaskType.PROPOSAL_IMPROVEMENT.value,
            issues=["malformed insights"],
        )
    return {"improvedContent": improved.strip(), "insights": insights}


def validate_structure(task_type: TaskType, content: str) -> Optional[Dict[str, Any]]:
    """Check that a sanitized response has the structure its task requires.

    Args:
        task_type: Task the response answers
        content: Sanitized response text

    Returns:
        Parsed payload for JSON tasks, ``None`` for free-text tasks

    Raises:
        MalformedResponseError: If the response does not match the task format
    """
    if not content or not content.strip():
        raise MalformedResponseError(
            f"Empty response for {task_type.value}", task_type=task_type.value, issues=["empty"]
        )

    if task_type == TaskType.ELIGIBILITY_CHECK:
        return _validate_eligibility(content)
    if task_type == TaskType.PROPOSAL_IMPROVEMENT:
        return _validate_improvement(content)
    if task_type == TaskType.PROPOSAL_GENERATION:
        _validate_proposal(content)
    return None


def assess_quality(
    content: str,
    task_type: TaskType,
    tender: Optional[TenderContext] = None,
    company: Optional[CompanyContext] = None,
) -> QualityReport:
    """Score a response for hallucination and off-topic phrasing.

    The report never blocks a result; it is logged and attached for callers.
    """
    issues = []
    warnings = []
    lower = content.lower()

    for phrase in HALLUCINATION_INDICATORS:
        if phrase in lower:
            issues.append(f'Contains hallucination indicator: "{phrase}"')
    for phrase in OFF_TOPIC_INDICATORS:
        if phrase in lower:
            issues.append(f'Contains off-topic content: "{phrase}"')

    for element in REQUIRED_ELEMENTS.get(task_type, []):
        if element not in lower:
            warnings.append(f'Missing expected element: "{element}"')

    if len(content.strip()) < 100:
        warnings.append("Response is quite short")

    if tender and tender.title and tender.title.lower() not in lower:
        warnings.append("Response may not be using tender title from context")
    if company and company.name and company.name.lower() not in lower:
        warnings.append("Response may not be using company name from context")

    return QualityReport(
        is_valid=not issues,
        issues=issues,
        warnings=warnings,
        score=max(0, 100 - len(issues) * 20 - len(warnings) * 5),
    )


def log_ai_metrics(
    task_type: TaskType, report: QualityReport, tender: Optional[TenderContext] = None
) -> None:
    logger.info(
        f"AI metrics: task={task_type.value} valid={report.is_valid} score={report.score} "
        f"issues={len(report.issues)} warnings={len(report.warnings)} "
        f"tender_id={tender.tender_id if tender else None}"
    )
    if report.issues:
        logger.warning(f"AI issues for {task_type.value}: {report.issues}")
    if report.warnings:
        logger.info(f"AI warnings for {task_type.value}: {report.warnings}")

"""Request and result types exchanged with the AI and translation adapters."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskType(str, Enum):
    """AI tasks supported by the transform adapter."""

    SUMMARIZE = "SUMMARIZE"
    ELIGIBILITY_CHECK = "ELIGIBILITY_CHECK"
    PROPOSAL_GENERATION = "PROPOSAL_GENERATION"
    PROPOSAL_IMPROVEMENT = "PROPOSAL_IMPROVEMENT"
    CHAT_ASSISTANCE = "CHAT_ASSISTANCE"


# Tasks whose output replaces proposal content.
CONTENT_TASKS = frozenset({TaskType.PROPOSAL_GENERATION, TaskType.PROPOSAL_IMPROVEMENT})


@dataclass
class TenderContext:
    """Tender details supplied by the tender catalogue."""

    title: str = ""
    description: str = ""
    agency: str = ""
    category: str = ""
    budget: Optional[str] = None
    requirements: List[str] = field(default_factory=list)
    tender_id: Optional[str] = None
    closing_date: Optional[str] = None


@dataclass
class CompanyContext:
    """Company profile supplied by the profile service."""

    name: str = ""
    registration_number: str = ""
    certifications: List[str] = field(default_factory=list)
    experience: str = ""
    contact_email: str = ""


@dataclass
class ChatMessage:
    role: str  # user | assistant
    content: str


@dataclass
class TransformRequest:
    """Self-sufficient request for one AI task."""

    task_type: TaskType
    tender: TenderContext
    company: CompanyContext
    current_content: Optional[str] = None
    user_instruction: Optional[str] = None
    history: List[ChatMessage] = field(default_factory=list)


@dataclass
class Insight:
    change: str
    explanation: str


@dataclass
class QualityReport:
    """Non-fatal quality assessment of an AI response."""

    is_valid: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    score: int = 100

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


@dataclass
class TransformResult:
    """Typed result of an AI task."""

    task_type: TaskType
    content: str
    insights: List[Insight] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None
    quality: Optional[QualityReport] = None


@dataclass
class TranslationResult:
    content: str
    target_language: str
    source_language: str

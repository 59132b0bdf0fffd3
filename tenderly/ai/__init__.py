"""AI task prompts, adapters and response hygiene."""

from .language import detect_language
from .models import (
    ChatMessage,
    CompanyContext,
    Insight,
    QualityReport,
    TaskType,
    TenderContext,
    TransformRequest,
    TransformResult,
    TranslationResult,
)
from .transform_adapter import AITransformAdapter
from .translation import ProviderTranslationService, TranslationAdapter, TranslationService

__all__ = [
    "AITransformAdapter",
    "ChatMessage",
    "CompanyContext",
    "Insight",
    "ProviderTranslationService",
    "QualityReport",
    "TaskType",
    "TenderContext",
    "TransformRequest",
    "TransformResult",
    "TranslationAdapter",
    "TranslationResult",
    "TranslationService",
    "detect_language",
]

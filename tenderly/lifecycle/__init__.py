"""Proposal lifecycle: content buffer, controller and drafting."""

from .buffer import ContentBuffer
from .controller import LifecycleController
from .drafting import create_draft
from .session import Services, build_services, open_session

__all__ = [
    "ContentBuffer",
    "LifecycleController",
    "Services",
    "build_services",
    "create_draft",
    "open_session",
]

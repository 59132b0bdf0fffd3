"""Data models for proposal storage."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ProposalStatus(str, Enum):
    """Lifecycle status of a proposal. ``submitted`` is terminal."""

    DRAFT = "draft"
    SUBMITTED = "submitted"


@dataclass
class Proposal:
    """A company's response to a tender."""

    proposal_id: str
    tender_id: str
    owner_id: str
    content: str
    status: ProposalStatus
    version: int
    created_at: datetime
    updated_at: datetime
    title: Optional[str] = None
    attestation_ref: Optional[str] = None
    submitted_at: Optional[datetime] = None

    @property
    def is_submitted(self) -> bool:
        return self.status == ProposalStatus.SUBMITTED

    def copy(self, **changes) -> "Proposal":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class VersionSnapshot:
    """Immutable copy of a proposal's content at a given version."""

    snapshot_id: str
    proposal_id: str
    version: int
    content: str
    created_at: datetime
    summary: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class AttestationReceipt:
    """Transaction reference proving a proposal was submitted."""

    proposal_id: str
    transaction_ref: str
    issued_at: datetime
    status: str = "confirmed"  # confirmed | pending
    metadata: Dict[str, Any] = field(default_factory=dict)

"""In-memory persistence gateway.

Used for offline mode (``NO_NETWORK=1``) and tests. Applies the same write
rules as the DynamoDB gateway.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from ..errors import (
    ImmutableProposalError,
    NotFoundError,
    StaleVersionError,
    VersionSequenceError,
)
from .gateway import PersistenceGateway
from .models import Proposal, ProposalStatus, VersionSnapshot

logger = logging.getLogger(__name__)


class InMemoryPersistenceGateway(PersistenceGateway):
    """Dict-backed storage for proposals and snapshots."""

    def __init__(self):
        self._proposals: Dict[str, Proposal] = {}
        self._versions: Dict[str, List[VersionSnapshot]] = {}

    def _require(self, proposal_id: str) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal {proposal_id} not found", proposal_id=proposal_id)
        return proposal

    def _require_draft(self, proposal_id: str) -> Proposal:
        proposal = self._require(proposal_id)
        if proposal.is_submitted:
            raise ImmutableProposalError(
                f"Proposal {proposal_id} is submitted and cannot be modified",
                proposal_id=proposal_id,
            )
        return proposal

    def _check_sequence(self, proposal_id: str, version: int) -> None:
        history = self._versions.get(proposal_id, [])
        highest = history[-1].version if history else 0
        if version != highest + 1:
            raise VersionSequenceError(
                f"Version {version} rejected for {proposal_id}: expected {highest + 1}",
                proposal_id=proposal_id,
            )

    def _make_snapshot(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str],
        created_by: Optional[str],
        now: datetime,
    ) -> VersionSnapshot:
        return VersionSnapshot(
            snapshot_id=str(uuid4()),
            proposal_id=proposal_id,
            version=version,
            content=content,
            created_at=now,
            summary=summary,
            created_by=created_by,
        )

    async def get_proposal(self, proposal_id: str) -> Proposal:
        return self._require(proposal_id).copy()

    async def create_proposal(
        self,
        tender_id: str,
        owner_id: str,
        content: str,
        title: Optional[str] = None,
        summary: Optional[str] = "Initial draft",
    ) -> Proposal:
        now = datetime.now(timezone.utc)
        proposal = Proposal(
            proposal_id=str(uuid4()),
            tender_id=tender_id,
            owner_id=owner_id,
            content=content,
            status=ProposalStatus.DRAFT,
            version=1,
            created_at=now,
            updated_at=now,
            title=title,
        )
        self._proposals[proposal.proposal_id] = proposal
        self._versions[proposal.proposal_id] = [
            self._make_snapshot(proposal.proposal_id, 1, content, summary, owner_id, now)
        ]
        logger.info(f"Created proposal {proposal.proposal_id} for tender {tender_id}")
        return proposal.copy()

    async def update_proposal_content(
        self, proposal_id: str, content: str, expected_version: Optional[int] = None
    ) -> Proposal:
        proposal = self._require_draft(proposal_id)
        if expected_version is not None and proposal.version != expected_version:
            raise StaleVersionError(
                f"Proposal {proposal_id} is at version {proposal.version}, "
                f"expected {expected_version}",
                proposal_id=proposal_id,
                expected_version=expected_version,
                actual_version=proposal.version,
            )
        updated = proposal.copy(
            content=content,
            version=proposal.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        self._proposals[proposal_id] = updated
        return updated.copy()

    async def append_version(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> VersionSnapshot:
        self._require_draft(proposal_id)
        self._check_sequence(proposal_id, version)
        snapshot = self._make_snapshot(
            proposal_id, version, content, summary, created_by, datetime.now(timezone.utc)
        )
        self._versions.setdefault(proposal_id, []).append(snapshot)
        return snapshot

    async def save_content(
        self,
        proposal_id: str,
        content: str,
        expected_version: int,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[Proposal, VersionSnapshot]:
        # Validate both writes before applying either one.
        proposal = self._require_draft(proposal_id)
        if proposal.version != expected_version:
            raise StaleVersionError(
                f"Proposal {proposal_id} is at version {proposal.version}, "
                f"expected {expected_version}",
                proposal_id=proposal_id,
                expected_version=expected_version,
                actual_version=proposal.version,
            )
        new_version = expected_version + 1
        self._check_sequence(proposal_id, new_version)

        now = datetime.now(timezone.utc)
        updated = proposal.copy(content=content, version=new_version, updated_at=now)
        snapshot = self._make_snapshot(proposal_id, new_version, content, summary, created_by, now)
        self._proposals[proposal_id] = updated
        self._versions.setdefault(proposal_id, []).append(snapshot)
        logger.info(f"Saved proposal {proposal_id} at version {new_version}")
        return updated.copy(), snapshot

    async def list_versions(self, proposal_id: str) -> List[VersionSnapshot]:
        return list(self._versions.get(proposal_id, []))

    async def get_version(self, proposal_id: str, version: int) -> VersionSnapshot:
        for snapshot in self._versions.get(proposal_id, []):
            if snapshot.version == version:
                return snapshot
        raise NotFoundError(
            f"Version {version} not found for proposal {proposal_id}",
            proposal_id=proposal_id,
            version=version,
        )

    async def set_submitted(self, proposal_id: str, attestation_ref: str) -> Proposal:
        proposal = self._require_draft(proposal_id)
        now = datetime.now(timezone.utc)
        updated = proposal.copy(
            status=ProposalStatus.SUBMITTED,
            attestation_ref=attestation_ref,
            submitted_at=now,
            updated_at=now,
        )
        self._proposals[proposal_id] = updated
        logger.info(f"Proposal {proposal_id} submitted with attestation {attestation_ref}")
        return updated.copy()

    async def delete_proposal(self, proposal_id: str) -> None:
        self._require_draft(proposal_id)
        del self._proposals[proposal_id]
        self._versions.pop(proposal_id, None)
        logger.info(f"Deleted proposal {proposal_id}")

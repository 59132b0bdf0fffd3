"""Append-only version history for proposals."""

import logging
from typing import List, Optional, Tuple

from ..errors import VersionSequenceError
from .gateway import PersistenceGateway
from .models import Proposal, VersionSnapshot

logger = logging.getLogger(__name__)


class VersionStore:
    """Queryable, append-only log of proposal content snapshots.

    Snapshot versions for a proposal are contiguous from 1. An append that
    would leave a gap or a duplicate is rejected here before it reaches the
    gateway, and the gateway rejects it again on its own.
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def highest_version(self, proposal_id: str) -> int:
        """Return the highest recorded version, or 0 when there is no history."""
        history = await self.gateway.list_versions(proposal_id)
        return history[-1].version if history else 0

    async def append(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> str:
        """Append a snapshot at exactly ``highest + 1``.

        Args:
            proposal_id: Proposal the snapshot belongs to
            version: Version number to record
            content: Full content copy
            summary: Optional human-readable change summary
            created_by: Optional author identifier

        Returns:
            The new snapshot id

        Raises:
            VersionSequenceError: If ``version`` is not one greater than the highest
        """
        highest = await self.highest_version(proposal_id)
        if version != highest + 1:
            raise VersionSequenceError(
                f"Version {version} rejected for {proposal_id}: expected {highest + 1}",
                proposal_id=proposal_id,
            )
        snapshot = await self.gateway.append_version(
            proposal_id, version, content, summary=summary, created_by=created_by
        )
        return snapshot.snapshot_id

    async def commit(
        self,
        proposal_id: str,
        expected_version: int,
        content: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[Proposal, VersionSnapshot]:
        """Persist new content and its snapshot at ``expected_version + 1`` atomically."""
        proposal, snapshot = await self.gateway.save_content(
            proposal_id,
            content,
            expected_version,
            summary=summary,
            created_by=created_by,
        )
        if snapshot.version != expected_version + 1 or proposal.version != snapshot.version:
            raise VersionSequenceError(
                f"Gateway recorded version {snapshot.version} for {proposal_id}, "
                f"expected {expected_version + 1}",
                proposal_id=proposal_id,
            )
        return proposal, snapshot

    async def list_by_proposal(
        self, proposal_id: str, newest_first: bool = False, limit: Optional[int] = None
    ) -> List[VersionSnapshot]:
        """List snapshots for a proposal.

        Args:
            proposal_id: Proposal id
            newest_first: Return reverse-chronological order when True
            limit: Maximum number of snapshots to return

        Returns:
            Ordered list of snapshots
        """
        history = await self.gateway.list_versions(proposal_id)
        history.sort(key=lambda s: s.version, reverse=newest_first)
        if limit is not None:
            history = history[:limit]
        return history

    async def get(self, proposal_id: str, version: int) -> VersionSnapshot:
        """Fetch a specific snapshot. Raises NotFoundError if missing."""
        return await self.gateway.get_version(proposal_id, version)

    async def latest(self, proposal_id: str) -> Optional[VersionSnapshot]:
        history = await self.list_by_proposal(proposal_id, newest_first=True, limit=1)
        return history[0] if history else None

"""Persistence gateway interface for proposals and their version history."""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .models import Proposal, VersionSnapshot


class PersistenceGateway(ABC):
    """Durable storage for proposals and version snapshots.

    Implementations enforce the storage-side invariants themselves: a submitted
    proposal is never written again, and snapshot versions for a proposal stay
    contiguous from 1. Every method is a coroutine.
    """

    @abstractmethod
    async def get_proposal(self, proposal_id: str) -> Proposal:
        """Fetch a proposal.

        Raises:
            NotFoundError: If the proposal does not exist
        """

    @abstractmethod
    async def create_proposal(
        self,
        tender_id: str,
        owner_id: str,
        content: str,
        title: Optional[str] = None,
        summary: Optional[str] = "Initial draft",
    ) -> Proposal:
        """Create a draft proposal at version 1 together with snapshot 1."""

    @abstractmethod
    async def update_proposal_content(
        self, proposal_id: str, content: str, expected_version: Optional[int] = None
    ) -> Proposal:
        """Write new content and advance the proposal version by one.

        Raises:
            NotFoundError: If the proposal does not exist
            ImmutableProposalError: If the proposal is submitted
            StaleVersionError: If ``expected_version`` does not match
        """

    @abstractmethod
    async def append_version(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> VersionSnapshot:
        """Append a snapshot.

        Raises:
            VersionSequenceError: If ``version`` is not highest + 1
        """

    @abstractmethod
    async def save_content(
        self,
        proposal_id: str,
        content: str,
        expected_version: int,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[Proposal, VersionSnapshot]:
        """Update content and append the matching snapshot as one operation.

        Either both writes become visible or neither does.
        """

    @abstractmethod
    async def list_versions(self, proposal_id: str) -> List[VersionSnapshot]:
        """List snapshots for a proposal, oldest first."""

    @abstractmethod
    async def get_version(self, proposal_id: str, version: int) -> VersionSnapshot:
        """Fetch a snapshot.

        Raises:
            NotFoundError: If the snapshot does not exist
        """

    @abstractmethod
    async def set_submitted(self, proposal_id: str, attestation_ref: str) -> Proposal:
        """Mark a proposal submitted and store its attestation reference.

        Raises:
            ImmutableProposalError: If the proposal is already submitted
        """

    @abstractmethod
    async def delete_proposal(self, proposal_id: str) -> None:
        """Delete a draft proposal and its history.

        Raises:
            ImmutableProposalError: If the proposal is submitted
        """

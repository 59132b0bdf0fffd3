"""Attestation service interface and in-memory registry.

An attestation records a proposal submission with an external ledger and
returns a transaction reference. Services are idempotent per proposal id:
retrying ``attest`` for a proposal that already has a receipt returns that
receipt instead of issuing a second transaction.
"""

import base64
import hashlib
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..storage.models import AttestationReceipt

logger = logging.getLogger(__name__)


def make_transaction_ref(proposal_id: str, issued_at: datetime, network: str = "") -> str:
    """Derive a 52-character base32 transaction id for a submission."""
    digest = hashlib.sha256(f"{network}:{proposal_id}:{issued_at.isoformat()}".encode()).digest()
    return base64.b32encode(digest).decode().rstrip("=")


class AttestationService(ABC):
    """Abstract "submit and receive a transaction reference" capability."""

    @abstractmethod
    async def attest(
        self, proposal_id: str, metadata: Optional[Dict[str, Any]] = None
    ) -> AttestationReceipt:
        """
        Record a submission attestation for a proposal.

        Args:
            proposal_id: Proposal being submitted
            metadata: Extra attestation data (tender title, owner, content hash)

        Returns:
            The receipt for this proposal; the same receipt on every retry

        Raises:
            AttestationError: If no reference could be issued
        """
        pass

    async def get_receipt(self, proposal_id: str) -> Optional[AttestationReceipt]:
        return None


class InMemoryAttestationService(AttestationService):
    """Attestation registry kept in process memory (offline mode and tests)."""

    def __init__(self, network: str = "local"):
        self.network = network
        self._receipts: Dict[str, AttestationReceipt] = {}

    async def attest(
        self, proposal_id: str, metadata: Optional[Dict[str, Any]] = None
    ) -> AttestationReceipt:
        existing = self._receipts.get(proposal_id)
        if existing is not None:
            logger.info(f"Attestation already issued for {proposal_id}: {existing.transaction_ref}")
            return existing

        issued_at = datetime.now(timezone.utc)
        receipt = AttestationReceipt(
            proposal_id=proposal_id,
            transaction_ref=make_transaction_ref(proposal_id, issued_at, self.network),
            issued_at=issued_at,
            metadata=dict(metadata or {}, network=self.network),
        )
        self._receipts[proposal_id] = receipt
        logger.info(f"Issued attestation {receipt.transaction_ref} for proposal {proposal_id}")
        return receipt

    async def get_receipt(self, proposal_id: str) -> Optional[AttestationReceipt]:
        return self._receipts.get(proposal_id)

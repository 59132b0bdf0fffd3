"""DynamoDB-backed attestation registry.

The ``attestations`` table is keyed by ``proposal_id``. A conditional put
guarantees one transaction reference per proposal; a retry after a lost
response reads back the receipt that was already issued.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import AttestationError
from ..storage.models import AttestationReceipt
from .service import AttestationService, make_transaction_ref

logger = logging.getLogger(__name__)


class DynamoDBAttestationService(AttestationService):
    """Issues attestation receipts and records them in DynamoDB."""

    def __init__(
        self,
        table_name: str = "attestations",
        network: str = "algorand-testnet",
        region: Optional[str] = None,
        dynamodb=None,
    ):
        """Initialize with a DynamoDB table.

        Args:
            table_name: Name of the attestations table
            network: Ledger label stored with every receipt
            region: AWS region
            dynamodb: Optional DynamoDB resource (for testing)
        """
        self.dynamodb = dynamodb or boto3.resource("dynamodb", region_name=region)
        self.table = self.dynamodb.Table(table_name)
        self.network = network

    @staticmethod
    def _to_receipt(item: Dict[str, Any]) -> AttestationReceipt:
        return AttestationReceipt(
            proposal_id=item["proposal_id"],
            transaction_ref=item["transaction_ref"],
            issued_at=datetime.fromisoformat(item["issued_at"]),
            status=item.get("status", "confirmed"),
            metadata=dict(item.get("metadata", {})),
        )

    def _get_receipt_sync(self, proposal_id: str) -> Optional[AttestationReceipt]:
        response = self.table.get_item(Key={"proposal_id": proposal_id}, ConsistentRead=True)
        item = response.get("Item")
        return self._to_receipt(item) if item else None

    def _attest_sync(self, proposal_id: str, metadata: Dict[str, Any]) -> AttestationReceipt:
        issued_at = datetime.now(timezone.utc)
        item = {
            "proposal_id": proposal_id,
            "transaction_ref": make_transaction_ref(proposal_id, issued_at, self.network),
            "issued_at": issued_at.isoformat(),
            "status": "confirmed",
            # DynamoDB rejects floats; metadata is stored as strings
            "metadata": {k: str(v) for k, v in metadata.items() if v is not None},
        }
        item["metadata"]["network"] = self.network

        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(proposal_id)")
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                raise
            existing = self._get_receipt_sync(proposal_id)
            if existing is None:
                raise
            logger.info(f"Attestation already issued for {proposal_id}: {existing.transaction_ref}")
            return existing

        logger.info(f"Issued attestation {item['transaction_ref']} for proposal {proposal_id}")
        return self._to_receipt(item)

    async def attest(
        self, proposal_id: str, metadata: Optional[Dict[str, Any]] = None
    ) -> AttestationReceipt:
        try:
            return await asyncio.to_thread(self._attest_sync, proposal_id, dict(metadata or {}))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Attestation failed for {proposal_id}: {str(e)}")
            raise AttestationError(
                f"Failed to attest proposal {proposal_id}: {e}",
                proposal_id=proposal_id,
                original_error=e,
            ) from e

    async def get_receipt(self, proposal_id: str) -> Optional[AttestationReceipt]:
        try:
            return await asyncio.to_thread(self._get_receipt_sync, proposal_id)
        except (ClientError, BotoCoreError) as e:
            raise AttestationError(
                f"Failed to read attestation for {proposal_id}: {e}",
                proposal_id=proposal_id,
                original_error=e,
            ) from e

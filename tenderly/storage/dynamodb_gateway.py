"""DynamoDB-backed persistence gateway for proposals and version history.

Two tables are used:

* ``proposals`` keyed by ``proposal_id``
* ``proposal_versions`` keyed by ``proposal_id`` (hash) and ``version`` (range)

Immutability and gapless history are enforced with condition expressions, so
another writer bypassing the lifecycle controller is rejected by DynamoDB
itself. Saves update the proposal row and put the snapshot in a single
``TransactWriteItems`` call.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import (
    ImmutableProposalError,
    NotFoundError,
    PersistenceError,
    StaleVersionError,
    VersionSequenceError,
)
from .gateway import PersistenceGateway
from .models import Proposal, ProposalStatus, VersionSnapshot

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _cancellation_codes(error: ClientError) -> List[str]:
    reasons = error.response.get("CancellationReasons") or []
    return [reason.get("Code", "None") for reason in reasons]


def _serialize(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _serializer.serialize(value) for key, value in item.items() if value is not None}


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class DynamoDBPersistenceGateway(PersistenceGateway):
    """Manages proposals and proposal versions in DynamoDB."""

    def __init__(
        self,
        proposals_table: str = "proposals",
        versions_table: str = "proposal_versions",
        region: Optional[str] = None,
        dynamodb=None,
        client=None,
    ):
        """Initialize with DynamoDB tables.

        Args:
            proposals_table: Name of the proposals table
            versions_table: Name of the proposal versions table
            region: AWS region
            dynamodb: Optional DynamoDB resource (for testing)
            client: Optional low-level DynamoDB client (for testing)
        """
        self.dynamodb = dynamodb or boto3.resource("dynamodb", region_name=region)
        self.client = client or boto3.client("dynamodb", region_name=region)
        self.proposals_table_name = proposals_table
        self.versions_table_name = versions_table
        self.proposals = self.dynamodb.Table(proposals_table)
        self.versions = self.dynamodb.Table(versions_table)

    # ------------------------------------------------------------------
    # Item mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_proposal(item: Dict[str, Any]) -> Proposal:
        return Proposal(
            proposal_id=item["proposal_id"],
            tender_id=item["tender_id"],
            owner_id=item["owner_id"],
            content=item.get("content", ""),
            status=ProposalStatus(item.get("status", "draft")),
            version=int(item["version"]),
            created_at=_parse_time(item["created_at"]),
            updated_at=_parse_time(item["updated_at"]),
            title=item.get("title"),
            attestation_ref=item.get("attestation_ref"),
            submitted_at=_parse_time(item.get("submitted_at")),
        )

    @staticmethod
    def _to_snapshot(item: Dict[str, Any]) -> VersionSnapshot:
        return VersionSnapshot(
            snapshot_id=item["snapshot_id"],
            proposal_id=item["proposal_id"],
            version=int(item["version"]),
            content=item.get("content", ""),
            created_at=_parse_time(item["created_at"]),
            summary=item.get("summary"),
            created_by=item.get("created_by"),
        )

    @staticmethod
    def _snapshot_item(
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str],
        created_by: Optional[str],
        now: str,
    ) -> Dict[str, Any]:
        item = {
            "proposal_id": proposal_id,
            "version": version,
            "snapshot_id": str(uuid4()),
            "content": content,
            "created_at": now,
        }
        if summary:
            item["summary"] = summary
        if created_by:
            item["created_by"] = created_by
        return item

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _fetch_item(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        response = self.proposals.get_item(Key={"proposal_id": proposal_id}, ConsistentRead=True)
        return response.get("Item")

    def _highest_version(self, proposal_id: str) -> int:
        response = self.versions.query(
            KeyConditionExpression=Key("proposal_id").eq(proposal_id),
            ScanIndexForward=False,  # Newest first
            Limit=1,
            ConsistentRead=True,
        )
        items = response.get("Items", [])
        return int(items[0]["version"]) if items else 0

    def _explain_write_conflict(
        self, proposal_id: str, expected_version: Optional[int] = None
    ) -> Exception:
        """Work out which condition rejected a proposal write."""
        item = self._fetch_item(proposal_id)
        if item is None:
            return NotFoundError(f"Proposal {proposal_id} not found", proposal_id=proposal_id)
        if item.get("status") == ProposalStatus.SUBMITTED.value:
            return ImmutableProposalError(
                f"Proposal {proposal_id} is submitted and cannot be modified",
                proposal_id=proposal_id,
            )
        actual = int(item["version"])
        return StaleVersionError(
            f"Proposal {proposal_id} is at version {actual}, expected {expected_version}",
            proposal_id=proposal_id,
            expected_version=expected_version,
            actual_version=actual,
        )

    def _get_proposal_sync(self, proposal_id: str) -> Proposal:
        item = self._fetch_item(proposal_id)
        if item is None:
            raise NotFoundError(f"Proposal {proposal_id} not found", proposal_id=proposal_id)
        return self._to_proposal(item)

    def _create_proposal_sync(
        self,
        tender_id: str,
        owner_id: str,
        content: str,
        title: Optional[str],
        summary: Optional[str],
    ) -> Proposal:
        proposal_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        item = {
            "proposal_id": proposal_id,
            "tender_id": tender_id,
            "owner_id": owner_id,
            "content": content,
            "status": ProposalStatus.DRAFT.value,
            "version": 1,
            "created_at": now,
            "updated_at": now,
            "title": title,
        }
        snapshot = self._snapshot_item(proposal_id, 1, content, summary, owner_id, now)

        self.client.transact_write_items(
            TransactItems=[
                {
                    "Put": {
                        "TableName": self.proposals_table_name,
                        "Item": _serialize(item),
                        "ConditionExpression": "attribute_not_exists(proposal_id)",
                    }
                },
                {
                    "Put": {
                        "TableName": self.versions_table_name,
                        "Item": _serialize(snapshot),
                        "ConditionExpression": "attribute_not_exists(proposal_id)",
                    }
                },
            ]
        )
        logger.info(f"Created proposal {proposal_id} for tender {tender_id}")
        return self._to_proposal(item)

    def _update_content_sync(
        self, proposal_id: str, content: str, expected_version: Optional[int]
    ) -> Proposal:
        now = datetime.now(timezone.utc).isoformat()
        condition = "attribute_exists(proposal_id) AND #status = :draft"
        values = {
            ":content": content,
            ":updated": now,
            ":one": Decimal(1),
            ":draft": ProposalStatus.DRAFT.value,
        }
        if expected_version is not None:
            condition += " AND version = :expected"
            values[":expected"] = Decimal(expected_version)

        try:
            response = self.proposals.update_item(
                Key={"proposal_id": proposal_id},
                UpdateExpression="SET content = :content, updated_at = :updated ADD version :one",
                ConditionExpression=condition,
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise self._explain_write_conflict(proposal_id, expected_version) from e
            raise
        return self._to_proposal(response["Attributes"])

    def _append_version_sync(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str],
        created_by: Optional[str],
    ) -> VersionSnapshot:
        highest = self._highest_version(proposal_id)
        if version != highest + 1:
            raise VersionSequenceError(
                f"Version {version} rejected for {proposal_id}: expected {highest + 1}",
                proposal_id=proposal_id,
            )

        now = datetime.now(timezone.utc).isoformat()
        item = self._snapshot_item(proposal_id, version, content, summary, created_by, now)
        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "ConditionCheck": {
                            "TableName": self.proposals_table_name,
                            "Key": _serialize({"proposal_id": proposal_id}),
                            "ConditionExpression": (
                                "attribute_exists(proposal_id) AND #status = :draft"
                            ),
                            "ExpressionAttributeNames": {"#status": "status"},
                            "ExpressionAttributeValues": _serialize(
                                {":draft": ProposalStatus.DRAFT.value}
                            ),
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.versions_table_name,
                            "Item": _serialize(item),
                            "ConditionExpression": "attribute_not_exists(proposal_id)",
                        }
                    },
                ]
            )
        except ClientError as e:
            if _error_code(e) == "TransactionCanceledException":
                codes = _cancellation_codes(e)
                if codes and codes[0] == "ConditionalCheckFailed":
                    raise self._explain_write_conflict(proposal_id) from e
                if len(codes) > 1 and codes[1] == "ConditionalCheckFailed":
                    raise VersionSequenceError(
                        f"Version {version} already exists for {proposal_id}",
                        proposal_id=proposal_id,
                        original_error=e,
                    ) from e
            raise
        logger.info(f"Recorded version {version} for proposal {proposal_id}")
        return self._to_snapshot(item)

    def _save_content_sync(
        self,
        proposal_id: str,
        content: str,
        expected_version: int,
        summary: Optional[str],
        created_by: Optional[str],
    ) -> Tuple[Proposal, VersionSnapshot]:
        # Fixed fields come from this read; the row is not re-read after the commit
        current = self._fetch_item(proposal_id)
        if current is None:
            raise NotFoundError(f"Proposal {proposal_id} not found", proposal_id=proposal_id)

        new_version = expected_version + 1
        now = datetime.now(timezone.utc).isoformat()
        snapshot = self._snapshot_item(proposal_id, new_version, content, summary, created_by, now)

        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "Update": {
                            "TableName": self.proposals_table_name,
                            "Key": _serialize({"proposal_id": proposal_id}),
                            "UpdateExpression": (
                                "SET content = :content, version = :new_version, "
                                "updated_at = :updated"
                            ),
                            "ConditionExpression": (
                                "attribute_exists(proposal_id) AND #status = :draft "
                                "AND version = :expected"
                            ),
                            "ExpressionAttributeNames": {"#status": "status"},
                            "ExpressionAttributeValues": _serialize(
                                {
                                    ":content": content,
                                    ":new_version": new_version,
                                    ":updated": now,
                                    ":draft": ProposalStatus.DRAFT.value,
                                    ":expected": expected_version,
                                }
                            ),
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.versions_table_name,
                            "Item": _serialize(snapshot),
                            "ConditionExpression": "attribute_not_exists(proposal_id)",
                        }
                    },
                ]
            )
        except ClientError as e:
            if _error_code(e) == "TransactionCanceledException":
                codes = _cancellation_codes(e)
                if codes and codes[0] == "ConditionalCheckFailed":
                    raise self._explain_write_conflict(proposal_id, expected_version) from e
                if len(codes) > 1 and codes[1] == "ConditionalCheckFailed":
                    raise VersionSequenceError(
                        f"Version {new_version} already exists for {proposal_id}",
                        proposal_id=proposal_id,
                        original_error=e,
                    ) from e
            raise

        logger.info(f"Saved proposal {proposal_id} (v{expected_version} -> v{new_version})")
        proposal = self._to_proposal(
            dict(current, content=content, version=new_version, updated_at=now)
        )
        return proposal, self._to_snapshot(snapshot)

    def _list_versions_sync(self, proposal_id: str) -> List[VersionSnapshot]:
        query_kwargs = {
            "KeyConditionExpression": Key("proposal_id").eq(proposal_id),
            "ScanIndexForward": True,
        }
        snapshots = []
        while True:
            response = self.versions.query(**query_kwargs)
            snapshots.extend(self._to_snapshot(item) for item in response.get("Items", []))
            start_key = response.get("LastEvaluatedKey")
            if not start_key:
                break
            query_kwargs["ExclusiveStartKey"] = start_key
        return snapshots

    def _get_version_sync(self, proposal_id: str, version: int) -> VersionSnapshot:
        response = self.versions.get_item(Key={"proposal_id": proposal_id, "version": version})
        if "Item" not in response:
            raise NotFoundError(
                f"Version {version} not found for proposal {proposal_id}",
                proposal_id=proposal_id,
                version=version,
            )
        return self._to_snapshot(response["Item"])

    def _set_submitted_sync(self, proposal_id: str, attestation_ref: str) -> Proposal:
        now = datetime.now(timezone.utc).isoformat()
        try:
            response = self.proposals.update_item(
                Key={"proposal_id": proposal_id},
                UpdateExpression=(
                    "SET #status = :submitted, attestation_ref = :ref, "
                    "submitted_at = :now, updated_at = :now"
                ),
                ConditionExpression="attribute_exists(proposal_id) AND #status = :draft",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":submitted": ProposalStatus.SUBMITTED.value,
                    ":draft": ProposalStatus.DRAFT.value,
                    ":ref": attestation_ref,
                    ":now": now,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise self._explain_write_conflict(proposal_id) from e
            raise
        logger.info(f"Proposal {proposal_id} submitted with attestation {attestation_ref}")
        return self._to_proposal(response["Attributes"])

    def _delete_proposal_sync(self, proposal_id: str) -> None:
        try:
            self.proposals.delete_item(
                Key={"proposal_id": proposal_id},
                ConditionExpression="attribute_exists(proposal_id) AND #status = :draft",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={":draft": ProposalStatus.DRAFT.value},
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise self._explain_write_conflict(proposal_id) from e
            raise

        try:
            with self.versions.batch_writer() as batch:
                for snapshot in self._list_versions_sync(proposal_id):
                    batch.delete_item(
                        Key={"proposal_id": proposal_id, "version": snapshot.version}
                    )
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                f"Deleted proposal {proposal_id} but its version history was not fully "
                f"removed; orphaned snapshots remain in {self.versions_table_name}: {e}"
            )
            raise
        logger.info(f"Deleted proposal {proposal_id} and its version history")

    # ------------------------------------------------------------------
    # Gateway interface
    # ------------------------------------------------------------------

    async def _run(self, operation: str, proposal_id: Optional[str], func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB {operation} failed for {proposal_id}: {str(e)}")
            raise PersistenceError(
                f"Failed to {operation} proposal {proposal_id}: {e}",
                proposal_id=proposal_id,
                original_error=e,
            ) from e

    async def get_proposal(self, proposal_id: str) -> Proposal:
        return await self._run("fetch", proposal_id, self._get_proposal_sync, proposal_id)

    async def create_proposal(
        self,
        tender_id: str,
        owner_id: str,
        content: str,
        title: Optional[str] = None,
        summary: Optional[str] = "Initial draft",
    ) -> Proposal:
        return await self._run(
            "create", None, self._create_proposal_sync, tender_id, owner_id, content, title, summary
        )

    async def update_proposal_content(
        self, proposal_id: str, content: str, expected_version: Optional[int] = None
    ) -> Proposal:
        return await self._run(
            "update", proposal_id, self._update_content_sync, proposal_id, content, expected_version
        )

    async def append_version(
        self,
        proposal_id: str,
        version: int,
        content: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> VersionSnapshot:
        return await self._run(
            "append version to",
            proposal_id,
            self._append_version_sync,
            proposal_id,
            version,
            content,
            summary,
            created_by,
        )

    async def save_content(
        self,
        proposal_id: str,
        content: str,
        expected_version: int,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[Proposal, VersionSnapshot]:
        return await self._run(
            "save",
            proposal_id,
            self._save_content_sync,
            proposal_id,
            content,
            expected_version,
            summary,
            created_by,
        )

    async def list_versions(self, proposal_id: str) -> List[VersionSnapshot]:
        return await self._run(
            "list versions of", proposal_id, self._list_versions_sync, proposal_id
        )

    async def get_version(self, proposal_id: str, version: int) -> VersionSnapshot:
        return await self._run(
            "fetch version of", proposal_id, self._get_version_sync, proposal_id, version
        )

    async def set_submitted(self, proposal_id: str, attestation_ref: str) -> Proposal:
        return await self._run(
            "submit", proposal_id, self._set_submitted_sync, proposal_id, attestation_ref
        )

    async def delete_proposal(self, proposal_id: str) -> None:
        await self._run("delete", proposal_id, self._delete_proposal_sync, proposal_id)

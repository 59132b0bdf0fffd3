"""Storage module for proposals and their version history."""

from typing import Any, Dict

from .gateway import PersistenceGateway
from .memory_gateway import InMemoryPersistenceGateway
from .models import AttestationReceipt, Proposal, ProposalStatus, VersionSnapshot
from .version_store import VersionStore


def create_gateway(config: Dict[str, Any]) -> PersistenceGateway:
    """Create the persistence gateway selected by ``storage.backend``."""
    storage_config = config.get("storage", {})
    backend = storage_config.get("backend", "dynamodb").lower()

    if backend == "memory":
        return InMemoryPersistenceGateway()
    if backend == "dynamodb":
        from .dynamodb_gateway import DynamoDBPersistenceGateway

        return DynamoDBPersistenceGateway(
            proposals_table=storage_config.get("proposals_table", "proposals"),
            versions_table=storage_config.get("versions_table", "proposal_versions"),
            region=storage_config.get("region"),
        )
    raise ValueError(f"Unknown storage backend: {backend}. Supported backends: memory, dynamodb")


__all__ = [
    "AttestationReceipt",
    "InMemoryPersistenceGateway",
    "PersistenceGateway",
    "Proposal",
    "ProposalStatus",
    "VersionSnapshot",
    "VersionStore",
    "create_gateway",
]

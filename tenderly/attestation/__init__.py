"""Submission attestation services."""

from typing import Any, Dict

from .service import AttestationService, InMemoryAttestationService, make_transaction_ref


def create_attestation_service(config: Dict[str, Any]) -> AttestationService:
    """Create the attestation service selected by ``attestation.backend``."""
    attestation_config = config.get("attestation", {})
    backend = attestation_config.get("backend", "dynamodb").lower()
    network = attestation_config.get("network", "algorand-testnet")

    if backend == "memory":
        return InMemoryAttestationService(network=network)
    if backend == "dynamodb":
        from .dynamodb_service import DynamoDBAttestationService

        return DynamoDBAttestationService(
            table_name=attestation_config.get("table", "attestations"),
            network=network,
            region=config.get("storage", {}).get("region"),
        )
    raise ValueError(f"Unknown attestation backend: {backend}. Supported backends: memory, dynamodb")


__all__ = [
    "AttestationService",
    "InMemoryAttestationService",
    "create_attestation_service",
    "make_transaction_ref",
]

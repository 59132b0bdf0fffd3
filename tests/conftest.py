#!/usr/bin/env python3
"""
Shared test configuration and fixtures for Tenderly.
"""

import copy
from unittest.mock import MagicMock

import pytest

from tenderly.ai.models import CompanyContext, TenderContext
from tenderly.ai.transform_adapter import AITransformAdapter
from tenderly.ai.translation import ProviderTranslationService, TranslationAdapter
from tenderly.attestation import InMemoryAttestationService
from tenderly.config import DEFAULT_CONFIG
from tenderly.lifecycle import LifecycleController
from tenderly.providers.fake import FakeProvider
from tenderly.storage import InMemoryPersistenceGateway

SAMPLE_PROPOSAL = """# Proposal for Road Maintenance Works

## Executive Summary
Binaan Jaya Sdn Bhd is pleased to submit this proposal.

## Company Background
CIDB G5 contractor with 12 years of road works experience.

## Technical Approach
Phased resurfacing with night works to limit traffic disruption.

## Compliance
CIDB G5 exceeds the G4 requirement.

## Conclusion
We look forward to working with DBKL."""


@pytest.fixture(autouse=True)
def _no_network(monkeypatch, tmp_path):
    """Mock all network calls to prevent actual AWS calls during testing."""
    monkeypatch.setenv("NO_NETWORK", "1")
    monkeypatch.setenv("LLM_LOG_DIR", str(tmp_path / "logs"))
    for var in (
        "AI_PROVIDER",
        "BEDROCK_IP_ARN",
        "TENDERLY_CONFIG",
        "TENDERLY_STORAGE",
        "TENDERLY_PROPOSALS_TABLE",
        "TENDERLY_VERSIONS_TABLE",
        "TENDERLY_ATTESTATIONS_TABLE",
        "AWS_DEFAULT_REGION",
    ):
        monkeypatch.delenv(var, raising=False)

    # Mock boto3 client for Bedrock
    def mock_boto3_client(*args, **kwargs):
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.__getitem__.return_value.read.return_value = (
            '{"content": [{"type": "text", "text": "Mock LLM response"}]}'
        )
        mock_client.invoke_model.return_value = mock_response
        return mock_client

    monkeypatch.setattr("boto3.client", mock_boto3_client)
    monkeypatch.setattr("boto3.resource", lambda *args, **kwargs: MagicMock())


@pytest.fixture
def config():
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def tender():
    return TenderContext(
        title="Road Maintenance Works",
        description="Resurfacing and drainage repairs for municipal roads in Kuala Lumpur.",
        agency="DBKL",
        category="Construction",
        budget="RM 2,500,000",
        requirements=["CIDB G4 registration", "ISO 9001 certification"],
        tender_id="tender-1",
        closing_date="2026-12-01",
    )


@pytest.fixture
def company():
    return CompanyContext(
        name="Binaan Jaya Sdn Bhd",
        registration_number="201501012345",
        certifications=["CIDB G5 registration", "ISO 14001"],
        experience="12 years of road works for local councils",
        contact_email="tenders@binaanjaya.my",
    )


@pytest.fixture
def gateway():
    return InMemoryPersistenceGateway()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def transform_adapter(provider, config):
    return AITransformAdapter(provider, config)


@pytest.fixture
def translation_adapter(provider, config):
    return TranslationAdapter(ProviderTranslationService(provider), config)


@pytest.fixture
def attestation_service():
    return InMemoryAttestationService()


@pytest.fixture
def make_controller(
    gateway, transform_adapter, translation_adapter, attestation_service, tender, company
):
    """Async factory creating a stored proposal and a controller for it."""

    async def _make(content=SAMPLE_PROPOSAL, **overrides):
        store = overrides.pop("gateway", gateway)
        proposal = await store.create_proposal(
            "tender-1", "user-1", content, title="Proposal for Road Maintenance Works"
        )
        params = {
            "transform_adapter": transform_adapter,
            "translation_adapter": translation_adapter,
            "attestation_service": attestation_service,
            "tender": tender,
            "company": company,
        }
        params.update(overrides)
        return LifecycleController(proposal, store, **params)

    return _make


@pytest.fixture
def sample_proposal():
    return SAMPLE_PROPOSAL

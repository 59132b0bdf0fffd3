"""Wiring of lifecycle collaborators from configuration."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..ai.models import CompanyContext, TenderContext
from ..ai.transform_adapter import AITransformAdapter
from ..ai.translation import ProviderTranslationService, TranslationAdapter
from ..attestation import AttestationService, create_attestation_service
from ..providers.factory import create_ai_provider
from ..storage import PersistenceGateway, VersionStore, create_gateway
from .controller import LifecycleController


@dataclass
class Services:
    """Collaborators shared by every controller of a process."""

    gateway: PersistenceGateway
    version_store: VersionStore
    transform_adapter: AITransformAdapter
    translation_adapter: TranslationAdapter
    attestation_service: AttestationService
    stale_save_check: bool = True


def build_services(config: Dict[str, Any]) -> Services:
    provider = create_ai_provider(config)
    gateway = create_gateway(config)
    return Services(
        gateway=gateway,
        version_store=VersionStore(gateway),
        transform_adapter=AITransformAdapter(provider, config),
        translation_adapter=TranslationAdapter(
            ProviderTranslationService(provider, config.get("ai", {}).get("max_tokens", 4096)),
            config,
        ),
        attestation_service=create_attestation_service(config),
        stale_save_check=bool(config.get("lifecycle", {}).get("stale_save_check", True)),
    )


async def open_session(
    proposal_id: str,
    services: Services,
    tender: Optional[TenderContext] = None,
    company: Optional[CompanyContext] = None,
    actor_id: Optional[str] = None,
) -> LifecycleController:
    """Load a proposal and return a controller bound to ``services``."""
    return await LifecycleController.open(
        proposal_id,
        services.gateway,
        version_store=services.version_store,
        transform_adapter=services.transform_adapter,
        translation_adapter=services.translation_adapter,
        attestation_service=services.attestation_service,
        tender=tender,
        company=company,
        actor_id=actor_id,
        stale_save_check=services.stale_save_check,
    )

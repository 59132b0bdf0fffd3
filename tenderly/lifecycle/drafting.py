"""Initial proposal drafting."""

import logging
from typing import Optional

from ..ai.models import CompanyContext, TaskType, TenderContext, TransformRequest
from ..ai.transform_adapter import AITransformAdapter
from ..storage.gateway import PersistenceGateway
from ..storage.models import Proposal

logger = logging.getLogger(__name__)


async def create_draft(
    gateway: PersistenceGateway,
    adapter: AITransformAdapter,
    tender: TenderContext,
    company: CompanyContext,
    owner_id: str,
    title: Optional[str] = None,
    user_instruction: Optional[str] = None,
) -> Proposal:
    """
    Generate a first draft for a tender and store it as version 1.

    Args:
        gateway: Persistence gateway to create the proposal in
        adapter: AI adapter used for PROPOSAL_GENERATION
        tender: Tender being bid for; ``tender_id`` is required
        company: Bidding company's profile
        owner_id: Owner of the new proposal
        title: Proposal title (defaults to "Proposal for <tender title>")
        user_instruction: Optional extra instructions for the model

    Returns:
        The created proposal

    Raises:
        TransformError: If generation fails; nothing is stored
        PersistenceError: If the proposal cannot be created
    """
    if not tender.tender_id:
        raise ValueError("Tender context must include tender_id")

    result = await adapter.run(
        TransformRequest(
            task_type=TaskType.PROPOSAL_GENERATION,
            tender=tender,
            company=company,
            user_instruction=user_instruction,
        )
    )
    proposal = await gateway.create_proposal(
        tender.tender_id,
        owner_id,
        result.content,
        title=title or f"Proposal for {tender.title}",
        summary="Initial draft",
    )
    logger.info(
        f"Drafted proposal {proposal.proposal_id} for tender {tender.tender_id} "
        f"(quality score {result.quality.score if result.quality else 'n/a'})"
    )
    return proposal

#!/usr/bin/env python3
"""
Tenderly Proposal Session CLI

Drives the proposal lifecycle against the configured backends.

Usage:
    python scripts/run_proposal_session.py create --context ./tender.yaml --owner user-1
    python scripts/run_proposal_session.py show --proposal <id>
    python scripts/run_proposal_session.py history --proposal <id>
    python scripts/run_proposal_session.py restore --proposal <id> --version 2
    python scripts/run_proposal_session.py improve --proposal <id> --context ./tender.yaml
    python scripts/run_proposal_session.py translate --proposal <id> --to ms [--adopt]
    python scripts/run_proposal_session.py submit --proposal <id>
    NO_NETWORK=1 python scripts/run_proposal_session.py demo --context ./tender.yaml
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tenderly.ai.models import CompanyContext, TaskType, TenderContext
from tenderly.config import load_config
from tenderly.errors import ProposalLifecycleError
from tenderly.lifecycle import build_services, create_draft, open_session
from tenderly.providers.base import ProviderError

logger = logging.getLogger("tenderly.cli")


def load_context(path):
    """Load tender and company context from a YAML file."""
    if not path:
        return TenderContext(), CompanyContext()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return TenderContext(**data.get("tender", {})), CompanyContext(**data.get("company", {}))


def print_proposal(controller):
    proposal = controller.proposal
    print(f"Proposal:  {proposal.proposal_id}")
    print(f"Tender:    {proposal.tender_id}")
    print(f"Status:    {proposal.status.value}")
    print(f"Version:   {proposal.version}")
    if proposal.attestation_ref:
        print(f"Attested:  {proposal.attestation_ref}")
    print()
    print(controller.content)


async def run(args, config):
    services = build_services(config)
    tender, company = load_context(args.context)

    if args.command in ("create", "demo"):
        proposal = await create_draft(
            services.gateway, services.transform_adapter, tender, company, args.owner
        )
        print(f"Created proposal {proposal.proposal_id} (version {proposal.version})")
        if args.command == "create":
            return
        args.proposal = proposal.proposal_id

    controller = await open_session(args.proposal, services, tender, company, args.owner)

    if args.command == "show":
        print_proposal(controller)
    elif args.command == "history":
        for snapshot in await controller.list_versions():
            print(
                f"v{snapshot.version}  {snapshot.created_at.isoformat()}  "
                f"{snapshot.created_by or '-'}  {snapshot.summary or ''}"
            )
    elif args.command == "restore":
        await controller.load_version(args.version)
        snapshot = await controller.save(summary=f"Restored from version {args.version}")
        print(f"Restored version {args.version} as version {snapshot.version}")
    elif args.command == "improve":
        result = await controller.apply_ai_transform(
            TaskType.PROPOSAL_IMPROVEMENT, user_instruction=args.instruction
        )
        snapshot = await controller.save(summary="AI improvement")
        print(f"Saved improved proposal as version {snapshot.version}")
        for insight in result.insights:
            print(f"- {insight.change}: {insight.explanation}")
    elif args.command == "translate":
        translation = await controller.apply_translation(args.to)
        if args.adopt:
            controller.adopt_translation()
            snapshot = await controller.save(summary=f"Translated to {args.to}")
            print(f"Saved translation as version {snapshot.version}")
        else:
            print(translation.content)
    elif args.command == "submit":
        receipt = await controller.submit()
        print(f"Submitted with attestation {receipt.transaction_ref}")
    elif args.command == "demo":
        await controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT)
        await controller.save(summary="AI improvement")
        receipt = await controller.submit()
        print(f"Submitted with attestation {receipt.transaction_ref}")
        print_proposal(controller)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Tenderly proposal lifecycle CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=None, help="Path to tenderly.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name, help_text, needs_proposal=True):
        sub = subparsers.add_parser(name, help=help_text)
        if needs_proposal:
            sub.add_argument("--proposal", required=True, help="Proposal id")
        sub.add_argument("--context", default=None, help="YAML file with tender and company")
        sub.add_argument("--owner", default="cli-user", help="Acting user id")
        return sub

    add("create", "Generate and store a first draft", needs_proposal=False)
    add("demo", "Draft, improve and submit in one offline session", needs_proposal=False)
    add("show", "Print a proposal")
    add("history", "List version snapshots")
    add("restore", "Restore an old version as a new version").add_argument(
        "--version", type=int, required=True, help="Version to restore"
    )
    add("improve", "Improve a proposal with AI and save it").add_argument(
        "--instruction", default=None, help="Extra instructions for the model"
    )
    translate = add("translate", "Translate a proposal")
    translate.add_argument("--to", required=True, choices=["en", "ms"], help="Target language")
    translate.add_argument("--adopt", action="store_true", help="Adopt and save the translation")
    add("submit", "Submit a proposal with an attestation")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run(args, load_config(args.config)))
    except (ProposalLifecycleError, ProviderError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()

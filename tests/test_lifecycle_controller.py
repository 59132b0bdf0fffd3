"""Tests for the proposal lifecycle controller."""

import asyncio
import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest

from tenderly.ai.models import TaskType, TransformResult
from tenderly.attestation import InMemoryAttestationService
from tenderly.errors import (
    AttestationError,
    ConcurrentOperationError,
    EmptyProposalError,
    ImmutableProposalError,
    NotFoundError,
    PersistenceError,
    ProposalLifecycleError,
    StaleVersionError,
    TransformError,
    UnsavedChangesError,
)
from tenderly.lifecycle import LifecycleController
from tenderly.storage import InMemoryPersistenceGateway, ProposalStatus


class BlockingGateway(InMemoryPersistenceGateway):
    """Gateway whose saves wait until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def save_content(self, *args, **kwargs):
        self.entered.set()
        await self.release.wait()
        return await super().save_content(*args, **kwargs)


class LostResponseGateway(InMemoryPersistenceGateway):
    """Records the first submission but reports a failure to the caller."""

    def __init__(self):
        super().__init__()
        self.failures = 1

    async def set_submitted(self, proposal_id, attestation_ref):
        proposal = await super().set_submitted(proposal_id, attestation_ref)
        if self.failures:
            self.failures -= 1
            raise PersistenceError("Connection reset", proposal_id=proposal_id)
        return proposal


class FlakyAttestationService(InMemoryAttestationService):
    """Fails the first attestation request."""

    def __init__(self, error):
        super().__init__()
        self.error = error
        self.calls = 0

    async def attest(self, proposal_id, metadata=None):
        self.calls += 1
        if self.calls == 1:
            raise self.error
        return await super().attest(proposal_id, metadata)


class BlockingAttestationService(InMemoryAttestationService):
    """Attestation that waits until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def attest(self, proposal_id, metadata=None):
        self.entered.set()
        await self.release.wait()
        return await super().attest(proposal_id, metadata)


def _stub_adapter(content):
    adapter = MagicMock()
    adapter.run = AsyncMock(
        return_value=TransformResult(task_type=TaskType.PROPOSAL_IMPROVEMENT, content=content)
    )
    return adapter


class TestLifecycleScenario:
    """End-to-end draft -> save -> discard -> submit flow."""

    @pytest.mark.asyncio
    async def test_edit_save_discard_submit(self, make_controller, gateway):
        controller = await make_controller(content="A", transform_adapter=_stub_adapter("C"))
        proposal_id = controller.proposal_id
        assert controller.proposal.version == 1

        controller.edit("B")
        snapshot = await controller.save()
        assert snapshot.version == 2
        assert controller.proposal.version == 2
        assert controller.content == "B"

        await controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT)
        assert controller.content == "C"
        assert controller.dirty
        controller.discard_changes()

        stored = await gateway.get_proposal(proposal_id)
        assert stored.content == "B"
        assert stored.version == 2

        receipt = await controller.submit()
        assert controller.status == ProposalStatus.SUBMITTED
        assert controller.proposal.attestation_ref == receipt.transaction_ref
        stored = await gateway.get_proposal(proposal_id)
        assert stored.status == ProposalStatus.SUBMITTED
        assert stored.attestation_ref == receipt.transaction_ref

        with pytest.raises(ImmutableProposalError):
            controller.edit("D")
        assert len(await gateway.list_versions(proposal_id)) == 2


class TestSave:
    """Save semantics and the in-flight guard."""

    @pytest.mark.asyncio
    async def test_save_without_changes_is_a_noop(self, make_controller, gateway):
        controller = await make_controller()
        assert await controller.save() is None
        assert len(await gateway.list_versions(controller.proposal_id)) == 1
        assert controller.save_status == "idle"

    @pytest.mark.asyncio
    async def test_versions_stay_contiguous(self, make_controller, gateway):
        controller = await make_controller(content="v1")
        for i in range(2, 5):
            controller.edit(f"v{i}")
            snapshot = await controller.save(summary=f"edit {i}")
            assert snapshot.version == i

        history = await gateway.list_versions(controller.proposal_id)
        assert [s.version for s in history] == [1, 2, 3, 4]
        assert history[-1].created_by == "user-1"
        assert controller.save_status == "saved"

    @pytest.mark.asyncio
    async def test_concurrent_save_is_rejected(self, make_controller):
        gateway = BlockingGateway()
        controller = await make_controller(content="A", gateway=gateway)
        controller.edit("B")

        first = asyncio.create_task(controller.save())
        await gateway.entered.wait()
        assert controller.save_status == "saving"

        with pytest.raises(ConcurrentOperationError):
            await controller.save()
        with pytest.raises(ConcurrentOperationError):
            await controller.submit()

        gateway.release.set()
        snapshot = await first
        assert snapshot.version == 2
        history = await gateway.list_versions(controller.proposal_id)
        assert [s.version for s in history] == [1, 2]

    @pytest.mark.asyncio
    async def test_edit_during_save_stays_dirty(self, make_controller):
        gateway = BlockingGateway()
        controller = await make_controller(content="A", gateway=gateway)
        controller.edit("B")

        first = asyncio.create_task(controller.save())
        await gateway.entered.wait()
        controller.edit("C")
        gateway.release.set()
        await first

        assert controller.dirty
        assert controller.content == "C"
        assert (await gateway.get_proposal(controller.proposal_id)).content == "B"

    @pytest.mark.asyncio
    async def test_save_failure_keeps_buffer(self, make_controller, gateway):
        controller = await make_controller(content="A")
        controller.edit("B")
        gateway.save_content = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(PersistenceError) as exc_info:
            await controller.save()

        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert controller.content == "B"
        assert controller.dirty
        assert controller.save_status == "error"
        assert controller.last_error is exc_info.value
        assert controller.status == ProposalStatus.DRAFT

    @pytest.mark.asyncio
    async def test_stale_save_is_rejected(self, make_controller, gateway):
        first = await make_controller(content="A")
        second = await LifecycleController.open(first.proposal_id, gateway)

        first.edit("from first")
        await first.save()

        second.edit("from second")
        with pytest.raises(StaleVersionError) as exc_info:
            await second.save()

        assert exc_info.value.actual_version == 2
        assert second.content == "from second"
        assert second.save_status == "error"

        await second.reload(force=True)
        assert second.content == "from first"
        assert second.proposal.version == 2

    @pytest.mark.asyncio
    async def test_stale_check_can_be_disabled(self, make_controller, gateway):
        first = await make_controller(content="A")
        second = await LifecycleController.open(
            first.proposal_id, gateway, stale_save_check=False
        )

        first.edit("from first")
        await first.save()
        second.edit("from second")
        snapshot = await second.save()

        assert snapshot.version == 3
        assert (await gateway.get_proposal(first.proposal_id)).content == "from second"


class TestLoadVersion:
    """Restoring history never rewrites it."""

    @pytest.mark.asyncio
    async def test_load_version_then_save_appends(self, make_controller, gateway):
        controller = await make_controller(content="A")
        controller.edit("B")
        await controller.save()
        controller.edit("C")
        await controller.save()

        restored = await controller.load_version(1)
        assert restored.content == "A"
        assert controller.content == "A"
        assert controller.dirty

        snapshot = await controller.save(summary="Restored version 1")
        assert snapshot.version == 4
        assert snapshot.content == "A"
        history = await gateway.list_versions(controller.proposal_id)
        assert [s.content for s in history] == ["A", "B", "C", "A"]

    @pytest.mark.asyncio
    async def test_load_missing_version(self, make_controller):
        controller = await make_controller(content="A")
        with pytest.raises(NotFoundError):
            await controller.load_version(7)
        assert not controller.dirty

    @pytest.mark.asyncio
    async def test_list_versions_newest_first(self, make_controller):
        controller = await make_controller(content="A")
        controller.edit("B")
        await controller.save()

        history = await controller.list_versions()
        assert [s.version for s in history] == [2, 1]


class TestAITransforms:
    """AI-driven rewrites through the transform adapter."""

    @pytest.mark.asyncio
    async def test_improvement_updates_buffer_only(self, make_controller, gateway, sample_proposal):
        controller = await make_controller()

        result = await controller.apply_ai_transform(
            "PROPOSAL_IMPROVEMENT", user_instruction="Add a quality section"
        )

        assert "## Quality Assurance" in controller.content
        assert controller.content.startswith(sample_proposal)
        assert controller.dirty
        assert result.insights[0].change == "Added quality assurance section"
        stored = await gateway.get_proposal(controller.proposal_id)
        assert stored.content == sample_proposal

    @pytest.mark.asyncio
    async def test_generation_replaces_buffer(self, make_controller):
        controller = await make_controller(content="notes")
        await controller.apply_ai_transform(TaskType.PROPOSAL_GENERATION)
        assert "## Executive Summary" in controller.content
        assert "Binaan Jaya Sdn Bhd" in controller.content

    @pytest.mark.asyncio
    async def test_non_content_task_is_rejected(self, make_controller):
        controller = await make_controller()
        with pytest.raises(ValueError):
            await controller.apply_ai_transform(TaskType.SUMMARIZE)

    @pytest.mark.asyncio
    async def test_transform_failure_leaves_buffer(self, make_controller):
        adapter = MagicMock()
        adapter.run = AsyncMock(side_effect=TransformError("model unavailable"))
        controller = await make_controller(content="A", transform_adapter=adapter)

        with pytest.raises(TransformError) as exc_info:
            await controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT)

        assert exc_info.value.proposal_id == controller.proposal_id
        assert controller.content == "A"
        assert not controller.dirty

    @pytest.mark.asyncio
    async def test_unexpected_adapter_error_is_wrapped(self, make_controller):
        adapter = MagicMock()
        adapter.run = AsyncMock(side_effect=KeyError("boom"))
        controller = await make_controller(content="A", transform_adapter=adapter)

        with pytest.raises(TransformError) as exc_info:
            await controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT)
        assert isinstance(exc_info.value.original_error, KeyError)

    @pytest.mark.asyncio
    async def test_result_arriving_after_submit_is_rejected(self, make_controller):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_run(request):
            entered.set()
            await release.wait()
            return TransformResult(task_type=request.task_type, content="late")

        adapter = MagicMock()
        adapter.run = slow_run
        controller = await make_controller(content="A", transform_adapter=adapter)

        pending = asyncio.create_task(controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT))
        await entered.wait()
        await controller.submit()
        release.set()

        with pytest.raises(ImmutableProposalError):
            await pending
        assert controller.content == "A"

    @pytest.mark.asyncio
    async def test_apply_transform_result(self, make_controller):
        controller = await make_controller(content="A")
        controller.apply_transform_result(
            TransformResult(task_type=TaskType.PROPOSAL_GENERATION, content="Generated")
        )
        assert controller.content == "Generated"
        assert controller.dirty

        with pytest.raises(ValueError):
            controller.apply_transform_result(
                TransformResult(task_type=TaskType.CHAT_ASSISTANCE, content="Chat")
            )

    @pytest.mark.asyncio
    async def test_ask_assistant_does_not_mutate(self, make_controller, sample_proposal):
        controller = await make_controller()
        result = await controller.ask_assistant("Which requirements matter most?")

        assert "CIDB G4 registration" in result.content
        assert controller.content == sample_proposal
        assert not controller.dirty


class TestTranslation:
    """Secondary renderings never touch the primary buffer until adopted."""

    @pytest.mark.asyncio
    async def test_translate_then_adopt(self, make_controller, sample_proposal):
        controller = await make_controller()

        translation = await controller.apply_translation("ms")
        assert translation.source_language == "en"
        assert "## Ringkasan Eksekutif" in translation.content
        assert controller.content == sample_proposal
        assert not controller.dirty

        controller.adopt_translation()
        assert "## Ringkasan Eksekutif" in controller.content
        assert controller.dirty
        assert controller.translation is None

        snapshot = await controller.save(summary="Translated to ms")
        assert snapshot.version == 2

    @pytest.mark.asyncio
    async def test_discard_translation(self, make_controller):
        controller = await make_controller()
        await controller.apply_translation("ms")
        controller.discard_translation()

        assert controller.translation is None
        with pytest.raises(ValueError):
            controller.adopt_translation()

    @pytest.mark.asyncio
    async def test_translation_viewable_after_submit(self, make_controller):
        controller = await make_controller()
        await controller.apply_translation("ms")
        await controller.submit()

        translation = await controller.apply_translation("ms")
        assert "Ringkasan Eksekutif" in translation.content
        with pytest.raises(ImmutableProposalError):
            controller.adopt_translation()


class TestSubmit:
    """Submission, attestation and immutability."""

    @pytest.mark.asyncio
    async def test_empty_submit_never_contacts_attestation(self, make_controller, gateway):
        attestation = MagicMock()
        attestation.attest = AsyncMock()
        controller = await make_controller(content="A", attestation_service=attestation)
        controller.edit("   ")

        with pytest.raises(EmptyProposalError):
            await controller.submit()

        attestation.attest.assert_not_called()
        assert controller.status == ProposalStatus.DRAFT
        assert len(await gateway.list_versions(controller.proposal_id)) == 1

    @pytest.mark.asyncio
    async def test_submit_refuses_unsaved_edits(self, make_controller, gateway):
        attestation = FlakyAttestationService(AttestationError("ledger unavailable"))
        controller = await make_controller(content="A", attestation_service=attestation)
        controller.edit("B")

        with pytest.raises(UnsavedChangesError):
            await controller.submit()

        assert attestation.calls == 0
        stored = await gateway.get_proposal(controller.proposal_id)
        assert (stored.version, stored.content, stored.status) == (1, "A", ProposalStatus.DRAFT)
        assert len(await gateway.list_versions(controller.proposal_id)) == 1
        assert controller.dirty
        assert controller.content == "B"

    @pytest.mark.asyncio
    async def test_failed_attestation_after_save_writes_nothing(self, make_controller, gateway):
        attestation = FlakyAttestationService(AttestationError("ledger unavailable"))
        controller = await make_controller(content="A", attestation_service=attestation)
        controller.edit("B")
        await controller.save()

        with pytest.raises(AttestationError):
            await controller.submit()

        stored = await gateway.get_proposal(controller.proposal_id)
        assert (stored.version, stored.content, stored.status) == (2, "B", ProposalStatus.DRAFT)
        assert len(await gateway.list_versions(controller.proposal_id)) == 2

        receipt = await controller.submit()
        assert receipt.metadata["version"] == 2

    @pytest.mark.asyncio
    async def test_edits_rejected_while_submit_in_flight(self, make_controller, gateway):
        attestation = BlockingAttestationService()
        controller = await make_controller(content="A", attestation_service=attestation)
        controller.edit("B")
        await controller.save()

        pending = asyncio.create_task(controller.submit())
        await attestation.entered.wait()

        with pytest.raises(ConcurrentOperationError):
            controller.edit("C")
        with pytest.raises(ConcurrentOperationError):
            controller.apply_transform_result(
                TransformResult(task_type=TaskType.PROPOSAL_IMPROVEMENT, content="C")
            )

        attestation.release.set()
        receipt = await pending

        stored = await gateway.get_proposal(controller.proposal_id)
        assert stored.content == "B"
        assert receipt.metadata["content_sha256"] == hashlib.sha256(b"B").hexdigest()
        assert not controller.dirty

    @pytest.mark.asyncio
    async def test_everything_is_immutable_after_submit(self, make_controller, gateway):
        controller = await make_controller(content="A")
        await controller.submit()

        with pytest.raises(ImmutableProposalError):
            controller.edit("D")
        with pytest.raises(ImmutableProposalError):
            await controller.apply_ai_transform(TaskType.PROPOSAL_IMPROVEMENT)
        with pytest.raises(ImmutableProposalError):
            await controller.save()
        with pytest.raises(ImmutableProposalError):
            await controller.load_version(1)
        with pytest.raises(ImmutableProposalError):
            await controller.submit()
        with pytest.raises(ImmutableProposalError):
            await controller.delete()

        with pytest.raises(ImmutableProposalError):
            await gateway.update_proposal_content(controller.proposal_id, "D")

        await controller.reload()
        assert controller.status == ProposalStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_attestation_failure_is_retryable(self, make_controller, gateway):
        attestation = FlakyAttestationService(AttestationError("ledger unavailable"))
        controller = await make_controller(content="A", attestation_service=attestation)

        with pytest.raises(AttestationError) as exc_info:
            await controller.submit()

        assert exc_info.value.retryable
        assert controller.status == ProposalStatus.DRAFT
        assert controller.last_error is exc_info.value
        assert not (await gateway.get_proposal(controller.proposal_id)).is_submitted

        receipt = await controller.submit()
        assert controller.status == ProposalStatus.SUBMITTED
        assert controller.proposal.attestation_ref == receipt.transaction_ref

    @pytest.mark.asyncio
    async def test_unexpected_attestation_error_is_wrapped(self, make_controller):
        attestation = FlakyAttestationService(ConnectionError("socket closed"))
        controller = await make_controller(content="A", attestation_service=attestation)

        with pytest.raises(AttestationError) as exc_info:
            await controller.submit()
        assert isinstance(exc_info.value.original_error, ConnectionError)

    @pytest.mark.asyncio
    async def test_retry_after_lost_submission_response(self, make_controller):
        gateway = LostResponseGateway()
        controller = await make_controller(content="A", gateway=gateway)

        with pytest.raises(PersistenceError):
            await controller.submit()
        assert controller.status == ProposalStatus.DRAFT

        receipt = await controller.submit()
        assert controller.status == ProposalStatus.SUBMITTED
        assert controller.proposal.attestation_ref == receipt.transaction_ref


class TestSessionGuards:
    """Unsaved-changes guards, reload and delete."""

    @pytest.mark.asyncio
    async def test_close_guards_unsaved_changes(self, make_controller):
        controller = await make_controller(content="A")
        controller.edit("B")

        with pytest.raises(UnsavedChangesError):
            controller.close()

        controller.close(force=True)
        with pytest.raises(ProposalLifecycleError):
            controller.edit("C")

    @pytest.mark.asyncio
    async def test_reload_guards_unsaved_changes(self, make_controller):
        controller = await make_controller(content="A")
        controller.edit("B")

        with pytest.raises(UnsavedChangesError):
            await controller.reload()

        await controller.reload(force=True)
        assert controller.content == "A"
        assert not controller.dirty

    @pytest.mark.asyncio
    async def test_discard_changes(self, make_controller):
        controller = await make_controller(content="A")
        controller.edit("B")
        controller.discard_changes()

        assert controller.content == "A"
        assert not controller.dirty
        controller.close()

    @pytest.mark.asyncio
    async def test_delete_draft(self, make_controller, gateway):
        controller = await make_controller(content="A")
        await controller.delete()

        with pytest.raises(NotFoundError):
            await gateway.get_proposal(controller.proposal_id)
        with pytest.raises(ProposalLifecycleError):
            controller.edit("B")

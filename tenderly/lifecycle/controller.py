"""
Proposal Lifecycle Controller

Single authority for mutating and transitioning one proposal. Edits, AI
rewrites and restored versions land in the content buffer; only ``save``,
``submit`` and ``delete`` reach durable storage. A submitted proposal is
read-only.
"""

import hashlib
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from ..ai.models import (
    CONTENT_TASKS,
    ChatMessage,
    CompanyContext,
    TaskType,
    TenderContext,
    TransformRequest,
    TransformResult,
    TranslationResult,
)
from ..ai.transform_adapter import AITransformAdapter
from ..ai.translation import TranslationAdapter
from ..attestation.service import AttestationService
from ..errors import (
    AttestationError,
    ConcurrentOperationError,
    EmptyProposalError,
    ImmutableProposalError,
    PersistenceError,
    ProposalLifecycleError,
    TransformError,
    UnsavedChangesError,
)
from ..storage.gateway import PersistenceGateway
from ..storage.models import AttestationReceipt, Proposal, ProposalStatus, VersionSnapshot
from ..storage.version_store import VersionStore
from .buffer import ContentBuffer

logger = logging.getLogger(__name__)

SAVE_IDLE = "idle"
SAVE_SAVING = "saving"
SAVE_SAVED = "saved"
SAVE_ERROR = "error"


class LifecycleController:
    """Owns one proposal's content buffer and state transitions."""

    def __init__(
        self,
        proposal: Proposal,
        gateway: PersistenceGateway,
        transform_adapter: Optional[AITransformAdapter] = None,
        translation_adapter: Optional[TranslationAdapter] = None,
        attestation_service: Optional[AttestationService] = None,
        tender: Optional[TenderContext] = None,
        company: Optional[CompanyContext] = None,
        version_store: Optional[VersionStore] = None,
        actor_id: Optional[str] = None,
        stale_save_check: bool = True,
    ):
        """
        Initialize a controller for a loaded proposal.

        Args:
            proposal: Proposal as last read from storage
            gateway: Persistence gateway holding the proposal
            transform_adapter: AI adapter for content tasks and chat
            translation_adapter: Adapter for secondary renderings
            attestation_service: Service issuing submission receipts
            tender: Tender context sent with every AI request
            company: Company profile sent with every AI request
            version_store: Version history (defaults to one over ``gateway``)
            actor_id: Recorded as ``created_by`` on snapshots
            stale_save_check: Reject saves based on an outdated version
        """
        self.proposal = proposal
        self.gateway = gateway
        self.version_store = version_store or VersionStore(gateway)
        self.transform_adapter = transform_adapter
        self.translation_adapter = translation_adapter
        self.attestation_service = attestation_service
        self.tender = tender or TenderContext(tender_id=proposal.tender_id)
        self.company = company or CompanyContext()
        self.actor_id = actor_id or proposal.owner_id
        self.stale_save_check = stale_save_check

        self.buffer = ContentBuffer.from_persisted(proposal.content, proposal.version)
        self.save_status = SAVE_IDLE
        self.last_error: Optional[ProposalLifecycleError] = None
        self._in_flight: Optional[str] = None
        self._closed = False

    @classmethod
    async def open(
        cls, proposal_id: str, gateway: PersistenceGateway, **kwargs
    ) -> "LifecycleController":
        """Load a proposal from ``gateway`` and wrap it in a controller."""
        proposal = await gateway.get_proposal(proposal_id)
        return cls(proposal, gateway, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def proposal_id(self) -> str:
        return self.proposal.proposal_id

    @property
    def status(self) -> ProposalStatus:
        return self.proposal.status

    @property
    def is_submitted(self) -> bool:
        return self.proposal.is_submitted

    @property
    def content(self) -> str:
        return self.buffer.content

    @property
    def dirty(self) -> bool:
        return self.buffer.dirty

    @property
    def translation(self) -> Optional[TranslationResult]:
        return self.buffer.translation

    def _ensure_open(self) -> None:
        if self._closed:
            raise ProposalLifecycleError(
                f"Session for proposal {self.proposal_id} is closed", proposal_id=self.proposal_id
            )

    def _ensure_draft(self, operation: str) -> None:
        self._ensure_open()
        if self.proposal.is_submitted:
            raise ImmutableProposalError(
                f"Cannot {operation}: proposal {self.proposal_id} is submitted",
                proposal_id=self.proposal_id,
            )

    def _ensure_editable(self, operation: str) -> None:
        self._ensure_draft(operation)
        if self._in_flight == "submit":
            raise ConcurrentOperationError(
                f"Cannot {operation} while submit is in progress", proposal_id=self.proposal_id
            )

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        if self._in_flight:
            raise ConcurrentOperationError(
                f"Cannot {operation} while {self._in_flight} is in progress",
                proposal_id=self.proposal_id,
            )
        self._in_flight = operation
        try:
            yield
        finally:
            self._in_flight = None

    def _as_lifecycle_error(
        self, error: Exception, fallback: type, message: str
    ) -> ProposalLifecycleError:
        if isinstance(error, ProposalLifecycleError):
            if error.proposal_id is None:
                error.proposal_id = self.proposal_id
            return error
        return fallback(f"{message}: {error}", proposal_id=self.proposal_id, original_error=error)

    # ------------------------------------------------------------------
    # Buffer mutations
    # ------------------------------------------------------------------

    def edit(self, new_content: str) -> None:
        """Replace the buffer content. Nothing is persisted until ``save``."""
        self._ensure_editable("edit")
        self.buffer.replace(new_content)

    def apply_transform_result(self, result: TransformResult) -> None:
        self._ensure_editable("apply AI result")
        if result.task_type not in CONTENT_TASKS:
            raise ValueError(f"{result.task_type.value} results do not produce proposal content")
        self.buffer.replace(result.content)

    async def apply_ai_transform(
        self,
        task_type: Union[TaskType, str],
        user_instruction: Optional[str] = None,
        history: Optional[List[ChatMessage]] = None,
    ) -> TransformResult:
        """
        Rewrite the buffer with an AI content task.

        Args:
            task_type: PROPOSAL_GENERATION or PROPOSAL_IMPROVEMENT
            user_instruction: Optional extra instructions for the model
            history: Prior conversation turns

        Returns:
            The applied TransformResult, including insights

        Raises:
            TransformError: If the AI call fails; the buffer is left untouched
            ImmutableProposalError: If the proposal is (or became) submitted
        """
        task_type = TaskType(task_type)
        if task_type not in CONTENT_TASKS:
            raise ValueError(f"{task_type.value} does not produce proposal content")
        self._ensure_draft("apply AI transform")

        request = TransformRequest(
            task_type=task_type,
            tender=self.tender,
            company=self.company,
            current_content=self.buffer.content,
            user_instruction=user_instruction,
            history=list(history or []),
        )
        result = await self._run_transform(request)

        # The proposal may have been submitted while the request was in flight
        self._ensure_editable("apply AI transform")
        self.buffer.replace(result.content)
        logger.info(f"Applied {task_type.value} to proposal {self.proposal_id}")
        return result

    async def ask_assistant(
        self, message: str, history: Optional[List[ChatMessage]] = None
    ) -> TransformResult:
        """Ask the AI assistant about the tender or proposal. Never mutates the buffer."""
        self._ensure_open()
        if not message or not message.strip():
            raise ValueError("Message must not be empty")
        request = TransformRequest(
            task_type=TaskType.CHAT_ASSISTANCE,
            tender=self.tender,
            company=self.company,
            current_content=self.buffer.content,
            user_instruction=message,
            history=list(history or []),
        )
        return await self._run_transform(request)

    async def _run_transform(self, request: TransformRequest) -> TransformResult:
        if self.transform_adapter is None:
            raise TransformError("No AI transform adapter configured", proposal_id=self.proposal_id)
        try:
            return await self.transform_adapter.run(request)
        except Exception as e:
            error = self._as_lifecycle_error(e, TransformError, "AI transform failed")
            logger.error(f"{request.task_type.value} failed for {self.proposal_id}: {error}")
            if error is e:
                raise
            raise error from e

    async def apply_translation(
        self, target_language: str, source_language: Optional[str] = None
    ) -> TranslationResult:
        """
        Produce a translated rendering of the buffer without changing it.

        The rendering is kept in ``translation`` until adopted or discarded.
        Viewing a translation is allowed after submission.
        """
        self._ensure_open()
        if self.translation_adapter is None:
            raise TransformError("No translation adapter configured", proposal_id=self.proposal_id)
        try:
            result = await self.translation_adapter.translate(
                self.buffer.content, target_language, source_language
            )
        except ValueError:
            raise
        except Exception as e:
            error = self._as_lifecycle_error(e, TransformError, "Translation failed")
            logger.error(f"Translation to {target_language} failed for {self.proposal_id}: {error}")
            if error is e:
                raise
            raise error from e

        self.buffer.translation = result
        return result

    def adopt_translation(self) -> None:
        """Make the pending translation the proposal content."""
        self._ensure_editable("adopt translation")
        if self.buffer.translation is None:
            raise ValueError("No translation to adopt")
        self.buffer.replace(self.buffer.translation.content)
        self.buffer.translation = None

    def discard_translation(self) -> None:
        self.buffer.translation = None

    def discard_changes(self) -> None:
        """Revert the buffer to the last persisted content."""
        self._ensure_open()
        self.buffer.revert()

    async def load_version(self, version: int) -> VersionSnapshot:
        """
        Copy a historical snapshot into the buffer.

        History is not rewritten: saving afterwards appends a new version.
        """
        self._ensure_draft("load version")
        try:
            snapshot = await self.version_store.get(self.proposal_id, version)
        except Exception as e:
            error = self._as_lifecycle_error(e, PersistenceError, "Failed to load version")
            if error is e:
                raise
            raise error from e

        self._ensure_editable("load version")
        self.buffer.replace(snapshot.content)
        logger.info(f"Loaded version {version} of proposal {self.proposal_id} into the buffer")
        return snapshot

    # ------------------------------------------------------------------
    # Commands with external effects
    # ------------------------------------------------------------------

    async def save(self, summary: Optional[str] = None) -> Optional[VersionSnapshot]:
        """
        Persist the buffer and append a version snapshot.

        Args:
            summary: Optional human-readable change summary

        Returns:
            The new snapshot, or None if there was nothing to save

        Raises:
            ConcurrentOperationError: If a save/submit/delete is in flight
            ImmutableProposalError: If the proposal is submitted
            StaleVersionError: If another session saved in the meantime
            PersistenceError: If the write fails
        """
        self._ensure_draft("save")
        async with self._exclusive("save"):
            if not self.buffer.dirty:
                return None
            return await self._save_locked(summary)

    async def _save_locked(self, summary: Optional[str]) -> VersionSnapshot:
        content = self.buffer.content
        self.save_status = SAVE_SAVING
        try:
            expected_version = self.buffer.last_known_persisted_version
            if not self.stale_save_check:
                expected_version = (await self.gateway.get_proposal(self.proposal_id)).version
            proposal, snapshot = await self.version_store.commit(
                self.proposal_id,
                expected_version,
                content,
                summary=summary,
                created_by=self.actor_id,
            )
        except Exception as e:
            error = self._as_lifecycle_error(e, PersistenceError, "Save failed")
            self.save_status = SAVE_ERROR
            self.last_error = error
            logger.error(f"Save failed for proposal {self.proposal_id}: {error}")
            if error is e:
                raise
            raise error from e

        self.proposal = proposal
        self.buffer.mark_persisted(content, snapshot.version)
        self.save_status = SAVE_SAVED
        self.last_error = None
        logger.info(f"Saved proposal {self.proposal_id} as version {snapshot.version}")
        return snapshot

    async def submit(self) -> AttestationReceipt:
        """
        Submit the proposal with an attestation. Irreversible.

        Only persisted content is submitted: pending edits must be saved first.
        On any failure the proposal stays in draft, unchanged, and ``submit``
        may be retried.

        Returns:
            The attestation receipt

        Raises:
            EmptyProposalError: If the content is empty
            UnsavedChangesError: If the buffer holds unsaved edits
            AttestationError: If the attestation service fails
            PersistenceError: If recording the submission fails
        """
        self._ensure_draft("submit")
        async with self._exclusive("submit"):
            if not self.buffer.content.strip():
                raise EmptyProposalError(
                    f"Proposal {self.proposal_id} has no content to submit",
                    proposal_id=self.proposal_id,
                )
            if self.buffer.dirty:
                raise UnsavedChangesError(
                    f"Proposal {self.proposal_id} has unsaved changes; save before submitting",
                    proposal_id=self.proposal_id,
                )

            receipt = await self._attest()
            proposal = await self._record_submission(receipt)

            self.proposal = proposal
            self.last_error = None
            logger.info(
                f"Proposal {self.proposal_id} submitted at version {proposal.version} "
                f"with attestation {receipt.transaction_ref}"
            )
            return receipt

    async def _attest(self) -> AttestationReceipt:
        if self.attestation_service is None:
            raise AttestationError("No attestation service configured", proposal_id=self.proposal_id)
        metadata = {
            "tender_id": self.proposal.tender_id,
            "title": self.proposal.title or self.tender.title,
            "owner_id": self.proposal.owner_id,
            "version": self.proposal.version,
            "content_sha256": hashlib.sha256(self.proposal.content.encode()).hexdigest(),
        }
        try:
            return await self.attestation_service.attest(self.proposal_id, metadata)
        except Exception as e:
            error = self._as_lifecycle_error(e, AttestationError, "Attestation failed")
            self.last_error = error
            logger.error(f"Attestation failed for proposal {self.proposal_id}: {error}")
            if error is e:
                raise
            raise error from e

    async def _record_submission(self, receipt: AttestationReceipt) -> Proposal:
        try:
            return await self.gateway.set_submitted(self.proposal_id, receipt.transaction_ref)
        except ImmutableProposalError as e:
            # An earlier attempt may have recorded this receipt before failing
            current = await self.gateway.get_proposal(self.proposal_id)
            if current.is_submitted and current.attestation_ref == receipt.transaction_ref:
                logger.info(f"Submission of {self.proposal_id} was already recorded")
                return current
            self.last_error = e
            raise
        except Exception as e:
            error = self._as_lifecycle_error(e, PersistenceError, "Failed to record submission")
            self.last_error = error
            logger.error(f"Recording submission failed for {self.proposal_id}: {error}")
            if error is e:
                raise
            raise error from e

    async def delete(self) -> None:
        """Delete the draft proposal and its history. Closes the session."""
        self._ensure_draft("delete")
        async with self._exclusive("delete"):
            try:
                await self.gateway.delete_proposal(self.proposal_id)
            except Exception as e:
                error = self._as_lifecycle_error(e, PersistenceError, "Delete failed")
                self.last_error = error
                if error is e:
                    raise
                raise error from e
            self._closed = True
            logger.info(f"Deleted proposal {self.proposal_id}")

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def list_versions(self, newest_first: bool = True) -> List[VersionSnapshot]:
        try:
            return await self.version_store.list_by_proposal(
                self.proposal_id, newest_first=newest_first
            )
        except Exception as e:
            error = self._as_lifecycle_error(e, PersistenceError, "Failed to list versions")
            if error is e:
                raise
            raise error from e

    async def reload(self, force: bool = False) -> Proposal:
        """Re-read the proposal from storage, replacing the buffer.

        Raises:
            UnsavedChangesError: If the buffer is dirty and ``force`` is False
        """
        self._ensure_open()
        if self._in_flight:
            raise ConcurrentOperationError(
                f"Cannot reload while {self._in_flight} is in progress",
                proposal_id=self.proposal_id,
            )
        if self.buffer.dirty and not force:
            raise UnsavedChangesError(
                f"Proposal {self.proposal_id} has unsaved changes", proposal_id=self.proposal_id
            )
        try:
            proposal = await self.gateway.get_proposal(self.proposal_id)
        except Exception as e:
            error = self._as_lifecycle_error(e, PersistenceError, "Failed to reload proposal")
            if error is e:
                raise
            raise error from e

        self.proposal = proposal
        self.buffer = ContentBuffer.from_persisted(proposal.content, proposal.version)
        self.save_status = SAVE_IDLE
        self.last_error = None
        return proposal

    def close(self, force: bool = False) -> None:
        """End the session, discarding the buffer.

        Raises:
            UnsavedChangesError: If the buffer is dirty and ``force`` is False
        """
        if self._closed:
            return
        if self.buffer.dirty and not force:
            raise UnsavedChangesError(
                f"Proposal {self.proposal_id} has unsaved changes", proposal_id=self.proposal_id
            )
        if self.buffer.dirty:
            logger.warning(f"Discarding unsaved changes to proposal {self.proposal_id}")
        self.buffer.revert()
        self._closed = True

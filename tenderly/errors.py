"""Error taxonomy for the proposal lifecycle engine.

Every failure that reaches a caller of the lifecycle controller is one of the
classes below. Adapters and gateways raise them directly; anything unexpected
from a collaborator is wrapped before it leaves the controller.
"""

from typing import Optional


class ProposalLifecycleError(Exception):
    """Base exception for proposal lifecycle errors."""

    retryable = True

    def __init__(
        self,
        message: str,
        proposal_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.proposal_id = proposal_id
        self.original_error = original_error
        super().__init__(message)


class NotFoundError(ProposalLifecycleError):
    """Raised when a proposal or a version snapshot does not exist."""

    retryable = False

    def __init__(
        self,
        message: str,
        proposal_id: Optional[str] = None,
        version: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.version = version
        super().__init__(message, proposal_id, original_error)


class ImmutableProposalError(ProposalLifecycleError):
    """Raised when a mutation is attempted on a submitted proposal."""

    retryable = False


class TransformError(ProposalLifecycleError):
    """Raised when the AI transform or translation service call fails."""

    pass


class MalformedResponseError(TransformError):
    """Raised when a service response fails structural validation."""

    def __init__(
        self,
        message: str,
        task_type: Optional[str] = None,
        issues: Optional[list] = None,
        proposal_id: Optional[str] = None,
    ):
        self.task_type = task_type
        self.issues = issues or []
        super().__init__(message, proposal_id)


class ContextTooLargeError(TransformError):
    """Raised when a request exceeds the service input limits."""

    def __init__(self, message: str, size: int = 0, limit: int = 0, proposal_id: Optional[str] = None):
        self.size = size
        self.limit = limit
        super().__init__(message, proposal_id)


class PersistenceError(ProposalLifecycleError):
    """Raised when a write to or read from durable storage fails."""

    pass


class StaleVersionError(PersistenceError):
    """Raised when a save is based on a version another session already advanced."""

    retryable = False

    def __init__(
        self,
        message: str,
        proposal_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(message, proposal_id)


class VersionSequenceError(PersistenceError):
    """Raised when a snapshot append would leave a gap or a duplicate in history."""

    retryable = False


class AttestationError(PersistenceError):
    """Raised when the attestation service cannot issue a transaction reference."""

    pass


class ConcurrentOperationError(ProposalLifecycleError):
    """Raised when save/submit is invoked while another one is in flight."""

    pass


class EmptyProposalError(ProposalLifecycleError):
    """Raised when submitting a proposal without content."""

    retryable = False


class UnsavedChangesError(ProposalLifecycleError):
    """Raised when the buffer would be discarded while it holds unsaved edits."""

    retryable = False

from __future__ import annotations

"""
ballot_node/ballot_runtime/errors.py
------------------------------------

Rejection taxonomy for the voting workflow.

Every failure is a well-typed rejection of a single operation. The engine
raises these before touching any state, so a caller that catches one can
assume the workflow is exactly as it was before the call.

Each error carries:
- a stable snake_case `code` (used as the HTTP `detail`)
- an `http_status` hint for the API layer
- an optional ErrorContext for debugging / audit logs
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ErrorContext:
    """
    Optional context object for debugging / audit logs.
    """

    action: str
    reason: str
    detail: Optional[str] = None


class WorkflowError(Exception):
    code: str = "workflow_error"
    http_status: int = 409

    def __init__(self, message: str = "", ctx: Optional[ErrorContext] = None):
        super().__init__(message or self.code)
        self.ctx = ctx


class Unauthorized(WorkflowError):
    """Caller does not hold the role the operation requires."""

    code = "unauthorized"
    http_status = 403


class InvalidPhase(WorkflowError):
    """Operation is not legal in the current workflow phase."""

    code = "invalid_phase"


class InvalidTransition(InvalidPhase):
    """Requested phase is not the immediate successor of the current one."""

    code = "invalid_transition"


class AlreadyRegistered(WorkflowError):
    code = "already_registered"


class NotRegistered(WorkflowError):
    code = "not_registered"


class EmptyDescription(WorkflowError):
    code = "empty_description"
    http_status = 400


class ProposalNotFound(WorkflowError):
    code = "proposal_not_found"
    http_status = 404


class AlreadyVoted(WorkflowError):
    code = "already_voted"


class TallyNotAvailable(WorkflowError):
    code = "tally_not_available"


class NoProposals(WorkflowError):
    """Tally requested with an empty ledger; there is nothing to elect."""

    code = "no_proposals"

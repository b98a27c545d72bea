from __future__ import annotations

"""
Workflow phases and the controller that owns them.

The phase sequence is a single straight line:

    RegisteringVoters
      -> ProposalsRegistrationStarted
      -> ProposalsRegistrationEnded
      -> VotingSessionStarted
      -> VotingSessionEnded
      -> VotesTallied

PhaseController is the only object that ever assigns a new status. Other
components only read it through `require()`.
"""

from enum import Enum
from typing import Optional, Tuple

from .errors import ErrorContext, InvalidPhase, InvalidTransition


class WorkflowStatus(str, Enum):
    REGISTERING_VOTERS = "RegisteringVoters"
    PROPOSALS_REGISTRATION_STARTED = "ProposalsRegistrationStarted"
    PROPOSALS_REGISTRATION_ENDED = "ProposalsRegistrationEnded"
    VOTING_SESSION_STARTED = "VotingSessionStarted"
    VOTING_SESSION_ENDED = "VotingSessionEnded"
    VOTES_TALLIED = "VotesTallied"


PHASE_ORDER: Tuple[WorkflowStatus, ...] = tuple(WorkflowStatus)


def successor(status: WorkflowStatus) -> Optional[WorkflowStatus]:
    """
    Returns the unique next phase, or None for the terminal phase.
    """
    idx = PHASE_ORDER.index(status)
    if idx + 1 >= len(PHASE_ORDER):
        return None
    return PHASE_ORDER[idx + 1]


def is_terminal(status: WorkflowStatus) -> bool:
    return successor(status) is None


class PhaseController:
    def __init__(self, status: WorkflowStatus = WorkflowStatus.REGISTERING_VOTERS) -> None:
        self.status = status

    def require(self, phase: WorkflowStatus, *, action: str) -> None:
        if self.status != phase:
            raise InvalidPhase(
                f"'{action}' requires phase {phase.value}, current phase is {self.status.value}",
                ErrorContext(action=action, reason="wrong_phase", detail=self.status.value),
            )

    def check_advance(self, next_phase: WorkflowStatus) -> None:
        """
        Validates a transition without applying it.
        """
        expected = successor(self.status)
        if expected is None or next_phase != expected:
            raise InvalidTransition(
                f"cannot move from {self.status.value} to {WorkflowStatus(next_phase).value}",
                ErrorContext(
                    action="advance",
                    reason="not_successor",
                    detail=f"expected={expected.value if expected else None}",
                ),
            )

    def advance(self, next_phase: WorkflowStatus) -> WorkflowStatus:
        """
        Moves to `next_phase` and returns the previous phase.
        """
        self.check_advance(next_phase)
        previous = self.status
        self.status = next_phase
        return previous

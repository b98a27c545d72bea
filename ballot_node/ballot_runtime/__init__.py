# ballot_node/ballot_runtime/__init__.py
"""
Ballot runtime: the phase-gated voting workflow engine and its records.

Nothing here depends on FastAPI; the HTTP layer lives in ballot_node.api.
"""

from .engine import VotingEngine, replay_events
from .errors import WorkflowError
from .phases import WorkflowStatus

__all__ = [
    "VotingEngine",
    "WorkflowError",
    "WorkflowStatus",
    "replay_events",
]

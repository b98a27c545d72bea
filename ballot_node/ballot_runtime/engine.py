from __future__ import annotations

"""
Voting workflow engine.

One engine instance is one voting round. It composes:
- PhaseController (the only writer of the workflow status)
- VoterRegistry
- ProposalLedger
- EventLog (audit events, appended only after a mutation commits)

Every public operation runs under the instance lock and follows the same
order: capability check -> phase check -> domain checks -> mutate -> emit.
All checks run before the first write, so a rejected call leaves the
engine untouched and emits nothing.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from .errors import (
    AlreadyVoted,
    ErrorContext,
    InvalidTransition,
    NoProposals,
    TallyNotAvailable,
    WorkflowError,
)
from .events import AuditEvent, EventKind, EventLog, Listener, verify_chain
from .phases import PhaseController, WorkflowStatus
from .proposals import Proposal, ProposalLedger
from .registry import Voter, VoterRegistry
from .roles import Capability, ensure_capability

log = logging.getLogger(__name__)


class VotingEngine:
    def __init__(self, admin_id: str) -> None:
        if not admin_id:
            raise ValueError("admin_id is required")
        self.admin_id = str(admin_id)
        self._lock = threading.RLock()
        self.phases = PhaseController()
        self.registry = VoterRegistry()
        self.ledger = ProposalLedger()
        self.event_log = EventLog()
        self._winning_proposal_id: Optional[int] = None

        # Genesis: the administrator is the first admitted voter.
        self.registry.admit(self.admin_id)
        self.event_log.append(EventKind.VOTER_REGISTERED, identity=self.admin_id, genesis=True)

    # ------------------------
    # Internals
    # ------------------------
    @contextmanager
    def _operation(self, action: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except WorkflowError as e:
                log.debug("rejected %s: %s (%s)", action, e.code, e)
                raise

    def _require(self, caller: str, capability: Capability) -> None:
        ensure_capability(caller, capability, admin_id=self.admin_id, registry=self.registry)

    def _set_phase(self, target: WorkflowStatus, **extra: Any) -> None:
        previous = self.phases.advance(target)
        self.event_log.append(
            EventKind.PHASE_CHANGED, previous=previous.value, next=target.value, **extra
        )
        log.info("phase %s -> %s", previous.value, target.value)

    def _tally_locked(self) -> int:
        winner = self.ledger.leading_id()
        if winner is None:
            raise NoProposals(
                "cannot tally an empty proposal ledger",
                ErrorContext(action="tally", reason="no_proposals"),
            )
        self._winning_proposal_id = winner
        self._set_phase(WorkflowStatus.VOTES_TALLIED, winning_proposal_id=winner)
        log.info("tallied: winning proposal %d", winner)
        return winner

    # ------------------------
    # Observers
    # ------------------------
    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self.event_log.subscribe(listener)

    def events(self) -> List[AuditEvent]:
        with self._lock:
            return self.event_log.events()

    # ------------------------
    # Phase controller
    # ------------------------
    def current_phase(self) -> WorkflowStatus:
        with self._lock:
            return self.phases.status

    def advance(self, caller: str, next_phase: WorkflowStatus | str) -> WorkflowStatus:
        with self._operation("advance"):
            self._require(caller, Capability.ADVANCE_PHASE)
            try:
                target = WorkflowStatus(next_phase)
            except ValueError:
                raise InvalidTransition(
                    f"unknown phase {next_phase!r}",
                    ErrorContext(action="advance", reason="unknown_phase", detail=str(next_phase)),
                ) from None
            self.phases.check_advance(target)
            if target == WorkflowStatus.VOTES_TALLIED:
                self._tally_locked()
            else:
                self._set_phase(target)
            return self.phases.status

    def start_proposals(self, caller: str) -> WorkflowStatus:
        return self.advance(caller, WorkflowStatus.PROPOSALS_REGISTRATION_STARTED)

    def stop_proposals(self, caller: str) -> WorkflowStatus:
        return self.advance(caller, WorkflowStatus.PROPOSALS_REGISTRATION_ENDED)

    def start_voting(self, caller: str) -> WorkflowStatus:
        return self.advance(caller, WorkflowStatus.VOTING_SESSION_STARTED)

    def stop_voting(self, caller: str) -> WorkflowStatus:
        return self.advance(caller, WorkflowStatus.VOTING_SESSION_ENDED)

    # ------------------------
    # Registry
    # ------------------------
    def admit(self, caller: str, identity: str) -> None:
        with self._operation("admit"):
            self._require(caller, Capability.ADMIT_VOTER)
            self.phases.require(WorkflowStatus.REGISTERING_VOTERS, action="admit")
            self.registry.admit(identity)
            self.event_log.append(EventKind.VOTER_REGISTERED, identity=identity)
            log.info("voter admitted: %s", identity)

    def admit_many(self, caller: str, identities: Iterable[str]) -> List[str]:
        """
        Bulk admission. Identities that are already admitted, or repeated
        within the batch, are skipped rather than rejected.
        """
        with self._operation("admit_many"):
            self._require(caller, Capability.ADMIT_VOTER)
            self.phases.require(WorkflowStatus.REGISTERING_VOTERS, action="admit_many")
            admitted: List[str] = []
            for identity in identities:
                if self.registry.is_registered(identity):
                    continue
                self.registry.admit(identity)
                self.event_log.append(EventKind.VOTER_REGISTERED, identity=identity)
                admitted.append(identity)
            log.info("bulk admission: %d new voter(s)", len(admitted))
            return admitted

    def revoke(self, caller: str, identity: str) -> None:
        with self._operation("revoke"):
            self._require(caller, Capability.REVOKE_VOTER)
            self.phases.require(WorkflowStatus.REGISTERING_VOTERS, action="revoke")
            self.registry.revoke(identity)
            self.event_log.append(EventKind.VOTER_REVOKED, identity=identity)
            log.info("voter revoked: %s", identity)

    def get_voter(self, caller: str, identity: str) -> Voter:
        with self._operation("get_voter"):
            self._require(caller, Capability.VIEW_VOTERS)
            return self.registry.get(identity)

    # ------------------------
    # Proposal ledger
    # ------------------------
    def submit_proposal(self, caller: str, description: str) -> int:
        with self._operation("submit_proposal"):
            self._require(caller, Capability.SUBMIT_PROPOSAL)
            self.phases.require(WorkflowStatus.PROPOSALS_REGISTRATION_STARTED, action="submit_proposal")
            pid = self.ledger.submit(description)
            self.event_log.append(
                EventKind.PROPOSAL_REGISTERED, id=pid, submitter=caller, description=description
            )
            log.info("proposal #%d registered by %s", pid, caller)
            return pid

    def get_proposal(self, caller: str, proposal_id: int) -> Proposal:
        with self._operation("get_proposal"):
            self._require(caller, Capability.VIEW_PROPOSALS)
            return self.ledger.get(proposal_id)

    def list_proposals(self, caller: str) -> List[Proposal]:
        with self._operation("list_proposals"):
            self._require(caller, Capability.VIEW_PROPOSALS)
            return self.ledger.list()

    # ------------------------
    # Voting & tally
    # ------------------------
    def vote(self, caller: str, proposal_id: int) -> None:
        with self._operation("vote"):
            self._require(caller, Capability.CAST_VOTE)
            self.phases.require(WorkflowStatus.VOTING_SESSION_STARTED, action="vote")
            if self.registry.get(caller).has_voted:
                raise AlreadyVoted(
                    f"{caller} has already voted",
                    ErrorContext(action="vote", reason="already_voted", detail=caller),
                )
            self.ledger.check_exists(proposal_id)

            self.registry.mark_voted(caller, proposal_id)
            self.ledger.cast_vote(proposal_id)
            self.event_log.append(EventKind.VOTED, voter=caller, proposal_id=proposal_id)
            log.info("%s voted for proposal #%d", caller, proposal_id)

    def tally(self, caller: str) -> int:
        with self._operation("tally"):
            self._require(caller, Capability.TALLY_VOTES)
            self.phases.require(WorkflowStatus.VOTING_SESSION_ENDED, action="tally")
            return self._tally_locked()

    def winning_proposal_id(self) -> int:
        with self._operation("winning_proposal_id"):
            if self.phases.status != WorkflowStatus.VOTES_TALLIED or self._winning_proposal_id is None:
                raise TallyNotAvailable(
                    "votes have not been tallied yet",
                    ErrorContext(action="winning_proposal_id", reason="not_tallied", detail=self.phases.status.value),
                )
            return self._winning_proposal_id

    def winner(self) -> Proposal:
        with self._lock:
            return self.ledger.get(self.winning_proposal_id())

    # ------------------------
    # Introspection
    # ------------------------
    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "admin_id": self.admin_id,
                "phase": self.phases.status.value,
                "voters": self.registry.to_dict(),
                "proposals": self.ledger.to_list(),
                "winning_proposal_id": self._winning_proposal_id,
            }


# ------------------------------------------------------------------------------
# Replay
# ------------------------------------------------------------------------------


def _apply_event(engine: VotingEngine, ev: AuditEvent) -> None:
    data = ev.data
    admin = engine.admin_id

    if ev.kind == EventKind.VOTER_REGISTERED:
        engine.admit(admin, data["identity"])
    elif ev.kind == EventKind.VOTER_REVOKED:
        engine.revoke(admin, data["identity"])
    elif ev.kind == EventKind.PROPOSAL_REGISTERED:
        pid = engine.submit_proposal(data["submitter"], data["description"])
        if pid != data["id"]:
            raise ValueError(f"event #{ev.seq}: proposal id {data['id']} replayed as {pid}")
    elif ev.kind == EventKind.VOTED:
        engine.vote(data["voter"], data["proposal_id"])
    elif ev.kind == EventKind.PHASE_CHANGED:
        engine.advance(admin, data["next"])
    else:
        raise ValueError(f"event #{ev.seq}: unknown kind {ev.kind!r}")


def replay_events(events: Sequence[AuditEvent], *, verify: bool = True) -> VotingEngine:
    """
    Rebuilds an engine by re-issuing every logged operation with its original
    caller, so every guard runs again. The administrator comes from the
    genesis event. On success the rebuilt engine adopts the original events
    (timestamps and hashes included), so its log continues the same chain.
    """
    events = list(events)
    if not events:
        raise ValueError("cannot replay an empty event log")
    if verify and not verify_chain(events):
        raise ValueError("event log hash chain does not verify")

    genesis = events[0]
    if genesis.kind != EventKind.VOTER_REGISTERED or not genesis.data.get("genesis"):
        raise ValueError("event log does not start with a genesis registration")

    engine = VotingEngine(genesis.data["identity"])
    for ev in events[1:]:
        _apply_event(engine, ev)

    replayed = [(e.kind, e.data) for e in engine.event_log.events()]
    original = [(e.kind, e.data) for e in events]
    if replayed != original:
        raise ValueError("replayed events diverge from the original log")

    engine.event_log = EventLog.restore(events)
    log.info("replayed %d event(s); phase=%s", len(events), engine.current_phase().value)
    return engine

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from ballot_node.ballot_runtime.engine import VotingEngine
from ballot_node.ballot_runtime.errors import WorkflowError
from ballot_node.ballot_runtime.events import verify_chain
from ballot_node.ballot_runtime.phases import WorkflowStatus
from ballot_node.ballot_runtime.proposals import Proposal
from ballot_node.security.current_user import require_caller_id

router = APIRouter(prefix="/workflow", tags=["workflow"])

T = TypeVar("T")


# ============================================================
# Models
# ============================================================


def _normalize_identity(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("identity_required")
    return value


class VoterAdmit(BaseModel):
    identity: str

    @field_validator("identity")
    @classmethod
    def _strip_identity(cls, v: str) -> str:
        return _normalize_identity(v)


class VoterBulkAdmit(BaseModel):
    identities: List[str] = Field(default_factory=list)

    @field_validator("identities")
    @classmethod
    def _strip_identities(cls, v: List[str]) -> List[str]:
        return [i.strip() for i in v if i and i.strip()]


class PhaseAdvance(BaseModel):
    next: WorkflowStatus


class ProposalCreate(BaseModel):
    description: str


class VoteRequest(BaseModel):
    proposal_id: int


class VoterOut(BaseModel):
    identity: str
    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: Optional[int] = None


class ProposalOut(BaseModel):
    id: int
    description: str
    vote_count: int = 0


# ============================================================
# Helpers
# ============================================================


def get_engine(request: Request) -> VotingEngine:
    return request.app.state.engine


def _run(fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except WorkflowError as e:
        raise HTTPException(status_code=e.http_status, detail=e.code) from e


def _path_identity(raw: str) -> str:
    try:
        return _normalize_identity(raw)
    except ValueError:
        raise HTTPException(status_code=422, detail="identity_required") from None


def _proposal_out(pid: int, p: Proposal) -> ProposalOut:
    return ProposalOut(id=pid, description=p.description, vote_count=p.vote_count)


def _phase(engine: VotingEngine) -> Dict[str, Any]:
    return {"ok": True, "phase": engine.current_phase().value}


# ============================================================
# Phase controller
# ============================================================


@router.get("/phase")
def current_phase(engine: VotingEngine = Depends(get_engine)):
    return _phase(engine)


@router.post("/phase/advance")
def advance_phase(
    payload: PhaseAdvance,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    _run(engine.advance, caller, payload.next)
    return _phase(engine)


@router.post("/proposals/start")
def start_proposals(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    _run(engine.start_proposals, caller)
    return _phase(engine)


@router.post("/proposals/stop")
def stop_proposals(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    _run(engine.stop_proposals, caller)
    return _phase(engine)


@router.post("/voting/start")
def start_voting(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    _run(engine.start_voting, caller)
    return _phase(engine)


@router.post("/voting/stop")
def stop_voting(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    _run(engine.stop_voting, caller)
    return _phase(engine)


# ============================================================
# Registry
# ============================================================


@router.post("/voters")
def admit_voter(
    payload: VoterAdmit,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    _run(engine.admit, caller, payload.identity)
    return {"ok": True, "identity": payload.identity}


@router.post("/voters/bulk")
def admit_voters(
    payload: VoterBulkAdmit,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    admitted = _run(engine.admit_many, caller, payload.identities)
    return {"ok": True, "admitted": admitted}


@router.delete("/voters/{identity}")
def revoke_voter(
    identity: str,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    identity = _path_identity(identity)
    _run(engine.revoke, caller, identity)
    return {"ok": True, "identity": identity}


@router.get("/voters/{identity}")
def get_voter(
    identity: str,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    identity = _path_identity(identity)
    v = _run(engine.get_voter, caller, identity)
    return {"ok": True, "voter": VoterOut(identity=identity, **v.to_dict())}


# ============================================================
# Proposal ledger
# ============================================================


@router.post("/proposals")
def submit_proposal(
    payload: ProposalCreate,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    pid = _run(engine.submit_proposal, caller, payload.description)
    return {"ok": True, "id": pid}


@router.get("/proposals")
def list_proposals(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    proposals = _run(engine.list_proposals, caller)
    return {"ok": True, "proposals": [_proposal_out(i, p) for i, p in enumerate(proposals)]}


@router.get("/proposals/{proposal_id}")
def get_proposal(
    proposal_id: int,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    p = _run(engine.get_proposal, caller, proposal_id)
    return {"ok": True, "proposal": _proposal_out(proposal_id, p)}


# ============================================================
# Voting & tally
# ============================================================


@router.post("/votes")
def cast_vote(
    payload: VoteRequest,
    caller: str = Depends(require_caller_id),
    engine: VotingEngine = Depends(get_engine),
):
    _run(engine.vote, caller, payload.proposal_id)
    return {"ok": True, "voter": caller, "proposal_id": payload.proposal_id}


@router.post("/tally")
def tally(caller: str = Depends(require_caller_id), engine: VotingEngine = Depends(get_engine)):
    winner = _run(engine.tally, caller)
    return {"ok": True, "winning_proposal_id": winner, "phase": engine.current_phase().value}


@router.get("/winner")
def winner(engine: VotingEngine = Depends(get_engine)):
    pid = _run(engine.winning_proposal_id)
    p = _run(engine.winner)
    return {"ok": True, "winning_proposal_id": pid, "proposal": _proposal_out(pid, p)}


@router.get("/events")
def list_events(engine: VotingEngine = Depends(get_engine)):
    events = engine.events()
    return {"ok": True, "verified": verify_chain(events), "events": [e.to_dict() for e in events]}

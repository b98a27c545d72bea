from __future__ import annotations

"""
Append-only proposal ledger.

A proposal's id is its position in the list. Ids are assigned at insertion,
never reused and never reordered, so an id stays a valid reference for the
whole round.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .errors import EmptyDescription, ErrorContext, ProposalNotFound


@dataclass
class Proposal:
    description: str
    vote_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProposalLedger:
    def __init__(self) -> None:
        self._proposals: List[Proposal] = []

    def __len__(self) -> int:
        return len(self._proposals)

    def _index(self, proposal_id: int, *, action: str) -> int:
        if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
            raise ProposalNotFound(
                f"proposal id must be an integer, got {proposal_id!r}",
                ErrorContext(action=action, reason="bad_id", detail=repr(proposal_id)),
            )
        if not 0 <= proposal_id < len(self._proposals):
            raise ProposalNotFound(
                f"proposal {proposal_id} not found",
                ErrorContext(action=action, reason="out_of_range", detail=f"len={len(self._proposals)}"),
            )
        return proposal_id

    def check_description(self, description: str) -> None:
        if description == "":
            raise EmptyDescription(
                "proposal description must not be empty",
                ErrorContext(action="submit_proposal", reason="empty_description"),
            )

    def submit(self, description: str) -> int:
        self.check_description(description)
        self._proposals.append(Proposal(description=description))
        return len(self._proposals) - 1

    def get(self, proposal_id: int) -> Proposal:
        p = self._proposals[self._index(proposal_id, action="get_proposal")]
        return Proposal(**p.to_dict())

    def list(self) -> List[Proposal]:
        return [Proposal(**p.to_dict()) for p in self._proposals]

    def check_exists(self, proposal_id: int) -> None:
        self._index(proposal_id, action="vote")

    def cast_vote(self, proposal_id: int) -> int:
        p = self._proposals[self._index(proposal_id, action="vote")]
        p.vote_count += 1
        return p.vote_count

    def total_votes(self) -> int:
        return sum(p.vote_count for p in self._proposals)

    def leading_id(self) -> Optional[int]:
        """
        Lowest index holding the strictly greatest vote count. A later
        proposal with an equal count never displaces an earlier leader.
        Returns None for an empty ledger.
        """
        if not self._proposals:
            return None
        best = 0
        for i in range(1, len(self._proposals)):
            if self._proposals[i].vote_count > self._proposals[best].vote_count:
                best = i
        return best

    def to_list(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self._proposals]

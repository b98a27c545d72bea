from __future__ import annotations

"""
Voter registry.

Holds one Voter record per identity that was ever admitted. Records are
never deleted: revocation only clears `is_registered`. Identities that were
never admitted read back as the default (all false) record.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .errors import AlreadyRegistered, ErrorContext, NotRegistered


@dataclass
class Voter:
    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class VoterRegistry:
    def __init__(self) -> None:
        self._voters: Dict[str, Voter] = {}

    def is_registered(self, identity: str) -> bool:
        v = self._voters.get(identity)
        return bool(v and v.is_registered)

    def get(self, identity: str) -> Voter:
        """
        Returns a copy, so callers cannot mutate the registry through it.
        """
        v = self._voters.get(identity)
        if v is None:
            return Voter()
        return Voter(**v.to_dict())

    def admit(self, identity: str) -> None:
        if self.is_registered(identity):
            raise AlreadyRegistered(
                f"{identity} is already registered",
                ErrorContext(action="admit", reason="already_registered", detail=identity),
            )
        self._voters.setdefault(identity, Voter()).is_registered = True

    def revoke(self, identity: str) -> None:
        if not self.is_registered(identity):
            raise NotRegistered(
                f"{identity} is not registered",
                ErrorContext(action="revoke", reason="not_registered", detail=identity),
            )
        self._voters[identity].is_registered = False

    def mark_voted(self, identity: str, proposal_id: int) -> None:
        v = self._voters[identity]
        v.has_voted = True
        v.voted_proposal_id = proposal_id

    def voted_count(self) -> int:
        return sum(1 for v in self._voters.values() if v.has_voted)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {i: v.to_dict() for i, v in sorted(self._voters.items())}

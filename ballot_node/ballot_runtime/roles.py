from __future__ import annotations

"""
Roles & capability gate.

Authorization is a predicate evaluated at the top of every engine operation:
the caller's roles are derived from (caller, administrator, registry) and the
operation's capability must be in the union of those roles' capabilities.

Read-only accessors (current phase, result, audit log) are open to anyone
and take no capability.

- VOTER: any identity currently admitted to the registry
- ADMIN: the identity the engine was constructed with

The administrator is pre-admitted at genesis, so it normally holds VOTER too.
Revoking the administrator's admission removes VOTER but never ADMIN.
"""

from enum import Enum
from typing import Dict, FrozenSet, Set

from .errors import ErrorContext, Unauthorized
from .registry import VoterRegistry


class Role(str, Enum):
    VOTER = "voter"
    ADMIN = "admin"


class Capability(str, Enum):
    # Participant
    VIEW_VOTERS = "view_voters"
    VIEW_PROPOSALS = "view_proposals"
    SUBMIT_PROPOSAL = "submit_proposal"
    CAST_VOTE = "cast_vote"

    # Administrator
    ADMIT_VOTER = "admit_voter"
    REVOKE_VOTER = "revoke_voter"
    ADVANCE_PHASE = "advance_phase"
    TALLY_VOTES = "tally_votes"


CAPABILITY_MATRIX: Dict[Role, FrozenSet[Capability]] = {
    Role.VOTER: frozenset(
        {
            Capability.VIEW_VOTERS,
            Capability.VIEW_PROPOSALS,
            Capability.SUBMIT_PROPOSAL,
            Capability.CAST_VOTE,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Capability.ADMIT_VOTER,
            Capability.REVOKE_VOTER,
            Capability.ADVANCE_PHASE,
            Capability.TALLY_VOTES,
        }
    ),
}


def roles_for(caller: str, *, admin_id: str, registry: VoterRegistry) -> Set[Role]:
    roles: Set[Role] = set()
    if caller and registry.is_registered(caller):
        roles.add(Role.VOTER)
    if caller and caller == admin_id:
        roles.add(Role.ADMIN)
    return roles


def capabilities_for(caller: str, *, admin_id: str, registry: VoterRegistry) -> Set[Capability]:
    caps: Set[Capability] = set()
    for role in roles_for(caller, admin_id=admin_id, registry=registry):
        caps |= CAPABILITY_MATRIX[role]
    return caps


def ensure_capability(
    caller: str,
    capability: Capability,
    *,
    admin_id: str,
    registry: VoterRegistry,
) -> None:
    if capability not in capabilities_for(caller, admin_id=admin_id, registry=registry):
        raise Unauthorized(
            f"'{caller}' may not {capability.value}",
            ErrorContext(action=capability.value, reason="missing_capability", detail=caller),
        )

from __future__ import annotations

"""
Audit events + hash-chained event log.

Provides:
- canonical_json_bytes(obj) -> stable serialization for hashing
- sha256_hex(bytes)
- AuditEvent: one notification emitted after a successful mutation
- EventLog: append-only list with observers and a SHA-256 hash chain

Each event hashes (seq, kind, data, ts, prev_hash), so any edit, drop or
reorder of a logged event breaks `EventLog.verify()`.
"""

import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List

log = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


class EventKind(str, Enum):
    VOTER_REGISTERED = "VoterRegistered"
    VOTER_REVOKED = "VoterRevoked"
    PHASE_CHANGED = "PhaseChanged"
    PROPOSAL_REGISTERED = "ProposalRegistered"
    VOTED = "Voted"


def canonical_json_bytes(obj: Any) -> bytes:
    # Canonical JSON for hashing: stable sort + compact separators
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class AuditEvent:
    seq: int
    kind: EventKind
    data: Dict[str, Any] = field(default_factory=dict)
    ts: float = 0.0
    prev_hash: str = GENESIS_HASH
    hash: str = ""

    def body(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": EventKind(self.kind).value,
            "data": self.data,
            "ts": self.ts,
            "prev_hash": self.prev_hash,
        }

    def compute_hash(self) -> str:
        return sha256_hex(canonical_json_bytes(self.body()))

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["kind"] = EventKind(self.kind).value
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AuditEvent":
        return cls(
            seq=int(raw["seq"]),
            kind=EventKind(raw["kind"]),
            data=dict(raw.get("data", {})),
            ts=float(raw.get("ts", 0.0)),
            prev_hash=str(raw.get("prev_hash", GENESIS_HASH)),
            hash=str(raw.get("hash", "")),
        )


Listener = Callable[[AuditEvent], None]


class EventLog:
    def __init__(self) -> None:
        self._events: List[AuditEvent] = []
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self._events)

    @classmethod
    def restore(cls, events: Iterable[AuditEvent]) -> "EventLog":
        out = cls()
        out._events = list(events)
        return out

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def head(self) -> str:
        return self._events[-1].hash if self._events else GENESIS_HASH

    def append(self, kind: EventKind, **data: Any) -> AuditEvent:
        unsigned = AuditEvent(
            seq=len(self._events),
            kind=kind,
            data=data,
            ts=time.time(),
            prev_hash=self.head,
        )
        ev = replace(unsigned, hash=unsigned.compute_hash())
        self._events.append(ev)
        log.debug("event #%d %s %s", ev.seq, ev.kind.value, data)
        for listener in list(self._listeners):
            listener(ev)
        return ev

    def events(self) -> List[AuditEvent]:
        return list(self._events)

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def verify(self) -> bool:
        return verify_chain(self._events)


def verify_chain(events: Iterable[AuditEvent]) -> bool:
    prev = GENESIS_HASH
    for i, ev in enumerate(events):
        if ev.seq != i or ev.prev_hash != prev or ev.hash != ev.compute_hash():
            return False
        prev = ev.hash
    return True

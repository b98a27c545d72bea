from __future__ import annotations

"""
Event log persistence.

The engine itself keeps no files. This store is the durable record keeper:
it writes the full audit log as one JSON document after every event, and
resumes a round by replaying that log.

Writes are atomic (temp file + fsync + os.replace) and the previous
snapshot is kept as `<name>.bak1`, so a crash mid-save leaves either the old
or the new log on disk. Loading tries the primary file, then the backup.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .engine import VotingEngine, replay_events
from .errors import WorkflowError
from .events import AuditEvent, canonical_json_bytes

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

FORMAT_VERSION = 1


def _fsync_dir(dir_path: Path) -> None:
    try:
        fd = os.open(str(dir_path), os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp_path), str(path))
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        obj = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        log.warning("unreadable event log %s: %s", path, e)
        return None
    return obj if isinstance(obj, dict) else None


class EventLogStore:
    def __init__(self, path: PathLike = "ballot_events.json") -> None:
        self.path = Path(path)

    @property
    def backup_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".bak1")

    def exists(self) -> bool:
        return self.path.exists()

    def _read_events(self, p: Path) -> Optional[List[AuditEvent]]:
        doc = read_json(p)
        if doc is None:
            return None
        try:
            return [AuditEvent.from_dict(raw) for raw in doc.get("events", [])]
        except (KeyError, TypeError, ValueError) as e:
            log.warning("malformed event in %s: %s", p, e)
            return None

    def candidates(self) -> List[Tuple[Path, List[AuditEvent]]]:
        """
        Every readable, non-empty log on disk: primary first, then backup.
        """
        out = []
        for p in (self.path, self.backup_path):
            events = self._read_events(p)
            if events:
                out.append((p, events))
        return out

    def load(self) -> List[AuditEvent]:
        found = self.candidates()
        return found[0][1] if found else []

    def save(self, events: List[AuditEvent]) -> None:
        doc = {"version": FORMAT_VERSION, "events": [e.to_dict() for e in events]}
        if self.path.exists():
            os.replace(str(self.path), str(self.backup_path))
        atomic_write_bytes(self.path, canonical_json_bytes(doc))

    def attach(self, engine: VotingEngine) -> None:
        """
        Persists the engine's whole log after every new event. The event is
        already committed in memory when this runs, so a failed write is
        logged and the operation still stands.
        """

        def _persist(_ev: AuditEvent) -> None:
            try:
                self.save(engine.events())
            except OSError as e:
                log.warning("could not persist event log to %s: %s", self.path, e)

        engine.subscribe(_persist)


def open_engine(admin_id: str, store: EventLogStore) -> VotingEngine:
    """
    Resumes the round stored in `store`, or starts a fresh one.
    The stored round must belong to `admin_id`.

    A primary log that reads but does not replay (broken chain, diverging
    operations) falls back to the backup. If logs exist and none replays,
    ValueError is raised rather than starting over on top of them.
    """
    found = store.candidates()
    engine: Optional[VotingEngine] = None
    for path, events in found:
        try:
            engine = replay_events(events)
        except (ValueError, WorkflowError) as e:
            log.warning("cannot replay %s: %s", path, e)
            continue
        log.info("resumed round from %s (%d events)", path, len(events))
        break

    if engine is None:
        if found:
            raise ValueError(f"no replayable event log at {store.path}")
        engine = VotingEngine(admin_id)
        log.info("started a new round for administrator %s", admin_id)
    elif engine.admin_id != admin_id:
        raise ValueError(
            f"stored round belongs to administrator {engine.admin_id!r}, not {admin_id!r}"
        )

    store.attach(engine)
    return engine

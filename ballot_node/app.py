from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI

from ballot_node.api import workflow
from ballot_node.ballot_runtime.engine import VotingEngine
from ballot_node.ballot_runtime.store import EventLogStore, open_engine
from ballot_node.config import get_admin_id, get_event_log_path, load_config

log = logging.getLogger(__name__)


def build_engine(cfg: Dict[str, Any]) -> VotingEngine:
    admin_id = get_admin_id(cfg)
    path = get_event_log_path(cfg)
    if not path:
        log.info("event log persistence disabled; round is in-memory only")
        return VotingEngine(admin_id)
    return open_engine(admin_id, EventLogStore(path))


def create_app(cfg: Optional[Dict[str, Any]] = None, engine: Optional[VotingEngine] = None) -> FastAPI:
    if cfg is None:
        cfg = load_config(os.getcwd())

    app = FastAPI(title="Ballot Node API", version="0.1.0")
    app.state.config = cfg
    app.state.engine = engine if engine is not None else build_engine(cfg)

    app.include_router(workflow.router)

    @app.get("/health")
    def health():
        return {"ok": True, "phase": app.state.engine.current_phase().value}

    return app

# ballot_node/__main__.py
"""
Entry point for running a Ballot Node as a module:
    python -m ballot_node [--host 127.0.0.1] [--port 8000] [--admin alice]
                          [--event-log ./ballot_events.json] [--config-root .]
Env toggles:
  BALLOT_ADMIN_ID=...   -> administrator identity for a new round
  BALLOT_EVENT_LOG=...  -> event log path ("" keeps the round in memory)
  BALLOT_LOG_LEVEL=...  -> DEBUG / INFO / WARNING
"""

from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from .app import create_app
from .config import get_bind_host, get_bind_port, get_log_level, load_config


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="ballot-node",
        description="Run a phase-gated voting workflow over HTTP",
    )
    p.add_argument(
        "--config-root",
        default=os.getcwd(),
        help="Directory holding ballot_config.yaml (default: cwd)",
    )
    p.add_argument("--host", default=None, help="Bind address (overrides config)")
    p.add_argument("--port", type=int, default=None, help="Bind port (overrides config)")
    p.add_argument("--admin", default=None, help="Administrator identity (overrides config)")
    p.add_argument(
        "--event-log",
        default=None,
        help="Event log JSON path; pass an empty string to disable persistence",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    cfg = load_config(args.config_root)

    if args.admin:
        cfg["workflow"]["admin_id"] = args.admin
    if args.event_log is not None:
        cfg["persistence"]["event_log_path"] = args.event_log

    logging.basicConfig(
        level=get_log_level(cfg),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(cfg)
    uvicorn.run(
        app,
        host=args.host if args.host is not None else get_bind_host(cfg),
        port=args.port if args.port is not None else get_bind_port(cfg),
        log_level=get_log_level(cfg).lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

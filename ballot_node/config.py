# ballot_node/config.py
import copy
import logging
import os
from typing import Any, Dict

import yaml

log = logging.getLogger(__name__)

CONFIG_FILENAME = "ballot_config.yaml"

# -------- Defaults (non-secret) --------
_DEFAULT: Dict[str, Any] = {
    "workflow": {
        # identity that constructs the round; pre-admitted as the first voter
        "admin_id": "admin",
    },
    "persistence": {
        # empty -> in-memory only
        "event_log_path": "ballot_events.json",
    },
    "logging": {"level": "INFO"},
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },
}

# -------- ENV overrides --------
_ENV_MAP = {
    ("workflow", "admin_id"): ("BALLOT_ADMIN_ID", str),
    ("persistence", "event_log_path"): ("BALLOT_EVENT_LOG", str),
    ("logging", "level"): ("BALLOT_LOG_LEVEL", str),
    ("server", "host"): ("BALLOT_HOST", str),
    ("server", "port"): ("BALLOT_PORT", int),
}


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError:
            log.warning("ignoring %s=%r: expected %s", env_name, val, cast.__name__)
            continue
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def load_config(repo_root: str) -> Dict[str, Any]:
    """
    Loads the YAML config from repo_root/ballot_config.yaml.
    Returns defaults if the file doesn't exist or can't be parsed.
    ENV overrides are applied last.
    """
    path = os.path.join(repo_root, CONFIG_FILENAME)
    cfg = copy.deepcopy(_DEFAULT)

    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if isinstance(data, dict):
                cfg = _deep_merge(cfg, data)
            else:
                log.warning("%s is not a mapping; using defaults", path)
        except (OSError, yaml.YAMLError) as e:
            log.warning("could not read %s (%s); using defaults", path, e)

    return _apply_env_overrides(cfg)


# -------- Small helpers used by the app --------
def get_admin_id(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("workflow", {}).get("admin_id") or "admin")


def get_event_log_path(cfg: Dict[str, Any]) -> str:
    """
    Empty string means "do not persist".
    """
    return str(cfg.get("persistence", {}).get("event_log_path") or "")


def get_log_level(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("logging", {}).get("level", "INFO")).upper()


def get_bind_host(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("server", {}).get("host", "127.0.0.1"))


def get_bind_port(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("server", {}).get("port", 8000))

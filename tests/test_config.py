# tests/test_config.py
from __future__ import annotations

from ballot_node.config import (
    get_admin_id,
    get_bind_host,
    get_bind_port,
    get_event_log_path,
    get_log_level,
    load_config,
)


def _clear_env(monkeypatch):
    for name in ("BALLOT_ADMIN_ID", "BALLOT_EVENT_LOG", "BALLOT_LOG_LEVEL", "BALLOT_HOST", "BALLOT_PORT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    cfg = load_config(str(tmp_path))
    assert get_admin_id(cfg) == "admin"
    assert get_event_log_path(cfg) == "ballot_events.json"
    assert get_log_level(cfg) == "INFO"
    assert get_bind_host(cfg) == "127.0.0.1"
    assert get_bind_port(cfg) == 8000


def test_yaml_is_merged_over_defaults(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    (tmp_path / "ballot_config.yaml").write_text(
        "workflow:\n  admin_id: '@chair'\nserver:\n  port: 9001\n",
        encoding="utf-8",
    )
    cfg = load_config(str(tmp_path))
    assert get_admin_id(cfg) == "@chair"
    assert get_bind_port(cfg) == 9001
    # untouched keys keep their defaults
    assert get_bind_host(cfg) == "127.0.0.1"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    (tmp_path / "ballot_config.yaml").write_text("workflow:\n  admin_id: '@chair'\n", encoding="utf-8")
    monkeypatch.setenv("BALLOT_ADMIN_ID", "@env-admin")
    monkeypatch.setenv("BALLOT_PORT", "7000")
    monkeypatch.setenv("BALLOT_LOG_LEVEL", "debug")
    monkeypatch.setenv("BALLOT_EVENT_LOG", "")

    cfg = load_config(str(tmp_path))
    assert get_admin_id(cfg) == "@env-admin"
    assert get_bind_port(cfg) == 7000
    assert get_log_level(cfg) == "DEBUG"
    assert get_event_log_path(cfg) == ""


def test_bad_env_value_is_ignored(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BALLOT_PORT", "not-a-port")
    cfg = load_config(str(tmp_path))
    assert get_bind_port(cfg) == 8000


def test_broken_yaml_falls_back_to_defaults(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    (tmp_path / "ballot_config.yaml").write_text("workflow: [unclosed", encoding="utf-8")
    cfg = load_config(str(tmp_path))
    assert get_admin_id(cfg) == "admin"


def test_defaults_are_not_mutated(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    cfg = load_config(str(tmp_path))
    cfg["workflow"]["admin_id"] = "@changed"
    assert get_admin_id(load_config(str(tmp_path))) == "admin"

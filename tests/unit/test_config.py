"""Tests for VeilBoxConfig defaults and environment overrides."""

from __future__ import annotations

import inspect
import sys
from pathlib import Path

from veilbox.config import CACHE_FILE_NAME, VeilBoxConfig
from veilbox.supervisor.cache import resolve_cache_file


def test_cache_defaults_match_resolver_defaults():
    config = VeilBoxConfig()
    params = inspect.signature(resolve_cache_file).parameters
    assert params["preferred_name"].default == CACHE_FILE_NAME
    assert params["timeout"].default == config.cache_wait_timeout == 6.0
    assert params["interval"].default == config.cache_poll_interval == 0.2
    assert params["attempts"].default == config.fallback_attempts == 6
    assert params["backoff"].default == config.fallback_backoff == 0.1
    assert params["keep"].default == config.fallback_keep == 3


def test_app_dir_is_next_to_launching_script(monkeypatch, tmp_path: Path):
    script = tmp_path / "bin" / "veilbox"
    script.parent.mkdir()
    script.write_text("")
    monkeypatch.setattr(sys, "argv", [str(script)])
    monkeypatch.delattr(sys, "frozen", raising=False)

    config = VeilBoxConfig()
    assert config.app_dir == script.parent.resolve()
    assert config.engine_path.parent == script.parent.resolve() / "core"


def test_app_dir_without_script_uses_cwd(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(sys, "argv", ["-c"])
    monkeypatch.delattr(sys, "frozen", raising=False)
    monkeypatch.chdir(tmp_path)
    assert VeilBoxConfig().app_dir == Path.cwd()


def test_app_dir_for_frozen_build(monkeypatch, tmp_path: Path):
    exe = tmp_path / "VeilBox.exe"
    exe.write_text("")
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "executable", str(exe))
    assert VeilBoxConfig().app_dir == tmp_path.resolve()


def test_load_applies_environment(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("VEILBOX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("VEILBOX_APP_DIR", str(tmp_path / "app"))
    monkeypatch.setenv("VEILBOX_GRACE_TIMEOUT", "0.5")
    config = VeilBoxConfig.load()
    assert config.data_dir == tmp_path / "data"
    assert config.config_path == tmp_path / "data" / "sb_config.json"
    assert config.app_dir == tmp_path / "app"
    assert config.grace_timeout == 0.5

"""Shared test fixtures."""

from __future__ import annotations

import stat
import sys
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from veilbox.config import VeilBoxConfig, engine_executable_name
from veilbox.policy.models import Profile

_ENGINE_PRELUDE = """\
import json
import signal
import sys
import time
"""

_ENGINE_BEHAVIOURS = {
    # Prints its args and the cache path it was given, exits cleanly on SIGTERM
    "serve": """
def _term(signum, frame):
    print("engine received SIGTERM", flush=True)
    sys.exit(0)

signal.signal(signal.SIGTERM, _term)
with open(sys.argv[3], encoding="utf-8") as fh:
    cfg = json.load(fh)
print("engine started " + " ".join(sys.argv[1:]), flush=True)
print("cache=" + cfg["experimental"]["cache_file"]["path"], flush=True)
print("engine warning on stderr", file=sys.stderr, flush=True)
while True:
    time.sleep(0.05)
""",
    # Ignores the cooperative termination request
    "stubborn": """
signal.signal(signal.SIGTERM, signal.SIG_IGN)
print("engine started", flush=True)
while True:
    time.sleep(0.05)
""",
    # Dies right after startup
    "crash": """
print("fatal: bad config", file=sys.stderr, flush=True)
sys.exit(3)
""",
}


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def minimal_settings_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "minimal_settings.yaml"


@pytest.fixture
def full_settings_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "full_settings.yaml"


@pytest.fixture
def profile() -> Profile:
    return Profile(
        uuid="0b6f6d2c-3f4e-4c3a-9d8e-1f2a3b4c5d6e",
        host="edge.example.net",
        port=443,
        sni="www.microsoft.com",
        public_key="Xy9nQ2kL0pA7rT4vW1zB8cD3eF6gH5jK2mN0qR7sU4w",
        short_id="6ba85179e30d4fc2",
        transport="grpc",
        service_name="veil",
    )


@pytest.fixture
def tcp_profile() -> Profile:
    return Profile(
        uuid="0b6f6d2c-3f4e-4c3a-9d8e-1f2a3b4c5d6e",
        host="edge.example.net",
        port=443,
        transport="tcp",
        flow="xtls-rprx-vision",
    )


@pytest.fixture
def veilbox_config(tmp_path: Path) -> VeilBoxConfig:
    """Config rooted in tmp_path with short timings so contention tests stay fast."""
    return VeilBoxConfig(
        data_dir=tmp_path / "data",
        app_dir=tmp_path / "app",
        grace_timeout=2.0,
        cache_wait_timeout=0.3,
        cache_poll_interval=0.05,
        fallback_attempts=3,
        fallback_backoff=0.01,
        fallback_keep=3,
    )


@pytest.fixture
def install_engine(veilbox_config: VeilBoxConfig) -> Callable[[str], Path]:
    """Write a fake engine script at the location the supervisor looks for it."""

    def _install(behaviour: str = "serve") -> Path:
        core = veilbox_config.app_dir / "core"
        core.mkdir(parents=True, exist_ok=True)
        path = core / engine_executable_name()
        path.write_text(
            f"#!{sys.executable}\n" + _ENGINE_PRELUDE + _ENGINE_BEHAVIOURS[behaviour],
            encoding="utf-8",
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _install


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout passes."""
    return _wait_until

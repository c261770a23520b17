"""Global configuration: data/app paths, env vars, supervisor timings."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = "sb_config.json"
CACHE_FILE_NAME = "cache.db"

# Cache contention timings and fallback retention
CACHE_WAIT_TIMEOUT = 6.0
CACHE_POLL_INTERVAL = 0.2
FALLBACK_ATTEMPTS = 6
FALLBACK_BACKOFF = 0.1
FALLBACK_KEEP = 3


def _default_data_dir() -> Path:
    if os.name == "nt":
        local = os.environ.get("LOCALAPPDATA")
        if local:
            return Path(local) / "VeilBox"
        return Path.home() / "AppData" / "Local" / "VeilBox"
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "veilbox"
    return Path.home() / ".local" / "share" / "veilbox"


def _default_app_dir() -> Path:
    # Bundled builds ship the engine next to the executable
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    # Otherwise next to the launching script; interactive and -c runs have none
    script = sys.argv[0] if sys.argv else ""
    if script and Path(script).is_file():
        return Path(script).resolve().parent
    return Path.cwd()


def engine_executable_name() -> str:
    return "sing-box.exe" if os.name == "nt" else "sing-box"


@dataclass
class VeilBoxConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    app_dir: Path = field(default_factory=_default_app_dir)
    grace_timeout: float = 2.0
    cache_wait_timeout: float = CACHE_WAIT_TIMEOUT
    cache_poll_interval: float = CACHE_POLL_INTERVAL
    fallback_attempts: int = FALLBACK_ATTEMPTS
    fallback_backoff: float = FALLBACK_BACKOFF
    fallback_keep: int = FALLBACK_KEEP
    verbose: bool = False

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILE_NAME

    @property
    def cache_path(self) -> Path:
        return self.data_dir / CACHE_FILE_NAME

    @property
    def engine_path(self) -> Path:
        return self.app_dir / "core" / engine_executable_name()

    @classmethod
    def load(cls) -> VeilBoxConfig:
        """Load config from environment variables with platform defaults."""
        config = cls()

        env_data_dir = os.environ.get("VEILBOX_DATA_DIR")
        if env_data_dir:
            config.data_dir = Path(env_data_dir)

        env_app_dir = os.environ.get("VEILBOX_APP_DIR")
        if env_app_dir:
            config.app_dir = Path(env_app_dir)

        env_grace = os.environ.get("VEILBOX_GRACE_TIMEOUT")
        if env_grace:
            config.grace_timeout = float(env_grace)

        return config

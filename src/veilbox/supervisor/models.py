"""Supervisor data models: lifecycle state, engine handle, run snapshots."""

from __future__ import annotations

import enum
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path


class SupervisorState(enum.Enum):
    """Lifecycle state of the engine supervisor."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class CacheResolution:
    """Which cache file the engine will open."""

    path: Path
    fallback: bool = False


@dataclass(frozen=True)
class EngineRun:
    """Read-only snapshot of a launched engine, returned by ``start``."""

    pid: int
    config_path: Path
    cache_path: Path
    cache_fallback: bool
    start_time: float = field(default_factory=time.time)


@dataclass
class EngineHandle:
    """Live process state. Owned by the supervisor, never handed out."""

    process: subprocess.Popen[bytes]
    cancel: threading.Event
    cache_path: Path
    work_dir: Path
    readers: list[threading.Thread] = field(default_factory=list)
    waiter: threading.Thread | None = None

"""Engine supervisor. Owns the lifetime of the external sing-box process.

Locking:
  ``_lock`` guards ``_handle`` and ``_state``. It is only held for short,
  non-blocking sections and never across a process wait.
  ``_transition`` serializes whole start/stop transitions, so a start issued
  while a previous engine is shutting down finishes that shutdown first.
  Reader and waiter threads only ever take ``_lock``.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable
from pathlib import Path
from typing import IO

import psutil

from veilbox.config import CACHE_FILE_NAME, VeilBoxConfig
from veilbox.errors import (
    ConfigWriteError,
    DataDirError,
    EngineLaunchError,
    EngineNotFoundError,
)
from veilbox.supervisor.cache import resolve_cache_file
from veilbox.supervisor.models import EngineHandle, EngineRun, SupervisorState
from veilbox.synth.document import Document, render_document, substitute_placeholder
from veilbox.synth.experimental import CACHE_FILE_PLACEHOLDER

logger = logging.getLogger(__name__)

# Reader threads get this long to drain after exit before the exit notice is sent
_READER_DRAIN_TIMEOUT = 1.0


class EngineSupervisor:
    """Starts, watches, and stops at most one engine process at a time."""

    def __init__(
        self,
        config: VeilBoxConfig | None = None,
        on_log: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config or VeilBoxConfig.load()
        self._on_log = on_log
        self._on_log_lock = threading.Lock()
        self._lock = threading.Lock()
        self._transition = threading.Lock()
        self._handle: EngineHandle | None = None
        self._state = SupervisorState.IDLE

    @property
    def config(self) -> VeilBoxConfig:
        return self._config

    @property
    def state(self) -> SupervisorState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def pid(self) -> int | None:
        with self._lock:
            return self._handle.process.pid if self._handle else None

    def set_log_callback(self, fn: Callable[[str], None] | None) -> None:
        """Register the sink that receives every engine output line."""
        with self._on_log_lock:
            self._on_log = fn

    def start(self, document: Document) -> EngineRun:
        """Persist ``document`` and launch the engine with it.

        Any engine already running is stopped first. Raises a subclass of
        EngineStartError on failure; nothing is left registered in that case.
        """
        with self._transition:
            self._stop_locked(self._config.grace_timeout)
            with self._lock:
                self._state = SupervisorState.STARTING
            try:
                run = self._launch(document)
            except Exception:
                with self._lock:
                    self._state = SupervisorState.IDLE
                raise
            return run

    def stop(self, grace_timeout: float | None = None) -> None:
        """Ask the engine to exit, force-kill after the grace period. No-op when idle."""
        if grace_timeout is None:
            grace_timeout = self._config.grace_timeout
        with self._transition:
            self._stop_locked(grace_timeout)

    def _launch(self, document: Document) -> EngineRun:
        cfg = self._config
        data_dir = cfg.data_dir
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DataDirError(f"create data dir {data_dir}: {e}") from e

        cache = resolve_cache_file(
            data_dir,
            CACHE_FILE_NAME,
            timeout=cfg.cache_wait_timeout,
            interval=cfg.cache_poll_interval,
            attempts=cfg.fallback_attempts,
            backoff=cfg.fallback_backoff,
            keep=cfg.fallback_keep,
            emit=self._emit,
        )
        document = substitute_placeholder(document, CACHE_FILE_PLACEHOLDER, str(cache.path))

        config_path = cfg.config_path
        try:
            config_path.write_text(render_document(document), encoding="utf-8")
        except OSError as e:
            raise ConfigWriteError(f"write config {config_path}: {e}") from e

        engine = cfg.engine_path
        if not engine.is_file():
            raise EngineNotFoundError(f"engine executable not found at {engine}")

        process = self._spawn(engine, config_path, data_dir)
        handle = EngineHandle(
            process=process,
            cancel=threading.Event(),
            cache_path=cache.path,
            work_dir=data_dir,
        )
        for stream, name in ((process.stdout, "stdout"), (process.stderr, "stderr")):
            reader = threading.Thread(
                target=self._pipe,
                args=(stream,),
                name=f"engine-{name}-{process.pid}",
                daemon=True,
            )
            handle.readers.append(reader)
        handle.waiter = threading.Thread(
            target=self._wait_for_exit,
            args=(handle,),
            name=f"engine-wait-{process.pid}",
            daemon=True,
        )

        with self._lock:
            self._handle = handle
            self._state = SupervisorState.RUNNING

        for reader in handle.readers:
            reader.start()
        handle.waiter.start()

        logger.info("Engine started (PID %d) with config %s", process.pid, config_path)
        return EngineRun(
            pid=process.pid,
            config_path=config_path,
            cache_path=cache.path,
            cache_fallback=cache.fallback,
        )

    @staticmethod
    def _spawn(engine: Path, config_path: Path, work_dir: Path) -> subprocess.Popen[bytes]:
        kwargs: dict = {}
        if os.name == "nt":
            kwargs["creationflags"] = (
                subprocess.CREATE_NO_WINDOW | subprocess.CREATE_NEW_PROCESS_GROUP
            )
            startupinfo = subprocess.STARTUPINFO()
            startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
            startupinfo.wShowWindow = subprocess.SW_HIDE
            kwargs["startupinfo"] = startupinfo
        try:
            return subprocess.Popen(
                [str(engine), "run", "-c", str(config_path)],
                cwd=str(work_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **kwargs,
            )
        except OSError as e:
            raise EngineLaunchError(f"start engine {engine}: {e}") from e

    def _stop_locked(self, grace_timeout: float) -> None:
        # Caller holds _transition
        with self._lock:
            handle = self._handle
            if handle is None:
                return
            self._state = SupervisorState.STOPPING

        handle.cancel.set()
        process = handle.process
        try:
            if process.poll() is None:
                _request_exit(process)
                try:
                    process.wait(timeout=grace_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning(
                        "Engine (PID %d) did not exit within %.1fs, killing",
                        process.pid,
                        grace_timeout,
                    )
                    _kill_tree(process)
                    try:
                        process.wait(timeout=grace_timeout)
                    except subprocess.TimeoutExpired:
                        logger.error("Engine (PID %d) survived kill", process.pid)
        finally:
            with self._lock:
                if self._handle is handle:
                    self._handle = None
                self._state = SupervisorState.IDLE
        logger.info("Engine stopped (PID %d)", process.pid)

    def _wait_for_exit(self, handle: EngineHandle) -> None:
        returncode = handle.process.wait()
        for reader in handle.readers:
            reader.join(timeout=_READER_DRAIN_TIMEOUT)

        if handle.cancel.is_set():
            logger.debug("Engine exited with code %d after stop request", returncode)
        else:
            logger.warning("Engine exited unexpectedly with code %d", returncode)
            self._emit(f"engine exited with code {returncode}")

        with self._lock:
            if self._handle is handle:
                self._handle = None
                self._state = SupervisorState.IDLE

    def _pipe(self, stream: IO[bytes]) -> None:
        with stream:
            for raw in iter(stream.readline, b""):
                self._emit(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    def _emit(self, line: str) -> None:
        with self._on_log_lock:
            fn = self._on_log
        if fn is None:
            return
        try:
            fn(line)
        except Exception:
            logger.debug("Log callback failed for line %r", line, exc_info=True)


def _request_exit(process: subprocess.Popen[bytes]) -> None:
    """Cooperative termination: SIGTERM on POSIX, CTRL_BREAK on Windows."""
    try:
        if os.name == "nt":
            process.send_signal(signal.CTRL_BREAK_EVENT)
        else:
            process.terminate()
    except OSError as e:
        logger.debug("Termination request to PID %d failed: %s", process.pid, e)


def _kill_tree(process: subprocess.Popen[bytes]) -> None:
    try:
        parent = psutil.Process(process.pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return
    except psutil.AccessDenied:
        _kill_direct(process)
        return
    for child in children:
        try:
            child.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
    try:
        parent.kill()
    except psutil.NoSuchProcess:
        pass
    except psutil.AccessDenied:
        _kill_direct(process)


def _kill_direct(process: subprocess.Popen[bytes]) -> None:
    try:
        process.kill()
    except OSError as e:
        logger.warning("Kill of engine PID %d failed: %s", process.pid, e)

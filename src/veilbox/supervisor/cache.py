"""Cache file resolution under lock contention.

The engine holds an exclusive lock on its cache database. After a forced kill
the old process can keep that lock for a while, so a quick stop→start would
otherwise block. Resolution order:

1. Poll the preferred ``cache.db`` until it can be opened and locked.
2. On timeout, allocate a uniquely named ``cache-<ns>.db`` with O_EXCL.
3. Prune older fallbacks so only a few remain.
"""

from __future__ import annotations

import errno
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

from veilbox.config import (
    CACHE_FILE_NAME,
    CACHE_POLL_INTERVAL,
    CACHE_WAIT_TIMEOUT,
    FALLBACK_ATTEMPTS,
    FALLBACK_BACKOFF,
    FALLBACK_KEEP,
)
from veilbox.errors import CacheUnavailableError
from veilbox.supervisor.models import CacheResolution

if os.name == "nt":
    fcntl = None
else:
    import fcntl

logger = logging.getLogger(__name__)

FALLBACK_GLOB = "cache-*.db"

# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
_WINDOWS_SHARING_ERRORS = (32, 33)
_CONTENTION_ERRNOS = (errno.EAGAIN, errno.EWOULDBLOCK, errno.EACCES)


class CacheBusy(OSError):
    """The cache file exists but another process holds its lock."""


def is_sharing_violation(exc: OSError) -> bool:
    if isinstance(exc, CacheBusy):
        return True
    return getattr(exc, "winerror", None) in _WINDOWS_SHARING_ERRORS


def probe_writable(path: Path) -> None:
    """Open ``path`` read-write (creating it) and check nobody holds its lock.

    Raises PermissionError, CacheBusy, or any other OSError from the open.
    """
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        if fcntl is not None:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as exc:
                if exc.errno in _CONTENTION_ERRNOS:
                    raise CacheBusy(exc.errno, "cache file is locked", str(path)) from exc
                raise
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def wait_for_writable(
    path: Path,
    timeout: float = CACHE_WAIT_TIMEOUT,
    interval: float = CACHE_POLL_INTERVAL,
) -> OSError | None:
    """Poll until ``path`` is usable. Returns None on success, else the last error.

    Permission errors are treated as a stale file from a crashed run: the file
    is removed and the probe retried. Lock/sharing violations are retried until
    the deadline. Anything else ends the wait immediately.
    """
    deadline = time.monotonic() + timeout
    last_error: OSError | None = None
    while True:
        try:
            probe_writable(path)
            return None
        except PermissionError as exc:
            last_error = exc
            logger.debug("Cache file %s not accessible, removing: %s", path, exc)
            try:
                path.unlink()
            except OSError:
                pass
        except OSError as exc:
            last_error = exc
            if not is_sharing_violation(exc):
                return exc
            logger.debug("Cache file %s busy: %s", path, exc)

        if time.monotonic() + interval > deadline:
            break
        time.sleep(interval)

    if last_error is None:
        last_error = TimeoutError(f"timed out waiting for {path}")
    return last_error


def create_fallback_cache(
    directory: Path,
    attempts: int = FALLBACK_ATTEMPTS,
    backoff: float = FALLBACK_BACKOFF,
) -> Path:
    """Exclusively create a uniquely named fallback cache file in ``directory``."""
    for _ in range(attempts):
        path = directory / f"cache-{time.time_ns()}.db"
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            pass
        except OSError as exc:
            if not is_sharing_violation(exc):
                raise CacheUnavailableError(
                    f"cannot create fallback cache in {directory}: {exc}"
                ) from exc
        else:
            os.close(fd)
            return path
        time.sleep(backoff)
    raise CacheUnavailableError(f"no alternative cache file available in {directory}")


def prune_fallback_caches(directory: Path, keep: Path, limit: int = FALLBACK_KEEP) -> None:
    """Delete old fallback caches, keeping ``keep`` plus the newest up to ``limit``.

    Best effort: stat and unlink failures are skipped.
    """

    def _mtime(p: Path) -> float:
        try:
            return p.stat().st_mtime
        except OSError:
            return 0.0

    matches = sorted(directory.glob(FALLBACK_GLOB), key=_mtime, reverse=True)
    kept = {keep}
    for path in matches:
        if len(kept) >= limit:
            break
        kept.add(path)

    for path in matches:
        if path in kept:
            continue
        try:
            path.unlink()
            logger.debug("Pruned old fallback cache %s", path.name)
        except OSError:
            pass


def resolve_cache_file(
    directory: Path,
    preferred_name: str = CACHE_FILE_NAME,
    *,
    timeout: float = CACHE_WAIT_TIMEOUT,
    interval: float = CACHE_POLL_INTERVAL,
    attempts: int = FALLBACK_ATTEMPTS,
    backoff: float = FALLBACK_BACKOFF,
    keep: int = FALLBACK_KEEP,
    emit: Callable[[str], None] | None = None,
) -> CacheResolution:
    """Pick the cache file for the next engine run."""
    preferred = directory / preferred_name
    error = wait_for_writable(preferred, timeout=timeout, interval=interval)
    if error is None:
        logger.debug("Using cache file %s", preferred)
        if emit:
            emit(f"using cache file {preferred.name}")
        return CacheResolution(path=preferred, fallback=False)

    try:
        fallback = create_fallback_cache(directory, attempts=attempts, backoff=backoff)
    except CacheUnavailableError as exc:
        raise CacheUnavailableError(f"{preferred.name} busy: {exc} (last error: {error})") from exc

    logger.warning("%s busy (%s), switched to %s", preferred.name, error, fallback.name)
    if emit:
        emit(f"{preferred.name} busy ({error}), switched to {fallback.name}")
    prune_fallback_caches(directory, fallback, limit=keep)
    return CacheResolution(path=fallback, fallback=True)

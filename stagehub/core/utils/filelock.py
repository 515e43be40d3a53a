"""
Cross-platform advisory file locks

- Unix/Linux/macOS: fcntl.flock
- Windows: msvcrt.locking

Usage:
    from stagehub.core.utils.filelock import LibraryLock

    with LibraryLock(locks_dir, "my-lib"):
        # ... install or remove the library directory ...
"""

import logging
import platform
import threading
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)


class FileLockError(Exception):
    """File lock operation failed"""
    pass


class LockAcquisitionError(FileLockError):
    """Lock is held by another process"""
    pass


def acquire_lock(file_handle, non_blocking: bool = False):
    """
    Acquire an exclusive lock on an open file

    Args:
        file_handle: Open file object
        non_blocking: Fail immediately instead of waiting when held elsewhere

    Raises:
        LockAcquisitionError: Lock held by another process (non_blocking only)
        FileLockError: Any other locking failure
    """
    if platform.system() == "Windows":
        _acquire_lock_windows(file_handle, non_blocking)
    else:
        _acquire_lock_unix(file_handle, non_blocking)

    logger.debug(f"Acquired lock on {file_handle.name}")


def release_lock(file_handle):
    """
    Release a lock taken with acquire_lock

    Raises:
        FileLockError: Unlock failed
    """
    if platform.system() == "Windows":
        _release_lock_windows(file_handle)
    else:
        _release_lock_unix(file_handle)

    logger.debug(f"Released lock on {file_handle.name}")


def _acquire_lock_unix(file_handle, non_blocking: bool):
    import fcntl

    flags = fcntl.LOCK_EX
    if non_blocking:
        flags |= fcntl.LOCK_NB

    try:
        fcntl.flock(file_handle.fileno(), flags)
    except BlockingIOError as e:
        raise LockAcquisitionError(f"Lock is held by another process: {file_handle.name}") from e
    except OSError as e:
        raise FileLockError(f"fcntl.flock failed: {e}") from e


def _release_lock_unix(file_handle):
    import fcntl

    try:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
    except OSError as e:
        raise FileLockError(f"fcntl.flock unlock failed: {e}") from e


def _acquire_lock_windows(file_handle, non_blocking: bool):
    import msvcrt

    # LK_LOCK retries for ~10s before failing, LK_NBLCK fails at once
    mode = msvcrt.LK_NBLCK if non_blocking else msvcrt.LK_LOCK
    try:
        msvcrt.locking(file_handle.fileno(), mode, 1)
    except OSError as e:
        # errno 13 / 36: region already locked
        if e.errno in (13, 36):
            raise LockAcquisitionError(f"Lock is held by another process: {file_handle.name}") from e
        raise FileLockError(f"msvcrt.locking failed: {e}") from e


def _release_lock_windows(file_handle):
    import msvcrt

    try:
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    except OSError as e:
        raise FileLockError(f"msvcrt.locking unlock failed: {e}") from e


_process_locks: Dict[str, threading.Lock] = {}
_process_locks_guard = threading.Lock()


def _process_lock(key: str) -> threading.Lock:
    with _process_locks_guard:
        lock = _process_locks.get(key)
        if lock is None:
            lock = _process_locks[key] = threading.Lock()
        return lock


class LibraryLock:
    """Exclusive lock on one library id.

    Combines an in-process mutex for threads with an advisory lock file
    '<locks_dir>/<library_id>.lock' for other processes.
    """

    def __init__(self, locks_dir: Path, library_id: str, non_blocking: bool = False):
        self.lock_path = Path(locks_dir) / f"{library_id}.lock"
        self.non_blocking = non_blocking
        self._mutex = _process_lock(str(self.lock_path.resolve()))
        self._handle = None

    def acquire(self) -> None:
        if not self._mutex.acquire(blocking=not self.non_blocking):
            raise LockAcquisitionError(f"Lock is held by another thread: {self.lock_path}")
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.lock_path, "a+", encoding="utf-8")
            acquire_lock(self._handle, non_blocking=self.non_blocking)
        except Exception:
            if self._handle is not None:
                self._handle.close()
                self._handle = None
            self._mutex.release()
            raise

    def release(self) -> None:
        try:
            if self._handle is not None:
                try:
                    release_lock(self._handle)
                finally:
                    self._handle.close()
                    self._handle = None
        finally:
            self._mutex.release()

    def __enter__(self) -> "LibraryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

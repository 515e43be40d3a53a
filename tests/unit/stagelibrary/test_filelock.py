from __future__ import annotations

import threading

import pytest

from stagehub.core.utils.filelock import LibraryLock, LockAcquisitionError


def test_lock_file_is_created_under_locks_dir(tmp_path) -> None:
    locks_dir = tmp_path / "locks"

    with LibraryLock(locks_dir, "kafka-lib") as lock:
        assert lock.lock_path == locks_dir / "kafka-lib.lock"
        assert lock.lock_path.exists()


def test_held_lock_rejects_non_blocking_acquire(tmp_path) -> None:
    with LibraryLock(tmp_path, "kafka-lib"):
        with pytest.raises(LockAcquisitionError):
            LibraryLock(tmp_path, "kafka-lib", non_blocking=True).acquire()

    # released: can be taken again
    with LibraryLock(tmp_path, "kafka-lib", non_blocking=True):
        pass


def test_different_libraries_do_not_contend(tmp_path) -> None:
    with LibraryLock(tmp_path, "kafka-lib"):
        with LibraryLock(tmp_path, "jdbc-lib", non_blocking=True):
            pass


def test_lock_serialises_threads(tmp_path) -> None:
    active = []
    overlaps = []

    def worker():
        with LibraryLock(tmp_path, "kafka-lib"):
            if active:
                overlaps.append(True)
            active.append(1)
            threading.Event().wait(0.05)
            active.pop()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert overlaps == []

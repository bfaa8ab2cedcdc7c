"""Per-document lock registry.

Each document gets a ``DocumentLock`` on first use, held in a weak-valued
registry so documents nobody is touching drop out of memory. A
``DocumentLock`` carries two locks:

- ``mutation()``: exclusive, held by one writer for its whole operation.
- ``commit()`` / ``snapshot()``: a readers/writer lock. Writers take it
  exclusively only around the rename/unlink step; readers take it shared
  only while listing the directory and opening files.

When a lock directory is configured, both locks are also backed by
``fcntl.flock`` on files under it so several server processes sharing one
library cooperate. The in-process lock is always taken first.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import threading
import weakref
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".locks"


class ReadWriteLock:
    """Writer-preferring readers/writer lock.

    A writer waiting for the lock blocks new readers, so a reader waits at
    most for the commit already queued ahead of it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@contextlib.contextmanager
def _flocked(path: Optional[Path], operation: int) -> Iterator[None]:
    if path is None:
        yield
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    # A fresh open file description per acquisition, so flock also excludes
    # other threads of this process.
    with path.open("ab") as fh:
        fcntl.flock(fh.fileno(), operation)
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


class DocumentLock:
    def __init__(self, document: str, lock_dir: Optional[Path] = None) -> None:
        self.document = document
        self._mutation = threading.Lock()
        self._commit = ReadWriteLock()
        self._lock_dir = lock_dir

    def _lock_file(self, kind: str) -> Optional[Path]:
        if self._lock_dir is None:
            return None
        return self._lock_dir / f"{self.document}.{kind}.lock"

    @contextlib.contextmanager
    def mutation(self) -> Iterator[None]:
        with self._mutation:
            with _flocked(self._lock_file("mutation"), fcntl.LOCK_EX):
                yield

    @contextlib.contextmanager
    def commit(self) -> Iterator[None]:
        with self._commit.write():
            with _flocked(self._lock_file("commit"), fcntl.LOCK_EX):
                yield

    @contextlib.contextmanager
    def snapshot(self) -> Iterator[None]:
        with self._commit.read():
            with _flocked(self._lock_file("commit"), fcntl.LOCK_SH):
                yield


class LockRegistry:
    """Lazily creates one ``DocumentLock`` per document id.

    Callers must keep the returned lock referenced for as long as they use
    it; once no caller holds it the entry is collected.
    """

    def __init__(self, lock_dir: Optional[Path] = None) -> None:
        self.lock_dir = lock_dir
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, DocumentLock]" = weakref.WeakValueDictionary()

    def get(self, document: str) -> DocumentLock:
        with self._guard:
            lock = self._locks.get(document)
            if lock is None:
                lock = DocumentLock(document, self.lock_dir)
                self._locks[document] = lock
                logger.debug("lock_registry.create document=%s", document)
            return lock

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["LOCK_DIR_NAME", "ReadWriteLock", "DocumentLock", "LockRegistry"]

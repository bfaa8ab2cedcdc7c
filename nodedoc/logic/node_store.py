"""Filesystem-backed node storage and ordering.

One directory per document under the library root; one file per node named
``<rank>-<id>.html`` (see ``nodedoc.logic.naming``). The directory listing is
the only source of truth for order: every operation rescans it, nothing is
cached between calls, so files renamed by hand are picked up on the next
access.

Mutations stage new content in a dotfile inside the document directory and
commit it with a single rename while holding the document's commit lock.
Structural mutations (append, delete, reorder) rewrite rank prefixes so the
rank equals the position again; a failed rename batch is rolled back before
the error is raised.
"""

from __future__ import annotations

import contextlib
import logging
import os
import uuid
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from nodedoc.logic.errors import InvalidOrder, NodeNotFound, NotFound, StorageIO
from nodedoc.logic.locks import LOCK_DIR_NAME, LockRegistry
from nodedoc.logic.naming import (
    NodeFile,
    NodeRef,
    canonical_order,
    node_filename,
    validate_document_name,
)

logger = logging.getLogger(__name__)

HIGH_WATER_FILE = ".next-id"
STAGED_PREFIX = ".tmp-"

SnapshotEntry = Tuple[NodeRef, BinaryIO]


@contextlib.contextmanager
def _storage_io(document: str, action: str) -> Iterator[None]:
    """Translate ``OSError`` into ``StorageIO`` for the given action."""
    try:
        yield
    except OSError as exc:
        logger.error("node_store.%s failed document=%s", action, document, exc_info=True)
        raise StorageIO(f"{action} failed for document {document!r}: {exc}", document=document) from exc


def _close_all(entries: Iterable[SnapshotEntry]) -> None:
    for _, fh in entries:
        try:
            fh.close()
        except OSError:
            logger.warning("node_store.snapshot close failed", exc_info=True)


class NodeStore:
    """Ordered node storage for every document under ``root``."""

    def __init__(
        self,
        root: Union[Path, str],
        *,
        create_on_append: bool = True,
        rank_width: int = 6,
        fsync: bool = True,
        locks: Optional[LockRegistry] = None,
    ) -> None:
        self.root = Path(root)
        self.create_on_append = bool(create_on_append)
        self.rank_width = int(rank_width)
        self.fsync = bool(fsync)
        self.locks = locks if locks is not None else LockRegistry()

    @classmethod
    def from_config(cls, library) -> "NodeStore":  # type: ignore[no-untyped-def]
        root = Path(library.root)
        lock_dir = root / LOCK_DIR_NAME if library.process_locks else None
        return cls(
            root,
            create_on_append=library.create_on_append,
            rank_width=library.rank_width,
            fsync=library.fsync,
            locks=LockRegistry(lock_dir),
        )

    # ------------------------------------------------------------------
    # Paths and scanning
    # ------------------------------------------------------------------

    def document_path(self, document: str) -> Path:
        return self.root / validate_document_name(document)

    def exists(self, document: str) -> bool:
        return self.document_path(document).is_dir()

    def _require_document(self, document: str) -> Path:
        path = self.document_path(document)
        if not path.is_dir():
            raise NotFound(document)
        return path

    def _scan(self, path: Path, document: str) -> List[NodeFile]:
        try:
            with os.scandir(path) as it:
                names = [entry.name for entry in it if entry.is_file()]
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(document) from exc
        files = canonical_order(names)
        counts = Counter(f.node_id for f in files)
        duplicated = sorted(node_id for node_id, n in counts.items() if n > 1)
        if duplicated:
            raise StorageIO(
                f"document {document!r} has several files for node ids {duplicated}",
                document=document,
            )
        return files

    def _find(self, files: Sequence[NodeFile], document: str, node_id: int) -> Tuple[int, NodeFile]:
        for position, f in enumerate(files):
            if f.node_id == node_id:
                return position, f
        raise NodeNotFound(document, node_id)

    # ------------------------------------------------------------------
    # Low-level writes
    # ------------------------------------------------------------------

    def _fsync_dir(self, path: Path) -> None:
        """Flush the directory entry after a commit.

        The rename or unlink has already happened when this runs, so a
        failure here is logged and the mutation still reports success.
        """
        if not self.fsync:
            return
        try:
            fd = os.open(path, os.O_RDONLY)
            try:
                os.fsync(fd)
            finally:
                os.close(fd)
        except OSError:
            logger.warning("node_store.fsync_dir failed after commit path=%s", path, exc_info=True)

    def _stage(self, path: Path, blob: bytes) -> Path:
        """Write ``blob`` to a dotfile in ``path``; the caller commits it by rename."""
        staged = path / f"{STAGED_PREFIX}{uuid.uuid4().hex}.html"
        with staged.open("wb") as fh:
            fh.write(bytes(blob))
            fh.flush()
            if self.fsync:
                os.fsync(fh.fileno())
        return staged

    @staticmethod
    def _discard(staged: Optional[Path]) -> None:
        if staged is None:
            return
        try:
            staged.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("node_store.discard failed path=%s", staged, exc_info=True)

    def _read_high_water(self, path: Path, document: str) -> int:
        marker = path / HIGH_WATER_FILE
        try:
            raw = marker.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return 0
        try:
            value = int(raw)
        except ValueError:
            raise StorageIO(f"unreadable id marker {marker} in document {document!r}", document=document)
        if value < 0:
            raise StorageIO(f"negative id marker {marker} in document {document!r}", document=document)
        return value

    def _write_high_water(self, path: Path, value: int) -> None:
        marker = path / HIGH_WATER_FILE
        tmp = path / f"{STAGED_PREFIX}{uuid.uuid4().hex}.next-id"
        with tmp.open("w", encoding="utf-8") as fh:
            fh.write(f"{int(value)}\n")
            fh.flush()
            if self.fsync:
                os.fsync(fh.fileno())
        os.replace(tmp, marker)

    def _restore_high_water(self, path: Path, value: int) -> None:
        try:
            if value:
                self._write_high_water(path, value)
            else:
                (path / HIGH_WATER_FILE).unlink(missing_ok=True)
        except OSError:
            # Only costs an unused id; ids are still never reissued
            logger.warning("node_store.restore_high_water failed path=%s", path, exc_info=True)

    def _apply_ranks(self, path: Path, ordered: Sequence[NodeFile]) -> List[Tuple[str, str]]:
        """Rename files so each rank equals its index in ``ordered``.

        Returns the renames performed. On failure the renames already done
        are reverted and the original ``OSError`` is re-raised.
        """
        done: List[Tuple[str, str]] = []
        try:
            for position, f in enumerate(ordered):
                wanted = node_filename(position, f.node_id, self.rank_width)
                if wanted != f.name:
                    os.rename(path / f.name, path / wanted)
                    done.append((f.name, wanted))
        except OSError:
            self._revert(path, done)
            raise
        return done

    @staticmethod
    def _revert(path: Path, done: Sequence[Tuple[str, str]]) -> None:
        for old, new in reversed(done):
            try:
                os.rename(path / new, path / old)
            except OSError:
                logger.error("node_store.revert failed %s -> %s", new, old, exc_info=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_nodes(self, document: str) -> Tuple[NodeRef, ...]:
        """Return ``(id, position)`` pairs in canonical order."""
        path = self._require_document(document)
        lock = self.locks.get(document)
        with _storage_io(document, "list"):
            with lock.snapshot():
                files = self._scan(path, document)
        return tuple(NodeRef(f.node_id, position) for position, f in enumerate(files))

    def open_snapshot(self, document: str, node_ids: Optional[Iterable[int]] = None) -> List[SnapshotEntry]:
        """Resolve nodes and open their files under the document's read lock.

        With ``node_ids`` None the whole document is opened in canonical
        order; otherwise exactly the requested ids, in the requested order.
        The open handles stay valid across later renames, replaces and
        deletes, so callers read them without holding any lock and always
        see complete content. The caller owns the handles.
        """
        path = self._require_document(document)
        lock = self.locks.get(document)
        opened: List[SnapshotEntry] = []
        try:
            with _storage_io(document, "snapshot"):
                with lock.snapshot():
                    files = self._scan(path, document)
                    if node_ids is None:
                        selected = [(NodeRef(f.node_id, pos), f) for pos, f in enumerate(files)]
                    else:
                        index = {f.node_id: (pos, f) for pos, f in enumerate(files)}
                        selected = []
                        for node_id in node_ids:
                            if node_id not in index:
                                raise NodeNotFound(document, node_id)
                            pos, f = index[node_id]
                            selected.append((NodeRef(f.node_id, pos), f))
                    for ref, f in selected:
                        opened.append((ref, (path / f.name).open("rb")))
        except BaseException:
            _close_all(opened)
            raise
        return opened

    def read(self, document: str, node_id: int) -> bytes:
        entries = self.open_snapshot(document, [int(node_id)])
        try:
            with _storage_io(document, "read"):
                return entries[0][1].read()
        finally:
            _close_all(entries)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, document: str, blob: bytes) -> NodeRef:
        """Store ``blob`` as a new node at the tail and return its ref."""
        path = self.document_path(document)
        lock = self.locks.get(document)
        staged: Optional[Path] = None
        with _storage_io(document, "append"):
            if not path.is_dir():
                if not self.create_on_append:
                    raise NotFound(document)
                path.mkdir(parents=False, exist_ok=True)
                logger.info("node_store.create_document document=%s", document)
            try:
                staged = self._stage(path, blob)
                with lock.commit():
                    files = self._scan(path, document)
                    mark = self._read_high_water(path, document)
                    node_id = max(mark, max((f.node_id for f in files), default=-1) + 1)
                    position = len(files)
                    renamed = self._apply_ranks(path, files)
                    try:
                        self._write_high_water(path, node_id + 1)
                        os.replace(staged, path / node_filename(position, node_id, self.rank_width))
                    except OSError:
                        self._revert(path, renamed)
                        self._restore_high_water(path, mark)
                        raise
                    staged = None
                    self._fsync_dir(path)
            finally:
                self._discard(staged)
        logger.info("node_store.append document=%s id=%s position=%s", document, node_id, position)
        return NodeRef(node_id, position)

    def replace(self, document: str, node_id: int, blob: bytes) -> None:
        """Overwrite the content of ``node_id``; id and position are unchanged."""
        node_id = int(node_id)
        path = self._require_document(document)
        lock = self.locks.get(document)
        staged: Optional[Path] = None
        with _storage_io(document, "replace"):
            try:
                staged = self._stage(path, blob)
                with lock.commit():
                    files = self._scan(path, document)
                    _, f = self._find(files, document, node_id)
                    os.replace(staged, path / f.name)
                    staged = None
                    self._fsync_dir(path)
            finally:
                self._discard(staged)
        logger.info("node_store.replace document=%s id=%s", document, node_id)

    def delete(self, document: str, node_id: int) -> None:
        """Remove ``node_id``; later nodes move up one position."""
        node_id = int(node_id)
        path = self._require_document(document)
        lock = self.locks.get(document)
        with _storage_io(document, "delete"):
            with lock.commit():
                files = self._scan(path, document)
                position, target = self._find(files, document, node_id)
                remaining = [f for f in files if f.node_id != node_id]
                # Followers take their new ranks before the unlink; the
                # rank tie with the target is invisible under the lock.
                renamed = self._apply_ranks(path, remaining)
                try:
                    os.unlink(path / target.name)
                except OSError:
                    self._revert(path, renamed)
                    raise
                self._fsync_dir(path)
        logger.info("node_store.delete document=%s id=%s position=%s", document, node_id, position)

    def reorder(self, document: str, new_order: Iterable[int]) -> Tuple[NodeRef, ...]:
        """Apply ``new_order``, which must be a permutation of the current ids."""
        try:
            order = [int(i) for i in new_order]
        except (TypeError, ValueError) as exc:
            raise InvalidOrder(document) from exc
        path = self._require_document(document)
        lock = self.locks.get(document)
        with _storage_io(document, "reorder"):
            with lock.commit():
                files = self._scan(path, document)
                by_id = {f.node_id: f for f in files}
                counts = Counter(order)
                duplicated = {i for i, n in counts.items() if n > 1}
                unknown = counts.keys() - by_id.keys()
                missing = by_id.keys() - counts.keys()
                if duplicated or unknown or missing:
                    raise InvalidOrder(document, missing=missing, unknown=unknown, duplicated=duplicated)
                self._apply_ranks(path, [by_id[i] for i in order])
                self._fsync_dir(path)
        logger.info("node_store.reorder document=%s order=%s", document, order)
        return tuple(NodeRef(node_id, position) for position, node_id in enumerate(order))


__all__ = ["NodeStore", "HIGH_WATER_FILE", "SnapshotEntry"]

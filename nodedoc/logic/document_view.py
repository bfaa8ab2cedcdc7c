"""Read-side composition of documents from NodeStore.

Renders are lazy: the snapshot (listing + opened files) is taken when the
render is requested, so a missing id fails the call up front, and blob bytes
are only read as the returned stream is iterated.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

from nodedoc.logic.errors import NodeNotFound, StorageIO
from nodedoc.logic.node_store import NodeStore, SnapshotEntry

logger = logging.getLogger(__name__)


class BlobStream:
    """Iterator of node blobs that owns the open files of one snapshot."""

    def __init__(self, entries: List[SnapshotEntry]) -> None:
        self._entries = list(entries)
        self._index = 0

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._index >= len(self._entries):
            raise StopIteration
        ref, fh = self._entries[self._index]
        self._index += 1
        try:
            return fh.read()
        except OSError as exc:
            logger.error("document_view.read failed node=%s", ref.id, exc_info=True)
            raise StorageIO(f"reading node {ref.id} failed: {exc}") from exc
        finally:
            fh.close()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def node_ids(self) -> List[int]:
        return [ref.id for ref, _ in self._entries]

    def close(self) -> None:
        for _, fh in self._entries[self._index:]:
            fh.close()
        self._index = len(self._entries)

    def __enter__(self) -> "BlobStream":
        return self

    def __exit__(self, *exc_info) -> None:  # type: ignore[no-untyped-def]
        self.close()


def parse_node_list(document: str, raw: Optional[str]) -> List[int]:
    """Parse a ``nodes=a,b,c`` query value, keeping order and duplicates.

    A token that is not a non-negative integer can never name a node, so it
    is reported as ``NodeNotFound``.
    """
    if raw is None or not raw.strip():
        return []
    ids: List[int] = []
    for token in raw.split(","):
        token = token.strip()
        if not (token.isascii() and token.isdigit()):
            raise NodeNotFound(document, token)
        ids.append(int(token))
    return ids


class DocumentView:
    def __init__(self, store: NodeStore) -> None:
        self.store = store

    def render_all(self, document: str) -> BlobStream:
        """Blobs of every node in canonical order."""
        return BlobStream(self.store.open_snapshot(document))

    def render_subset(self, document: str, requested_ids: Iterable[int]) -> BlobStream:
        """Blobs for exactly ``requested_ids``, in the order given."""
        ids = [int(i) for i in requested_ids]
        stream = BlobStream(self.store.open_snapshot(document, ids))
        logger.debug("document_view.render_subset document=%s ids=%s", document, ids)
        return stream


__all__ = ["BlobStream", "DocumentView", "parse_node_list"]

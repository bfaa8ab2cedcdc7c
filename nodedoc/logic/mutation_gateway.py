"""Per-document serialization of node mutations.

Every write goes through ``MutationGateway``: it takes the document's
mutation lock for the whole operation, so two writers on one document never
interleave their validation, staging and commit. The store itself takes the
commit lock only around the rename step, which is all a concurrent reader
ever waits for. Writers on different documents use different locks and run
in parallel.

Events are published before the mutation lock is released, so the event
buffer lists one document's mutations in commit order.

Which of two racing writers runs first is whichever acquires the lock first;
no operation type has priority.
"""

from __future__ import annotations

import logging
from typing import Iterable, Tuple

from nodedoc.logic import events
from nodedoc.logic.errors import NotFound
from nodedoc.logic.naming import NodeRef, validate_document_name
from nodedoc.logic.node_store import NodeStore

logger = logging.getLogger(__name__)


class MutationGateway:
    def __init__(self, store: NodeStore) -> None:
        self.store = store

    @property
    def locks(self):  # type: ignore[no-untyped-def]
        return self.store.locks

    def _lock(self, document: str, *, must_exist: bool = True):  # type: ignore[no-untyped-def]
        # Checked before a lock file named after the document can be created.
        validate_document_name(document)
        if must_exist and not self.store.exists(document):
            logger.info("mutation_gateway.reject document=%s reason=not_found", document)
            raise NotFound(document)
        return self.locks.get(document)

    def append(self, document: str, blob: bytes) -> NodeRef:
        lock = self._lock(document, must_exist=not self.store.create_on_append)
        with lock.mutation():
            ref = self.store.append(document, blob)
            events.publish(events.NODE_APPENDED, {"document": document, "id": ref.id, "position": ref.position})
        return ref

    def replace(self, document: str, node_id: int, blob: bytes) -> None:
        lock = self._lock(document)
        with lock.mutation():
            self.store.replace(document, node_id, blob)
            events.publish(events.NODE_REPLACED, {"document": document, "id": int(node_id), "bytes": len(blob)})

    def delete(self, document: str, node_id: int) -> None:
        lock = self._lock(document)
        with lock.mutation():
            self.store.delete(document, node_id)
            events.publish(events.NODE_DELETED, {"document": document, "id": int(node_id)})

    def reorder(self, document: str, new_order: Iterable[int]) -> Tuple[NodeRef, ...]:
        lock = self._lock(document)
        with lock.mutation():
            refs = self.store.reorder(document, new_order)
            events.publish(events.DOCUMENT_REORDERED, {"document": document, "order": [r.id for r in refs]})
        return refs


__all__ = ["MutationGateway"]

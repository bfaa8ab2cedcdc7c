"""Error taxonomy for the node storage engine.

Every failure raised by NodeStore, DocumentView and MutationGateway is a
``StoreError`` subclass. The HTTP layer maps them to problem+json responses
via ``nodedoc.http.error_mapping``; nothing below the routes knows about
status codes.
"""

from __future__ import annotations

from typing import Iterable, Optional


class StoreError(Exception):
    """Base class for node store failures."""

    def __init__(self, message: str, *, document: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.document = document


class NotFound(StoreError):
    """The document namespace does not exist."""

    def __init__(self, document: str) -> None:
        super().__init__(f"document {document!r} not found", document=document)


class NodeNotFound(StoreError):
    """No node with the given id currently exists in the document.

    ``node`` is whatever the caller asked for: an int id, or the raw token
    when a requested id could not be parsed.
    """

    def __init__(self, document: str, node: object) -> None:
        super().__init__(f"node {node} not found in document {document!r}", document=document)
        self.node = node


class InvalidOrder(StoreError):
    """A reorder request is not exactly a permutation of the current ids."""

    def __init__(
        self,
        document: str,
        *,
        missing: Iterable[int] = (),
        unknown: Iterable[int] = (),
        duplicated: Iterable[int] = (),
    ) -> None:
        self.missing = sorted(set(missing))
        self.unknown = sorted(set(unknown))
        self.duplicated = sorted(set(duplicated))
        parts = []
        if self.missing:
            parts.append(f"missing ids {self.missing}")
        if self.unknown:
            parts.append(f"unknown ids {self.unknown}")
        if self.duplicated:
            parts.append(f"duplicated ids {self.duplicated}")
        super().__init__(
            "order is not a permutation of the current nodes: " + "; ".join(parts or ["malformed"]),
            document=document,
        )


class InvalidName(StoreError):
    """The document id is not a single path-safe component."""

    def __init__(self, document: str) -> None:
        super().__init__(f"{document!r} is not a valid document name", document=document)


class StorageIO(StoreError):
    """Underlying filesystem failure (disk full, permission denied, ...)."""


__all__ = [
    "StoreError",
    "NotFound",
    "NodeNotFound",
    "InvalidOrder",
    "InvalidName",
    "StorageIO",
]

"""Central error mapping for the node API.

Single source of truth for mapping store errors to problem+json codes and
HTTP statuses. Route modules raise store errors and never hardcode these
strings or numbers.
"""

from __future__ import annotations

from typing import Dict, Type

from nodedoc.logic.errors import (
    InvalidName,
    InvalidOrder,
    NodeNotFound,
    NotFound,
    StorageIO,
    StoreError,
)

STORE_ERROR_MAP: Dict[Type[StoreError], Dict[str, object]] = {
    NotFound: {"title": "Not Found", "code": "DOCUMENT_NOT_FOUND", "status": 404},
    NodeNotFound: {"title": "Not Found", "code": "NODE_NOT_FOUND", "status": 404},
    InvalidOrder: {"title": "Bad Request", "code": "INVALID_ORDER", "status": 400},
    InvalidName: {"title": "Bad Request", "code": "INVALID_DOCUMENT_NAME", "status": 400},
    StorageIO: {"title": "Internal Server Error", "code": "STORAGE_IO", "status": 500},
}

FALLBACK = {"title": "Internal Server Error", "code": "STORE_ERROR", "status": 500}


def lookup(exc: StoreError) -> Dict[str, object]:
    """Return the mapping entry for ``exc``, honouring subclasses."""
    for cls in type(exc).__mro__:
        entry = STORE_ERROR_MAP.get(cls)  # type: ignore[arg-type]
        if entry is not None:
            return entry
    return FALLBACK


__all__ = ["STORE_ERROR_MAP", "lookup"]

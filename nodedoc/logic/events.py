"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
mutation gateway after each committed write.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging
import threading

logger = logging.getLogger(__name__)

NODE_APPENDED = "node.appended"
NODE_REPLACED = "node.replaced"
NODE_DELETED = "node.deleted"
DOCUMENT_REORDERED = "document.reordered"

# Bounded so a long-running server does not grow without limit
EVENT_BUFFER_LIMIT = 1000

# In-memory buffer for domain events (test-only visibility)
EVENT_BUFFER: List[Dict[str, Any]] = []
_BUFFER_LOCK = threading.Lock()


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    In this minimal implementation, we log the event for observability.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    with _BUFFER_LOCK:
        EVENT_BUFFER.append({"type": event_type, "payload": payload})
        if len(EVENT_BUFFER) > EVENT_BUFFER_LIMIT:
            del EVENT_BUFFER[: len(EVENT_BUFFER) - EVENT_BUFFER_LIMIT]


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    with _BUFFER_LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events


__all__ = [
    "NODE_APPENDED",
    "NODE_REPLACED",
    "NODE_DELETED",
    "DOCUMENT_REORDERED",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]

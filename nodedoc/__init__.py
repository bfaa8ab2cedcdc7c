"""nodedoc: a document store where each document is a directory of ordered
HTML fragment files, served over HTTP.

This package exposes the FastAPI application factory. Storage, ordering and
write serialization live in `nodedoc/logic/`; route handlers in
`nodedoc/routes/`.
"""

from __future__ import annotations

from nodedoc.main import create_app

__all__ = ["create_app"]

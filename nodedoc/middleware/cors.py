"""CORS configuration helpers.

Lets a browser-based editor served from another origin call the node API.
Keep this focused on configuration only.
"""

from __future__ import annotations

from typing import Iterable
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


# Headers a browser client needs to read after a write
EXPOSE_HEADERS: list[str] = [
    "Location",
    "X-Request-Id",
    "X-Node-Ids",
]


def apply_cors(app: FastAPI, *, origins: Iterable[str] | None = None) -> None:
    allow = list(origins or ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow,
        # Credentials cannot be combined with a wildcard origin
        allow_credentials="*" not in allow,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=EXPOSE_HEADERS,
    )


__all__ = ["apply_cors", "EXPOSE_HEADERS"]

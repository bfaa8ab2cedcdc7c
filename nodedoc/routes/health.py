"""Liveness endpoint.

Mounted under ``/-/`` because ``-`` can never start a document name, so the
path cannot shadow a document.
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/-/health", summary="Library reachability check")
def get_health(request: Request) -> JSONResponse:
    root = request.app.state.store.root
    ok = root.is_dir() and os.access(root, os.R_OK | os.W_OK | os.X_OK)
    if not ok:
        logger.warning("health degraded library=%s", root)
    return JSONResponse({"status": "ok" if ok else "degraded", "library": str(root)}, status_code=200 if ok else 503)


__all__ = ["router", "get_health"]

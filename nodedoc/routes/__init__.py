"""APIRouter registration for the node document server."""

from __future__ import annotations

from fastapi import APIRouter

from nodedoc.routes.documents import router as documents_router
from nodedoc.routes.health import router as health_router

api_router = APIRouter()
# Health first: "/-/health" would otherwise match "/{document}/{node}"
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(documents_router, tags=["Documents"])

__all__ = ["api_router"]

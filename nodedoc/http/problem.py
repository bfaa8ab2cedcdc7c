"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that produce
application/problem+json responses for store errors, HTTP errors, request
validation failures and anything unexpected.
"""

from __future__ import annotations

from typing import Any, Dict
import logging
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nodedoc.http.error_mapping import lookup
from nodedoc.logic.errors import InvalidOrder, NodeNotFound, StoreError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_for_store_error(exc: StoreError) -> Dict[str, Any]:
    entry = lookup(exc)
    status = int(entry["status"])  # type: ignore[arg-type]
    problem: Dict[str, Any] = {
        "title": entry["title"],
        "status": status,
        "code": entry["code"],
        # Storage failures do not leak filesystem paths to clients
        "detail": exc.message if status < 500 else "storage operation failed",
    }
    if exc.document is not None:
        problem["document"] = exc.document
    if isinstance(exc, NodeNotFound):
        problem["node"] = exc.node if isinstance(exc.node, int) else str(exc.node)
    if isinstance(exc, InvalidOrder):
        problem["missing"] = exc.missing
        problem["unknown"] = exc.unknown
        problem["duplicated"] = exc.duplicated
    return problem


async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:  # noqa: D401
    problem = problem_for_store_error(exc)
    if problem["status"] >= 500:
        logger.error("store_error code=%s path=%s", problem["code"], request.url.path, exc_info=exc)
    else:
        logger.info("store_error code=%s path=%s detail=%s", problem["code"], request.url.path, problem["detail"])
    return JSONResponse(problem, status_code=problem["status"], media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = dict(exc.detail)
    else:
        detail = {"title": "Error", "status": status, "code": "HTTP_ERROR", "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "code": "REQUEST_INVALID",
        "detail": "Request validation failed",
        "errors": [
            {"loc": [str(p) for p in err.get("loc", ())], "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
            for err in exc.errors()
        ],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        {"title": "Internal Server Error", "status": 500, "code": "INTERNAL"},
        status_code=500,
        media_type=PROBLEM_MEDIA_TYPE,
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_for_store_error",
    "handle_store_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]

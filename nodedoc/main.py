"""Application factory for the node document server."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from nodedoc.config import AppConfig, load_config
from nodedoc.http.problem import (
    handle_http_exception,
    handle_request_validation_error,
    handle_store_error,
    handle_unexpected_error,
)
from nodedoc.http.request_id import RequestIdMiddleware
from nodedoc.logging_setup import configure_logging
from nodedoc.logic.document_view import DocumentView
from nodedoc.logic.errors import StoreError
from nodedoc.logic.mutation_gateway import MutationGateway
from nodedoc.logic.node_store import NodeStore
from nodedoc.middleware.cors import apply_cors
from nodedoc.routes import api_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    cfg = config if config is not None else load_config()
    # Configure global logging before app instantiation so all modules emit
    configure_logging(cfg.logging.level)

    store = NodeStore.from_config(cfg.library)
    app = FastAPI(title="nodedoc", summary="Documents as ordered HTML fragments on disk")
    app.state.config = cfg
    app.state.store = store
    app.state.view = DocumentView(store)
    app.state.gateway = MutationGateway(store)

    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    apply_cors(app, origins=cfg.cors.origins)
    # Added last so it wraps CORS and every response gets an id
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    logger.info(
        "app_created library=%s create_on_append=%s process_locks=%s",
        cfg.library.root,
        cfg.library.create_on_append,
        cfg.library.process_locks,
    )
    return app


__all__ = ["create_app"]

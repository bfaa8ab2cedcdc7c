"""Document and node endpoints.

Thin transport over the node engine: reads go to DocumentView/NodeStore,
writes go through the MutationGateway. Store errors propagate to the
problem+json handlers registered in ``nodedoc.main``; no status codes for
failures are decided here.
"""

from __future__ import annotations

import logging
from typing import Optional

from anyio import to_thread
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from nodedoc.logic.document_view import DocumentView, parse_node_list
from nodedoc.logic.mutation_gateway import MutationGateway
from nodedoc.logic.node_store import NodeStore
from nodedoc.models.nodes import AppendResult, NodeListing, NodeRefModel, ReorderRequest

router = APIRouter()
logger = logging.getLogger(__name__)

HTML_MEDIA_TYPE = "text/html; charset=utf-8"
NODE_IDS_HEADER = "X-Node-Ids"


def get_store(request: Request) -> NodeStore:
    return request.app.state.store


def get_view(request: Request) -> DocumentView:
    return request.app.state.view


def get_gateway(request: Request) -> MutationGateway:
    return request.app.state.gateway


def _listing(document: str, refs) -> dict:  # type: ignore[no-untyped-def]
    return NodeListing(document=document, nodes=[NodeRefModel.from_ref(r) for r in refs]).model_dump()


@router.get("/{document}/nodes", summary="List node ids in canonical order")
def get_node_listing(document: str, store: NodeStore = Depends(get_store)) -> JSONResponse:
    refs = store.list_nodes(document)
    return JSONResponse(_listing(document, refs), status_code=200)


@router.put("/{document}/nodes", summary="Reorder nodes")
def put_node_order(
    document: str,
    payload: ReorderRequest,
    gateway: MutationGateway = Depends(get_gateway),
) -> JSONResponse:
    refs = gateway.reorder(document, payload.order)
    return JSONResponse(_listing(document, refs), status_code=200)


@router.get("/{document}", summary="Render a document or a subset of its nodes")
def get_document(
    document: str,
    nodes: Optional[str] = Query(default=None, description="Comma-separated node ids, rendered in the given order"),
    view: DocumentView = Depends(get_view),
) -> StreamingResponse:
    if nodes is None:
        stream = view.render_all(document)
    else:
        stream = view.render_subset(document, parse_node_list(document, nodes))
    return StreamingResponse(
        stream,
        media_type=HTML_MEDIA_TYPE,
        headers={NODE_IDS_HEADER: ",".join(str(i) for i in stream.node_ids)},
        background=BackgroundTask(stream.close),
    )


@router.post("/{document}", summary="Append a node", status_code=201)
async def post_node(
    document: str,
    request: Request,
    gateway: MutationGateway = Depends(get_gateway),
) -> JSONResponse:
    content = await request.body()
    ref = await to_thread.run_sync(gateway.append, document, content)
    body = AppendResult(document=document, id=ref.id, position=ref.position).model_dump()
    return JSONResponse(body, status_code=201, headers={"Location": f"/{document}/{ref.id}"})


@router.get("/{document}/{node}", summary="Read one node")
def get_node(document: str, node: int, store: NodeStore = Depends(get_store)) -> Response:
    blob = store.read(document, node)
    return Response(content=blob, media_type=HTML_MEDIA_TYPE, status_code=200)


@router.put("/{document}/{node}", summary="Replace a node's content", status_code=205)
async def put_node(
    document: str,
    node: int,
    request: Request,
    gateway: MutationGateway = Depends(get_gateway),
) -> Response:
    content = await request.body()
    await to_thread.run_sync(gateway.replace, document, node, content)
    return Response(status_code=205)


@router.delete("/{document}/{node}", summary="Delete a node", status_code=205)
def delete_node(document: str, node: int, gateway: MutationGateway = Depends(get_gateway)) -> Response:
    gateway.delete(document, node)
    return Response(status_code=205)


__all__ = [
    "router",
    "get_node_listing",
    "put_node_order",
    "get_document",
    "post_node",
    "get_node",
    "put_node",
    "delete_node",
]

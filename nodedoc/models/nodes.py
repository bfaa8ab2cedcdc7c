"""Pydantic models for node API payloads.

Declared apart from the route module so the payload structure can be
reused by tests and clients without importing FastAPI routes.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from nodedoc.logic.naming import NodeRef


class NodeRefModel(BaseModel):
    id: int = Field(ge=0)
    position: int = Field(ge=0)

    @classmethod
    def from_ref(cls, ref: NodeRef) -> "NodeRefModel":
        return cls(id=ref.id, position=ref.position)


class AppendResult(NodeRefModel):
    document: str


class NodeListing(BaseModel):
    document: str
    nodes: List[NodeRefModel]


class ReorderRequest(BaseModel):
    order: List[int]


__all__ = ["NodeRefModel", "AppendResult", "NodeListing", "ReorderRequest"]

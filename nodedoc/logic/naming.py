"""Filename scheme for persisted nodes.

A node file is named ``<rank>-<id>.html``. ``rank`` is zero-padded so a
plain directory listing sorts the same way the engine does; ``id`` is the
immutable node id. Canonical order is ascending integer rank, ties broken by
ascending id, so hand-renamed files with unpadded or duplicate ranks still
yield a total order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional

from nodedoc.logic.errors import InvalidName

NODE_SUFFIX = ".html"
NODE_FILE_RE = re.compile(r"^(\d+)-(\d+)\.html$")
DOCUMENT_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._~-]*$")


class NodeRef(NamedTuple):
    id: int
    position: int


@dataclass(frozen=True)
class NodeFile:
    rank: int
    node_id: int
    name: str

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.rank, self.node_id)


def validate_document_name(name: str) -> str:
    """Return ``name`` if it is a single normal path component, else raise."""
    if not isinstance(name, str) or name in (".", "..") or not DOCUMENT_NAME_RE.match(name):
        raise InvalidName(str(name))
    return name


def parse_node_filename(name: str) -> Optional[NodeFile]:
    m = NODE_FILE_RE.match(name)
    if not m:
        return None
    return NodeFile(rank=int(m.group(1)), node_id=int(m.group(2)), name=name)


def node_filename(rank: int, node_id: int, width: int) -> str:
    return f"{int(rank):0{int(width)}d}-{int(node_id)}{NODE_SUFFIX}"


def canonical_order(names: Iterable[str]) -> List[NodeFile]:
    """Parse node filenames and return them in canonical order.

    Names that are not node files (dotfiles, staged temp files, strays) are
    skipped.
    """
    files = [f for f in (parse_node_filename(n) for n in names) if f is not None]
    files.sort(key=lambda f: f.sort_key)
    return files


__all__ = [
    "NODE_SUFFIX",
    "NodeRef",
    "NodeFile",
    "validate_document_name",
    "parse_node_filename",
    "node_filename",
    "canonical_order",
]

"""Functional test fixtures.

Every test gets a private library directory under pytest's ``tmp_path`` so
documents, lock files and id markers never leak between tests. fsync is
disabled to keep the suite fast; durability is not what these tests check.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from jsonschema import Draft202012Validator

from nodedoc.config import AppConfig, LibraryConfig
from nodedoc.logic.document_view import DocumentView
from nodedoc.logic.events import get_buffered_events
from nodedoc.logic.locks import LOCK_DIR_NAME, LockRegistry
from nodedoc.logic.mutation_gateway import MutationGateway
from nodedoc.logic.node_store import NodeStore
from nodedoc.main import create_app

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SCHEMAS_DIR = PROJECT_ROOT / "schemas"


def load_schema(name: str) -> Dict[str, Any]:
    return json.loads((SCHEMAS_DIR / name).read_text(encoding="utf-8"))


def assert_valid(instance: Any, schema_name: str) -> None:
    validator = Draft202012Validator(load_schema(schema_name))
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    assert not errors, [e.message for e in errors]


@pytest.fixture(autouse=True)
def _clear_events():
    get_buffered_events(clear=True)
    yield
    get_buffered_events(clear=True)


@pytest.fixture
def library(tmp_path: pathlib.Path) -> pathlib.Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def store(library: pathlib.Path) -> NodeStore:
    return NodeStore(library, fsync=False, locks=LockRegistry(library / LOCK_DIR_NAME))


@pytest.fixture
def view(store: NodeStore) -> DocumentView:
    return DocumentView(store)


@pytest.fixture
def gateway(store: NodeStore) -> MutationGateway:
    return MutationGateway(store)


@pytest.fixture
def app_config(library: pathlib.Path) -> AppConfig:
    return AppConfig(library=LibraryConfig(root=library, fsync=False))


@pytest.fixture
def client(app_config: AppConfig):
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


@pytest.fixture
def schema_check():
    """Return a callable validating a JSON body against a file in ``schemas/``."""
    return assert_valid

"""Architectural tests for the API contract artefacts.

Static checks over ``schemas/`` and the error taxonomy: every schema file is
valid JSON Schema, every store error has exactly one problem+json mapping,
and problem codes satisfy the Problem schema's own pattern.
"""

from __future__ import annotations

import ast
import json
import re
from pathlib import Path
from typing import Any, Dict, List

import pytest
from jsonschema import Draft202012Validator


PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMAS_DIR = PROJECT_ROOT / "schemas"
ERRORS_PY = PROJECT_ROOT / "nodedoc" / "logic" / "errors.py"
MAPPING_PY = PROJECT_ROOT / "nodedoc" / "http" / "error_mapping.py"

REQUIRED_SCHEMAS = ("Problem.schema.json", "NodeListing.schema.json", "AppendResult.schema.json")


def _load_json(path: Path) -> Dict[str, Any]:
    """Load JSON from path, failing the test with a clear message on error."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        pytest.fail(f"Expected file is missing: {path}")
    except json.JSONDecodeError as exc:
        pytest.fail(f"Invalid JSON in {path}: {exc}")


def _error_classes() -> List[str]:
    tree = ast.parse(ERRORS_PY.read_text(encoding="utf-8"))
    return [
        node.name
        for node in tree.body
        if isinstance(node, ast.ClassDef) and node.name != "StoreError"
    ]


def _mapping_literal() -> ast.Dict:
    tree = ast.parse(MAPPING_PY.read_text(encoding="utf-8"))
    for node in tree.body:
        target = node.target if isinstance(node, ast.AnnAssign) else None
        if isinstance(target, ast.Name) and target.id == "STORE_ERROR_MAP" and isinstance(node.value, ast.Dict):
            return node.value
    pytest.fail("STORE_ERROR_MAP literal not found in error_mapping.py")


@pytest.mark.parametrize("name", REQUIRED_SCHEMAS)
def test_required_schema_is_valid(name: str) -> None:
    schema = _load_json(SCHEMAS_DIR / name)
    Draft202012Validator.check_schema(schema)
    assert schema.get("$schema", "").endswith("2020-12/schema")
    assert schema.get("type") == "object"


def test_no_unexpected_schema_files() -> None:
    present = sorted(p.name for p in SCHEMAS_DIR.glob("*.json"))
    assert present == sorted(REQUIRED_SCHEMAS)


def test_every_store_error_is_mapped_once() -> None:
    mapped = [k.id for k in _mapping_literal().keys if isinstance(k, ast.Name)]
    assert len(mapped) == len(set(mapped)), mapped
    assert sorted(mapped) == sorted(_error_classes())


def test_problem_codes_match_schema_pattern() -> None:
    pattern = re.compile(_load_json(SCHEMAS_DIR / "Problem.schema.json")["properties"]["code"]["pattern"])
    codes = []
    for value in _mapping_literal().values:
        assert isinstance(value, ast.Dict)
        entry = {k.value: v.value for k, v in zip(value.keys, value.values) if isinstance(k, ast.Constant)}
        codes.append(entry["code"])
        assert 400 <= entry["status"] <= 599
    assert codes and all(pattern.match(c) for c in codes), codes
    assert len(codes) == len(set(codes)), codes

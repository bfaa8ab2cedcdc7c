"""Functional tests for the HTTP surface.

Requests run in-process through FastAPI's TestClient against a temporary
library. Success bodies and every problem+json error are validated against
the JSON Schemas under ``schemas/``.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from nodedoc.http.problem import PROBLEM_MEDIA_TYPE
from nodedoc.main import create_app
from nodedoc.routes.documents import NODE_IDS_HEADER


def _append(client, document: str, blob: bytes):  # type: ignore[no-untyped-def]
    resp = client.post(f"/{document}", content=blob)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _assert_problem(resp, status: int, code: str, schema_check) -> dict:  # type: ignore[no-untyped-def]
    assert resp.status_code == status, resp.text
    assert resp.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    body = resp.json()
    schema_check(body, "Problem.schema.json")
    assert body["code"] == code
    return body


def test_append_replace_delete_scenario(client, schema_check):
    first = _append(client, "foo", b"A")
    second = _append(client, "foo", b"B")
    schema_check(first, "AppendResult.schema.json")
    assert (first["id"], first["position"]) == (0, 0)
    assert (second["id"], second["position"]) == (1, 1)
    assert client.get("/foo").content == b"AB"

    assert client.put("/foo/0", content=b"X").status_code == 205
    assert client.get("/foo").content == b"XB"

    assert client.delete("/foo/0").status_code == 205
    listing = client.get("/foo/nodes").json()
    schema_check(listing, "NodeListing.schema.json")
    assert listing == {"document": "foo", "nodes": [{"id": 1, "position": 0}]}
    assert client.get("/foo").content == b"B"


def test_append_returns_location_of_new_node(client):
    resp = client.post("/foo", content=b"<p>hi</p>")

    assert resp.status_code == 201
    assert resp.headers["location"] == "/foo/0"
    assert resp.json() == {"document": "foo", "id": 0, "position": 0}
    assert client.get(resp.headers["location"]).content == b"<p>hi</p>"


def test_render_is_html_with_node_ids_header(client):
    for blob in (b"<h1>T</h1>", b"<p>1</p>", b"<p>2</p>"):
        _append(client, "doc", blob)

    resp = client.get("/doc")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert resp.headers[NODE_IDS_HEADER] == "0,1,2"


def test_single_node_read(client):
    _append(client, "doc", b"A")
    _append(client, "doc", b"B")

    resp = client.get("/doc/1")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert resp.content == b"B"


@pytest.mark.parametrize(
    "query, body, ids",
    [
        ("2,0", b"CA", "2,0"),
        ("1,1", b"BB", "1,1"),
        ("", b"", ""),
    ],
)
def test_subset_render_uses_literal_order(client, query, body, ids):
    for blob in (b"A", b"B", b"C"):
        _append(client, "doc", blob)

    resp = client.get("/doc", params={"nodes": query})

    assert resp.status_code == 200
    assert resp.content == body
    assert resp.headers[NODE_IDS_HEADER] == ids


def test_subset_with_unknown_id_is_node_not_found(client, schema_check):
    _append(client, "doc", b"A")

    body = _assert_problem(client.get("/doc", params={"nodes": "0,7"}), 404, "NODE_NOT_FOUND", schema_check)

    assert body["node"] == 7
    assert body["document"] == "doc"


def test_subset_with_malformed_token_names_the_token(client, schema_check):
    _append(client, "doc", b"A")

    body = _assert_problem(client.get("/doc", params={"nodes": "0,zero"}), 404, "NODE_NOT_FOUND", schema_check)

    assert body["node"] == "zero"


def test_reorder_endpoint(client, schema_check):
    for blob in (b"A", b"B", b"C"):
        _append(client, "doc", blob)

    resp = client.put("/doc/nodes", json={"order": [2, 0, 1]})

    assert resp.status_code == 200
    schema_check(resp.json(), "NodeListing.schema.json")
    assert [n["id"] for n in resp.json()["nodes"]] == [2, 0, 1]
    assert client.get("/doc").content == b"CAB"


def test_reorder_rejects_non_permutation(client, schema_check):
    for blob in (b"A", b"B", b"C"):
        _append(client, "doc", blob)

    body = _assert_problem(client.put("/doc/nodes", json={"order": [0, 0, 5]}), 400, "INVALID_ORDER", schema_check)

    assert body["missing"] == [1, 2]
    assert body["unknown"] == [5]
    assert body["duplicated"] == [0]
    assert client.get("/doc").content == b"ABC"


def test_reorder_with_malformed_payload_is_request_invalid(client, schema_check):
    _append(client, "doc", b"A")

    body = _assert_problem(client.put("/doc/nodes", json={"order": "0"}), 422, "REQUEST_INVALID", schema_check)

    assert body["errors"]


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/missing"),
        ("GET", "/missing/0"),
        ("GET", "/missing/nodes"),
        ("PUT", "/missing/0"),
        ("DELETE", "/missing/0"),
    ],
)
def test_missing_document_is_document_not_found(client, schema_check, library, method, path):
    body = _assert_problem(client.request(method, path, content=b"x"), 404, "DOCUMENT_NOT_FOUND", schema_check)

    assert body["document"] == "missing"
    assert not (library / "missing").exists()


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_missing_node_is_node_not_found(client, schema_check, method):
    _append(client, "doc", b"A")

    body = _assert_problem(client.request(method, "/doc/9", content=b"x"), 404, "NODE_NOT_FOUND", schema_check)

    assert body["node"] == 9


def test_deleted_node_id_is_not_reused_over_http(client):
    _append(client, "doc", b"A")
    _append(client, "doc", b"B")
    client.delete("/doc/1")

    assert _append(client, "doc", b"C")["id"] == 2


def test_invalid_document_name_is_rejected(client, schema_check, library):
    _assert_problem(client.post("/-dash", content=b"x"), 400, "INVALID_DOCUMENT_NAME", schema_check)
    _assert_problem(client.get("/bad%20name"), 400, "INVALID_DOCUMENT_NAME", schema_check)

    assert [p.name for p in library.iterdir()] == []


def test_non_integer_node_segment_is_request_invalid(client, schema_check):
    _append(client, "doc", b"A")

    _assert_problem(client.get("/doc/first"), 422, "REQUEST_INVALID", schema_check)


def test_storage_failure_hides_paths(client, schema_check, library):
    _append(client, "doc", b"A")
    (library / "doc" / "000004-0.html").write_bytes(b"duplicate id")

    body = _assert_problem(client.get("/doc"), 500, "STORAGE_IO", schema_check)

    assert body["detail"] == "storage operation failed"
    assert str(library) not in body["detail"]


def test_unknown_route_is_a_problem(client, schema_check):
    _assert_problem(client.get("/a/b/c"), 404, "HTTP_ERROR", schema_check)


def test_create_policy_off_rejects_append_to_missing_document(app_config, schema_check, library):
    app_config.library.create_on_append = False
    with TestClient(create_app(app_config)) as strict:
        _assert_problem(strict.post("/fresh", content=b"x"), 404, "DOCUMENT_NOT_FOUND", schema_check)

    assert not (library / "fresh").exists()


def test_request_id_is_generated_or_echoed(client):
    generated = client.get("/-/health")
    echoed = client.get("/-/health", headers={"X-Request-Id": "req-42"})

    assert generated.headers["x-request-id"]
    assert echoed.headers["x-request-id"] == "req-42"


def test_request_id_on_error_responses(client):
    resp = client.get("/missing", headers={"X-Request-Id": "req-err"})

    assert resp.status_code == 404
    assert resp.headers["x-request-id"] == "req-err"


def test_health(client, library):
    resp = client.get("/-/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "library": str(library.resolve())}


def test_cors_exposes_node_headers(client):
    resp = client.options(
        "/doc",
        headers={"Origin": "http://editor.example", "Access-Control-Request-Method": "PUT"},
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"

    simple = client.get("/-/health", headers={"Origin": "http://editor.example"})
    exposed = simple.headers["access-control-expose-headers"]
    assert NODE_IDS_HEADER in exposed
    assert "Location" in exposed

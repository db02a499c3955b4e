import json
import sys
import types
from dataclasses import dataclass

import pytest
from starlette.testclient import TestClient

from routeforge.domain.config import GeneratorConfig
from routeforge.domain.manifest import Manifest
from routeforge.orchestrator.pipeline import compile_manifest

from conftest import load_generated


@dataclass
class AuditRequest:
    since: int = 0
    priority: int = 0


AuditRequest.__module__ = "auditapp.models"

SEEN: list = []


def events() -> None:
    SEEN.append("get")


def events_head() -> None:
    SEEN.append("head")


def audit(req: AuditRequest) -> None:
    SEEN.append(req)


AUDIT_MANIFEST = {
    "endpoints": [
        {
            "method": "HEAD",
            "path": "/events",
            "handler_pkg": "auditapp.handlers",
            "handler_name": "events_head",
            "shape": "no_req_no_resp",
        },
        {
            "method": "GET",
            "path": "/events",
            "handler_pkg": "auditapp.handlers",
            "handler_name": "events",
            "shape": "no_req_no_resp",
        },
        {
            "method": "GET",
            "path": "/audit",
            "handler_pkg": "auditapp.handlers",
            "handler_name": "audit",
            "shape": "req_no_resp",
            "req_type": "auditapp.models.AuditRequest",
            "bindings": {
                "query_bindings": [{"field_name": "since", "tag": "since", "type_kind": "int64", "is_pointer": False}],
                "header_bindings": [
                    {"field_name": "priority", "tag": "X-Priority", "type_kind": "uint8", "is_pointer": False}
                ],
            },
        },
    ],
    "types": {
        "auditapp.models.AuditRequest": {
            "id": "auditapp.models.AuditRequest",
            "kind": "struct",
            "fields": [
                {"name": "since", "type_id": "int64"},
                {"name": "priority", "type_id": "uint8"},
            ],
        }
    },
}


@pytest.fixture
def audit_manifest() -> Manifest:
    return Manifest.model_validate(AUDIT_MANIFEST)


@pytest.fixture
def audit_modules(monkeypatch) -> None:
    SEEN.clear()
    root = types.ModuleType("auditapp")
    models = types.ModuleType("auditapp.models")
    handlers = types.ModuleType("auditapp.handlers")
    models.AuditRequest = AuditRequest
    for fn in (events, events_head, audit):
        setattr(handlers, fn.__name__, fn)
    root.models, root.handlers = models, handlers
    for m in (root, models, handlers):
        monkeypatch.setitem(sys.modules, m.__name__, m)


@pytest.fixture
def audit_client(audit_modules, audit_manifest) -> TestClient:
    source = compile_manifest(audit_manifest, GeneratorConfig(package="auditapp")).source
    return TestClient(load_generated(source, "rf_audit_http").create_router())


def test_head_route_precedes_get_on_same_path(audit_modules, audit_manifest):
    mod = load_generated(compile_manifest(audit_manifest, GeneratorConfig()).source, "rf_audit_routes")
    assert [(r.path, sorted(r.methods)) for r in mod.ROUTES] == [
        ("/audit", ["GET", "HEAD"]),
        ("/events", ["HEAD"]),
        ("/events", ["GET", "HEAD"]),
    ]


def test_declared_head_reaches_its_handler(audit_client):
    assert audit_client.head("/events").status_code == 204
    assert SEEN == ["head"]

    assert audit_client.get("/events").status_code == 204
    assert SEEN == ["head", "get"]


def test_required_query_and_header_bind(audit_client):
    r = audit_client.get("/audit?since=-5", headers={"X-Priority": "255"})
    assert r.status_code == 204
    assert SEEN[-1] == AuditRequest(since=-5, priority=255)


def test_missing_required_query_is_400(audit_client):
    r = audit_client.get("/audit", headers={"X-Priority": "1"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"
    assert SEEN == []


def test_missing_required_header_is_400(audit_client):
    r = audit_client.get("/audit?since=1")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"
    assert SEEN == []


@pytest.mark.parametrize(
    "query, priority",
    [
        ("since=1", "256"),
        ("since=1", "-1"),
        ("since=9223372036854775808", "1"),
    ],
)
def test_out_of_range_values_are_400(audit_client, query, priority):
    r = audit_client.get(f"/audit?{query}", headers={"X-Priority": priority})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"
    assert SEEN == []


def test_required_parameters_in_openapi(audit_manifest):
    doc = json.loads(compile_manifest(audit_manifest, GeneratorConfig(openapi_enabled=True)).openapi)
    params = {p["name"]: p for p in doc["paths"]["/audit"]["get"]["parameters"]}
    assert params["since"] == {
        "name": "since",
        "in": "query",
        "required": True,
        "schema": {"type": "integer", "format": "int64"},
    }
    assert params["X-Priority"]["in"] == "header"
    assert params["X-Priority"]["required"] is True
    assert params["X-Priority"]["schema"]["minimum"] == 0
    assert "head" in doc["paths"]["/events"]
    assert "400" in doc["paths"]["/audit"]["get"]["responses"]

from __future__ import annotations

import copy
import sys
import types
from dataclasses import dataclass
from typing import Any, Optional

import pytest
from starlette.testclient import TestClient

from routeforge.domain.config import GeneratorConfig
from routeforge.domain.manifest import Manifest
from routeforge.orchestrator.pipeline import compile_manifest


# --- handler package imported by the generated code ---------------------------


@dataclass
class Pet:
    id: int
    name: str
    tag: Optional[str] = None
    owner_id: int = 0


@dataclass
class GetPetRequest:
    pet_id: int = 0


@dataclass
class CreatePetRequest:
    name: str = ""
    tag: Optional[str] = None
    owner_id: int = 0
    dry_run: Optional[bool] = None


@dataclass
class ListPetsRequest:
    limit: Optional[int] = None
    tags: Optional[list] = None
    request_id: Optional[str] = None


for _cls in (Pet, GetPetRequest, CreatePetRequest, ListPetsRequest):
    _cls.__module__ = "petapp.models"


class ApiError(Exception):
    def __init__(self, status: int, code: str, message: str) -> None:
        self.status = status
        self.code = code
        self.message = message
        super().__init__(message)


PETS: dict[int, Pet] = {}
CALLS: list[Any] = []


def health() -> None:
    CALLS.append("health")


async def get_pet(req: GetPetRequest) -> Pet:
    pet = PETS.get(req.pet_id)
    if pet is None:
        raise ApiError(404, "not_found", f"no pet {req.pet_id}")
    return pet


def delete_pet(req: GetPetRequest) -> None:
    if req.pet_id == 13:
        raise RuntimeError("unlucky")
    PETS.pop(req.pet_id, None)


def create_pet(req: CreatePetRequest) -> Pet:
    CALLS.append(req)
    pet = Pet(id=0 if req.dry_run else len(PETS) + 1, name=req.name, tag=req.tag, owner_id=req.owner_id)
    if not req.dry_run:
        PETS[pet.id] = pet
    return pet


def list_pets(req: ListPetsRequest) -> Optional[list[Pet]]:
    CALLS.append(req)
    if req.limit == 0:
        return None
    return list(PETS.values())[: req.limit or 100]


async def require_auth(request: Any, call_next: Any) -> Any:
    token = request.headers.get("authorization")
    if token is None:
        raise ApiError(401, "unauthorized", "missing token")
    if token != "Bearer good":
        raise ApiError(403, "forbidden", "bad token")
    return await call_next()


@pytest.fixture
def pet_modules(monkeypatch: pytest.MonkeyPatch) -> dict[str, types.ModuleType]:
    PETS.clear()
    PETS[1] = Pet(id=1, name="Rex", tag="dog", owner_id=7)
    CALLS.clear()

    root = types.ModuleType("petapp")
    models = types.ModuleType("petapp.models")
    handlers = types.ModuleType("petapp.handlers")
    auth = types.ModuleType("petapp.auth")
    for cls in (Pet, GetPetRequest, CreatePetRequest, ListPetsRequest):
        setattr(models, cls.__name__, cls)
    for fn in (health, get_pet, delete_pet, create_pet, list_pets):
        setattr(handlers, fn.__name__, fn)
    auth.require_auth = require_auth
    root.models, root.handlers, root.auth = models, handlers, auth

    mods = {m.__name__: m for m in (root, models, handlers, auth)}
    for name, m in mods.items():
        monkeypatch.setitem(sys.modules, name, m)
    return mods


# --- manifest ------------------------------------------------------------------


PETS_MANIFEST: dict[str, Any] = {
    "version": 1,
    "endpoints": [
        {
            "method": "GET",
            "path": "/health",
            "handler_pkg": "petapp.handlers",
            "handler_name": "health",
            "shape": "no_req_no_resp",
        },
        {
            "method": "GET",
            "path": "/pets/{id}",
            "handler_pkg": "petapp.handlers",
            "handler_name": "get_pet",
            "shape": "req_resp",
            "req_type": "petapp.models.GetPetRequest",
            "resp_type": "petapp.models.Pet",
            "bindings": {"path_bindings": [{"field_name": "pet_id", "tag": "id", "type_kind": "int64"}]},
        },
        {
            "method": "DELETE",
            "path": "/pets/{id}",
            "handler_pkg": "petapp.handlers",
            "handler_name": "delete_pet",
            "shape": "req_no_resp",
            "req_type": "petapp.models.GetPetRequest",
            "bindings": {"path_bindings": [{"field_name": "pet_id", "tag": "id", "type_kind": "int64"}]},
        },
        {
            "method": "POST",
            "path": "/pets",
            "handler_pkg": "petapp.handlers",
            "handler_name": "create_pet",
            "shape": "req_resp",
            "req_type": "petapp.models.CreatePetRequest",
            "resp_type": "petapp.models.Pet",
            "bindings": {
                "has_json_body": True,
                "query_bindings": [
                    {"field_name": "dry_run", "tag": "dry_run", "type_kind": "bool", "is_pointer": True}
                ],
            },
            "middlewares": [{"pkg": "petapp.auth", "name": "require_auth"}],
        },
        {
            "method": "GET",
            "path": "/pets",
            "handler_pkg": "petapp.handlers",
            "handler_name": "list_pets",
            "shape": "req_resp",
            "req_type": "petapp.models.ListPetsRequest",
            "resp_type": "[]petapp.models.Pet",
            "bindings": {
                "query_bindings": [
                    {"field_name": "limit", "tag": "limit", "type_kind": "int32", "is_pointer": True},
                    {"field_name": "tags", "tag": "tag", "is_slice": True, "elem_kind": "string", "is_pointer": True},
                ],
                "header_bindings": [
                    {"field_name": "request_id", "tag": "X-Request-Id", "type_kind": "string", "is_pointer": True}
                ],
            },
        },
    ],
    "types": {
        "petapp.models.Pet": {
            "id": "petapp.models.Pet",
            "kind": "struct",
            "doc": "A pet in the store.",
            "fields": [
                {"name": "id", "json_name": "id", "type_id": "int64", "required": True, "doc": "Pet id"},
                {"name": "name", "json_name": "name", "type_id": "string", "required": True},
                {"name": "tag", "json_name": "tag", "type_id": "*string"},
                {"name": "owner_id", "json_name": "ownerId", "type_id": "int64"},
            ],
        },
        "petapp.models.GetPetRequest": {
            "id": "petapp.models.GetPetRequest",
            "kind": "struct",
            "fields": [{"name": "pet_id", "type_id": "int64"}],
        },
        "petapp.models.CreatePetRequest": {
            "id": "petapp.models.CreatePetRequest",
            "kind": "struct",
            "fields": [
                {"name": "name", "json_name": "name", "type_id": "string", "required": True},
                {"name": "tag", "json_name": "tag", "type_id": "*string"},
                {"name": "owner_id", "json_name": "ownerId", "type_id": "int64"},
                {"name": "dry_run", "type_id": "*bool"},
            ],
        },
        "petapp.models.ListPetsRequest": {
            "id": "petapp.models.ListPetsRequest",
            "kind": "struct",
            "fields": [
                {"name": "limit", "type_id": "*int32"},
                {"name": "tags", "type_id": "[]string"},
                {"name": "request_id", "type_id": "*string"},
            ],
        },
        "petapp.models.Unused": {"id": "petapp.models.Unused", "kind": "struct", "fields": []},
    },
    "endpoint_docs": {
        "petapp.handlers.get_pet": {"summary": "Fetch a pet", "description": "Returns one pet by id."},
        "petapp.handlers.health": {"summary": "", "description": ""},
    },
    "middleware_metadata": {
        "petapp.auth.require_auth": {
            "may_return_statuses": [
                {"status": 401, "description": "Unauthorized"},
                {"status": 403, "description": "Forbidden"},
                {"status": 400, "description": "should not replace the built-in 400"},
            ]
        }
    },
}


@pytest.fixture
def pets_data() -> dict[str, Any]:
    return copy.deepcopy(PETS_MANIFEST)


@pytest.fixture
def pets_manifest(pets_data: dict[str, Any]) -> Manifest:
    return Manifest.model_validate(pets_data)


@pytest.fixture
def openapi_config() -> GeneratorConfig:
    return GeneratorConfig(package="petapp", openapi_enabled=True)


def load_generated(source: str, name: str = "rf_generated_http") -> types.ModuleType:
    mod = types.ModuleType(name)
    exec(compile(source, f"{name}.py", "exec"), mod.__dict__)
    return mod


@pytest.fixture
def generated(pet_modules, pets_manifest, openapi_config) -> types.ModuleType:
    artifacts = compile_manifest(pets_manifest, openapi_config)
    return load_generated(artifacts.source)


@pytest.fixture
def client(generated) -> TestClient:
    return TestClient(generated.create_router())

from pathlib import Path

import pytest
from starlette.testclient import TestClient

from routeforge.codegen.runtime import GENERATED_HEADER
from routeforge.codegen.testclient import generate_testclient
from routeforge.domain.config import GeneratorConfig
from routeforge.domain.manifest import Manifest
from routeforge.orchestrator.context import BuildContext
from routeforge.orchestrator.pipeline import compile_manifest
from routeforge.orchestrator.writer import write_artifacts
from routeforge.ordering.canonical import canonicalize

from conftest import CALLS, PETS, CreatePetRequest, GetPetRequest, ListPetsRequest, load_generated


@pytest.fixture
def client_config() -> GeneratorConfig:
    return GeneratorConfig(package="petapp", test_client_enabled=True)


@pytest.fixture
def api(pet_modules, pets_manifest, client_config):
    artifacts = compile_manifest(pets_manifest, client_config)
    app = load_generated(artifacts.source, "rf_tc_http")
    mod = load_generated(artifacts.testclient, "rf_tc_client")
    http = TestClient(app.create_router(), headers={"Authorization": "Bearer good"})
    return mod, mod.Client(http)


def test_disabled_by_default(pets_manifest):
    assert compile_manifest(pets_manifest, GeneratorConfig(package="petapp")).testclient is None


def test_one_method_per_endpoint(pets_manifest, client_config):
    source = compile_manifest(pets_manifest, client_config).testclient
    assert source.startswith(GENERATED_HEADER + "\n")
    assert "import httpx\n" in source
    for sig in (
        "def health(self) -> None:",
        "def get_pet(self, req: Any) -> Any:",
        "def delete_pet(self, req: Any) -> None:",
        "def create_pet(self, req: Any) -> Any:",
        "def list_pets(self, req: Any) -> Any:",
    ):
        assert source.count(sig) == 1
    compile(source, "_generated_testclient.py", "exec")


def test_no_request_endpoint(api):
    _, client = api
    assert client.health() is None
    assert CALLS == ["health"]


def test_path_parameter_and_json_names(api):
    _, client = api
    assert client.get_pet(GetPetRequest(pet_id=1)) == {"id": 1, "name": "Rex", "tag": "dog", "ownerId": 7}


def test_error_envelope_is_raised(api):
    mod, client = api
    with pytest.raises(mod.ClientError) as info:
        client.get_pet(GetPetRequest(pet_id=99))
    assert info.value.status == 404
    assert info.value.code == "not_found"
    assert info.value.message == "no pet 99"


def test_json_body_and_optional_query(api):
    _, client = api
    pet = client.create_pet(CreatePetRequest(name="Tom", owner_id=3, dry_run=True))
    assert pet == {"id": 0, "name": "Tom", "tag": None, "ownerId": 3}
    req = CALLS[-1]
    assert req.dry_run is True
    assert req.owner_id == 3
    assert len(PETS) == 1

    client.create_pet(CreatePetRequest(name="Kit"))
    assert CALLS[-1].dry_run is None
    assert len(PETS) == 2


def test_repeated_query_and_header(api):
    _, client = api
    pets = client.list_pets(ListPetsRequest(limit=1, tags=["a", "b"], request_id="req-1"))
    assert [p["name"] for p in pets] == ["Rex"]
    req = CALLS[-1]
    assert req.limit == 1
    assert req.tags == ["a", "b"]
    assert req.request_id == "req-1"

    client.list_pets(ListPetsRequest())
    req = CALLS[-1]
    assert req.limit is None
    assert req.tags is None
    assert req.request_id is None


def test_no_response_body_returns_none(api):
    _, client = api
    assert client.delete_pet(GetPetRequest(pet_id=1)) is None
    assert 1 not in PETS


def test_middleware_rejection_surfaces_as_client_error(pet_modules, pets_manifest, client_config):
    artifacts = compile_manifest(pets_manifest, client_config)
    app = load_generated(artifacts.source, "rf_tc_http2")
    mod = load_generated(artifacts.testclient, "rf_tc_client2")
    client = mod.Client(TestClient(app.create_router()))
    with pytest.raises(mod.ClientError) as info:
        client.create_pet(CreatePetRequest(name="Tom"))
    assert info.value.status == 401
    assert info.value.code == "unauthorized"


def test_awkward_path_still_compiles():
    m = Manifest.model_validate(
        {
            "endpoints": [
                {
                    "method": "GET",
                    "path": '/a"""b/{id}\\x',
                    "handler_pkg": "app.h",
                    "handler_name": "odd",
                    "shape": "req_no_resp",
                    "req_type": "app.m.Req",
                    "bindings": {"path_bindings": [{"field_name": "n", "tag": "id", "type_kind": "int64"}]},
                }
            ],
            "types": {"app.m.Req": {"id": "app.m.Req", "kind": "struct", "fields": [{"name": "n", "type_id": "int64"}]}},
        }
    )
    source = generate_testclient(canonicalize(m), BuildContext())
    compile(source, "_generated_testclient.py", "exec")
    assert "path = '/a\"\"\"b/' + quote(format_value(req.n), safe=\"\") + '\\\\x'" in source


def test_writer_emits_client_file(tmp_path: Path, pets_manifest):
    cfg = GeneratorConfig(package="petapp", test_client_enabled=True, test_client_filename="tests/api_client.py")
    written = write_artifacts(compile_manifest(pets_manifest, cfg), tmp_path, cfg)
    assert written == [tmp_path / "_generated_http.py", tmp_path / "tests" / "api_client.py"]
    assert (tmp_path / "tests" / "api_client.py").read_text(encoding="utf-8").startswith(GENERATED_HEADER)

from __future__ import annotations

import re
from typing import Iterable

from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import (
    MANIFEST_VERSION,
    FieldBinding,
    Manifest,
    ManifestEndpoint,
    TypeKind,
)
from routeforge.domain.typeref import is_identifier, is_module_path, split_qualified
from routeforge.graph.builder import build_type_graph, find_cycle

_PATH_PARAM = re.compile(r"\{([^{}]*)\}")


def path_params(path: str) -> list[str]:
    return _PATH_PARAM.findall(path)


def _where(ep: ManifestEndpoint) -> str:
    return f"{ep.method} {ep.path} ({ep.qualified_name})"


def _check_kind(kind: str, where: str) -> None:
    if TypeKind.lookup(kind) is None:
        raise ManifestValidationError(f"{where}: unknown type kind {kind!r}")


def _check_bindings(ep: ManifestEndpoint, category: str, bindings: Iterable[FieldBinding]) -> None:
    where = _where(ep)
    seen: set[str] = set()
    for b in bindings:
        label = f"{where}: {category} binding {b.field_name!r}"
        if not b.tag:
            raise ManifestValidationError(f"{label} has no tag")
        key = b.tag.lower() if category == "header" else b.tag
        if key in seen:
            raise ManifestValidationError(f"{label}: duplicate {category} tag {b.tag!r}")
        seen.add(key)
        if not is_identifier(b.field_name):
            raise ManifestValidationError(f"{label}: field name is not an identifier")
        if b.is_slice:
            if not b.elem_kind:
                raise ManifestValidationError(f"{label}: slice binding is missing elem_kind")
            _check_kind(b.elem_kind, label)
        else:
            _check_kind(b.type_kind, label)


def _check_endpoint(ep: ManifestEndpoint, manifest: Manifest) -> None:
    where = _where(ep)
    types = manifest.types

    if not ep.path.startswith("/"):
        raise ManifestValidationError(f"{where}: path must start with /")
    if not is_module_path(ep.handler_pkg):
        raise ManifestValidationError(f"{where}: handler package is not a dotted module path")
    if not is_identifier(ep.handler_name):
        raise ManifestValidationError(f"{where}: handler name is not an identifier")
    for mw in ep.middlewares:
        if not is_module_path(mw.pkg) or not is_identifier(mw.name):
            raise ManifestValidationError(f"{where}: invalid middleware {mw.qualified_name!r}")

    params = path_params(ep.path)
    for p in params:
        if not is_identifier(p):
            raise ManifestValidationError(f"{where}: path parameter {p!r} is not an identifier")

    shape = ep.shape
    if shape.has_request != (ep.req_type is not None):
        raise ManifestValidationError(f"{where}: shape {shape.value} does not match req_type presence")
    if shape.has_response != (ep.resp_type is not None):
        raise ManifestValidationError(f"{where}: shape {shape.value} does not match resp_type presence")
    if ep.bindings is not None and not shape.has_request:
        raise ManifestValidationError(f"{where}: bindings present on a shape without request")

    if ep.req_type is not None:
        module, name = split_qualified(ep.req_type)
        if not is_module_path(module) or not is_identifier(name):
            raise ManifestValidationError(
                f"{where}: req_type {ep.req_type!r} is not an importable qualified name"
            )
        mt = types.get(ep.req_type)
        if mt is not None and mt.kind != "struct":
            raise ManifestValidationError(f"{where}: req_type {ep.req_type!r} must be a struct")

    b = ep.bindings
    if b is None:
        return

    _check_bindings(ep, "path", b.path_bindings)
    _check_bindings(ep, "query", b.query_bindings)
    _check_bindings(ep, "header", b.header_bindings)

    for pb in b.path_bindings:
        if pb.is_slice:
            raise ManifestValidationError(f"{where}: path binding {pb.tag!r} cannot be a slice")
        if pb.tag not in params:
            raise ManifestValidationError(f"{where}: path binding {pb.tag!r} is not a parameter of the path")

    if b.has_json_body:
        mt = types.get(ep.req_type or "")
        if mt is None:
            raise ManifestValidationError(
                f"{where}: json body request type {ep.req_type!r} is not described in types"
            )


def validate_manifest(manifest: Manifest) -> None:
    """
    Fail closed on anything the generators cannot honour.

    Raises ManifestValidationError with a message naming the offending
    endpoint, binding or type.
    """
    if manifest.version != MANIFEST_VERSION:
        raise ManifestValidationError(
            f"unsupported manifest version {manifest.version} (expected {MANIFEST_VERSION})"
        )

    for key, mt in manifest.types.items():
        if key != mt.id:
            raise ManifestValidationError(f"types key {key!r} does not match type id {mt.id!r}")
        if key.startswith(("[]", "*")) or TypeKind.lookup(key) is not None:
            raise ManifestValidationError(f"type id {key!r} shadows a builtin type form")
        if mt.kind == "struct":
            json_names: set[str] = set()
            for f in mt.fields:
                if not is_identifier(f.name):
                    raise ManifestValidationError(f"type {key}: field name {f.name!r} is not an identifier")
                if f.json_name:
                    if f.json_name in json_names:
                        raise ManifestValidationError(f"type {key}: duplicate json name {f.json_name!r}")
                    json_names.add(f.json_name)
        elif mt.kind == "map" and mt.key not in ("", TypeKind.STRING.value):
            raise ManifestValidationError(
                f"type {key}: non-string map key type {mt.key!r} is not supported in JSON"
            )

    seen: dict[tuple[str, str], ManifestEndpoint] = {}
    for ep in manifest.endpoints:
        key = (ep.method, ep.path)
        if key in seen:
            raise ManifestValidationError(
                f"duplicate endpoint {ep.method} {ep.path}: "
                f"{seen[key].qualified_name} and {ep.qualified_name}"
            )
        seen[key] = ep
        _check_endpoint(ep, manifest)

    roots = [t for ep in manifest.endpoints for t in (ep.req_type, ep.resp_type) if t]
    result = build_type_graph(manifest.types, roots)
    cycle = find_cycle(result.graph)
    if cycle:
        raise ManifestValidationError(f"type references form a cycle: {' -> '.join(cycle)}")

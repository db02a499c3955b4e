from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from routeforge.domain.config import GeneratorConfig
from routeforge.domain.manifest import FieldBinding, Manifest, ManifestEndpoint, TypeKind
from routeforge.openapi.schemas import ERROR_RESPONSE, REF_PREFIX, Schema, SchemaSynthesizer, primitive_schema
from routeforge.orchestrator.context import BuildContext
from routeforge.ordering.naming import operation_id, path_tag

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"
JSON_MEDIA = "application/json"

_METHOD_ORDER = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


def _error_response(description: str) -> Schema:
    return {
        "description": description,
        "content": {JSON_MEDIA: {"schema": {"$ref": REF_PREFIX + ERROR_RESPONSE}}},
    }


def parameter_schema(b: FieldBinding) -> Schema:
    if b.is_slice:
        return {"type": "array", "items": primitive_schema(TypeKind(b.elem_kind))}
    return primitive_schema(TypeKind(b.type_kind))


def _parameters(ep: ManifestEndpoint) -> List[Schema]:
    if ep.bindings is None:
        return []
    params: List[Schema] = []
    for b in ep.bindings.path_bindings:
        params.append({"name": b.tag, "in": "path", "required": True, "schema": parameter_schema(b)})
    for location, bindings in (("query", ep.bindings.query_bindings), ("header", ep.bindings.header_bindings)):
        for b in bindings:
            params.append(
                {"name": b.tag, "in": location, "required": not b.is_pointer, "schema": parameter_schema(b)}
            )
    return params


def _responses(ep: ManifestEndpoint, manifest: Manifest, schemas: SchemaSynthesizer) -> Schema:
    responses: Dict[str, Schema] = {}

    if ep.shape.has_response and ep.resp_type:
        responses["200"] = {
            "description": "Successful response",
            "content": {JSON_MEDIA: {"schema": schemas.ref_for(ep.resp_type)}},
        }
    else:
        responses["204"] = {"description": "No Content"}

    if ep.has_bindings:
        responses["400"] = _error_response("Bad Request")
    responses["500"] = _error_response("Internal Server Error")

    # built-in responses win; among middlewares the first declaration of a status wins
    for mw in ep.middlewares:
        meta = manifest.middleware_metadata.get(mw.qualified_name)
        if meta is None:
            continue
        for st in meta.may_return_statuses:
            code = str(st.status)
            if code not in responses:
                responses[code] = _error_response(st.description or "Error")

    return {code: responses[code] for code in sorted(responses)}


def build_operation(
    ep: ManifestEndpoint,
    manifest: Manifest,
    schemas: SchemaSynthesizer,
    ctx: BuildContext,
) -> Schema:
    op: Schema = {
        "operationId": ctx.operation_ids.allocate(f"{ep.method} {ep.path}", operation_id(ep.qualified_name)),
        "tags": [path_tag(ep.path)],
    }

    doc = manifest.endpoint_docs.get(ep.qualified_name)
    if doc is not None:
        if doc.summary:
            op["summary"] = doc.summary
        if doc.description:
            op["description"] = doc.description

    params = _parameters(ep)
    if params:
        op["parameters"] = params

    if ep.bindings is not None and ep.bindings.has_json_body and ep.req_type:
        op["requestBody"] = {
            "required": True,
            "content": {JSON_MEDIA: {"schema": schemas.ref_for(ep.req_type)}},
        }

    op["responses"] = _responses(ep, manifest, schemas)
    return op


def build_openapi(manifest: Manifest, config: GeneratorConfig, ctx: BuildContext) -> Schema:
    """
    Assemble the OpenAPI 3.0.3 document as a plain dict.

    The manifest must already be validated and in canonical order; insertion
    order of every mapping here is the serialized order.
    """
    info: Schema = {"title": config.openapi_title, "version": config.openapi_version}
    if config.openapi_description:
        info["description"] = config.openapi_description

    doc: Schema = {"openapi": OPENAPI_VERSION, "info": info}
    if config.openapi_servers:
        doc["servers"] = [{"url": url} for url in config.openapi_servers]

    schemas = SchemaSynthesizer(manifest.types, ctx)
    roots = [t for ep in manifest.endpoints for t in (ep.req_type, ep.resp_type) if t]
    schemas.register(roots)

    by_path: Dict[str, Dict[str, Schema]] = {}
    for ep in manifest.endpoints:
        by_path.setdefault(ep.path, {})[ep.method] = build_operation(ep, manifest, schemas, ctx)

    paths: Schema = {}
    for path in sorted(by_path):
        ops = by_path[path]
        paths[path] = {m.lower(): ops[m] for m in _METHOD_ORDER if m in ops}
    doc["paths"] = paths

    components = schemas.components()
    doc["components"] = {"schemas": components}

    logger.debug("openapi: %d path(s), %d schema component(s)", len(paths), len(components))
    return doc


def render_openapi(doc: Schema) -> bytes:
    """Deterministic bytes: insertion-ordered keys, two-space indent, trailing newline."""
    return (json.dumps(doc, indent=2, ensure_ascii=False) + "\n").encode("utf-8")

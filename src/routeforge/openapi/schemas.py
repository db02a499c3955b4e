from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from routeforge.domain.manifest import ManifestType, TypeKind
from routeforge.domain.typeref import parse_type_ref
from routeforge.graph.builder import build_type_graph, reachable_named_types
from routeforge.orchestrator.context import BuildContext
from routeforge.ordering.naming import component_name

ERROR_RESPONSE = "ErrorResponse"
REF_PREFIX = "#/components/schemas/"

Schema = Dict[str, Any]

_PRIMITIVES: Dict[TypeKind, Schema] = {
    TypeKind.STRING: {"type": "string"},
    TypeKind.BOOL: {"type": "boolean"},
    TypeKind.INT: {"type": "integer", "format": "int64"},
    TypeKind.INT8: {"type": "integer", "format": "int8"},
    TypeKind.INT16: {"type": "integer", "format": "int16"},
    TypeKind.INT32: {"type": "integer", "format": "int32"},
    TypeKind.INT64: {"type": "integer", "format": "int64"},
    TypeKind.UINT: {"type": "integer", "format": "uint64", "minimum": 0},
    TypeKind.UINT8: {"type": "integer", "format": "uint8", "minimum": 0},
    TypeKind.UINT16: {"type": "integer", "format": "uint16", "minimum": 0},
    TypeKind.UINT32: {"type": "integer", "format": "uint32", "minimum": 0},
    TypeKind.UINT64: {"type": "integer", "format": "uint64", "minimum": 0},
    TypeKind.FLOAT32: {"type": "number", "format": "float"},
    TypeKind.FLOAT64: {"type": "number", "format": "double"},
    TypeKind.TIME: {"type": "string", "format": "date-time"},
    TypeKind.BYTES: {"type": "string", "format": "byte"},
}


def primitive_schema(kind: TypeKind) -> Schema:
    return dict(_PRIMITIVES[kind])


def error_response_schema() -> Schema:
    """Shared envelope: {"error": {"code": ..., "message": ...}}."""
    return {
        "type": "object",
        "properties": {
            "error": {
                "type": "object",
                "properties": {
                    "code": {"type": "string", "description": "Error code"},
                    "message": {"type": "string", "description": "Error message"},
                },
                "required": ["code", "message"],
            }
        },
        "required": ["error"],
    }


def _with_siblings(schema: Schema, **siblings: Any) -> Schema:
    # OpenAPI 3.0 ignores keywords next to $ref
    if "$ref" in schema:
        return {"allOf": [schema], **siblings}
    return {**schema, **siblings}


class SchemaSynthesizer:
    """
    Maps manifest types to JSON-Schema components.

    Only types reachable from endpoint request/response types are emitted;
    component names are allocated in canonical encounter order.
    """

    def __init__(self, types: Mapping[str, ManifestType], ctx: BuildContext) -> None:
        self._types = types
        self._ctx = ctx
        self._ctx.schema_names.reserve(ERROR_RESPONSE)
        self._reachable: List[str] = []

    def register(self, roots: Iterable[str]) -> List[str]:
        result = build_type_graph(self._types, roots)
        self._reachable = reachable_named_types(result, self._types)
        for type_id in self._reachable:
            self._ctx.schema_names.allocate(type_id, component_name(type_id))
        return list(self._reachable)

    def name_of(self, type_id: str) -> str:
        return self._ctx.schema_names.get(type_id)

    def ref_for(self, type_id: str) -> Schema:
        ref = parse_type_ref(type_id, self._types)
        if ref.kind == "primitive":
            return primitive_schema(TypeKind(ref.target))
        if ref.kind == "slice":
            return {"type": "array", "items": self.ref_for(ref.target)}
        if ref.kind == "nullable":
            return _with_siblings(self.ref_for(ref.target), nullable=True)
        return {"$ref": REF_PREFIX + self.name_of(type_id)}

    def _component(self, mt: ManifestType) -> Schema:
        if mt.kind == "slice":
            schema: Schema = {"type": "array"}
            if mt.doc:
                schema["description"] = mt.doc
            schema["items"] = self.ref_for(mt.elem)
            return schema
        if mt.kind == "map":
            schema = {"type": "object"}
            if mt.doc:
                schema["description"] = mt.doc
            schema["additionalProperties"] = self.ref_for(mt.value)
            return schema

        schema = {"type": "object"}
        if mt.doc:
            schema["description"] = mt.doc

        properties: Schema = {}
        required: List[str] = []
        for f in mt.fields:
            if not f.json_name:
                continue  # binding-only
            prop = self.ref_for(f.type_id)
            if f.doc:
                if "allOf" in prop:
                    prop["description"] = f.doc
                else:
                    prop = _with_siblings(prop, description=f.doc)
            properties[f.json_name] = prop
            if f.required:
                required.append(f.json_name)

        schema["properties"] = properties
        if required:
            schema["required"] = required
        return schema

    def components(self) -> Schema:
        out: Schema = {ERROR_RESPONSE: error_response_schema()}
        for type_id in self._reachable:
            out[self.name_of(type_id)] = self._component(self._types[type_id])
        return {name: out[name] for name in sorted(out)}

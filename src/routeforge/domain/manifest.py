from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from routeforge.domain.errors import ManifestValidationError

MANIFEST_VERSION = 1

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class Shape(str, Enum):
    """Handler signature category: which of request/response bodies exist."""

    NO_REQ_NO_RESP = "no_req_no_resp"
    REQ_NO_RESP = "req_no_resp"
    NO_REQ_RESP = "no_req_resp"
    REQ_RESP = "req_resp"

    @property
    def has_request(self) -> bool:
        return self in (Shape.REQ_NO_RESP, Shape.REQ_RESP)

    @property
    def has_response(self) -> bool:
        return self in (Shape.NO_REQ_RESP, Shape.REQ_RESP)


class TypeKind(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    TIME = "time"
    BYTES = "bytes"

    @classmethod
    def lookup(cls, value: str) -> Optional["TypeKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class FieldBinding(_Frozen):
    field_name: str
    tag: str
    type_kind: str = ""
    is_pointer: bool = False
    is_slice: bool = False
    elem_kind: str = ""

    @property
    def parse_kind(self) -> str:
        # slices parse element-wise
        return self.elem_kind if self.is_slice else self.type_kind


class BindingInfo(_Frozen):
    has_json_body: bool = False
    path_bindings: tuple[FieldBinding, ...] = ()
    query_bindings: tuple[FieldBinding, ...] = ()
    header_bindings: tuple[FieldBinding, ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.has_json_body or self.path_bindings or self.query_bindings or self.header_bindings
        )

    def all_bindings(self) -> tuple[FieldBinding, ...]:
        return self.path_bindings + self.query_bindings + self.header_bindings


class MiddlewareRef(_Frozen):
    pkg: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.pkg}.{self.name}"


class ManifestEndpoint(_Frozen):
    method: HttpMethod
    path: str
    handler_pkg: str
    handler_name: str
    shape: Shape
    req_type: Optional[str] = None
    resp_type: Optional[str] = None
    bindings: Optional[BindingInfo] = None
    middlewares: tuple[MiddlewareRef, ...] = ()

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: object) -> object:
        return v.upper().strip() if isinstance(v, str) else v

    @field_validator("req_type", "resp_type", mode="before")
    @classmethod
    def _blank_is_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def qualified_name(self) -> str:
        return f"{self.handler_pkg}.{self.handler_name}"

    @property
    def has_bindings(self) -> bool:
        return self.bindings is not None and not self.bindings.is_empty()


class ManifestField(_Frozen):
    name: str
    json_name: str = ""
    type_id: str
    required: bool = False
    doc: str = ""


class ManifestType(_Frozen):
    id: str
    kind: Literal["struct", "slice", "map"]
    fields: tuple[ManifestField, ...] = ()
    elem: str = ""
    # map only; JSON object keys are always strings
    key: str = ""
    value: str = ""
    doc: str = ""


class ManifestDoc(_Frozen):
    summary: str = ""
    description: str = ""


class MayReturnStatus(_Frozen):
    status: int
    description: str = ""


class MiddlewareMetadata(_Frozen):
    may_return_statuses: tuple[MayReturnStatus, ...] = ()


class Manifest(_Frozen):
    """
    Complete description of one API surface, produced by an external analyzer.

    Read-only for the whole build: binders and the OpenAPI document are both
    derived from the same instance.
    """

    version: int = MANIFEST_VERSION
    endpoints: tuple[ManifestEndpoint, ...] = ()
    types: dict[str, ManifestType] = Field(default_factory=dict)
    endpoint_docs: dict[str, ManifestDoc] = Field(default_factory=dict)
    middleware_metadata: dict[str, MiddlewareMetadata] = Field(default_factory=dict)


def load_manifest(text: str | bytes) -> Manifest:
    """Parse the JSON interchange form. Schema violations surface as ManifestValidationError."""
    try:
        return Manifest.model_validate_json(text)
    except ValidationError as exc:
        raise ManifestValidationError(f"invalid manifest: {exc}") from exc

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass
from typing import Literal, Mapping

from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import ManifestType, TypeKind

RefKind = Literal["primitive", "slice", "nullable", "named"]

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class TypeRef:
    """
    One resolved type-id reference.

    Forms:
      - "int64"        -> primitive
      - "[]app.m.Pet"  -> slice of target
      - "*app.m.Pet"   -> nullable target
      - "app.m.Pet"    -> named (key of Manifest.types)
    """

    kind: RefKind
    target: str


def parse_type_ref(type_id: str, types: Mapping[str, ManifestType]) -> TypeRef:
    if type_id.startswith("[]"):
        return TypeRef(kind="slice", target=type_id[2:])
    if type_id.startswith("*"):
        return TypeRef(kind="nullable", target=type_id[1:])
    if type_id in types:
        return TypeRef(kind="named", target=type_id)
    if TypeKind.lookup(type_id) is not None:
        return TypeRef(kind="primitive", target=type_id)
    raise ManifestValidationError(f"dangling type reference: {type_id!r}")


def is_slice_ref(type_id: str, types: Mapping[str, ManifestType]) -> bool:
    """True for "[]X" ids and for named types whose kind is slice."""
    if type_id.startswith("[]"):
        return True
    mt = types.get(type_id)
    return mt is not None and mt.kind == "slice"


def is_identifier(name: str) -> bool:
    return bool(_IDENT.fullmatch(name)) and not keyword.iskeyword(name)


def is_module_path(path: str) -> bool:
    return bool(path) and all(is_identifier(part) for part in path.split("."))


def split_qualified(type_id: str) -> tuple[str, str]:
    """app.pets.models.Pet -> ("app.pets.models", "Pet")"""
    module, _, name = type_id.rpartition(".")
    return module, name

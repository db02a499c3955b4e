from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import ManifestType
from routeforge.domain.typeref import parse_type_ref
from routeforge.graph.model import TypeEdge, TypeGraph, TypeNode


@dataclass(frozen=True)
class TypeGraphBuildResult:
    graph: TypeGraph
    roots: tuple[str, ...]


def _add_ref(g: TypeGraph, type_id: str, types: Mapping[str, ManifestType]) -> None:
    """Add the node for type_id and, for anonymous wrappers, its target chain."""
    if type_id in g.nodes:
        return
    ref = parse_type_ref(type_id, types)
    if ref.kind == "primitive":
        g.add_node(TypeNode(id=type_id, type="primitive"))
    elif ref.kind == "slice":
        g.add_node(TypeNode(id=type_id, type="slice"))
        _add_ref(g, ref.target, types)
        g.add_edge(TypeEdge(src=type_id, dst=ref.target, type="ELEM"))
    elif ref.kind == "nullable":
        g.add_node(TypeNode(id=type_id, type="nullable"))
        _add_ref(g, ref.target, types)
        g.add_edge(TypeEdge(src=type_id, dst=ref.target, type="ELEM"))
    else:
        mt = types[type_id]
        g.add_node(TypeNode(id=type_id, type=mt.kind))


def build_type_graph(
    types: Mapping[str, ManifestType],
    roots: Iterable[str] = (),
) -> TypeGraphBuildResult:
    """
    Build the type-reference graph.

    Nodes:
      - every Types entry (struct / slice / map)
      - anonymous "[]X" and "*X" wrappers, and primitives, as they are referenced

    Edges:
      - struct -> field type (FIELD), in field declaration order
      - slice / wrapper -> element, map -> value (ELEM)

    Raises ManifestValidationError on dangling references.
    """
    g = TypeGraph()

    for type_id in sorted(types):
        _add_ref(g, type_id, types)

    for type_id in sorted(types):
        mt = types[type_id]
        if mt.kind == "struct":
            for f in mt.fields:
                try:
                    _add_ref(g, f.type_id, types)
                except ManifestValidationError as exc:
                    raise ManifestValidationError(f"type {type_id} field {f.name}: {exc}") from exc
                g.add_edge(TypeEdge(src=type_id, dst=f.type_id, type="FIELD"))
        else:
            label, target = ("value", mt.value) if mt.kind == "map" else ("elem", mt.elem)
            if not target:
                raise ManifestValidationError(f"{mt.kind} type {type_id} has no {label}")
            try:
                _add_ref(g, target, types)
            except ManifestValidationError as exc:
                raise ManifestValidationError(f"type {type_id} {label}: {exc}") from exc
            g.add_edge(TypeEdge(src=type_id, dst=target, type="ELEM"))

    root_list: list[str] = []
    for r in roots:
        _add_ref(g, r, types)
        root_list.append(r)

    return TypeGraphBuildResult(graph=g, roots=tuple(root_list))


def find_cycle(g: TypeGraph) -> list[str] | None:
    """Return one reference cycle as a node list, or None when the graph is a DAG."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {n: WHITE for n in g.nodes}
    stack: list[str] = []

    def visit(n: str) -> list[str] | None:
        color[n] = GREY
        stack.append(n)
        for m in g.successors(n):
            if color.get(m, WHITE) == GREY:
                return stack[stack.index(m):] + [m]
            if color.get(m, WHITE) == WHITE:
                found = visit(m)
                if found:
                    return found
        stack.pop()
        color[n] = BLACK
        return None

    for n in sorted(g.nodes):
        if color[n] == WHITE:
            found = visit(n)
            if found:
                return found
    return None


def reachable_named_types(result: TypeGraphBuildResult, types: Mapping[str, ManifestType]) -> list[str]:
    """
    Types-map entries reachable from the roots, in encounter order.

    Depth-first, roots in the order given, successors in declaration order.
    The order is what component naming uses to break collisions.
    """
    g = result.graph
    seen: set[str] = set()
    out: list[str] = []

    def walk(n: str) -> None:
        if n in seen:
            return
        seen.add(n)
        if n in types:
            out.append(n)
        for m in g.successors(n):
            walk(m)

    for r in result.roots:
        walk(r)
    return out

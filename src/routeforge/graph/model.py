from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


NodeType = Literal["struct", "slice", "map", "nullable", "primitive"]
EdgeType = Literal["FIELD", "ELEM"]


@dataclass(frozen=True)
class TypeNode:
    id: str
    type: NodeType


@dataclass(frozen=True)
class TypeEdge:
    src: str
    dst: str
    type: EdgeType


@dataclass
class TypeGraph:
    nodes: dict[str, TypeNode]
    edges: list[TypeEdge]

    def __init__(self) -> None:
        self.nodes = {}
        self.edges = []
        self._out: dict[str, list[str]] = {}

    def add_node(self, node: TypeNode) -> None:
        # de-dupe by id
        if node.id not in self.nodes:
            self.nodes[node.id] = node
            self._out[node.id] = []

    def add_edge(self, edge: TypeEdge) -> None:
        self.edges.append(edge)
        self._out.setdefault(edge.src, []).append(edge.dst)

    def successors(self, node_id: str) -> list[str]:
        # insertion order == field declaration order
        return self._out.get(node_id, [])

"""Immutable graph snapshot types.

These dataclasses are the read side of the graph: the
:class:`~shotgraph.core.graph_store.GraphStore` hands out :class:`Graph`
snapshots and every consumer (compiler, canvas, HTTP layer) works from them.
Nothing in a snapshot can be mutated in place; the store builds a new
snapshot for each applied mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .attributes import NodeAttributes, parse_attributes
from .node_kinds import NodeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """World-space position of a node's top-left corner."""

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> Position:
        """Return a copy moved by ``(dx, dy)``."""
        return Position(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Node:
    """A typed configuration unit on the canvas.

    Attributes
    ----------
    id : str
        Unique node identifier.
    kind : NodeKind
        Closed node kind; decides which attribute record applies.
    attributes : NodeAttributes
        Typed attribute record matching ``kind``.
    position : Position
        Committed world-space position.
    collapsed : bool
        Whether the node is drawn collapsed (affects its height).
    parent_id : str | None
        Id of the enclosing ``Group`` node, if any.
    """

    id: str
    kind: NodeKind
    attributes: NodeAttributes
    position: Position = field(default_factory=Position)
    collapsed: bool = True
    parent_id: str | None = None

    def with_changes(self, **changes: Any) -> Node:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible mapping."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "attributes": self.attributes.model_dump(mode="json"),
            "position": {"x": self.position.x, "y": self.position.y},
            "collapsed": self.collapsed,
            "parent_id": self.parent_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        """Build a node from a mapping produced by :meth:`to_dict`.

        Raises:
            KeyError: If ``id`` or ``kind`` is missing.
            TypeError: If the entry or its position is not a mapping.
            ValueError: If the kind is unknown or a coordinate is not a number.
            NodeAttributeError: If the attributes do not fit the kind.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"node entry must be a mapping, not {type(data).__name__}")
        kind = NodeKind(data["kind"])
        pos = data.get("position") or {}
        if not isinstance(pos, Mapping):
            raise TypeError(f"position must be a mapping, not {type(pos).__name__}")
        return cls(
            id=str(data["id"]),
            kind=kind,
            attributes=parse_attributes(kind, data.get("attributes")),
            position=Position(float(pos.get("x", 0.0)), float(pos.get("y", 0.0))),
            collapsed=bool(data.get("collapsed", True)),
            parent_id=None if data.get("parent_id") is None else str(data["parent_id"]),
        )


@dataclass(frozen=True)
class Edge:
    """Directed "feeds into" relation: ``source`` feeds ``target``."""

    id: str
    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Edge:
        """Build an edge from a mapping produced by :meth:`to_dict`.

        Raises:
            KeyError: If ``id``, ``source`` or ``target`` is missing.
            TypeError: If the entry is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"edge entry must be a mapping, not {type(data).__name__}")
        return cls(id=str(data["id"]), source=str(data["source"]), target=str(data["target"]))


@dataclass(frozen=True)
class Graph:
    """Immutable snapshot of all nodes and edges.

    Node and edge order is insertion order.  Edge order is significant: the
    compiler numbers multiple subjects feeding the output in this order.
    """

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def node(self, node_id: str) -> Node | None:
        """Look up a node by id, or None if absent."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_by_id(self) -> dict[str, Node]:
        return {node.id: node for node in self.nodes}

    @property
    def output_node(self) -> Node | None:
        """The terminal Output node (the store guarantees exactly one)."""
        for node in self.nodes:
            if node.kind is NodeKind.OUTPUT:
                return node
        return None

    def children_of(self, group_id: str) -> list[Node]:
        """Nodes whose ``parent_id`` is ``group_id``."""
        return [node for node in self.nodes if node.parent_id == group_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

"""Inbound-edge traversal over graph snapshots."""

from __future__ import annotations

from collections import deque
from collections.abc import Collection

from ..core.graph import Graph, Node
from ..core.node_kinds import NodeKind

# Kinds the compiler walks through to find stage roots that do not feed the
# Output directly (e.g. SubjectRoot -> Composition -> Output).
HUB_KINDS = frozenset({NodeKind.COMPOSITION, NodeKind.STYLE, NodeKind.ASSEMBLER, NodeKind.GROUP})


def inputs_of(graph: Graph, node_id: str, kind: NodeKind | None = None) -> list[Node]:
    """Return the nodes feeding ``node_id``, in edge-insertion order.

    Edges whose source no longer exists are skipped.

    Args:
        graph: Snapshot to read.
        node_id: Target node.
        kind: Optional kind filter.

    Returns:
        Source nodes of every edge targeting ``node_id``.
    """
    nodes = graph.nodes_by_id()
    result = []
    for edge in graph.edges:
        if edge.target != node_id:
            continue
        source = nodes.get(edge.source)
        if source is None:
            continue
        if kind is not None and source.kind is not kind:
            continue
        result.append(source)
    return result


def first_input(graph: Graph, node_id: str, kind: NodeKind) -> Node | None:
    """The earliest-connected input of ``kind``, or None."""
    found = inputs_of(graph, node_id, kind)
    return found[0] if found else None


def collect_upstream(graph: Graph, root_id: str, kinds: Collection[NodeKind]) -> list[Node]:
    """Find nodes of the given kinds feeding ``root_id`` directly or via hubs.

    Breadth-first over inbound edges, descending only through hub kinds
    (Composition, Style, Assembler, Group).  Direct inputs come first in edge
    order, then inputs of each hub in the order the hubs were reached.  Each
    node appears once.
    """
    found: list[Node] = []
    seen = {root_id}
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for source in inputs_of(graph, current):
            if source.id in seen:
                continue
            seen.add(source.id)
            if source.kind in kinds:
                found.append(source)
            if source.kind in HUB_KINDS:
                queue.append(source.id)
    return found

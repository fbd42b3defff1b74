"""Connection rules: which node kinds may feed which.

The rules are a static directed adjacency table from source kind to the
target kinds it may feed.  Any source may additionally feed one of the
universal sinks (``Assembler``, ``Group``, ``Comment``); a source kind with
no table entry may feed *only* those sinks, so new or unrecognised kinds
fail closed.

On top of kind compatibility, :func:`creates_cycle` rejects any edge that
would close a directed loop.  The search is an iterative breadth-first walk
from the candidate target over an outbound adjacency index (see
:func:`outbound_index`), so its cost is bounded by the edges reachable from
that target rather than by the whole graph.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from .graph import Edge
from .node_kinds import UNIVERSAL_SINKS, NodeKind

logger = logging.getLogger(__name__)

K = NodeKind

VALID_CONNECTIONS: dict[NodeKind, frozenset[NodeKind]] = {
    # Subject pipeline
    K.BODY: frozenset({K.SUBJECT_ROOT}),
    K.FACE: frozenset({K.SUBJECT_ROOT}),
    K.HAIR: frozenset({K.SUBJECT_ROOT}),
    K.ATTIRE: frozenset({K.SUBJECT_ROOT}),
    K.POSE: frozenset({K.SUBJECT_ROOT}),
    K.SUBJECT_ROOT: frozenset({K.COMPOSITION, K.GROUP, K.OUTPUT}),
    # Camera pipeline
    K.LENS: frozenset({K.CAMERA_ROOT}),
    K.FILM: frozenset({K.CAMERA_ROOT}),
    K.CAMERA_SETTINGS: frozenset({K.CAMERA_ROOT}),
    K.CAMERA_ROOT: frozenset({K.COMPOSITION, K.OUTPUT}),
    # Lighting pipeline
    K.LIGHT_MODIFIER: frozenset({K.LIGHT_SOURCE}),
    K.GLOBAL_ILLUMINATION: frozenset({K.LIGHTING_ROOT}),
    K.LIGHT_SOURCE: frozenset({K.LIGHTING_ROOT, K.OUTPUT}),
    K.LIGHTING_ROOT: frozenset({K.COMPOSITION, K.OUTPUT}),
    # Environment pipeline
    K.LOCATION: frozenset({K.ENVIRONMENT_ROOT}),
    K.ATMOSPHERE: frozenset({K.ENVIRONMENT_ROOT}),
    K.ENVIRONMENT_ROOT: frozenset({K.COMPOSITION, K.OUTPUT}),
    # Composition level
    K.ENVIRONMENT: frozenset({K.OUTPUT}),
    K.COMPOSITION: frozenset({K.STYLE, K.OUTPUT}),
    K.STYLE: frozenset({K.OUTPUT}),
    # Utilities
    K.REFERENCE: frozenset({K.SUBJECT_ROOT, K.FACE, K.ATTIRE, K.STYLE}),
    K.ASSEMBLER: frozenset(
        {K.COMPOSITION, K.SUBJECT_ROOT, K.CAMERA_ROOT, K.LIGHTING_ROOT, K.ENVIRONMENT_ROOT}
    ),
    K.GROUP: frozenset({K.COMPOSITION}),
}


def allowed_targets(source_kind: NodeKind) -> frozenset[NodeKind]:
    """Return every kind ``source_kind`` may feed, universal sinks included."""
    return VALID_CONNECTIONS.get(source_kind, frozenset()) | UNIVERSAL_SINKS


def is_valid_connection(source_kind: NodeKind, target_kind: NodeKind) -> bool:
    """Check whether an edge from ``source_kind`` to ``target_kind`` is allowed.

    Pure function of its two arguments.

    Args:
        source_kind: Kind of the node the edge starts at.
        target_kind: Kind of the node the edge feeds.

    Returns:
        True if the pair is in the adjacency table or the target is a
        universal sink.
    """
    if target_kind in UNIVERSAL_SINKS:
        return True
    return target_kind in VALID_CONNECTIONS.get(source_kind, frozenset())


def outbound_index(edges: Iterable[Edge]) -> dict[str, list[str]]:
    """Map each source id to the targets it feeds, in edge order."""
    outbound: dict[str, list[str]] = {}
    for edge in edges:
        outbound.setdefault(edge.source, []).append(edge.target)
    return outbound


def creates_cycle(source_id: str, target_id: str, outbound: Mapping[str, Sequence[str]]) -> bool:
    """Check whether adding ``source -> target`` would close a directed loop.

    Runs a breadth-first search from ``target_id`` along the outbound
    adjacency of the existing edges.  Reaching ``source_id`` means a path
    ``target ~> source`` already exists, so the candidate edge would create a
    cycle.  A self-loop (``source_id == target_id``) is always a cycle.  Only
    nodes reachable from ``target_id`` are looked up in ``outbound``.

    Args:
        source_id: Node the candidate edge starts at.
        target_id: Node the candidate edge feeds.
        outbound: Existing edges as a source id to target ids index, not
            including the candidate.

    Returns:
        True if the candidate edge would create a cycle.
    """
    if source_id == target_id:
        return True

    visited = {target_id}
    queue = deque([target_id])
    while queue:
        current = queue.popleft()
        for nxt in outbound.get(current, ()):
            if nxt == source_id:
                logger.debug(f"Edge {source_id} -> {target_id} would close a cycle via {current}")
                return True
            if nxt not in visited:
                visited.add(nxt)
                queue.append(nxt)
    return False


def has_cycle(edges: Iterable[Edge]) -> bool:
    """Check whether an edge set contains any directed cycle.

    Iterative three-colour depth-first search over every node mentioned by
    the edges.  The store runs it over incoming graph documents to report
    cycles before repairing them.
    """
    outbound: dict[str, list[str]] = {}
    for edge in edges:
        outbound.setdefault(edge.source, []).append(edge.target)
        outbound.setdefault(edge.target, [])

    done: set[str] = set()
    for start in outbound:
        if start in done:
            continue
        on_path = {start}
        stack = [(start, iter(outbound[start]))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_path.discard(node)
                done.add(node)
            elif child in on_path:
                return True
            elif child not in done:
                on_path.add(child)
                stack.append((child, iter(outbound[child])))
    return False

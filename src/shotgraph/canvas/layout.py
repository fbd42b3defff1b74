"""Collision avoidance: push overlapping nodes to the right.

A moved or expanded node pushes any node it overlaps so that the pushed
node's left edge sits ``collision_gap`` pixels past the pusher's right edge.
A pushed node may in turn push others.  Chains are followed breadth-first
for at most ``max_push_depth`` levels, so the pass always terminates and
returns a plain position map; it never mutates the graph.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping

from ..core.config import ShotgraphConfig
from ..core.graph import Node, Position
from .geometry import Rect, node_rect

logger = logging.getLogger(__name__)


def resolve_collisions(
    seeds: Mapping[str, Rect],
    obstacles: Iterable[Node],
    positions: Mapping[str, Position],
    settings: ShotgraphConfig,
) -> dict[str, Position]:
    """Compute push positions for nodes overlapping the seed rectangles.

    Args:
        seeds: Rectangles that push but are never pushed (the dragged or
            expanded nodes), keyed by node id.
        obstacles: Nodes that may be pushed.  Callers exclude Group nodes,
            hidden nodes and the seeds themselves.
        positions: Current effective position of each obstacle.
        settings: Geometry (gap and maximum chain depth).

    Returns:
        New positions for pushed nodes only.
    """
    gap = settings.collision_gap
    max_depth = settings.max_push_depth

    current: dict[str, Rect] = {}
    for node in obstacles:
        if node.id in seeds:
            continue
        current[node.id] = node_rect(node, settings, positions.get(node.id, node.position))

    pushed: dict[str, Position] = {}
    queue = deque((seed_id, rect, 0) for seed_id, rect in seeds.items())
    while queue:
        pusher_id, pusher, depth = queue.popleft()
        if depth >= max_depth:
            logger.debug(f"Push chain from {pusher_id} stopped at depth {depth}")
            continue
        for other_id, other in current.items():
            if other_id == pusher_id or not pusher.overlaps(other):
                continue
            moved = other.moved_to(pusher.right + gap, other.y)
            current[other_id] = moved
            pushed[other_id] = Position(moved.x, moved.y)
            queue.append((other_id, moved, depth + 1))

    return pushed

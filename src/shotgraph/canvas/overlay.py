"""Uncommitted node positions shown while an interaction is in progress."""

from __future__ import annotations

from collections.abc import Iterator

from ..core.graph import Graph, Node, Position


class PreviewOverlay:
    """Tentative positions layered over the committed graph.

    The overlay is only merged with the store's positions at read time; the
    store itself never sees it until the interaction commits.
    """

    def __init__(self):
        self._positions: dict[str, Position] = {}

    def set(self, node_id: str, position: Position) -> None:
        self._positions[node_id] = position

    def update(self, positions: dict[str, Position]) -> None:
        self._positions.update(positions)

    def get(self, node_id: str) -> Position | None:
        return self._positions.get(node_id)

    def position_of(self, node: Node) -> Position:
        """The previewed position of ``node``, or its committed one."""
        return self._positions.get(node.id, node.position)

    def merged(self, graph: Graph) -> dict[str, Position]:
        """Effective position of every node in ``graph``."""
        return {node.id: self.position_of(node) for node in graph.nodes}

    @property
    def positions(self) -> dict[str, Position]:
        return dict(self._positions)

    def clear(self) -> None:
        self._positions.clear()

    def __bool__(self) -> bool:
        return bool(self._positions)

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[str]:
        return iter(self._positions)

"""Plain 2-D geometry for the canvas."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.config import ShotgraphConfig
from ..core.graph import Node, Position


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def distance_to(self, other: Point) -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle; ``(x, y)`` is the top-left corner."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, point: Point) -> bool:
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def overlaps(self, other: Rect) -> bool:
        """True if the interiors intersect; touching edges do not count."""
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def moved_to(self, x: float, y: float) -> Rect:
        return Rect(x, y, self.width, self.height)


def node_rect(node: Node, settings: ShotgraphConfig, position: Position | None = None) -> Rect:
    """Rectangle of a node at ``position`` (default: its committed position)."""
    pos = position or node.position
    return Rect(pos.x, pos.y, settings.node_width, settings.node_height(node.collapsed))


def bounding_rect(rects: list[Rect]) -> Rect:
    """Smallest rectangle containing every rect in a non-empty list."""
    left = min(r.x for r in rects)
    top = min(r.y for r in rects)
    right = max(r.right for r in rects)
    bottom = max(r.bottom for r in rects)
    return Rect(left, top, right - left, bottom - top)

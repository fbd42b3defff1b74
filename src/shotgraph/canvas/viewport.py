"""Pan/zoom transform between screen space and world space.

``screen = world * zoom + pan``.  The viewport is view state only; nothing
here touches the graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.config import ShotgraphConfig
from .geometry import Point, Rect

logger = logging.getLogger(__name__)

PINCH_ZOOM_FACTOR = 0.05


@dataclass
class Viewport:
    """Current pan offset and zoom of the canvas.

    Attributes:
        pan_x, pan_y: Screen-space offset of the world origin.
        zoom: Scale factor, clamped to the configured range.
        width, height: Size of the canvas element in screen pixels.
    """

    settings: ShotgraphConfig
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    width: float = 1280.0
    height: float = 800.0

    def screen_to_world(self, point: Point) -> Point:
        return Point((point.x - self.pan_x) / self.zoom, (point.y - self.pan_y) / self.zoom)

    def world_to_screen(self, point: Point) -> Point:
        return Point(point.x * self.zoom + self.pan_x, point.y * self.zoom + self.pan_y)

    def rect_to_screen(self, rect: Rect) -> Rect:
        top_left = self.world_to_screen(Point(rect.x, rect.y))
        return Rect(top_left.x, top_left.y, rect.width * self.zoom, rect.height * self.zoom)

    def clamp_zoom(self, zoom: float) -> float:
        return min(max(zoom, self.settings.min_zoom), self.settings.max_zoom)

    def pan_by(self, dx: float, dy: float) -> None:
        """Shift the view by a screen-space delta."""
        self.pan_x += dx
        self.pan_y += dy

    def zoom_at(self, screen_point: Point, new_zoom: float) -> None:
        """Set the zoom, keeping the world point under ``screen_point`` fixed."""
        new_zoom = self.clamp_zoom(new_zoom)
        world = self.screen_to_world(screen_point)
        self.zoom = new_zoom
        self.pan_x = screen_point.x - world.x * new_zoom
        self.pan_y = screen_point.y - world.y * new_zoom

    def wheel(self, screen_point: Point, delta_y: float, pinch: bool = False) -> None:
        """Apply a wheel event; scrolling up (negative delta) zooms in."""
        factor = PINCH_ZOOM_FACTOR if pinch else self.settings.wheel_zoom_factor
        self.zoom_at(screen_point, self.zoom + (-delta_y) * factor * self.zoom)

    @property
    def center(self) -> Point:
        return Point(self.width / 2, self.height / 2)

    def zoom_in(self) -> None:
        self.zoom_at(self.center, self.zoom + self.settings.zoom_step)

    def zoom_out(self) -> None:
        self.zoom_at(self.center, self.zoom - self.settings.zoom_step)

    def reset(self) -> None:
        self.pan_x = 0.0
        self.pan_y = 0.0
        self.zoom = 1.0
        logger.debug("Viewport reset")

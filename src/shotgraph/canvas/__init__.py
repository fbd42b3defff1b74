"""Canvas interaction: viewport, hit testing, drag/connect gestures and layout."""

from .geometry import Point, Rect, node_rect
from .interaction import CanvasEngine, Hit, HitKind, InteractionOutcome, Mode, RenderModel
from .layout import resolve_collisions
from .overlay import PreviewOverlay
from .viewport import Viewport

__all__ = [
    "CanvasEngine",
    "Hit",
    "HitKind",
    "InteractionOutcome",
    "Mode",
    "Point",
    "PreviewOverlay",
    "Rect",
    "RenderModel",
    "Viewport",
    "node_rect",
    "resolve_collisions",
]

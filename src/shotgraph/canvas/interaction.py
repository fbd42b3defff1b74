"""Canvas interaction engine.

Turns raw pointer input (screen coordinates) into view changes and Graph
Store mutations.  The engine is a small state machine::

    Idle -> Panning | Dragging(node_ids) | Connecting(node_id) -> Idle

Dragging uses a two-phase protocol.  While the pointer moves, the dragged
nodes and anything they push live only in a :class:`PreviewOverlay`; the
store (and therefore the compiler) sees nothing until pointer-up, when every
previewed position is committed in one mutation.  Cancelling discards the
overlay.

Connecting starts from a port and ends on another node; the edge is handed
to :meth:`GraphStore.add_edge`, which may reject it.  Dropping on empty
canvas, or on the node the gesture started from, is a silent no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..compiler.assemblers import describe_node
from ..core.config import ShotgraphConfig, config as default_config
from ..core.graph import Graph, Node, Position
from ..core.graph_store import GraphStore
from ..core.node_kinds import NodeKind, pipeline_of
from .geometry import Point, Rect, bounding_rect, node_rect
from .layout import resolve_collisions
from .overlay import PreviewOverlay
from .viewport import Viewport

logger = logging.getLogger(__name__)

PRIMARY_BUTTON = 0


class Mode(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    DRAGGING = "dragging"
    CONNECTING = "connecting"


class HitKind(str, Enum):
    OUTPUT_PORT = "output_port"
    INPUT_PORT = "input_port"
    NODE = "node"
    GROUP = "group"
    CANVAS = "canvas"


@dataclass(frozen=True)
class Hit:
    """What lies under a world-space point."""

    kind: HitKind
    node_id: str | None = None


@dataclass(frozen=True)
class InteractionOutcome:
    """Result of finishing (or abandoning) a gesture.

    ``action`` is one of ``none``, ``pan``, ``move``, ``connect``,
    ``connect_rejected`` or ``cancelled``.
    """

    action: str
    edge_id: str | None = None
    moved: tuple[str, ...] = ()


@dataclass
class _Panning:
    last: Point


@dataclass
class _Dragging:
    node_ids: frozenset[str]
    start_world: Point
    start_positions: dict[str, Position]


@dataclass
class _Connecting:
    anchor_id: str
    from_input: bool
    end_world: Point


@dataclass(frozen=True)
class RenderNode:
    id: str
    kind: NodeKind
    pipeline: str
    label: str
    summary: str
    rect: Rect
    screen_rect: Rect
    collapsed: bool
    selected: bool
    parent_id: str | None = None


@dataclass(frozen=True)
class RenderEdge:
    id: str
    source: str
    target: str
    start: Point
    end: Point


@dataclass(frozen=True)
class RenderModel:
    """Everything needed to draw one frame, in screen space."""

    mode: Mode
    zoom: float
    pan: Point
    nodes: tuple[RenderNode, ...] = ()
    edges: tuple[RenderEdge, ...] = ()
    connection_line: tuple[Point, Point] | None = None
    selection: tuple[str, ...] = field(default=())


class CanvasEngine:
    """Pointer-driven editor for one :class:`GraphStore`.

    Args:
        store: Store that receives committed mutations.
        settings: Canvas geometry and zoom limits.
        width, height: Canvas size in screen pixels.
    """

    def __init__(
        self,
        store: GraphStore,
        settings: ShotgraphConfig | None = None,
        width: float = 1280.0,
        height: float = 800.0,
    ):
        self.store = store
        self.settings = settings or default_config
        self.viewport = Viewport(self.settings, width=width, height=height)
        self.overlay = PreviewOverlay()
        self.selection: list[str] = []
        self._state: _Panning | _Dragging | _Connecting | None = None

    @property
    def mode(self) -> Mode:
        if isinstance(self._state, _Panning):
            return Mode.PANNING
        if isinstance(self._state, _Dragging):
            return Mode.DRAGGING
        if isinstance(self._state, _Connecting):
            return Mode.CONNECTING
        return Mode.IDLE

    @property
    def dragging_ids(self) -> frozenset[str]:
        if isinstance(self._state, _Dragging):
            return self._state.node_ids
        return frozenset()

    def resize(self, width: float, height: float) -> None:
        self.viewport.width = width
        self.viewport.height = height

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _hidden_ids(self, graph: Graph) -> set[str]:
        """Nodes inside a collapsed Group (at any nesting level)."""
        nodes = graph.nodes_by_id()
        hidden = set()
        for node in graph.nodes:
            seen = {node.id}
            parent_id = node.parent_id
            while parent_id is not None and parent_id not in seen:
                parent = nodes.get(parent_id)
                if parent is None:
                    break
                if parent.collapsed:
                    hidden.add(node.id)
                    break
                seen.add(parent_id)
                parent_id = parent.parent_id
        return hidden

    def _display_rect(self, node: Node, graph: Graph, positions: dict[str, Position]) -> Rect:
        """Drawn rectangle: expanded Groups enclose their children."""
        position = positions.get(node.id, node.position)
        if node.kind is not NodeKind.GROUP or node.collapsed:
            return node_rect(node, self.settings, position)

        children = graph.children_of(node.id)
        if not children:
            return node_rect(node, self.settings, position)
        box = bounding_rect(
            [node_rect(c, self.settings, positions.get(c.id, c.position)) for c in children]
        )
        pad = self.settings.group_padding
        header = self.settings.group_header_height
        return Rect(box.x - pad, box.y - pad - header, box.width + 2 * pad, box.height + 2 * pad + header)

    def _output_port(self, rect: Rect) -> Point:
        return Point(rect.right, rect.y + self.settings.port_offset_y)

    def _input_port(self, rect: Rect) -> Point:
        return Point(rect.x, rect.y + self.settings.port_offset_y)

    def _visible_anchor(self, node: Node, graph: Graph, hidden: set[str]) -> Node:
        """The node itself, or the collapsed Group that hides it."""
        nodes = graph.nodes_by_id()
        seen = set()
        while node.id in hidden and node.parent_id in nodes and node.id not in seen:
            seen.add(node.id)
            node = nodes[node.parent_id]
        return node

    def hit_test(self, world: Point) -> Hit:
        """Resolve what lies under a world-space point.

        Ports win over bodies, regular nodes over group boxes, and later
        nodes (drawn on top) over earlier ones.
        """
        graph = self.store.get_graph()
        positions = self.overlay.merged(graph)
        hidden = self._hidden_ids(graph)
        visible = [n for n in graph.nodes if n.id not in hidden]
        rects = {n.id: self._display_rect(n, graph, positions) for n in visible}
        radius = self.settings.port_radius

        for node in reversed(visible):
            rect = rects[node.id]
            if node.kind is not NodeKind.OUTPUT and world.distance_to(self._output_port(rect)) <= radius:
                return Hit(HitKind.OUTPUT_PORT, node.id)
            if world.distance_to(self._input_port(rect)) <= radius:
                return Hit(HitKind.INPUT_PORT, node.id)

        for node in reversed(visible):
            if node.kind is not NodeKind.GROUP and rects[node.id].contains(world):
                return Hit(HitKind.NODE, node.id)

        for node in reversed(visible):
            if node.kind is NodeKind.GROUP and rects[node.id].contains(world):
                return Hit(HitKind.GROUP, node.id)

        return Hit(HitKind.CANVAS)

    def hit_test_screen(self, x: float, y: float) -> Hit:
        return self.hit_test(self.viewport.screen_to_world(Point(x, y)))

    # ------------------------------------------------------------------
    # Pointer events
    # ------------------------------------------------------------------

    def pointer_down(self, x: float, y: float, button: int = PRIMARY_BUTTON, shift: bool = False) -> Hit:
        """Start a gesture at screen point ``(x, y)``."""
        if self._state is not None:
            self.cancel()

        world = self.viewport.screen_to_world(Point(x, y))
        hit = self.hit_test(world)
        if button != PRIMARY_BUTTON:
            return hit

        if hit.kind is HitKind.OUTPUT_PORT:
            self._state = _Connecting(hit.node_id, from_input=False, end_world=world)
        elif hit.kind is HitKind.INPUT_PORT:
            self._state = _Connecting(hit.node_id, from_input=True, end_world=world)
        elif hit.kind in (HitKind.NODE, HitKind.GROUP):
            self._begin_drag(hit.node_id, world, shift)
        elif not shift:
            self._state = _Panning(last=Point(x, y))
            self.selection = []
        logger.debug(f"pointer_down at ({x}, {y}) hit {hit.kind.value} -> {self.mode.value}")
        return hit

    def _begin_drag(self, node_id: str, world: Point, shift: bool) -> None:
        if shift:
            if node_id in self.selection:
                self.selection.remove(node_id)
            else:
                self.selection.append(node_id)
        elif node_id not in self.selection:
            self.selection = [node_id]

        graph = self.store.get_graph()
        ids = {i for i in self.selection if graph.node(i) is not None}
        # Pull in group members, including nested groups.
        while True:
            members = {n.id for n in graph.nodes if n.parent_id in ids} - ids
            if not members:
                break
            ids |= members
        if not ids:
            return

        self._state = _Dragging(
            node_ids=frozenset(ids),
            start_world=world,
            start_positions={n.id: n.position for n in graph.nodes if n.id in ids},
        )

    def pointer_move(self, x: float, y: float) -> None:
        """Continue the current gesture."""
        state = self._state
        if isinstance(state, _Panning):
            self.viewport.pan_by(x - state.last.x, y - state.last.y)
            state.last = Point(x, y)
        elif isinstance(state, _Dragging):
            world = self.viewport.screen_to_world(Point(x, y))
            delta = world - state.start_world
            moved = {i: p.offset(delta.x, delta.y) for i, p in state.start_positions.items()}
            graph = self.store.get_graph()
            positions = {n.id: n.position for n in graph.nodes}
            positions.update(moved)
            self.overlay.clear()
            self.overlay.update(moved)
            self.overlay.update(self._pushes(graph, state.node_ids, positions))
        elif isinstance(state, _Connecting):
            state.end_world = self.viewport.screen_to_world(Point(x, y))

    def _pushes(self, graph: Graph, seed_ids: frozenset[str] | set[str], positions: dict[str, Position]) -> dict[str, Position]:
        hidden = self._hidden_ids(graph)
        seeds = {
            n.id: node_rect(n, self.settings, positions[n.id])
            for n in graph.nodes
            if n.id in seed_ids and n.id not in hidden and n.kind is not NodeKind.GROUP
        }
        obstacles = [
            n
            for n in graph.nodes
            if n.id not in seed_ids and n.id not in hidden and n.kind is not NodeKind.GROUP
        ]
        return resolve_collisions(seeds, obstacles, positions, self.settings)

    def pointer_up(self, x: float, y: float) -> InteractionOutcome:
        """Finish the current gesture, committing whatever it produced."""
        state = self._state
        self._state = None

        if isinstance(state, _Panning):
            return InteractionOutcome("pan")

        if isinstance(state, _Dragging):
            positions = self.overlay.positions
            self.overlay.clear()
            if positions and self.store.commit_positions(positions):
                return InteractionOutcome("move", moved=tuple(positions))
            return InteractionOutcome("none")

        if isinstance(state, _Connecting):
            hit = self.hit_test(self.viewport.screen_to_world(Point(x, y)))
            if hit.node_id is None or hit.node_id == state.anchor_id:
                logger.debug("Connection dropped on nothing; discarded")
                return InteractionOutcome("cancelled")
            if state.from_input:
                source, target = hit.node_id, state.anchor_id
            else:
                source, target = state.anchor_id, hit.node_id
            edge_id = self.store.add_edge(source, target)
            if edge_id is None:
                return InteractionOutcome("connect_rejected")
            return InteractionOutcome("connect", edge_id=edge_id)

        return InteractionOutcome("none")

    def cancel(self) -> bool:
        """Abort the current gesture (e.g. pointer left the canvas).

        Returns:
            True if a gesture was in progress.
        """
        active = self._state is not None
        self._state = None
        self.overlay.clear()
        return active

    def wheel(self, x: float, y: float, delta_y: float, pinch: bool = False) -> None:
        """Zoom around the cursor at screen point ``(x, y)``."""
        self.viewport.wheel(Point(x, y), delta_y, pinch)

    def zoom_in(self) -> None:
        self.viewport.zoom_in()

    def zoom_out(self) -> None:
        self.viewport.zoom_out()

    def reset_view(self) -> None:
        self.viewport.reset()

    # ------------------------------------------------------------------
    # Node-level commands
    # ------------------------------------------------------------------

    def toggle_collapsed(self, node_id: str) -> bool:
        """Flip a node's collapsed state.

        Expanding a regular node runs the collision pass from its taller
        rectangle; the new flag and the resulting pushes are one mutation.
        """
        graph = self.store.get_graph()
        node = graph.node(node_id)
        if node is None:
            return False

        pushed: dict[str, Position] = {}
        if node.collapsed and node.kind is not NodeKind.GROUP:
            expanded = Graph(
                nodes=tuple(
                    n.with_changes(collapsed=False) if n.id == node_id else n for n in graph.nodes
                ),
                edges=graph.edges,
            )
            positions = {n.id: n.position for n in expanded.nodes}
            pushed = self._pushes(expanded, {node_id}, positions)
            if pushed:
                logger.info(f"Expanding {node_id} pushed {len(pushed)} node(s)")
        self.store.set_collapsed(node_id, not node.collapsed, positions=pushed)
        return True

    def select(self, node_ids: list[str]) -> None:
        self.selection = list(dict.fromkeys(node_ids))

    def delete_selection(self) -> set[str]:
        """Delete every selected node (the Output node is kept)."""
        deleted = self.store.delete_nodes(self.selection)
        self.selection = [i for i in self.selection if i not in deleted]
        return deleted

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> RenderModel:
        """Build a render-ready snapshot with preview positions merged in."""
        graph = self.store.get_graph()
        positions = self.overlay.merged(graph)
        hidden = self._hidden_ids(graph)
        nodes_by_id = graph.nodes_by_id()
        rects = {n.id: self._display_rect(n, graph, positions) for n in graph.nodes}
        selection = tuple(i for i in self.selection if i in nodes_by_id)

        render_nodes = []
        for node in graph.nodes:
            if node.id in hidden:
                continue
            rect = rects[node.id]
            render_nodes.append(
                RenderNode(
                    id=node.id,
                    kind=node.kind,
                    pipeline=pipeline_of(node.kind),
                    label=node.attributes.label or "",
                    summary=describe_node(node, graph),
                    rect=rect,
                    screen_rect=self.viewport.rect_to_screen(rect),
                    collapsed=node.collapsed,
                    selected=node.id in selection,
                    parent_id=node.parent_id,
                )
            )

        render_edges = []
        for edge in graph.edges:
            source = nodes_by_id.get(edge.source)
            target = nodes_by_id.get(edge.target)
            if source is None or target is None:
                continue
            source = self._visible_anchor(source, graph, hidden)
            target = self._visible_anchor(target, graph, hidden)
            if source.id == target.id:
                continue
            render_edges.append(
                RenderEdge(
                    id=edge.id,
                    source=edge.source,
                    target=edge.target,
                    start=self.viewport.world_to_screen(self._output_port(rects[source.id])),
                    end=self.viewport.world_to_screen(self._input_port(rects[target.id])),
                )
            )

        line = None
        state = self._state
        if isinstance(state, _Connecting) and state.anchor_id in rects:
            anchor_rect = rects[state.anchor_id]
            start = self._input_port(anchor_rect) if state.from_input else self._output_port(anchor_rect)
            line = (self.viewport.world_to_screen(start), self.viewport.world_to_screen(state.end_world))

        return RenderModel(
            mode=self.mode,
            zoom=self.viewport.zoom,
            pan=Point(self.viewport.pan_x, self.viewport.pan_y),
            nodes=tuple(render_nodes),
            edges=tuple(render_edges),
            connection_line=line,
            selection=selection,
        )

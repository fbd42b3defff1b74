"""Unit tests for the canvas interaction engine.

The ``engine`` fixture starts at zoom 1 with no pan, so screen and world
coordinates coincide unless a test changes the view.  Nodes are 200 wide
and 50 tall when collapsed; ports sit 24 below the top edge.
"""

from shotgraph.canvas.interaction import HitKind, Mode
from shotgraph.compiler.prompt_compiler import LivePreview
from shotgraph.core.graph import Position
from shotgraph.core.node_kinds import NodeKind


def _pos(store, node_id):
    return store.get_graph().node(node_id).position


class TestHitTesting:
    """Tests for resolving what lies under the pointer."""

    def test_body_port_and_canvas(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        assert engine.hit_test_screen(100, 40).kind is HitKind.NODE
        assert engine.hit_test_screen(200, 24).kind is HitKind.OUTPUT_PORT
        assert engine.hit_test_screen(2, 26).kind is HitKind.INPUT_PORT
        assert engine.hit_test_screen(100, 400).kind is HitKind.CANVAS
        assert engine.hit_test_screen(100, 40).node_id == lens

    def test_output_node_has_no_output_port(self, engine, store):
        output = store.output_node
        x, y = output.position.x + 200, output.position.y + 24
        assert engine.hit_test_screen(x, y).kind is not HitKind.OUTPUT_PORT

    def test_topmost_node_wins(self, engine, store):
        store.add_node(NodeKind.LENS, Position(0, 0))
        top = store.add_node(NodeKind.FILM, Position(50, 0))
        assert engine.hit_test_screen(100, 40).node_id == top

    def test_respects_viewport(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        engine.viewport.zoom = 2.0
        assert engine.hit_test_screen(300, 80).node_id == lens


class TestDragging:
    """Tests for the two-phase drag protocol."""

    def test_drag_onto_node_pushes_after_commit(self, engine, store, test_config):
        """The push is previewed during the drag and committed on release."""
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        b = store.add_node(NodeKind.FILM, Position(500, 0))
        preview = LivePreview(store)
        preview.current()
        notifications = []
        store.subscribe(notifications.append)

        engine.pointer_down(100, 30)
        assert engine.mode is Mode.DRAGGING
        engine.pointer_move(350, 30)
        engine.pointer_move(600, 30)

        # During the drag only the overlay changes.
        assert _pos(store, a) == Position(0, 0)
        assert _pos(store, b) == Position(500, 0)
        assert notifications == []
        assert not preview.dirty
        assert engine.overlay.get(a) == Position(500, 0)
        assert engine.overlay.get(b) == Position(720, 0)

        outcome = engine.pointer_up(600, 30)
        assert outcome.action == "move"
        assert _pos(store, a) == Position(500, 0)
        assert _pos(store, b).x == _pos(store, a).x + test_config.node_width + test_config.collision_gap
        assert len(notifications) == 1
        assert not engine.overlay
        assert engine.mode is Mode.IDLE

    def test_cancel_discards_preview(self, engine, store):
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        engine.pointer_down(100, 30)
        engine.pointer_move(300, 30)
        assert engine.cancel()
        assert _pos(store, a) == Position(0, 0)
        assert not engine.overlay
        assert engine.pointer_up(300, 30).action == "none"

    def test_click_without_move_commits_nothing(self, engine, store):
        store.add_node(NodeKind.LENS, Position(0, 0))
        seen = []
        store.subscribe(seen.append)
        engine.pointer_down(100, 30)
        assert engine.pointer_up(100, 30).action == "none"
        assert seen == []

    def test_shift_click_extends_selection(self, engine, store):
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        b = store.add_node(NodeKind.FILM, Position(0, 200))
        engine.pointer_down(100, 30)
        engine.pointer_up(100, 30)
        engine.pointer_down(100, 230, shift=True)
        engine.pointer_move(150, 230)
        engine.pointer_up(150, 230)
        assert set(engine.selection) == {a, b}
        assert _pos(store, a) == Position(50, 0)
        assert _pos(store, b) == Position(50, 200)

    def test_dragging_group_moves_members(self, engine, store):
        group = store.add_node(NodeKind.GROUP, Position(0, 0))
        lens = store.add_node(NodeKind.LENS, Position(600, 600))
        store.set_parent(lens, group)

        hit = engine.pointer_down(100, 30)
        assert hit.kind is HitKind.GROUP
        assert engine.dragging_ids == {group, lens}
        engine.pointer_move(150, 30)
        engine.pointer_up(150, 30)
        assert _pos(store, group) == Position(50, 0)
        assert _pos(store, lens) == Position(650, 600)


class TestPanning:
    def test_drag_on_canvas_pans(self, engine):
        engine.pointer_down(50, 600)
        assert engine.mode is Mode.PANNING
        engine.pointer_move(80, 640)
        assert engine.pointer_up(80, 640).action == "pan"
        assert (engine.viewport.pan_x, engine.viewport.pan_y) == (30, 40)

    def test_canvas_click_clears_selection(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        engine.select([lens])
        engine.pointer_down(50, 600)
        assert engine.selection == []

    def test_panning_never_touches_store(self, engine, store):
        seen = []
        store.subscribe(seen.append)
        engine.pointer_down(50, 600)
        engine.pointer_move(400, 700)
        engine.pointer_up(400, 700)
        assert seen == []

    def test_wheel_zooms(self, engine):
        engine.wheel(100, 100, delta_y=-100)
        assert engine.viewport.zoom > 1.0


class TestConnecting:
    """Tests for drawing edges between ports."""

    def test_output_port_to_node(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        camera = store.add_node(NodeKind.CAMERA_ROOT, Position(400, 0))

        engine.pointer_down(200, 24)
        assert engine.mode is Mode.CONNECTING
        engine.pointer_move(450, 30)
        assert engine.render().connection_line is not None
        outcome = engine.pointer_up(500, 30)

        assert outcome.action == "connect"
        edge = store.get_graph().edges[0]
        assert (edge.source, edge.target) == (lens, camera)

    def test_input_port_reverses_direction(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        camera = store.add_node(NodeKind.CAMERA_ROOT, Position(400, 0))

        engine.pointer_down(400, 24)
        outcome = engine.pointer_up(100, 30)

        assert outcome.action == "connect"
        edge = store.get_graph().edges[0]
        assert (edge.source, edge.target) == (lens, camera)

    def test_rejected_connection(self, engine, store):
        """Lens cannot feed the Output; nothing is added."""
        store.add_node(NodeKind.LENS, Position(0, 0))
        output = store.output_node.position
        engine.pointer_down(200, 24)
        outcome = engine.pointer_up(output.x + 100, output.y + 60)
        assert outcome.action == "connect_rejected"
        assert store.get_graph().edges == ()

    def test_drop_on_canvas_is_cancelled(self, engine, store):
        store.add_node(NodeKind.LENS, Position(0, 0))
        engine.pointer_down(200, 24)
        assert engine.pointer_up(300, 500).action == "cancelled"
        assert store.get_graph().edges == ()


class TestCollapse:
    """Tests for expanding and collapsing nodes."""

    def test_expanding_pushes_neighbours(self, engine, store, test_config):
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        b = store.add_node(NodeKind.FILM, Position(0, 60))
        assert engine.toggle_collapsed(a)
        assert store.get_graph().node(a).collapsed is False
        assert _pos(store, b) == Position(test_config.node_width + test_config.collision_gap, 60)

    def test_expanding_is_one_store_mutation(self, engine, store, test_config):
        """Observers never see the expanded node overlapping its neighbour."""
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        b = store.add_node(NodeKind.FILM, Position(0, 60))
        snapshots = []
        store.subscribe(snapshots.append)

        engine.toggle_collapsed(a)

        (graph,) = snapshots
        assert graph.node(a).collapsed is False
        assert graph.node(b).position.x == test_config.node_width + test_config.collision_gap

    def test_collapsing_pushes_nothing(self, engine, store):
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        store.set_collapsed(a, False)
        b = store.add_node(NodeKind.FILM, Position(0, 200))
        engine.toggle_collapsed(a)
        assert _pos(store, b) == Position(0, 200)

    def test_unknown_node(self, engine):
        assert engine.toggle_collapsed("ghost") is False


class TestRender:
    """Tests for the render model."""

    def test_collapsed_group_hides_members_and_reroutes_edges(self, engine, store):
        group = store.add_node(NodeKind.GROUP, Position(0, 0))
        lens = store.add_node(NodeKind.LENS, Position(600, 600))
        camera = store.add_node(NodeKind.CAMERA_ROOT, Position(400, 0))
        store.set_parent(lens, group)
        store.add_edge(lens, camera)

        model = engine.render()
        assert lens not in {n.id for n in model.nodes}
        (edge,) = model.edges
        assert (edge.start.x, edge.start.y) == (200, 24)

    def test_expanded_group_encloses_members(self, engine, store, test_config):
        group = store.add_node(NodeKind.GROUP, Position(0, 0))
        lens = store.add_node(NodeKind.LENS, Position(600, 600))
        store.set_parent(lens, group)
        store.set_collapsed(group, False)

        rects = {n.id: n.rect for n in engine.render().nodes}
        box = rects[group]
        assert box.x == 600 - test_config.group_padding
        assert box.y == 600 - test_config.group_padding - test_config.group_header_height
        assert box.right == 800 + test_config.group_padding
        assert lens in rects

    def test_render_uses_overlay(self, engine, store):
        a = store.add_node(NodeKind.LENS, Position(0, 0))
        engine.pointer_down(100, 30)
        engine.pointer_move(130, 30)
        rects = {n.id: n.rect for n in engine.render().nodes}
        assert rects[a].x == 30

    def test_summary_and_selection(self, engine, store):
        lens = store.add_node(NodeKind.CAMERA_ROOT, Position(0, 0))
        store.update_node_attributes(lens, {"camera_model": "Leica"})
        engine.select([lens, lens])
        (node,) = [n for n in engine.render().nodes if n.id == lens]
        assert node.summary == "Shot on Leica."
        assert node.pipeline == "camera"
        assert node.selected
        assert engine.render().selection == (lens,)

    def test_delete_selection_keeps_output(self, engine, store):
        lens = store.add_node(NodeKind.LENS, Position(0, 0))
        engine.select([lens, store.output_node.id])
        assert engine.delete_selection() == {lens}
        assert engine.selection == [store.output_node.id]

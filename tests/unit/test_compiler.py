"""Unit tests for graph traversal, assemblers and prompt compilation."""

import itertools

import pytest

from shotgraph.compiler.assemblers import describe_node, identity_clause, skin_realism_clauses
from shotgraph.compiler.prompt_compiler import DEFAULT_SETTING, LivePreview, compile_graph
from shotgraph.compiler.traversal import collect_upstream, inputs_of
from shotgraph.core.asset_store import SubjectProfile
from shotgraph.core.attributes import Gender, SkinRealism
from shotgraph.core.graph import Edge, Graph
from shotgraph.core.graph_store import GraphStore
from shotgraph.core.node_kinds import NodeKind


def _add(store: GraphStore, kind: NodeKind, **attributes) -> str:
    node_id = store.add_node(kind)
    if attributes:
        store.update_node_attributes(node_id, attributes)
    return node_id


def _compile(store: GraphStore, library=None):
    graph = store.get_graph()
    return compile_graph(graph.output_node, graph, library)


class TestEmptyGraph:
    def test_output_only(self, store):
        """An unconnected Output compiles to the default studio setting."""
        result = _compile(store)
        assert DEFAULT_SETTING in result.prompt
        assert result.images == ()
        assert result.aspect_ratio == "1:1"

    def test_none_output_uses_graph_output(self, store):
        assert compile_graph(None, store.get_graph()).prompt == DEFAULT_SETTING


class TestCameraPipeline:
    """Tests for the camera assembler."""

    def test_lens_feeds_camera(self, store):
        """Lens model and aperture reach the prompt through the CameraRoot."""
        lens = _add(store, NodeKind.LENS, lens_model="50mm prime", aperture="f/2.8")
        camera = _add(store, NodeKind.CAMERA_ROOT)
        assert store.add_edge(lens, camera)
        assert store.add_edge(camera, store.output_node.id)

        prompt = _compile(store).prompt
        assert "50mm prime" in prompt
        assert "f/2.8" in prompt
        assert store.add_edge(lens, camera) is None

    def test_full_camera(self, store):
        camera = _add(store, NodeKind.CAMERA_ROOT, camera_model="Leica M6")
        film = _add(store, NodeKind.FILM, film_stock="Portra 400", grain="fine grain")
        settings = _add(store, NodeKind.CAMERA_SETTINGS, shutter_speed="1/125", iso="400")
        store.add_edge(film, camera)
        store.add_edge(settings, camera)
        store.add_edge(camera, store.output_node.id)

        prompt = _compile(store).prompt
        assert "Shot on Leica M6. Film: Portra 400. Texture: fine grain. Shutter: 1/125. ISO: 400." in prompt

    def test_placeholder_values_omitted(self, store):
        """Legacy Camera nodes default to 'None' placeholders, which are skipped."""
        camera = store.add_node(NodeKind.CAMERA)
        store.add_edge(camera, _add(store, NodeKind.ASSEMBLER))
        assert describe_node(store.get_graph().node(camera)) == "New camera"


class TestStageOrder:
    """The prompt follows the fixed stage order, not edge order."""

    def test_environment_subject_camera_lighting(self, store):
        output = store.output_node.id
        lighting = _add(store, NodeKind.LIGHTING_ROOT, lighting_style="Rembrandt")
        camera = _add(store, NodeKind.CAMERA_ROOT, camera_model="Hasselblad")
        subject = _add(store, NodeKind.SUBJECT_ROOT, gender="woman", age="30-year-old")
        env = _add(store, NodeKind.ENVIRONMENT_ROOT, scene_description="A quiet library")
        comp = _add(store, NodeKind.COMPOSITION, genre="Portrait")
        for node in (lighting, camera, subject, env, comp):
            assert store.add_edge(node, output)

        prompt = _compile(store).prompt
        positions = [
            prompt.index(text)
            for text in (
                "Genre: Portrait.",
                "Scene: A quiet library.",
                "SUBJECT: Subject is a 30-year-old woman.",
                "Shot on Hasselblad.",
                "Lighting Style: Rembrandt.",
            )
        ]
        assert positions == sorted(positions)
        assert DEFAULT_SETTING not in prompt

    def test_roots_reached_through_composition(self, store):
        """A SubjectRoot feeding a Composition is still compiled."""
        subject = _add(store, NodeKind.SUBJECT_ROOT, gender="man")
        comp = _add(store, NodeKind.COMPOSITION, aspect_ratio="16:9")
        store.add_edge(subject, comp)
        store.add_edge(comp, store.output_node.id)

        result = _compile(store)
        assert "SUBJECT: Subject is a young man." in result.prompt
        assert result.aspect_ratio == "16:9"

    def test_last_composition_wins_aspect_ratio(self, store):
        first = _add(store, NodeKind.COMPOSITION, aspect_ratio="4:3")
        second = _add(store, NodeKind.COMPOSITION, aspect_ratio="9:16")
        store.add_edge(first, store.output_node.id)
        store.add_edge(second, store.output_node.id)
        assert _compile(store).aspect_ratio == "9:16"

    def test_unconnected_nodes_ignored(self, store):
        _add(store, NodeKind.CAMERA_ROOT, camera_model="Leica")
        assert "Leica" not in _compile(store).prompt


class TestSubjects:
    """Tests for the subject assembler."""

    def test_multiple_subjects_numbered_by_edge_order(self, store):
        output = store.output_node.id
        second = _add(store, NodeKind.SUBJECT_ROOT, gender="man")
        first = _add(store, NodeKind.SUBJECT_ROOT, gender="woman")
        store.add_edge(first, output)
        store.add_edge(second, output)

        prompt = _compile(store).prompt
        assert "SUBJECT 1: Subject is a young woman." in prompt
        assert "SUBJECT 2: Subject is a young man." in prompt

    def test_re_added_edge_moves_to_end(self, store):
        """Deleting and re-adding an edge renumbers that subject last."""
        output = store.output_node.id
        a = _add(store, NodeKind.SUBJECT_ROOT, gender="woman")
        b = _add(store, NodeKind.SUBJECT_ROOT, gender="man")
        edge_a = store.add_edge(a, output)
        store.add_edge(b, output)
        store.remove_edge(edge_a)
        store.add_edge(a, output)
        assert "SUBJECT 1: Subject is a young man." in _compile(store).prompt

    def test_body_overrides_root(self, store):
        root = _add(store, NodeKind.SUBJECT_ROOT, gender="man", age="old")
        body = _add(store, NodeKind.BODY, gender="woman", body_type="athletic")
        store.add_edge(body, root)
        store.add_edge(root, store.output_node.id)

        prompt = _compile(store).prompt
        assert "Subject is a old woman. Physique: athletic." in prompt

    def test_face_hair_attire_pose(self, store):
        root = _add(store, NodeKind.SUBJECT_ROOT, gender="woman")
        face = _add(store, NodeKind.FACE, eye_color="green", makeup="red lipstick")
        hair = _add(
            store,
            NodeKind.HAIR,
            hair_length="long",
            hair_style="wavy",
            hair_color="Other...",
            custom_hair_color="silver",
        )
        attire = _add(store, NodeKind.ATTIRE, clothing_top="linen shirt", props_text="a camera")
        pose = _add(store, NodeKind.POSE, pose="leaning on a wall")
        for node in (face, hair, attire, pose):
            assert store.add_edge(node, root)
        store.add_edge(root, store.output_node.id)

        prompt = _compile(store).prompt
        assert "Features: green eyes, wearing red lipstick." in prompt
        assert "Hair: long wavy silver." in prompt
        assert "Attire: linen shirt. Accessories: a camera." in prompt
        assert "Pose: leaning on a wall." in prompt

    def test_label_fallback(self, store):
        """A SubjectRoot with no identity data is described by its label."""
        root = _add(store, NodeKind.SUBJECT_ROOT, label="The detective")
        store.add_edge(root, store.output_node.id)
        assert "SUBJECT: Subject: The detective." in _compile(store).prompt

    def test_obsidian_figure(self, store):
        """Sculptural genders describe material and skip skin realism."""
        root = _add(store, NodeKind.SUBJECT_ROOT)
        body = _add(
            store,
            NodeKind.BODY,
            gender="female obsidian figure",
            skin_realism={"enabled": True, "intensity": 95},
        )
        store.add_edge(body, root)
        store.add_edge(root, store.output_node.id)

        prompt = _compile(store).prompt
        assert "The subject is a female obsidian figure." in prompt
        assert "polished black obsidian" in prompt
        assert "Skin texture" not in prompt

    def test_reference_identity(self, store, sample_image):
        root = _add(store, NodeKind.SUBJECT_ROOT, consistency_mode="Full Character")
        ref = _add(store, NodeKind.REFERENCE, reference_image=sample_image.model_dump())
        store.add_edge(ref, root)
        store.add_edge(root, store.output_node.id)

        result = _compile(store)
        assert "visually identical to the character in reference Image 1." in result.prompt
        assert result.images == (sample_image,)

    def test_face_only_reference(self, store, sample_image):
        root = _add(store, NodeKind.SUBJECT_ROOT)
        ref = _add(store, NodeKind.REFERENCE, reference_image=sample_image.model_dump())
        store.add_edge(ref, root)
        store.add_edge(root, store.output_node.id)
        assert "identity is derived from Image 1." in _compile(store).prompt

    def test_subject_library(self, store, sample_image):
        """Selected profiles contribute their name and images."""
        root = _add(store, NodeKind.SUBJECT_ROOT, selected_subject_id="ada")
        store.add_edge(root, store.output_node.id)
        library = {"ada": SubjectProfile(id="ada", name="Ada", images=(sample_image,))}

        result = _compile(store, library)
        assert "Reference Identity: Ada." in result.prompt
        assert len(result.images) == 1

    def test_missing_profile_skipped(self, store):
        root = _add(store, NodeKind.SUBJECT_ROOT, selected_subject_id="ghost", gender="man")
        store.add_edge(root, store.output_node.id)
        result = _compile(store, {})
        assert "Reference Identity" not in result.prompt
        assert result.images == ()


class TestSkinRealism:
    """Tests for graded skin texture clauses."""

    @pytest.mark.parametrize(
        "intensity, expected",
        [
            (95, "hyper-realistic"),
            (91, "hyper-realistic"),
            (90, "raw, unretouched"),
            (61, "raw, unretouched"),
            (60, "softly textured"),
        ],
    )
    def test_thresholds(self, intensity, expected):
        clauses = skin_realism_clauses(SkinRealism(enabled=True, intensity=intensity), Gender.WOMAN)
        assert expected in clauses[0]

    def test_cellulite_omitted_for_men(self):
        skin = SkinRealism(enabled=True, details={"cellulite": True, "pores": True})
        man = " ".join(skin_realism_clauses(skin, Gender.MAN))
        woman = " ".join(skin_realism_clauses(skin, Gender.WOMAN))
        assert "cellulite" not in man
        assert "visible pores" in man
        assert "cellulite" in woman


class TestIdentityClause:
    def test_defaults(self):
        assert identity_clause(None, None, None) == "Subject is a young person."

    def test_full(self):
        assert identity_clause(Gender.NON_BINARY, "40-year-old", "Korean") == (
            "Subject is a 40-year-old Korean non-binary person."
        )


class TestLighting:
    """Tests for the lighting assembler."""

    def test_off_screen_source_is_sanitized(self, store):
        root = _add(store, NodeKind.LIGHTING_ROOT)
        light = _add(
            store,
            NodeKind.LIGHT_SOURCE,
            light_source_type="softbox",
            light_color_temperature="5600K",
            power=80,
        )
        modifier = _add(store, NodeKind.LIGHT_MODIFIER, modifier_type="a grid")
        store.add_edge(modifier, light)
        store.add_edge(light, root)
        store.add_edge(root, store.output_node.id)

        prompt = _compile(store).prompt
        assert (
            "Lighting: large diffused directional light source (off-screen source), 5600K." in prompt
        )
        assert "Light Power: 80%. Shaped with a grid." in prompt
        assert "softbox" not in prompt

    def test_visible_equipment(self, store):
        light = _add(
            store, NodeKind.LIGHT_SOURCE, light_source_type="neon sign", show_equipment=True
        )
        store.add_edge(light, store.output_node.id)
        assert "Light Source: neon sign visible in frame." in _compile(store).prompt

    def test_global_illumination(self, store):
        root = _add(store, NodeKind.LIGHTING_ROOT)
        gi = _add(store, NodeKind.GLOBAL_ILLUMINATION, description="overcast sky", intensity=40)
        store.add_edge(gi, root)
        store.add_edge(root, store.output_node.id)
        assert "Ambient Light: overcast sky at 40% intensity." in _compile(store).prompt


class TestEnvironmentAndStyle:
    def test_environment_root(self, store):
        env = _add(store, NodeKind.ENVIRONMENT_ROOT, scene_description="Rain-soaked alley")
        location = _add(store, NodeKind.LOCATION, name="Tokyo", context="Exterior", time="23:00")
        atmosphere = _add(store, NodeKind.ATMOSPHERE, weather="heavy rain")
        store.add_edge(location, env)
        store.add_edge(atmosphere, env)
        store.add_edge(env, store.output_node.id)

        prompt = _compile(store).prompt
        assert prompt.startswith(
            "Scene: Rain-soaked alley. Location: Tokyo (Exterior). Time: 23:00. Weather: heavy rain."
        )

    def test_images_numbered_across_stages(self, store, sample_image):
        """Style references come before subject references."""
        style = _add(store, NodeKind.STYLE, photographic_style="film noir")
        style_ref = _add(store, NodeKind.REFERENCE, reference_image=sample_image.model_dump())
        subject = _add(store, NodeKind.SUBJECT_ROOT)
        subject_ref = _add(store, NodeKind.REFERENCE, reference_image=sample_image.model_dump())
        store.add_edge(subject_ref, subject)
        store.add_edge(subject, store.output_node.id)
        store.add_edge(style_ref, style)
        store.add_edge(style, store.output_node.id)

        result = _compile(store)
        assert "Match the visual style of reference Image 1." in result.prompt
        assert "identity is derived from Image 2." in result.prompt
        assert len(result.images) == 2


class TestPurity:
    """Compilation depends only on the graph, not on ids or call count."""

    def _build(self, store: GraphStore) -> None:
        camera = _add(store, NodeKind.CAMERA_ROOT, camera_model="Leica")
        subject = _add(store, NodeKind.SUBJECT_ROOT, gender="woman")
        store.add_edge(camera, store.output_node.id)
        store.add_edge(subject, store.output_node.id)

    def test_same_snapshot_same_result(self, store):
        self._build(store)
        graph = store.get_graph()
        assert compile_graph(None, graph) == compile_graph(None, graph)

    def test_ids_do_not_matter(self, test_config):
        counter = itertools.count()
        a = GraphStore(settings=test_config)
        b = GraphStore(settings=test_config, id_factory=lambda p: f"zz{next(counter)}")
        self._build(a)
        self._build(b)
        assert _compile(a).prompt == _compile(b).prompt


class TestTraversal:
    def test_dangling_edges_skipped(self, store):
        graph = store.get_graph()
        output = graph.output_node.id
        broken = Graph(nodes=graph.nodes, edges=(Edge("e", "ghost", output),))
        assert inputs_of(broken, output) == []
        assert compile_graph(None, broken).prompt == DEFAULT_SETTING

    def test_collect_upstream_dedupes(self, store):
        subject = _add(store, NodeKind.SUBJECT_ROOT)
        comp = _add(store, NodeKind.COMPOSITION)
        store.add_edge(subject, comp)
        store.add_edge(subject, store.output_node.id)
        store.add_edge(comp, store.output_node.id)
        found = collect_upstream(store.get_graph(), store.output_node.id, {NodeKind.SUBJECT_ROOT})
        assert [n.id for n in found] == [subject]


class TestLivePreview:
    """Tests for lazy recompilation on store changes."""

    def test_recompiles_only_after_change(self, store):
        preview = LivePreview(store)
        first = preview.current()
        assert preview.current() is first
        assert preview.compile_count == 1

        camera = _add(store, NodeKind.CAMERA_ROOT, camera_model="Leica")
        store.add_edge(camera, store.output_node.id)
        assert preview.dirty
        assert "Leica" in preview.current().prompt
        assert preview.compile_count == 2

    def test_library_provider(self, store):
        library = {}
        preview = LivePreview(store, library_provider=lambda: library)
        root = _add(store, NodeKind.SUBJECT_ROOT, selected_subject_id="ada")
        store.add_edge(root, store.output_node.id)
        assert "Ada" not in preview.current().prompt

        library["ada"] = SubjectProfile(id="ada", name="Ada")
        preview.invalidate()
        assert "Reference Identity: Ada." in preview.current().prompt

    def test_close_stops_following(self, store):
        preview = LivePreview(store)
        preview.current()
        preview.close()
        store.add_node(NodeKind.LENS)
        assert not preview.dirty

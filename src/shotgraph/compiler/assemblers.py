"""Per-kind assemblers that fold a root node and its inputs into prompt clauses.

Each assembler reads the typed attribute record of its root node, looks up
the child kinds it understands with :func:`~.traversal.inputs_of`, and
returns a :class:`Fragment`.  Missing children and unset attributes simply
omit their clause; nothing here raises for incomplete graphs.

Images are registered with a shared :class:`ImageCollector` so that clauses
can refer to them by their final position ("Image 2").
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from ..core.asset_store import SubjectProfile
from ..core.attributes import (
    AtmosphereAttributes,
    AttireAttributes,
    BodyAttributes,
    CameraAttributes,
    CameraRootAttributes,
    CameraSettingsAttributes,
    CompositionAttributes,
    ConsistencyMode,
    EnvironmentAttributes,
    EnvironmentRootAttributes,
    FaceAttributes,
    FilmAttributes,
    Gender,
    GlobalIlluminationAttributes,
    HairAttributes,
    LensAttributes,
    LightingAttributes,
    LightingRootAttributes,
    LightModifierAttributes,
    LightSourceAttributes,
    LocationAttributes,
    PoseAttributes,
    ReferenceAttributes,
    SkinRealism,
    StyleAttributes,
    SubjectAttributes,
    SubjectRootAttributes,
)
from ..core.graph import Graph, Node
from ..core.images import ImageRef
from ..core.node_kinds import NodeKind
from .traversal import first_input, inputs_of

logger = logging.getLogger(__name__)

OBSIDIAN_MATERIAL = (
    "The figure is crafted from polished black obsidian. The surface possesses a unique "
    "matte finish that mimics the subsurface scattering and texture of living skin, "
    "ensuring light interacts with the form naturally despite the dark material. "
    "It is a high-contrast artistic study tool."
)

SKIN_DETAIL_PHRASES = (
    ("pores", "visible pores"),
    ("freckles", "natural freckles"),
    ("wrinkles", "fine lines and wrinkles"),
    ("veins", "subtle subsurface veins"),
    ("scars", "small natural scars"),
    ("stretch_marks", "natural stretch marks"),
    ("cellulite", "gentle cellulite texture"),
    ("discoloration", "natural skin tone variations"),
)

CUSTOM_HAIR_COLOR = "Other..."


@dataclass
class Fragment:
    """Text produced by one assembler."""

    text: str

    @classmethod
    def of(cls, clauses: list[str]) -> Fragment:
        return cls(text=" ".join(c for c in clauses if c))

    def __bool__(self) -> bool:
        return bool(self.text)


class ImageCollector:
    """Ordered list of images gathered during one compile."""

    def __init__(self):
        self.images: list[ImageRef] = []

    def add(self, image: ImageRef) -> int:
        """Append an image and return its 1-based position."""
        self.images.append(image)
        return len(self.images)


def is_set(value: str | None) -> bool:
    """True for a non-blank value other than the ``"None"`` placeholder."""
    return bool(value and value.strip() and value != "None")


def _clause(label: str, value: str | None) -> str:
    return f"{label}: {value}." if is_set(value) else ""


# ---------------------------------------------------------------------------
# Subject
# ---------------------------------------------------------------------------


def identity_clause(gender: Gender | None, age: str | None, ethnicity: str | None) -> str:
    """Describe who the subject is, or what material a sculptural figure is made of."""
    if gender is not None and gender.is_sculptural:
        return f"The subject is a {gender.value}. {OBSIDIAN_MATERIAL}"
    parts = [
        age if is_set(age) else "young",
        ethnicity if is_set(ethnicity) else None,
        gender.value if gender is not None else "person",
    ]
    return f"Subject is a {' '.join(p for p in parts if p)}."


def skin_realism_clauses(skin: SkinRealism, gender: Gender | None) -> list[str]:
    """Skin texture clauses graded by intensity (above 90, above 60, otherwise soft)."""
    if skin.intensity > 90:
        adjective = "hyper-realistic, dermatological texture, sharp focus"
        tokens = "micro-contrast, skin sheen, slight sweat, peach fuzz, unmasked texture"
    elif skin.intensity > 60:
        adjective = "raw, unretouched, authentic"
        tokens = "natural skin gloss, tactile texture"
    else:
        adjective = "softly textured"
        tokens = ""

    clauses = [f"Skin texture is {adjective}."]
    if tokens:
        clauses.append(f"Texture cues: {tokens}.")

    details = []
    for name, phrase in SKIN_DETAIL_PHRASES:
        if not getattr(skin.details, name):
            continue
        if name == "cellulite" and gender is Gender.MAN:
            continue
        details.append(phrase)
    if details:
        clauses.append(f"Visible details: {', '.join(details)}.")
    return clauses


def hair_clause(hair: HairAttributes) -> str:
    color = hair.custom_hair_color if hair.hair_color == CUSTOM_HAIR_COLOR else hair.hair_color
    parts = [p for p in (hair.hair_length, hair.hair_style, color) if is_set(p)]
    if not parts:
        return ""
    physics = f", {hair.hair_physics}" if is_set(hair.hair_physics) else ""
    return f"Hair: {' '.join(parts)}{physics}."


def reference_identity_clause(mode: ConsistencyMode, index: int) -> str:
    if mode is ConsistencyMode.FULL_CHARACTER:
        return f"The subject is visually identical to the character in reference Image {index}."
    return f"The subject's identity is derived from Image {index}."


def assemble_subject_root(
    root: Node,
    graph: Graph,
    images: ImageCollector,
    subject_library: Mapping[str, SubjectProfile] | None = None,
) -> Fragment:
    """Fold a SubjectRoot and its Body/Face/Hair/Attire/Pose/Reference inputs."""
    data: SubjectRootAttributes = root.attributes
    clauses: list[str] = []

    ref = first_input(graph, root.id, NodeKind.REFERENCE)
    if ref is not None:
        ref_data: ReferenceAttributes = ref.attributes
        if ref_data.reference_image is not None:
            index = images.add(ref_data.reference_image)
            clauses.append(reference_identity_clause(data.consistency_mode, index))

    if data.selected_subject_id and subject_library:
        profile = subject_library.get(data.selected_subject_id)
        if profile is not None:
            clauses.append(f"Reference Identity: {profile.name}.")
            for image in profile.images:
                images.add(image)
        else:
            logger.debug(f"Subject profile {data.selected_subject_id} not found; skipping")

    body = first_input(graph, root.id, NodeKind.BODY)
    body_data: BodyAttributes | None = body.attributes if body is not None else None
    gender = (body_data.gender if body_data else None) or data.gender
    age = (body_data.age if body_data else None) or data.age
    ethnicity = (body_data.ethnicity if body_data else None) or data.ethnicity
    body_type = (body_data.body_type if body_data else None) or data.body_type

    if gender or is_set(age) or is_set(ethnicity) or is_set(body_type):
        clauses.append(identity_clause(gender, age, ethnicity))
        clauses.append(_clause("Physique", body_type))
        skin = body_data.skin_realism if body_data else None
        sculptural = gender is not None and gender.is_sculptural
        if skin is not None and skin.enabled and not sculptural:
            clauses.extend(skin_realism_clauses(skin, gender))
    elif is_set(data.label):
        clauses.append(f"Subject: {data.label}.")

    face = first_input(graph, root.id, NodeKind.FACE)
    if face is not None:
        face_data: FaceAttributes = face.attributes
        features = []
        if is_set(face_data.eye_color):
            features.append(f"{face_data.eye_color} eyes")
        if is_set(face_data.makeup):
            features.append(f"wearing {face_data.makeup}")
        if is_set(face_data.character_description):
            features.append(face_data.character_description)
        if features:
            clauses.append(f"Features: {', '.join(features)}.")

    hair = first_input(graph, root.id, NodeKind.HAIR)
    if hair is not None:
        clauses.append(hair_clause(hair.attributes))

    attire = first_input(graph, root.id, NodeKind.ATTIRE)
    if attire is not None:
        attire_data: AttireAttributes = attire.attributes
        items = [
            i
            for i in (attire_data.clothing_top, attire_data.clothing_bottom, attire_data.footwear)
            if is_set(i)
        ]
        if items:
            clauses.append(f"Attire: {', '.join(items)}.")
        clauses.append(_clause("Accessories", attire_data.props_text))
    else:
        clauses.append(_clause("Attire/Props", data.props_text))

    pose = first_input(graph, root.id, NodeKind.POSE)
    if pose is not None:
        pose_data: PoseAttributes = pose.attributes
        clauses.append(_clause("Pose", pose_data.pose))

    return Fragment.of(clauses)


def assemble_legacy_subject(node: Node) -> Fragment:
    """Flat Subject node from graphs built before the subject pipeline existed."""
    data: SubjectAttributes = node.attributes
    clauses: list[str] = []
    if data.gender is not None and data.gender.is_sculptural:
        clauses.append(identity_clause(data.gender, data.age, data.ethnicity))
    else:
        parts = [p for p in (data.ethnicity, data.gender.value if data.gender else None, data.age) if is_set(p)]
        if parts:
            clauses.append(f"Subject: {' '.join(parts)}.")
    clauses.append(_clause("Physique", data.body_type))
    if is_set(data.hair_style) or is_set(data.hair_color):
        clauses.append(
            hair_clause(
                HairAttributes(
                    hair_length=data.hair_length,
                    hair_style=data.hair_style,
                    hair_color=data.hair_color,
                )
            )
        )
    clauses.append(_clause("Pose", data.pose))
    clauses.append(_clause("Props", data.props_text))
    return Fragment.of(clauses)


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------


def assemble_camera_root(root: Node, graph: Graph) -> Fragment:
    """Fold a CameraRoot with its Lens, Film and CameraSettings inputs."""
    data: CameraRootAttributes = root.attributes
    clauses = [f"Shot on {data.camera_model}." if is_set(data.camera_model) else ""]

    lens = first_input(graph, root.id, NodeKind.LENS)
    if lens is not None:
        lens_data: LensAttributes = lens.attributes
        clauses.append(_clause("Lens", lens_data.lens_model))
        clauses.append(_clause("Aperture", lens_data.aperture))
        clauses.append(_clause("Optics", lens_data.lens_char))

    film = first_input(graph, root.id, NodeKind.FILM)
    if film is not None:
        film_data: FilmAttributes = film.attributes
        clauses.append(_clause("Film", film_data.film_stock))
        clauses.append(_clause("Texture", film_data.grain))

    settings = first_input(graph, root.id, NodeKind.CAMERA_SETTINGS)
    if settings is not None:
        settings_data: CameraSettingsAttributes = settings.attributes
        clauses.append(_clause("Shutter", settings_data.shutter_speed))
        clauses.append(_clause("ISO", settings_data.iso))
        clauses.append(_clause("Sensor", settings_data.sensor_size))

    return Fragment.of(clauses)


def assemble_legacy_camera(node: Node) -> Fragment:
    data: CameraAttributes = node.attributes
    return Fragment.of(
        [
            _clause("Camera", data.camera_model),
            _clause("Lens", data.lens_model),
            _clause("Aperture", data.aperture),
            _clause("Film", data.film_stock),
        ]
    )


# ---------------------------------------------------------------------------
# Lighting
# ---------------------------------------------------------------------------


def light_source_clauses(node: Node, graph: Graph) -> list[str]:
    """Describe one light, as an off-screen effect unless its equipment is shown."""
    data: LightSourceAttributes = node.attributes
    if not is_set(data.light_source_type):
        return []

    temperature = data.light_color_temperature if is_set(data.light_color_temperature) else None
    if data.show_equipment:
        suffix = f" ({temperature})" if temperature else ""
        clauses = [f"Light Source: {data.light_source_type}{suffix} visible in frame."]
    else:
        suffix = f", {temperature}" if temperature else ""
        clauses = [f"Lighting: {data.light_source_type} (off-screen source){suffix}."]

    clauses.append(_clause("Light Position", data.light_position))
    if data.power is not None:
        clauses.append(f"Light Power: {data.power}%.")

    modifiers = []
    for modifier in inputs_of(graph, node.id, NodeKind.LIGHT_MODIFIER):
        modifier_data: LightModifierAttributes = modifier.attributes
        if is_set(modifier_data.modifier_type):
            modifiers.append(modifier_data.modifier_type)
    if modifiers:
        clauses.append(f"Shaped with {', '.join(modifiers)}.")
    return clauses


def assemble_lighting_root(root: Node, graph: Graph) -> Fragment:
    """Fold a LightingRoot with its LightSource and GlobalIllumination inputs."""
    data: LightingRootAttributes = root.attributes
    clauses = [
        _clause("Lighting Style", data.lighting_style),
        _clause("Color Temperature", data.color_temperature),
    ]
    for source in inputs_of(graph, root.id, NodeKind.LIGHT_SOURCE):
        clauses.extend(light_source_clauses(source, graph))
    for gi in inputs_of(graph, root.id, NodeKind.GLOBAL_ILLUMINATION):
        gi_data: GlobalIlluminationAttributes = gi.attributes
        if not is_set(gi_data.description):
            continue
        strength = f" at {gi_data.intensity}% intensity" if gi_data.intensity is not None else ""
        clauses.append(f"Ambient Light: {gi_data.description}{strength}.")
    return Fragment.of(clauses)


def assemble_light_source(node: Node, graph: Graph) -> Fragment:
    return Fragment.of(light_source_clauses(node, graph))


def assemble_legacy_lighting(node: Node) -> Fragment:
    data: LightingAttributes = node.attributes
    setups = [s for s in data.lighting_setups if is_set(s)]
    return Fragment.of(
        [
            _clause("Lighting Style", data.lighting_style),
            f"Setup: {', '.join(setups)}." if setups else "",
        ]
    )


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def _scene_image_clause(image: ImageRef | None, images: ImageCollector) -> str:
    if image is None:
        return ""
    return f"The setting matches reference Image {images.add(image)}."


def assemble_environment_root(root: Node, graph: Graph, images: ImageCollector) -> Fragment:
    """Fold an EnvironmentRoot with its Location and Atmosphere inputs."""
    data: EnvironmentRootAttributes = root.attributes
    clauses = [_clause("Scene", data.scene_description)]

    location = first_input(graph, root.id, NodeKind.LOCATION)
    if location is not None:
        loc: LocationAttributes = location.attributes
        if is_set(loc.name):
            context = f" ({loc.context})" if loc.context else ""
            clauses.append(f"Location: {loc.name}{context}.")
        elif loc.context:
            clauses.append(f"Setting: {loc.context}.")
        clauses.append(_clause("Date", loc.date))
        clauses.append(_clause("Time", loc.time))

    atmosphere = first_input(graph, root.id, NodeKind.ATMOSPHERE)
    if atmosphere is not None:
        atm: AtmosphereAttributes = atmosphere.attributes
        clauses.append(_clause("Weather", atm.weather))
        clauses.append(_clause("Season", atm.season))
        clauses.append(_clause("Atmosphere", atm.haze))

    clauses.append(_scene_image_clause(data.scene_image, images))
    return Fragment.of(clauses)


def assemble_legacy_environment(node: Node, images: ImageCollector) -> Fragment:
    data: EnvironmentAttributes = node.attributes
    clauses = []
    if data.env_type == "Landscape":
        clauses.append(_clause("Landscape", data.landscape_type))
    elif data.env_type == "Architecture":
        parts = [p for p in (data.architecture_style, data.building_type) if is_set(p)]
        if parts:
            clauses.append(f"Architecture: {' '.join(parts)}.")
    clauses.append(_clause("Scene", data.scene_description))
    clauses.append(_clause("Location", data.location_name))
    if is_set(data.location_name):
        clauses.append(_clause("Time", data.time))
    clauses.append(_scene_image_clause(data.scene_image, images))
    return Fragment.of(clauses)


# ---------------------------------------------------------------------------
# Composition and style
# ---------------------------------------------------------------------------


def assemble_composition(node: Node) -> Fragment:
    data: CompositionAttributes = node.attributes
    return Fragment.of(
        [
            _clause("Genre", data.genre),
            _clause("Composition", data.composition_type),
            _clause("Vibe", data.vibe),
        ]
    )


def assemble_style(node: Node, graph: Graph, images: ImageCollector) -> Fragment:
    data: StyleAttributes = node.attributes
    clauses = [
        _clause("Photographic Style", data.photographic_style),
        _clause("Color Grade", data.color_grade),
    ]
    for ref in inputs_of(graph, node.id, NodeKind.REFERENCE):
        ref_data: ReferenceAttributes = ref.attributes
        if ref_data.reference_image is not None:
            index = images.add(ref_data.reference_image)
            clauses.append(f"Match the visual style of reference Image {index}.")
    return Fragment.of(clauses)


# ---------------------------------------------------------------------------
# Node summaries
# ---------------------------------------------------------------------------


def describe_node(node: Node, graph: Graph | None = None) -> str:
    """One-line summary of a node for its canvas body.

    Uses the same clause builders as the compiler, without collecting
    images.  Kinds without a natural summary fall back to their label.
    """
    graph = graph or Graph(nodes=(node,))
    images = ImageCollector()
    kind = node.kind
    if kind is NodeKind.SUBJECT_ROOT:
        text = assemble_subject_root(node, graph, images).text
    elif kind is NodeKind.SUBJECT:
        text = assemble_legacy_subject(node).text
    elif kind is NodeKind.CAMERA_ROOT:
        text = assemble_camera_root(node, graph).text
    elif kind is NodeKind.CAMERA:
        text = assemble_legacy_camera(node).text
    elif kind is NodeKind.LIGHTING_ROOT:
        text = assemble_lighting_root(node, graph).text
    elif kind is NodeKind.LIGHT_SOURCE:
        text = assemble_light_source(node, graph).text
    elif kind is NodeKind.LIGHTING:
        text = assemble_legacy_lighting(node).text
    elif kind is NodeKind.ENVIRONMENT_ROOT:
        text = assemble_environment_root(node, graph, images).text
    elif kind is NodeKind.ENVIRONMENT:
        text = assemble_legacy_environment(node, images).text
    elif kind is NodeKind.COMPOSITION:
        text = assemble_composition(node).text
    elif kind is NodeKind.STYLE:
        text = assemble_style(node, graph, images).text
    elif kind is NodeKind.HAIR:
        text = hair_clause(node.attributes)
    elif kind is NodeKind.COMMENT:
        text = node.attributes.text or ""
    else:
        text = ""
    return text or (node.attributes.label or "")

"""Typed attribute records, one per node kind.

Each :class:`~shotgraph.core.node_kinds.NodeKind` owns a frozen pydantic
model describing the fields that are meaningful for it.  Together they form
a tagged union keyed by kind (:data:`ATTRIBUTE_MODELS`): assemblers read
typed fields off the record for the node's kind, and editors update a node
through :func:`apply_partial`, which re-validates the merged record so a
node can never hold fields that do not belong to its kind.

Every field is optional.  A value of ``None`` means "not set" and causes the
corresponding prompt clause to be omitted.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .images import ImageRef
from .node_kinds import NodeKind

logger = logging.getLogger(__name__)


class NodeAttributeError(ValueError):
    """Attribute payload does not fit the typed record of the node's kind.

    Raised by :func:`apply_partial`; the message lists the offending fields
    and is safe to show to the user.
    """

    pass


class Gender(str, Enum):
    WOMAN = "woman"
    MAN = "man"
    NON_BINARY = "non-binary person"
    OBSIDIAN_FEMALE = "female obsidian figure"
    OBSIDIAN_MALE = "male obsidian figure"
    OBSIDIAN_NEUTRAL = "neutral obsidian figure"

    @property
    def is_sculptural(self) -> bool:
        """True for the non-biological (sculpted material) variants."""
        return self in _SCULPTURAL_GENDERS


_SCULPTURAL_GENDERS = frozenset(
    {Gender.OBSIDIAN_FEMALE, Gender.OBSIDIAN_MALE, Gender.OBSIDIAN_NEUTRAL}
)


class ConsistencyMode(str, Enum):
    """How strictly a reference image pins the subject's identity."""

    FACE_ONLY = "Face Only"
    FACE_AND_HAIR = "Face & Hair"
    FULL_CHARACTER = "Full Character"


AspectRatio = Literal["1:1", "3:4", "4:3", "9:16", "16:9", "21:9"]


class NodeAttributes(BaseModel):
    """Base of every per-kind attribute record."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str | None = None


class SkinDetails(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pores: bool = False
    freckles: bool = False
    wrinkles: bool = False
    veins: bool = False
    scars: bool = False
    stretch_marks: bool = False
    cellulite: bool = False
    discoloration: bool = False


class SkinRealism(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    intensity: int = Field(default=60, ge=0, le=100)
    details: SkinDetails = Field(default_factory=SkinDetails)


# --- Subject pipeline -------------------------------------------------------


class SubjectRootAttributes(NodeAttributes):
    selected_subject_id: str | None = None
    gender: Gender | None = None
    age: str | None = None
    ethnicity: str | None = None
    body_type: str | None = None
    consistency_mode: ConsistencyMode = ConsistencyMode.FACE_ONLY
    props_text: str | None = None


class BodyAttributes(NodeAttributes):
    gender: Gender | None = None
    age: str | None = None
    ethnicity: str | None = None
    body_type: str | None = None
    skin_realism: SkinRealism | None = None


class FaceAttributes(NodeAttributes):
    eye_color: str | None = None
    makeup: str | None = None
    character_description: str | None = None


class HairAttributes(NodeAttributes):
    hair_length: str | None = None
    hair_style: str | None = None
    hair_color: str | None = None
    custom_hair_color: str | None = None
    hair_physics: str | None = None


class AttireAttributes(NodeAttributes):
    clothing_top: str | None = None
    clothing_bottom: str | None = None
    footwear: str | None = None
    props_text: str | None = None


class PoseAttributes(NodeAttributes):
    pose: str | None = None


# --- Camera pipeline --------------------------------------------------------


class CameraRootAttributes(NodeAttributes):
    camera_model: str | None = None


class LensAttributes(NodeAttributes):
    lens_model: str | None = None
    aperture: str | None = None
    lens_char: str | None = None


class FilmAttributes(NodeAttributes):
    film_stock: str | None = None
    grain: str | None = None


class CameraSettingsAttributes(NodeAttributes):
    shutter_speed: str | None = None
    iso: str | None = None
    sensor_size: str | None = None


# --- Lighting pipeline ------------------------------------------------------


class LightingRootAttributes(NodeAttributes):
    lighting_style: str | None = None
    color_temperature: str | None = None


class LightSourceAttributes(NodeAttributes):
    light_source_type: str | None = None
    light_color_temperature: str | None = None
    light_position: str | None = None
    power: int | None = Field(default=None, ge=0, le=100)
    show_equipment: bool = False


class LightModifierAttributes(NodeAttributes):
    modifier_type: str | None = None


class GlobalIlluminationAttributes(NodeAttributes):
    description: str | None = None
    intensity: int | None = Field(default=None, ge=0, le=100)


# --- Environment pipeline ---------------------------------------------------


class EnvironmentRootAttributes(NodeAttributes):
    scene_description: str | None = None
    scene_image: ImageRef | None = None


class LocationAttributes(NodeAttributes):
    name: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    context: Literal["Interior", "Exterior"] | None = None
    date: str | None = None
    time: str | None = None


class AtmosphereAttributes(NodeAttributes):
    weather: str | None = None
    season: str | None = None
    haze: str | None = None


# --- Composition level / flat kinds ----------------------------------------


class CompositionAttributes(NodeAttributes):
    genre: str | None = None
    composition_type: str | None = None
    aspect_ratio: AspectRatio | None = None
    vibe: str | None = None


class StyleAttributes(NodeAttributes):
    photographic_style: str | None = None
    color_grade: str | None = None


class EnvironmentAttributes(NodeAttributes):
    env_type: Literal["General", "Landscape", "Architecture"] = "General"
    landscape_type: str | None = None
    architecture_style: str | None = None
    building_type: str | None = None
    scene_description: str | None = None
    location_name: str | None = None
    time: str | None = None
    scene_image: ImageRef | None = None


class CameraAttributes(NodeAttributes):
    camera_model: str | None = None
    lens_model: str | None = None
    film_stock: str | None = None
    aperture: str | None = None


class LightingAttributes(NodeAttributes):
    lighting_style: str | None = None
    lighting_setups: tuple[str, ...] = ()


class SubjectAttributes(NodeAttributes):
    gender: Gender | None = None
    age: str | None = None
    ethnicity: str | None = None
    body_type: str | None = None
    pose: str | None = None
    hair_length: str | None = None
    hair_style: str | None = None
    hair_color: str | None = None
    props_text: str | None = None


# --- Utility and terminal ---------------------------------------------------


class ReferenceAttributes(NodeAttributes):
    reference_image: ImageRef | None = None


class CommentAttributes(NodeAttributes):
    text: str | None = None


class GroupAttributes(NodeAttributes):
    pass


class AssemblerAttributes(NodeAttributes):
    pass


class OutputAttributes(NodeAttributes):
    label: str | None = "Final Image"


ATTRIBUTE_MODELS: dict[NodeKind, type[NodeAttributes]] = {
    NodeKind.SUBJECT_ROOT: SubjectRootAttributes,
    NodeKind.BODY: BodyAttributes,
    NodeKind.FACE: FaceAttributes,
    NodeKind.HAIR: HairAttributes,
    NodeKind.ATTIRE: AttireAttributes,
    NodeKind.POSE: PoseAttributes,
    NodeKind.CAMERA_ROOT: CameraRootAttributes,
    NodeKind.LENS: LensAttributes,
    NodeKind.FILM: FilmAttributes,
    NodeKind.CAMERA_SETTINGS: CameraSettingsAttributes,
    NodeKind.LIGHTING_ROOT: LightingRootAttributes,
    NodeKind.LIGHT_SOURCE: LightSourceAttributes,
    NodeKind.LIGHT_MODIFIER: LightModifierAttributes,
    NodeKind.GLOBAL_ILLUMINATION: GlobalIlluminationAttributes,
    NodeKind.ENVIRONMENT_ROOT: EnvironmentRootAttributes,
    NodeKind.LOCATION: LocationAttributes,
    NodeKind.ATMOSPHERE: AtmosphereAttributes,
    NodeKind.COMPOSITION: CompositionAttributes,
    NodeKind.STYLE: StyleAttributes,
    NodeKind.ENVIRONMENT: EnvironmentAttributes,
    NodeKind.CAMERA: CameraAttributes,
    NodeKind.LIGHTING: LightingAttributes,
    NodeKind.SUBJECT: SubjectAttributes,
    NodeKind.REFERENCE: ReferenceAttributes,
    NodeKind.COMMENT: CommentAttributes,
    NodeKind.GROUP: GroupAttributes,
    NodeKind.ASSEMBLER: AssemblerAttributes,
    NodeKind.OUTPUT: OutputAttributes,
}

# Starting values for freshly created nodes, on top of the record defaults.
_KIND_DEFAULTS: dict[NodeKind, dict[str, Any]] = {
    NodeKind.SUBJECT: {"gender": Gender.WOMAN, "pose": "standing with a confident posture"},
    NodeKind.ENVIRONMENT: {"env_type": "General", "time": "12:00"},
    NodeKind.CAMERA: {"camera_model": "None", "lens_model": "None", "aperture": "None"},
    NodeKind.COMPOSITION: {"aspect_ratio": "1:1"},
}


def default_attributes(kind: NodeKind) -> NodeAttributes:
    """Build the default attribute record for a newly created node.

    Args:
        kind: Kind of the node being created.

    Returns:
        Attribute record of the kind's model, labelled ``"New <kind>"``
        (the Output node keeps its own label).
    """
    model = ATTRIBUTE_MODELS[kind]
    values = dict(_KIND_DEFAULTS.get(kind, {}))
    if kind is not NodeKind.OUTPUT:
        values["label"] = f"New {kind.value.replace('_', ' ')}"
    return model(**values)


def parse_attributes(kind: NodeKind, data: dict[str, Any] | None) -> NodeAttributes:
    """Validate a full attribute mapping against the kind's record.

    Args:
        kind: Node kind owning the attributes.
        data: Raw mapping (e.g. loaded from JSON), or None for defaults.

    Returns:
        Validated attribute record.

    Raises:
        NodeAttributeError: If the mapping does not fit the record.
    """
    model = ATTRIBUTE_MODELS[kind]
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise NodeAttributeError(_format_errors(kind, e)) from e


def apply_partial(kind: NodeKind, current: NodeAttributes, partial: dict[str, Any]) -> NodeAttributes:
    """Merge a partial update into an attribute record.

    The merged mapping is validated as a whole, so nested records such as
    ``skin_realism`` are replaced rather than deep-merged.

    Args:
        kind: Node kind owning the record.
        current: Existing attribute record.
        partial: Field updates; keys must belong to the kind's record.

    Returns:
        New attribute record with the updates applied.

    Raises:
        NodeAttributeError: If a key is unknown for the kind or a value has
            the wrong type.
    """
    merged = current.model_dump()
    merged.update(partial)
    return parse_attributes(kind, merged)


def _format_errors(kind: NodeKind, error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    message = f"Invalid attributes for {kind.value} node: " + "; ".join(problems)
    logger.debug(message)
    return message

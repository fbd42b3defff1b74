"""Node kind catalogue for the shot graph.

Every node on the canvas carries exactly one :class:`NodeKind`.  Kinds are
grouped into pipelines: the granular Subject, Camera, Lighting and
Environment pipelines (a root kind aggregating child kinds), the flat
composition-level kinds retained from the original single-node editor, a
handful of utility kinds, and the single terminal ``Output`` kind.

The string values are stable identifiers: they are what the JSON graph
document and the HTTP API carry, so they must never be renamed.
"""

from __future__ import annotations

from enum import Enum


class NodeKind(str, Enum):
    """Closed set of node kinds."""

    # Subject pipeline
    SUBJECT_ROOT = "subject_root"
    BODY = "body"
    FACE = "face"
    HAIR = "hair"
    ATTIRE = "attire"
    POSE = "pose"

    # Camera pipeline
    CAMERA_ROOT = "camera_root"
    LENS = "lens"
    FILM = "film"
    CAMERA_SETTINGS = "camera_settings"

    # Lighting pipeline
    LIGHTING_ROOT = "lighting_root"
    LIGHT_SOURCE = "light_source"
    LIGHT_MODIFIER = "light_modifier"
    GLOBAL_ILLUMINATION = "global_illumination"

    # Environment pipeline
    ENVIRONMENT_ROOT = "environment_root"
    LOCATION = "location"
    ATMOSPHERE = "atmosphere"

    # Composition level (flat kinds kept for older graphs)
    COMPOSITION = "composition"
    STYLE = "style"
    ENVIRONMENT = "environment"
    CAMERA = "camera"
    LIGHTING = "lighting"
    SUBJECT = "subject"

    # Utility
    REFERENCE = "reference"
    COMMENT = "comment"
    GROUP = "group"
    ASSEMBLER = "assembler"

    # Terminal
    OUTPUT = "output"


# Kinds any node may feed, regardless of the adjacency table.
UNIVERSAL_SINKS: frozenset[NodeKind] = frozenset(
    {NodeKind.ASSEMBLER, NodeKind.GROUP, NodeKind.COMMENT}
)

SUBJECT_PIPELINE: tuple[NodeKind, ...] = (
    NodeKind.SUBJECT_ROOT,
    NodeKind.BODY,
    NodeKind.FACE,
    NodeKind.HAIR,
    NodeKind.ATTIRE,
    NodeKind.POSE,
)
CAMERA_PIPELINE: tuple[NodeKind, ...] = (
    NodeKind.CAMERA_ROOT,
    NodeKind.LENS,
    NodeKind.FILM,
    NodeKind.CAMERA_SETTINGS,
)
LIGHTING_PIPELINE: tuple[NodeKind, ...] = (
    NodeKind.LIGHTING_ROOT,
    NodeKind.LIGHT_SOURCE,
    NodeKind.LIGHT_MODIFIER,
    NodeKind.GLOBAL_ILLUMINATION,
)
ENVIRONMENT_PIPELINE: tuple[NodeKind, ...] = (
    NodeKind.ENVIRONMENT_ROOT,
    NodeKind.LOCATION,
    NodeKind.ATMOSPHERE,
)
LEGACY_KINDS: tuple[NodeKind, ...] = (
    NodeKind.COMPOSITION,
    NodeKind.STYLE,
    NodeKind.ENVIRONMENT,
    NodeKind.CAMERA,
    NodeKind.LIGHTING,
    NodeKind.SUBJECT,
)
UTILITY_KINDS: tuple[NodeKind, ...] = (
    NodeKind.REFERENCE,
    NodeKind.COMMENT,
    NodeKind.GROUP,
    NodeKind.ASSEMBLER,
)

_PIPELINES: dict[NodeKind, str] = {
    kind: name
    for name, kinds in (
        ("subject", SUBJECT_PIPELINE),
        ("camera", CAMERA_PIPELINE),
        ("lighting", LIGHTING_PIPELINE),
        ("environment", ENVIRONMENT_PIPELINE),
        ("composition", LEGACY_KINDS),
        ("utility", UTILITY_KINDS),
        ("output", (NodeKind.OUTPUT,)),
    )
    for kind in kinds
}


def pipeline_of(kind: NodeKind) -> str:
    """Return the pipeline name a kind belongs to.

    The canvas colours nodes by pipeline.

    Args:
        kind: Node kind to classify.

    Returns:
        One of ``"subject"``, ``"camera"``, ``"lighting"``, ``"environment"``,
        ``"composition"``, ``"utility"`` or ``"output"``.
    """
    return _PIPELINES[NodeKind(kind)]

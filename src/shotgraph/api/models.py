"""Pydantic request models for the Shotgraph API.

FastAPI validates every request body against these models before a handler
runs, so handlers only deal with well-formed input.  Responses are plain
dictionaries built from the core snapshot types.

Models
------
NodeCreateRequest
    Payload for ``POST /api/nodes``.
AttributeUpdateRequest
    Payload for ``PATCH /api/nodes/{id}/attributes``.
ParentRequest
    Payload for ``PUT /api/nodes/{id}/parent``.
ConnectedNodeRequest
    Payload for ``POST /api/nodes/{id}/connected``.
DeleteNodesRequest
    Payload for ``DELETE /api/nodes``.
EdgeCreateRequest
    Payload for ``POST /api/edges``.
PointerEventRequest
    Payload for ``POST /api/canvas/pointer``.
ViewRequest
    Payload for ``POST /api/canvas/view``.
SubjectProfileRequest
    Payload for ``PUT /api/subjects/{id}``.
AssetUploadRequest
    Payload for ``POST /api/assets``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from shotgraph.core.attributes import Gender
from shotgraph.core.images import ImageRef
from shotgraph.core.node_kinds import NodeKind


class NodeCreateRequest(BaseModel):
    """Request body for ``POST /api/nodes``.

    Attributes:
        kind: Kind of node to create.  ``Output`` is always rejected.
        x: World-space x of the new node's top-left corner.
        y: World-space y of the new node's top-left corner.
    """

    kind: NodeKind = Field(..., description="Node kind, e.g. 'subject_root'.")
    x: float = Field(default=0.0, description="World-space x position.")
    y: float = Field(default=0.0, description="World-space y position.")


class AttributeUpdateRequest(BaseModel):
    """Request body for ``PATCH /api/nodes/{id}/attributes``.

    Only the keys present are changed.  Keys that do not belong to the node's
    kind produce a 422 response.
    """

    attributes: dict[str, Any] = Field(
        ...,
        description="Partial attribute record to merge into the node.",
    )


class ParentRequest(BaseModel):
    group_id: str | None = Field(
        default=None,
        description="Group node to move the node into, or null to detach it.",
    )


class ConnectedNodeRequest(BaseModel):
    kind: NodeKind = Field(..., description="Kind of node to create next to the anchor.")


class DeleteNodesRequest(BaseModel):
    ids: list[str] = Field(..., description="Ids of the nodes to delete.")


class EdgeCreateRequest(BaseModel):
    """Request body for ``POST /api/edges``.

    Attributes:
        source: Id of the upstream node.
        target: Id of the downstream node.
    """

    source: str = Field(..., description="Upstream node id.")
    target: str = Field(..., description="Downstream node id.")


class PointerEventRequest(BaseModel):
    """A single raw input event for the canvas engine.

    Coordinates are in screen pixels relative to the canvas origin.

    Attributes:
        type: ``down``, ``move``, ``up``, ``wheel`` or ``cancel``.
        x: Pointer x in screen space.
        y: Pointer y in screen space.
        button: Mouse button for ``down`` events (0 = primary).
        shift: Whether shift was held (multi-select on ``down``).
        delta_y: Wheel delta for ``wheel`` events.
        pinch: True when the wheel event is a trackpad pinch.
    """

    type: Literal["down", "move", "up", "wheel", "cancel"] = Field(
        ..., description="Event type."
    )
    x: float = Field(default=0.0, description="Screen-space x.")
    y: float = Field(default=0.0, description="Screen-space y.")
    button: int = Field(default=0, description="Mouse button (0 = primary).")
    shift: bool = Field(default=False, description="Shift modifier held.")
    delta_y: float = Field(default=0.0, description="Wheel delta (wheel events only).")
    pinch: bool = Field(default=False, description="Trackpad pinch gesture.")


class ViewRequest(BaseModel):
    """Request body for ``POST /api/canvas/view``.

    ``width`` and ``height`` report the canvas element size; when given they
    are applied before the action so zooming centres on the visible area.
    """

    action: Literal["zoom_in", "zoom_out", "reset", "resize"] = Field(
        ..., description="View command to apply."
    )
    width: float | None = Field(default=None, gt=0, description="Canvas width in pixels.")
    height: float | None = Field(default=None, gt=0, description="Canvas height in pixels.")


class SubjectProfileRequest(BaseModel):
    """Request body for ``PUT /api/subjects/{id}``.

    The id comes from the path; everything else describes the profile.
    """

    name: str = Field(..., min_length=1, description="Display name of the subject.")
    description: str | None = Field(default=None, description="Free-text description.")
    gender: Gender | None = Field(default=None, description="Gender of the subject.")
    body_type: str | None = Field(default=None, description="Body type description.")
    type: Literal["Real Person", "Created Character"] = Field(
        default="Created Character",
        description="Whether the profile depicts a real person or a created character.",
    )
    images: list[ImageRef] = Field(
        default_factory=list,
        description="Reference images attached when the profile is used.",
    )
    tags: list[str] = Field(default_factory=list, description="Free-form tags.")


class AssetUploadRequest(BaseModel):
    """Request body for ``POST /api/assets``.

    Attributes:
        data: Either a ``data:`` URL or bare base64-encoded image bytes.
        label: Optional human-readable label.
    """

    data: str = Field(..., min_length=1, description="Data URL or base64 image bytes.")
    label: str | None = Field(default=None, description="Optional label.")

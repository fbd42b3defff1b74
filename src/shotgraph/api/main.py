"""Shotgraph - FastAPI Application.

This module exposes the graph store, the prompt compiler, the canvas engine
and the asset store over HTTP, and provides the ``main()`` CLI function that
launches the uvicorn server.

Architecture
------------
One application instance owns exactly one editing session:

- **Graph state** lives in a :class:`~shotgraph.core.graph_store.GraphStore`
  created at startup.  Every mutating endpoint goes through it, so the
  structural invariants hold no matter what the client sends.
- **Prompt preview** is a :class:`~shotgraph.compiler.prompt_compiler.LivePreview`
  subscribed to the store; ``GET /api/compile`` returns the prompt for the
  latest committed graph and recompiles only when something changed.
- **Canvas gestures** are forwarded as raw pointer events to a
  :class:`~shotgraph.canvas.interaction.CanvasEngine`, which answers with a
  render model for the next frame.
- **Subject profiles and image assets** persist in SQLite through
  :class:`~shotgraph.core.asset_store.AssetStore`.

Endpoints
---------
========  ==============================  ==================================
Method    Path                            Purpose
========  ==============================  ==================================
GET       ``/api/config``                 Node kinds, connection table, geometry
GET       ``/api/graph``                  Current graph document
PUT       ``/api/graph``                  Load a graph document (repaired)
POST      ``/api/graph/reset``            Back to a lone Output node
POST      ``/api/nodes``                  Add a node
PATCH     ``/api/nodes/{id}/attributes``  Merge attribute changes
POST      ``/api/nodes/{id}/collapse``    Toggle collapsed state
PUT       ``/api/nodes/{id}/parent``      Move into / out of a Group
POST      ``/api/nodes/{id}/connected``   Add a node wired to this one
DELETE    ``/api/nodes/{id}``             Delete one node
DELETE    ``/api/nodes``                  Delete several nodes
POST      ``/api/edges``                  Connect two nodes
DELETE    ``/api/edges/{id}``             Remove an edge
GET       ``/api/compile``                Compiled prompt for the Output node
GET       ``/api/canvas``                 Render model for the current frame
POST      ``/api/canvas/pointer``         Feed one pointer event
POST      ``/api/canvas/view``            Zoom in / out / reset / resize
GET       ``/api/subjects``               List subject profiles
GET       ``/api/subjects/{id}``          Single subject profile
PUT       ``/api/subjects/{id}``          Create or replace a profile
DELETE    ``/api/subjects/{id}``          Delete a profile
GET       ``/api/assets``                 List image assets
POST      ``/api/assets``                 Upload an image asset
GET       ``/api/assets/{id}``            Single image asset
DELETE    ``/api/assets/{id}``            Delete an image asset
========  ==============================  ==================================

Usage
-----
CLI (installed entry point)::

    shotgraph

Direct invocation::

    python -m shotgraph.api.main
"""

from __future__ import annotations

import base64
import binascii
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from shotgraph import __version__
from shotgraph.api.models import (
    AssetUploadRequest,
    AttributeUpdateRequest,
    ConnectedNodeRequest,
    DeleteNodesRequest,
    EdgeCreateRequest,
    NodeCreateRequest,
    ParentRequest,
    PointerEventRequest,
    SubjectProfileRequest,
    ViewRequest,
)
from shotgraph.canvas.interaction import CanvasEngine
from shotgraph.compiler.prompt_compiler import LivePreview
from shotgraph.core.asset_store import AssetStore, SubjectProfile
from shotgraph.core.attributes import NodeAttributeError
from shotgraph.core.config import ShotgraphConfig, config
from shotgraph.core.connection_rules import allowed_targets
from shotgraph.core.graph import Position
from shotgraph.core.graph_store import GraphStore
from shotgraph.core.images import ImageRef
from shotgraph.core.node_kinds import NodeKind, pipeline_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Application state helpers.
# ---------------------------------------------------------------------------


def _store(request: Request) -> GraphStore:
    return request.app.state.graph_store


def _engine(request: Request) -> CanvasEngine:
    return request.app.state.canvas_engine


def _preview(request: Request) -> LivePreview:
    return request.app.state.live_preview


def _assets(request: Request) -> AssetStore:
    return request.app.state.asset_store


def _node_or_404(request: Request, node_id: str) -> dict:
    node = _store(request).get_graph().node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    return node.to_dict()


def _decode_upload(data: str) -> ImageRef:
    """Turn an uploaded data URL or bare base64 string into an ImageRef.

    The mime type is always re-detected from the decoded bytes, so a wrong
    ``data:`` header cannot mislabel the stored image.

    Raises:
        HTTPException: 400 if the payload is not a decodable image.
    """
    try:
        if data.startswith("data:"):
            raw = ImageRef.from_data_url(data).to_bytes()
        else:
            raw = base64.b64decode(data, validate=True)
        return ImageRef.from_bytes(raw)
    except (ValueError, binascii.Error) as e:
        raise HTTPException(status_code=400, detail=f"Invalid image upload: {e}") from e


# ---------------------------------------------------------------------------
# Configuration.
# ---------------------------------------------------------------------------


@router.get("/config")
async def get_config(request: Request) -> dict:
    """Return the static data the frontend needs to build its palette.

    The response includes:

    - ``version`` - API version string.
    - ``node_kinds`` - every node kind, in palette order.
    - ``connections`` - for each kind, the kinds it may feed.
    - ``pipelines`` - for each kind, the pipeline it is coloured by.
    - ``default_aspect_ratio`` - used when no Composition node sets one.
    - ``geometry`` - node sizes, port radius and zoom limits.
    """
    settings: ShotgraphConfig = request.app.state.settings
    return {
        "version": __version__,
        "node_kinds": [kind.value for kind in NodeKind],
        "connections": {
            kind.value: sorted(target.value for target in allowed_targets(kind))
            for kind in NodeKind
        },
        "pipelines": {kind.value: pipeline_of(kind) for kind in NodeKind},
        "default_aspect_ratio": settings.default_aspect_ratio,
        "geometry": {
            "node_width": settings.node_width,
            "collapsed_height": settings.collapsed_height,
            "expanded_height": settings.expanded_height,
            "port_radius": settings.port_radius,
            "min_zoom": settings.min_zoom,
            "max_zoom": settings.max_zoom,
        },
    }


# ---------------------------------------------------------------------------
# Graph document.
# ---------------------------------------------------------------------------


@router.get("/graph")
async def get_graph(request: Request) -> dict:
    return _store(request).to_dict()


@router.put("/graph")
async def load_graph(request: Request, document: dict[str, Any]) -> dict:
    """Replace the graph with ``document``.

    Broken documents are repaired rather than refused: unreadable nodes and
    invalid edges are dropped and a missing Output node is synthesized.  The
    response is the graph as actually loaded.
    """
    engine = _engine(request)
    engine.cancel()
    engine.select([])
    _store(request).load_dict(document)
    return _store(request).to_dict()


@router.post("/graph/reset")
async def reset_graph(request: Request) -> dict:
    engine = _engine(request)
    engine.cancel()
    engine.select([])
    _store(request).reset()
    return _store(request).to_dict()


# ---------------------------------------------------------------------------
# Nodes.
# ---------------------------------------------------------------------------


@router.post("/nodes")
async def create_node(request: Request, req: NodeCreateRequest) -> dict:
    """Add a node with default attributes.

    Raises:
        HTTPException: 400 if ``kind`` is ``Output`` (exactly one exists).
    """
    node_id = _store(request).add_node(req.kind, Position(req.x, req.y))
    if node_id is None:
        raise HTTPException(status_code=400, detail="The graph already has its Output node")
    return _node_or_404(request, node_id)


@router.patch("/nodes/{node_id}/attributes")
async def update_attributes(request: Request, node_id: str, req: AttributeUpdateRequest) -> dict:
    """Merge a partial attribute record into a node.

    Raises:
        HTTPException: 404 for an unknown node, 422 if the attributes do not
            fit the node's kind.
    """
    try:
        applied = _store(request).update_node_attributes(node_id, req.attributes)
    except NodeAttributeError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    if not applied:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    return _node_or_404(request, node_id)


@router.post("/nodes/{node_id}/collapse")
async def toggle_collapse(request: Request, node_id: str) -> dict:
    """Toggle a node between collapsed and expanded.

    Expanding may push neighbouring nodes aside; the response is the full
    graph so the client sees every moved node.
    """
    if not _engine(request).toggle_collapsed(node_id):
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    return _store(request).to_dict()


@router.put("/nodes/{node_id}/parent")
async def set_parent(request: Request, node_id: str, req: ParentRequest) -> dict:
    node = _node_or_404(request, node_id)
    if node["parent_id"] == req.group_id:
        return node
    if not _store(request).set_parent(node_id, req.group_id):
        raise HTTPException(status_code=400, detail=f"Not a usable group: {req.group_id}")
    return _node_or_404(request, node_id)


@router.post("/nodes/{node_id}/connected")
async def create_connected_node(request: Request, node_id: str, req: ConnectedNodeRequest) -> dict:
    """Create a node beside ``node_id`` and wire it in where the rules allow."""
    _node_or_404(request, node_id)
    new_id = _store(request).add_connected_node(node_id, req.kind)
    if new_id is None:
        raise HTTPException(status_code=400, detail="The graph already has its Output node")
    return _store(request).to_dict()


@router.delete("/nodes/{node_id}")
async def delete_node(request: Request, node_id: str) -> dict:
    """Delete one node and its edges.

    Raises:
        HTTPException: 404 for an unknown node, 400 for the Output node.
    """
    _node_or_404(request, node_id)
    deleted = _store(request).delete_nodes([node_id])
    if not deleted:
        raise HTTPException(status_code=400, detail="The Output node cannot be deleted")
    return {"deleted": sorted(deleted)}


@router.delete("/nodes")
async def delete_nodes(request: Request, req: DeleteNodesRequest) -> dict:
    """Delete several nodes at once; unknown ids and the Output node are skipped."""
    deleted = _store(request).delete_nodes(req.ids)
    return {"deleted": sorted(deleted)}


# ---------------------------------------------------------------------------
# Edges.
# ---------------------------------------------------------------------------


@router.post("/edges")
async def create_edge(request: Request, req: EdgeCreateRequest) -> dict:
    """Connect ``source`` to ``target``.

    A connection the rules refuse is an ordinary outcome, not an error: the
    response says ``accepted: false`` and the graph is unchanged.
    """
    edge_id = _store(request).add_edge(req.source, req.target)
    return {"accepted": edge_id is not None, "edge_id": edge_id}


@router.delete("/edges/{edge_id}")
async def delete_edge(request: Request, edge_id: str) -> dict:
    if not _store(request).remove_edge(edge_id):
        raise HTTPException(status_code=404, detail=f"Edge not found: {edge_id}")
    return {"deleted": edge_id}


# ---------------------------------------------------------------------------
# Prompt compilation.
# ---------------------------------------------------------------------------


@router.get("/compile")
async def compile_prompt(request: Request) -> dict:
    """Return the compiled prompt, reference images and aspect ratio."""
    return _preview(request).current().to_dict()


# ---------------------------------------------------------------------------
# Canvas.
# ---------------------------------------------------------------------------


@router.get("/canvas")
async def get_canvas(request: Request) -> dict:
    return asdict(_engine(request).render())


@router.post("/canvas/pointer")
async def pointer_event(request: Request, req: PointerEventRequest) -> dict:
    """Feed one raw pointer event to the canvas engine.

    Returns the event's result (the hit for ``down``, the gesture outcome
    for ``up``, ``null`` otherwise) together with the next frame.
    """
    engine = _engine(request)
    result: Any = None
    if req.type == "down":
        result = asdict(engine.pointer_down(req.x, req.y, button=req.button, shift=req.shift))
    elif req.type == "move":
        engine.pointer_move(req.x, req.y)
    elif req.type == "up":
        result = asdict(engine.pointer_up(req.x, req.y))
    elif req.type == "wheel":
        engine.wheel(req.x, req.y, req.delta_y, pinch=req.pinch)
    else:
        result = {"cancelled": engine.cancel()}
    return {"result": result, "render": asdict(engine.render())}


@router.post("/canvas/view")
async def view_command(request: Request, req: ViewRequest) -> dict:
    engine = _engine(request)
    if req.width is not None and req.height is not None:
        engine.resize(req.width, req.height)
    if req.action == "zoom_in":
        engine.zoom_in()
    elif req.action == "zoom_out":
        engine.zoom_out()
    elif req.action == "reset":
        engine.reset_view()
    return asdict(engine.render())


# ---------------------------------------------------------------------------
# Subject profiles.
# ---------------------------------------------------------------------------


@router.get("/subjects")
async def list_subjects(request: Request) -> dict:
    subjects = _assets(request).list_subjects()
    return {"subjects": [s.model_dump(mode="json") for s in subjects]}


@router.get("/subjects/{subject_id}")
async def get_subject(request: Request, subject_id: str) -> dict:
    profile = _assets(request).get_subject(subject_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Subject not found: {subject_id}")
    return profile.model_dump(mode="json")


@router.put("/subjects/{subject_id}")
async def put_subject(request: Request, subject_id: str, req: SubjectProfileRequest) -> dict:
    """Create or replace a subject profile.

    Nodes that reference the profile pick up the change on the next compile.
    """
    profile = SubjectProfile(id=subject_id, **req.model_dump())
    if not _assets(request).put_subject(profile):
        raise HTTPException(status_code=500, detail="Failed to store subject profile")
    _preview(request).invalidate()
    return profile.model_dump(mode="json")


@router.delete("/subjects/{subject_id}")
async def delete_subject(request: Request, subject_id: str) -> dict:
    if not _assets(request).delete_subject(subject_id):
        raise HTTPException(status_code=404, detail=f"Subject not found: {subject_id}")
    _preview(request).invalidate()
    return {"deleted": subject_id}


# ---------------------------------------------------------------------------
# Image assets.
# ---------------------------------------------------------------------------


@router.get("/assets")
async def list_assets(request: Request) -> dict:
    assets = _assets(request).list_assets()
    return {"assets": [a.model_dump(mode="json") for a in assets]}


@router.post("/assets")
async def upload_asset(request: Request, req: AssetUploadRequest) -> dict:
    """Store an uploaded image and return its record.

    Raises:
        HTTPException: 400 if the payload is not an image Pillow recognises.
    """
    image = _decode_upload(req.data)
    asset = _assets(request).put_asset(uuid.uuid4().hex, image, req.label)
    if asset is None:
        raise HTTPException(status_code=500, detail="Failed to store asset")
    return asset.model_dump(mode="json")


@router.get("/assets/{asset_id}")
async def get_asset(request: Request, asset_id: str) -> dict:
    asset = _assets(request).get_asset(asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail=f"Asset not found: {asset_id}")
    return asset.model_dump(mode="json")


@router.delete("/assets/{asset_id}")
async def delete_asset(request: Request, asset_id: str) -> dict:
    if not _assets(request).delete_asset(asset_id):
        raise HTTPException(status_code=404, detail=f"Asset not found: {asset_id}")
    return {"deleted": asset_id}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(settings: ShotgraphConfig | None = None) -> FastAPI:
    """Build a FastAPI application bound to ``settings``.

    Args:
        settings: Configuration to use; defaults to the global
            :data:`~shotgraph.core.config.config`.

    Returns:
        A configured application.  Its session state is created when the
        lifespan starts.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the editing session on startup and detach it on shutdown.

        Args:
            app: The FastAPI application instance.

        Yields:
            Control back to the application for the duration of its lifetime.
        """
        # --- Startup -------------------------------------------------------
        app.state.settings = settings
        app.state.asset_store = AssetStore(settings.asset_db_path)
        app.state.graph_store = GraphStore(settings=settings)
        app.state.canvas_engine = CanvasEngine(app.state.graph_store, settings)
        app.state.live_preview = LivePreview(
            app.state.graph_store,
            library_provider=app.state.asset_store.subject_library,
            settings=settings,
        )
        logger.info(f"Session initialised (assets at {settings.asset_db_path}).")

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        app.state.live_preview.close()
        logger.info("Session closed on shutdown.")

    app = FastAPI(
        title="Shotgraph",
        description="Node-graph editor that compiles image-generation shots into prompts.",
        version=__version__,
        lifespan=lifespan,
    )

    # Allow cross-origin requests so the frontend can be served from a
    # different port during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~shotgraph.core.config.config` (which
    loads from ``SHOTGRAPH_SERVER_HOST`` and ``SHOTGRAPH_SERVER_PORT``
    environment variables).  Defaults to ``127.0.0.1:8000``.

    This function is registered as the ``shotgraph`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "shotgraph.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()

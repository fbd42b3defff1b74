"""Graph-to-prompt compiler.

:func:`compile_graph` walks the inputs of the Output node and emits prompt
text in a fixed stage order, independent of how the edges were drawn:

1. Composition (and Style) nodes, which also decide the aspect ratio
2. Environment, falling back to a plain studio setting
3. Subjects, numbered when more than one feeds the output
4. Camera
5. Lighting

Roots are found among the Output's direct inputs and, transitively, among
the inputs of Composition, Style, Assembler and Group nodes feeding it.
The result is sanitized last.  Compilation is a pure function of the graph
snapshot and the subject library.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.asset_store import SubjectProfile
from ..core.config import ShotgraphConfig, config as default_config
from ..core.graph import Graph, Node
from ..core.graph_store import GraphStore
from ..core.images import ImageRef
from ..core.node_kinds import NodeKind
from . import assemblers
from .sanitizer import sanitize
from .traversal import collect_upstream

logger = logging.getLogger(__name__)

DEFAULT_SETTING = "Setting: Minimalist Studio."

SubjectLibrary = Mapping[str, SubjectProfile]


@dataclass(frozen=True)
class CompiledPrompt:
    """Everything handed to the image-synthesis call."""

    prompt: str
    images: tuple[ImageRef, ...] = ()
    aspect_ratio: str = "1:1"

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "images": [image.model_dump() for image in self.images],
            "aspect_ratio": self.aspect_ratio,
        }


def compile_graph(
    output_node: Node | None,
    graph: Graph,
    subject_library: SubjectLibrary | None = None,
    settings: ShotgraphConfig | None = None,
) -> CompiledPrompt:
    """Compile a graph snapshot into a prompt, images and aspect ratio.

    Args:
        output_node: Terminal node to compile from.  None means the graph's
            own Output node.
        graph: Committed graph snapshot.
        subject_library: Subject profiles by id, for SubjectRoot nodes that
            link a stored identity.
        settings: Configuration (default aspect ratio).

    Returns:
        CompiledPrompt with the sanitized prompt, images in visit order and
        the last Composition aspect ratio (or the configured default).
    """
    settings = settings or default_config
    if output_node is None:
        output_node = graph.output_node
    aspect_ratio = settings.default_aspect_ratio
    if output_node is None:
        logger.debug("No Output node; compiling empty graph")
        return CompiledPrompt(prompt=DEFAULT_SETTING, aspect_ratio=aspect_ratio)

    images = assemblers.ImageCollector()
    parts: list[str] = []

    def upstream(*kinds: NodeKind) -> list[Node]:
        # Group by kind in the order given, each in visit order.
        found = collect_upstream(graph, output_node.id, set(kinds))
        return [n for kind in kinds for n in found if n.kind is kind]

    # 1. Composition and style
    for node in upstream(NodeKind.COMPOSITION):
        parts.append(assemblers.assemble_composition(node).text)
        if node.attributes.aspect_ratio:
            aspect_ratio = node.attributes.aspect_ratio
    for node in upstream(NodeKind.STYLE):
        parts.append(assemblers.assemble_style(node, graph, images).text)

    # 2. Environment
    environments = upstream(NodeKind.ENVIRONMENT, NodeKind.ENVIRONMENT_ROOT)
    if not environments:
        parts.append(DEFAULT_SETTING)
    for node in environments:
        if node.kind is NodeKind.ENVIRONMENT_ROOT:
            parts.append(assemblers.assemble_environment_root(node, graph, images).text)
        else:
            parts.append(assemblers.assemble_legacy_environment(node, images).text)

    # 3. Subjects
    subjects = upstream(NodeKind.SUBJECT_ROOT, NodeKind.SUBJECT)
    for number, node in enumerate(subjects, start=1):
        prefix = f"SUBJECT {number}:" if len(subjects) > 1 else "SUBJECT:"
        if node.kind is NodeKind.SUBJECT_ROOT:
            fragment = assemblers.assemble_subject_root(node, graph, images, subject_library)
        else:
            fragment = assemblers.assemble_legacy_subject(node)
        parts.append(f"{prefix} {fragment.text}".strip())

    # 4. Camera
    for node in upstream(NodeKind.CAMERA_ROOT, NodeKind.CAMERA):
        if node.kind is NodeKind.CAMERA_ROOT:
            parts.append(assemblers.assemble_camera_root(node, graph).text)
        else:
            parts.append(assemblers.assemble_legacy_camera(node).text)

    # 5. Lighting
    for node in upstream(NodeKind.LIGHTING_ROOT, NodeKind.LIGHT_SOURCE, NodeKind.LIGHTING):
        if node.kind is NodeKind.LIGHTING_ROOT:
            parts.append(assemblers.assemble_lighting_root(node, graph).text)
        elif node.kind is NodeKind.LIGHT_SOURCE:
            parts.append(assemblers.assemble_light_source(node, graph).text)
        else:
            parts.append(assemblers.assemble_legacy_lighting(node).text)

    fragments = tuple(p for p in parts if p)
    prompt = sanitize(" ".join(fragments))
    logger.debug(f"Compiled {len(fragments)} fragments, {len(images.images)} images, {aspect_ratio}")
    return CompiledPrompt(
        prompt=prompt,
        images=tuple(images.images),
        aspect_ratio=aspect_ratio,
    )


class LivePreview:
    """Keeps a compiled prompt in step with a :class:`GraphStore`.

    Each committed mutation only marks the preview dirty; the prompt is
    recompiled on the next :meth:`current` call, so a burst of mutations
    costs one compile.  Drag previews never reach the store and therefore
    never trigger a compile.

    Args:
        store: Store to follow.
        library_provider: Callable returning the current subject library.
        settings: Configuration passed through to :func:`compile_graph`.
    """

    def __init__(
        self,
        store: GraphStore,
        library_provider: Callable[[], SubjectLibrary] | None = None,
        settings: ShotgraphConfig | None = None,
    ):
        self._store = store
        self._library_provider = library_provider
        self._settings = settings
        self._cached: CompiledPrompt | None = None
        self._dirty = True
        self.compile_count = 0
        self._unsubscribe = store.subscribe(self._on_change)

    def _on_change(self, graph: Graph) -> None:
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def invalidate(self) -> None:
        """Force a recompile on next read (e.g. after the subject library changed)."""
        self._dirty = True

    def current(self) -> CompiledPrompt:
        """Return the prompt for the store's latest committed graph."""
        if self._dirty or self._cached is None:
            graph = self._store.get_graph()
            library = self._library_provider() if self._library_provider else None
            self._cached = compile_graph(graph.output_node, graph, library, self._settings)
            self._dirty = False
            self.compile_count += 1
        return self._cached

    def close(self) -> None:
        """Stop following the store."""
        self._unsubscribe()

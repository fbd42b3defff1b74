"""Graph Store: the single owner of the canonical node graph.

Every change to nodes or edges goes through :class:`GraphStore`.  Each
mutation either applies completely, leaving the structural invariants intact,
or is rejected without touching anything:

- exactly one ``Output`` node exists and it cannot be deleted;
- the edge relation is acyclic;
- every edge satisfies the connection rules;
- ``parent_id`` always names an existing ``Group`` node.

Rejections caused by ordinary gestures (invalid edge, unknown id, deleting
the Output) return ``None``/``False`` and log at debug level.  The only error
raised is :class:`~shotgraph.core.attributes.NodeAttributeError`, for an
attribute payload that does not fit the node's typed record.

Readers get immutable :class:`~shotgraph.core.graph.Graph` snapshots from
:meth:`GraphStore.get_graph`.  Observers registered with
:meth:`GraphStore.subscribe` are called with the new snapshot once per applied
mutation and never for rejected ones.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .attributes import NodeAttributeError, apply_partial, default_attributes
from .config import ShotgraphConfig, config as default_config
from .connection_rules import creates_cycle, has_cycle, is_valid_connection, outbound_index
from .graph import Edge, Graph, Node, Position
from .node_kinds import NodeKind

logger = logging.getLogger(__name__)

GraphListener = Callable[[Graph], None]

OUTPUT_POSITION = Position(800.0, 300.0)
CONNECTED_NODE_SPACING = 80.0


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _entries(data: Mapping[str, Any], key: str) -> list[Any]:
    entries = data.get(key) or []
    if not isinstance(entries, (list, tuple)):
        logger.warning(f"Ignoring {key!r}: expected a list, got {type(entries).__name__}")
        return []
    return list(entries)


def _describe(raw: Any) -> str:
    if isinstance(raw, Mapping):
        return repr(raw.get("id"))
    return f"entry {raw!r}"


class GraphStore:
    """Owns the canonical list of nodes and edges.

    Args:
        graph: Optional starting snapshot.  It is trusted as-is; use
            :meth:`from_dict` to load untrusted documents.
        settings: Configuration (node geometry for :meth:`add_connected_node`).
        id_factory: Callable producing a fresh id from a prefix; defaults to
            a random uuid suffix.
    """

    def __init__(
        self,
        graph: Graph | None = None,
        settings: ShotgraphConfig | None = None,
        id_factory: Callable[[str], str] | None = None,
    ):
        self._settings = settings or default_config
        self._new_id = id_factory or _new_id
        self._listeners: list[GraphListener] = []
        if graph is None:
            graph = Graph(nodes=(self._make_output(),))
        self._graph = graph
        self._outbound = outbound_index(graph.edges)

    # ------------------------------------------------------------------
    # Reads and observation
    # ------------------------------------------------------------------

    def get_graph(self) -> Graph:
        """Return the current immutable snapshot."""
        return self._graph

    @property
    def output_node(self) -> Node:
        node = self._graph.output_node
        if node is None:
            raise RuntimeError("Graph has no Output node")
        return node

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """Register a listener called with each new snapshot.

        Returns:
            A callable that unregisters the listener.  Calling it twice is
            harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        outbound: dict[str, list[str]] | None = None,
    ) -> None:
        self._graph = Graph(nodes=tuple(nodes), edges=tuple(edges))
        # Callers that already maintain the index pass it in.
        self._outbound = outbound if outbound is not None else outbound_index(self._graph.edges)
        for listener in list(self._listeners):
            listener(self._graph)

    # ------------------------------------------------------------------
    # Node mutations
    # ------------------------------------------------------------------

    def _make_output(self) -> Node:
        return Node(
            id=self._new_id(NodeKind.OUTPUT.value),
            kind=NodeKind.OUTPUT,
            attributes=default_attributes(NodeKind.OUTPUT),
            position=OUTPUT_POSITION,
            collapsed=False,
        )

    def add_node(self, kind: NodeKind, position: Position | None = None) -> str | None:
        """Create a node of ``kind`` with default attributes.

        Args:
            kind: Kind of node to create.
            position: World position; defaults to the origin.

        Returns:
            The new node id, or None when ``kind`` is ``Output`` (there is
            always exactly one).
        """
        kind = NodeKind(kind)
        if kind is NodeKind.OUTPUT:
            logger.debug("Rejected add_node: an Output node already exists")
            return None

        node = Node(
            id=self._new_id(kind.value),
            kind=kind,
            attributes=default_attributes(kind),
            position=position or Position(),
        )
        self._commit(self._graph.nodes + (node,), self._graph.edges, self._outbound)
        logger.info(f"Added {kind.value} node {node.id}")
        return node.id

    def update_node_attributes(self, node_id: str, partial: Mapping[str, Any]) -> bool:
        """Merge ``partial`` into a node's attributes.

        Returns:
            True if applied, False if the node does not exist.

        Raises:
            NodeAttributeError: If a key does not belong to the node's kind or
                a value has the wrong type.  Nothing is changed.
        """
        node = self._graph.node(node_id)
        if node is None:
            logger.debug(f"Rejected attribute update: unknown node {node_id}")
            return False

        attributes = apply_partial(node.kind, node.attributes, dict(partial))
        updated = node.with_changes(attributes=attributes)
        self._commit(
            (updated if n.id == node_id else n for n in self._graph.nodes),
            self._graph.edges,
            self._outbound,
        )
        logger.info(f"Updated attributes of {node_id}: {sorted(partial)}")
        return True

    def delete_nodes(self, node_ids: Iterable[str]) -> set[str]:
        """Delete nodes and every edge touching them.

        The Output node is never deleted.  Children of a deleted Group stay
        in place with their ``parent_id`` cleared.

        Returns:
            Ids that were actually deleted (empty if nothing applied).
        """
        requested = set(node_ids)
        doomed = {
            n.id for n in self._graph.nodes if n.id in requested and n.kind is not NodeKind.OUTPUT
        }
        if not doomed:
            logger.debug(f"Nothing to delete for {sorted(requested)}")
            return set()

        nodes = []
        for node in self._graph.nodes:
            if node.id in doomed:
                continue
            if node.parent_id in doomed:
                node = node.with_changes(parent_id=None)
            nodes.append(node)
        if not any(n.kind is NodeKind.OUTPUT for n in nodes):
            logger.warning("Output node missing after delete; synthesizing a new one")
            nodes.append(self._make_output())

        edges = [e for e in self._graph.edges if e.source not in doomed and e.target not in doomed]
        self._commit(nodes, edges)
        logger.info(f"Deleted nodes {sorted(doomed)}")
        return doomed

    def commit_positions(self, positions: Mapping[str, Position]) -> bool:
        """Write a batch of node positions in one mutation.

        Unknown ids are ignored.

        Returns:
            True if at least one position changed.
        """
        changed = False
        nodes = []
        for node in self._graph.nodes:
            new_pos = positions.get(node.id)
            if new_pos is not None and new_pos != node.position:
                node = node.with_changes(position=new_pos)
                changed = True
            nodes.append(node)
        if not changed:
            return False
        self._commit(nodes, self._graph.edges, self._outbound)
        logger.info(f"Committed positions for {len(positions)} node(s)")
        return True

    def set_collapsed(
        self,
        node_id: str,
        collapsed: bool,
        positions: Mapping[str, Position] | None = None,
    ) -> bool:
        """Set a node's collapsed flag; False if unknown or unchanged.

        Args:
            node_id: Node to collapse or expand.
            collapsed: New flag value.
            positions: Optional node positions written in the same mutation,
                e.g. neighbours pushed aside by the expanded node.  Unknown
                ids are ignored.
        """
        node = self._graph.node(node_id)
        if node is None or node.collapsed == collapsed:
            return False
        positions = positions or {}
        nodes = []
        for n in self._graph.nodes:
            if n.id == node_id:
                n = n.with_changes(collapsed=collapsed)
            new_pos = positions.get(n.id)
            if new_pos is not None:
                n = n.with_changes(position=new_pos)
            nodes.append(n)
        self._commit(nodes, self._graph.edges, self._outbound)
        logger.info(f"Node {node_id} {'collapsed' if collapsed else 'expanded'}")
        return True

    def set_parent(self, node_id: str, group_id: str | None) -> bool:
        """Place a node inside a Group, or take it out with ``group_id=None``.

        Returns:
            False if the node is unknown, ``group_id`` is not a Group node, or
            the node would become its own parent.
        """
        node = self._graph.node(node_id)
        if node is None:
            logger.debug(f"Rejected set_parent: unknown node {node_id}")
            return False
        if group_id is not None:
            group = self._graph.node(group_id)
            if group is None or group.kind is not NodeKind.GROUP or group_id == node_id:
                logger.debug(f"Rejected set_parent: {group_id} is not a usable group")
                return False
        if node.parent_id == group_id:
            return False
        self._replace_node(node.with_changes(parent_id=group_id))
        logger.info(f"Node {node_id} parent set to {group_id}")
        return True

    def _replace_node(self, updated: Node) -> None:
        self._commit(
            (updated if n.id == updated.id else n for n in self._graph.nodes),
            self._graph.edges,
            self._outbound,
        )

    def reset(self) -> None:
        """Clear the graph back to a single fresh Output node."""
        self._commit((self._make_output(),), ())
        logger.info("Graph reset")

    # ------------------------------------------------------------------
    # Edge mutations
    # ------------------------------------------------------------------

    def can_connect(self, source_id: str, target_id: str) -> bool:
        """Check whether :meth:`add_edge` would accept ``source -> target``."""
        return self._rejection_reason(source_id, target_id) is None

    def _rejection_reason(
        self,
        source_id: str,
        target_id: str,
        kinds: Mapping[str, NodeKind] | None = None,
        outbound: Mapping[str, list[str]] | None = None,
    ) -> str | None:
        if kinds is None:
            kinds = {n.id: n.kind for n in self._graph.nodes}
        if outbound is None:
            outbound = self._outbound
        source_kind = kinds.get(source_id)
        target_kind = kinds.get(target_id)
        if source_kind is None or target_kind is None:
            return "unknown endpoint"
        if source_id == target_id:
            return "self-loop"
        if target_id in outbound.get(source_id, ()):
            return "duplicate edge"
        if not is_valid_connection(source_kind, target_kind):
            return f"{source_kind.value} cannot feed {target_kind.value}"
        if creates_cycle(source_id, target_id, outbound):
            return "would create a cycle"
        return None

    def add_edge(self, source_id: str, target_id: str) -> str | None:
        """Connect ``source`` to ``target`` if the connection rules allow it.

        Returns:
            The new edge id, or None if rejected (unknown endpoint, self-loop,
            duplicate, incompatible kinds, or cycle).
        """
        reason = self._rejection_reason(source_id, target_id)
        if reason is not None:
            logger.debug(f"Rejected edge {source_id} -> {target_id}: {reason}")
            return None

        edge = Edge(id=self._new_id("edge"), source=source_id, target=target_id)
        self._outbound.setdefault(source_id, []).append(target_id)
        self._commit(self._graph.nodes, self._graph.edges + (edge,), self._outbound)
        logger.info(f"Added edge {edge.id}: {source_id} -> {target_id}")
        return edge.id

    def remove_edge(self, edge_id: str) -> bool:
        """Remove an edge by id; False if it does not exist."""
        edges = [e for e in self._graph.edges if e.id != edge_id]
        if len(edges) == len(self._graph.edges):
            logger.debug(f"Rejected remove_edge: unknown edge {edge_id}")
            return False
        self._commit(self._graph.nodes, edges)
        logger.info(f"Removed edge {edge_id}")
        return True

    def add_connected_node(self, anchor_id: str, kind: NodeKind) -> str | None:
        """Create a node next to ``anchor_id`` and wire it up.

        A node that can feed the anchor (e.g. a ``Body`` for a
        ``SubjectRoot``) is placed to the anchor's left and linked into it;
        a node the anchor can feed is placed to its right.  If neither
        direction is allowed the node is still created but left unlinked.

        Returns:
            The new node id, or None if the anchor is unknown or ``kind`` is
            ``Output``.
        """
        anchor = self._graph.node(anchor_id)
        kind = NodeKind(kind)
        if anchor is None or kind is NodeKind.OUTPUT:
            logger.debug(f"Rejected add_connected_node({anchor_id}, {kind.value})")
            return None

        width = self._settings.node_width
        step = self._settings.collapsed_height + self._settings.collision_gap
        feeds_anchor = is_valid_connection(kind, anchor.kind)
        if feeds_anchor:
            siblings = sum(1 for e in self._graph.edges if e.target == anchor_id)
            dx = -(width + CONNECTED_NODE_SPACING)
        else:
            siblings = sum(1 for e in self._graph.edges if e.source == anchor_id)
            dx = width + CONNECTED_NODE_SPACING

        node = Node(
            id=self._new_id(kind.value),
            kind=kind,
            attributes=default_attributes(kind),
            position=anchor.position.offset(dx, siblings * step),
        )
        edges = self._graph.edges
        # A brand-new node has no edges, so neither direction can close a cycle.
        if feeds_anchor:
            edges += (Edge(id=self._new_id("edge"), source=node.id, target=anchor_id),)
        elif is_valid_connection(anchor.kind, kind):
            edges += (Edge(id=self._new_id("edge"), source=anchor_id, target=node.id),)

        self._commit(self._graph.nodes + (node,), edges)
        logger.info(f"Added {kind.value} node {node.id} connected to {anchor_id}")
        return node.id

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialise the current graph to a JSON-compatible document."""
        return self._graph.to_dict()

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        settings: ShotgraphConfig | None = None,
        id_factory: Callable[[str], str] | None = None,
    ) -> GraphStore:
        """Build a store from a graph document (see :meth:`load_dict`)."""
        store = cls(settings=settings, id_factory=id_factory)
        store.load_dict(data)
        return store

    def load_dict(self, data: Mapping[str, Any]) -> Graph:
        """Replace the graph with a document, repairing broken invariants.

        Nodes of unknown kind or with invalid attributes are dropped, extra
        Output nodes beyond the first are dropped, a missing Output is
        synthesized, dangling ``parent_id`` values are cleared, and edges are
        replayed through the connection rules so that invalid, duplicate or
        cycle-closing edges are dropped.  Listeners are notified once.

        Entries that are not mappings, and ``nodes``/``edges`` values that
        are not lists, count as unreadable and are dropped the same way.

        Returns:
            The loaded snapshot.
        """
        if not isinstance(data, Mapping):
            logger.warning(f"Graph document is a {type(data).__name__}, not a mapping; loading empty")
            data = {}

        nodes: list[Node] = []
        seen: set[str] = set()
        has_output = False
        for raw in _entries(data, "nodes"):
            try:
                node = Node.from_dict(raw)
            except (KeyError, ValueError, TypeError) as e:
                # NodeAttributeError is a ValueError
                logger.warning(f"Dropping unreadable node {_describe(raw)}: {e!r}")
                continue
            if node.id in seen:
                logger.warning(f"Dropping duplicate node id {node.id}")
                continue
            if node.kind is NodeKind.OUTPUT:
                if has_output:
                    logger.warning(f"Dropping extra Output node {node.id}")
                    continue
                has_output = True
            seen.add(node.id)
            nodes.append(node)
        if not has_output:
            logger.warning("Graph document has no Output node; synthesizing one")
            nodes.append(self._make_output())

        kinds = {n.id: n.kind for n in nodes}
        repaired = []
        for node in nodes:
            if node.parent_id is not None and kinds.get(node.parent_id) is not NodeKind.GROUP:
                logger.warning(f"Clearing dangling parent {node.parent_id} on {node.id}")
                node = node.with_changes(parent_id=None)
            repaired.append(node)

        candidates: list[Edge] = []
        for raw in _entries(data, "edges"):
            try:
                candidates.append(Edge.from_dict(raw))
            except (KeyError, TypeError) as e:
                logger.warning(f"Dropping malformed edge {_describe(raw)}: {e!r}")
        if has_cycle(candidates):
            logger.warning("Graph document contains a cycle; edges closing it will be dropped")

        outbound: dict[str, list[str]] = {}
        edges: list[Edge] = []
        edge_ids: set[str] = set()
        for edge in candidates:
            reason = self._rejection_reason(edge.source, edge.target, kinds, outbound)
            if reason is None and edge.id in edge_ids:
                reason = "duplicate edge id"
            if reason is not None:
                logger.warning(f"Dropping edge {edge.id}: {reason}")
                continue
            edge_ids.add(edge.id)
            edges.append(edge)
            outbound.setdefault(edge.source, []).append(edge.target)

        self._commit(repaired, edges, outbound)
        logger.info(f"Loaded graph with {len(repaired)} nodes and {len(edges)} edges")
        return self._graph


__all__ = ["GraphListener", "GraphStore", "NodeAttributeError"]

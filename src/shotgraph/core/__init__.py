"""Core graph model for Shotgraph: node kinds, attributes, store and rules."""

from .asset_store import AssetStore, StoredAsset, SubjectProfile
from .attributes import (
    ATTRIBUTE_MODELS,
    ConsistencyMode,
    Gender,
    NodeAttributeError,
    NodeAttributes,
    default_attributes,
)
from .config import ShotgraphConfig, config
from .connection_rules import VALID_CONNECTIONS, creates_cycle, is_valid_connection
from .graph import Edge, Graph, Node, Position
from .graph_store import GraphStore
from .images import ImageRef
from .node_kinds import UNIVERSAL_SINKS, NodeKind

__all__ = [
    "ATTRIBUTE_MODELS",
    "AssetStore",
    "ConsistencyMode",
    "Edge",
    "Gender",
    "Graph",
    "GraphStore",
    "ImageRef",
    "Node",
    "NodeAttributeError",
    "NodeAttributes",
    "NodeKind",
    "Position",
    "ShotgraphConfig",
    "StoredAsset",
    "SubjectProfile",
    "UNIVERSAL_SINKS",
    "VALID_CONNECTIONS",
    "config",
    "creates_cycle",
    "default_attributes",
    "is_valid_connection",
]

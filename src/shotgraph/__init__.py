"""Shotgraph - node-graph editor that compiles image-generation shots into prompts."""

__version__ = "0.1.0"

from shotgraph.core.config import ShotgraphConfig, config
from shotgraph.core.graph_store import GraphStore
from shotgraph.compiler.prompt_compiler import CompiledPrompt, compile_graph

__all__ = [
    "CompiledPrompt",
    "GraphStore",
    "ShotgraphConfig",
    "compile_graph",
    "config",
]

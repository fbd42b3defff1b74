"""Prompt compiler: traversal, per-kind assemblers and sanitization."""

from .assemblers import describe_node
from .prompt_compiler import DEFAULT_SETTING, CompiledPrompt, LivePreview, compile_graph
from .sanitizer import sanitize
from .traversal import collect_upstream, inputs_of

__all__ = [
    "DEFAULT_SETTING",
    "CompiledPrompt",
    "LivePreview",
    "collect_upstream",
    "compile_graph",
    "describe_node",
    "inputs_of",
    "sanitize",
]

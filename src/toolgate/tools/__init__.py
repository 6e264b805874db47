"""
Toolgate Tool Declarations

Every tool the assistant can call is declared here with its risk class,
parameter schema, scope and confirmation mode before the gate will ever
allow it.

Components:
- ToolRegistry: name -> ToolMetadata store (thread-safe, copy-on-read)
- default_registry(): registry pre-loaded with the standard tools
- ToolCall / *Params: validated, per-kind parameter models for call sites
"""

from toolgate.tools.catalog import DEFAULT_TOOLS, default_registry
from toolgate.tools.params import (
    DiffParams,
    EditParams,
    ExecParams,
    NetworkParams,
    PatchParams,
    ReadParams,
    ToolCall,
    parse_params,
)
from toolgate.tools.registry import ToolRegistry

__all__ = [
    "DEFAULT_TOOLS",
    "DiffParams",
    "EditParams",
    "ExecParams",
    "NetworkParams",
    "PatchParams",
    "ReadParams",
    "ToolCall",
    "ToolRegistry",
    "default_registry",
    "parse_params",
]

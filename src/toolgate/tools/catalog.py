"""
Built-in tool declarations.

Risk metadata for the assistant's standard tools: repository scan, file
read/search, diff generation, patching, safe edits, command execution and
git inspection. Only the metadata lives here; the implementations belong
to the task loop.
"""

from __future__ import annotations

from toolgate.core.models import (
    ConfirmationMode,
    ParameterSpec,
    ParameterType,
    RiskClass,
    ToolMetadata,
    ToolScope,
)
from toolgate.tools.registry import ToolRegistry

MiB = 1024 * 1024

SAFE_COMMANDS = ["echo", "ls", "cat", "grep", "find", "pytest", "npm", "go", "cargo", "make", "git"]
DANGEROUS_COMMANDS = ["rm", "dd", "mkfs", "format", "chmod", "chown", "sudo", "su"]


def _param(
    type_: ParameterType = ParameterType.STRING,
    required: bool = False,
    description: str = "",
    sensitive: bool = False,
) -> ParameterSpec:
    return ParameterSpec(type=type_, required=required, description=description, sensitive=sensitive)


def _scan_tool(name: str, description: str) -> ToolMetadata:
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.READ,
        description=description,
        parameters={"path": _param(description="Path to scan")},
        scope=ToolScope(
            path_allowlist=["/"],
            path_denylist=[".git/", "node_modules/", "dist/", "build/"],
        ),
    )


def _read_tool(name: str, description: str, ranged: bool) -> ToolMetadata:
    params = {"path": _param(required=True, description="File path")}
    if ranged:
        params["offset"] = _param(ParameterType.NUMBER, description="Start line")
        params["limit"] = _param(ParameterType.NUMBER, description="Max lines")
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.READ,
        description=description,
        parameters=params,
        scope=ToolScope(path_denylist=[".env", "secrets/", "credentials/"], max_file_size=MiB),
    )


def _search_tool(name: str, description: str) -> ToolMetadata:
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.READ,
        description=description,
        parameters={
            "pattern": _param(required=True, description="Regex pattern"),
            "path": _param(description="Search path"),
            "extensions": _param(ParameterType.ARRAY, description="File extensions"),
        },
        scope=ToolScope(path_denylist=[".env", "secrets/", "node_modules/"]),
    )


def _edit_tool(name: str, description: str) -> ToolMetadata:
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.WRITE,
        description=description,
        parameters={
            "path": _param(required=True, description="File path"),
            "startLine": _param(ParameterType.NUMBER, required=True, description="Start line"),
            "endLine": _param(ParameterType.NUMBER, required=True, description="End line"),
            "newContent": _param(required=True, description="New content", sensitive=True),
        },
        scope=ToolScope(path_denylist=[".env", "secrets/", "credentials/", ".git/"]),
        confirmation=ConfirmationMode.ONCE,
    )


def _exec_tool(name: str, description: str) -> ToolMetadata:
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.EXEC,
        description=description,
        parameters={
            "command": _param(required=True, description="Command to execute"),
            "args": _param(ParameterType.ARRAY, description="Command arguments"),
            "timeout": _param(ParameterType.NUMBER, description="Timeout in ms"),
        },
        scope=ToolScope(
            command_allowlist=list(SAFE_COMMANDS),
            command_denylist=list(DANGEROUS_COMMANDS),
            max_output_size=MiB,
        ),
        confirmation=ConfirmationMode.ALWAYS,
    )


def _git_tool(name: str, description: str, **params: ParameterSpec) -> ToolMetadata:
    return ToolMetadata(
        name=name,
        risk_class=RiskClass.READ,
        description=description,
        parameters=params,
        scope=ToolScope(path_denylist=[".git/"]),
    )


def build_default_tools() -> dict[str, ToolMetadata]:
    """Fresh copies of the standard tool declarations, keyed by name."""
    tools = [
        _scan_tool("scan_repo", "Scan repository structure and return overview"),
        _read_tool("read_file", "Read file content with optional line range", ranged=True),
        _search_tool("search_files", "Search for pattern in files"),
        ToolMetadata(
            name="generate_diff",
            risk_class=RiskClass.READ,
            description="Generate unified diff from original to patched content",
            parameters={
                "original": _param(required=True, description="Original file path"),
                "patched": _param(required=True, description="Patched file path"),
            },
            scope=ToolScope(path_denylist=[".env", "secrets/"]),
        ),
        ToolMetadata(
            name="apply_patch",
            risk_class=RiskClass.WRITE,
            description="Apply unified diff patch to file",
            parameters={
                "filePath": _param(required=True, description="Target file path"),
                "patch": _param(required=True, description="Patch content", sensitive=True),
            },
            scope=ToolScope(path_denylist=[".env", "secrets/", "credentials/", ".git/"]),
            confirmation=ConfirmationMode.ONCE,
        ),
        _edit_tool("safe_edit", "Safely edit file with line range validation"),
        _exec_tool("execute_command", "Execute command with sandbox restrictions"),
        _git_tool("git_status", "Show git working tree status"),
        _git_tool(
            "git_diff",
            "Show staged/unstaged changes",
            staged=_param(ParameterType.BOOLEAN, description="Show staged only"),
        ),
        # Short aliases used by the interactive shell.
        _scan_tool("scan", "Scan repository structure"),
        _read_tool("read", "Read file content", ranged=False),
        _search_tool("grep", "Search for pattern in files"),
        _edit_tool("edit", "Safely edit file"),
        _exec_tool("run", "Execute command"),
    ]
    return {tool.name: tool for tool in tools}


DEFAULT_TOOLS = build_default_tools()


def default_registry() -> ToolRegistry:
    """A new registry pre-populated with the standard tools."""
    return ToolRegistry(build_default_tools())

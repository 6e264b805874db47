"""
Typed tool-call parameters.

The decision engine takes a plain ``dict[str, Any]`` so it stays agnostic
to any one tool's shape. Call sites that build a concrete tool call use
these models instead: a discriminated union keyed on ``kind`` that is
validated once, then flattened with ``ToolCall.parameters()`` for the gate.

Usage:
    call = ToolCall(tool="execute_command", params={"kind": "exec", "command": "pytest -q"})
    verdict = gate.check(call.tool, call.parameters(), context)
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReadParams(_Params):
    kind: Literal["read"] = "read"
    path: str | None = None
    offset: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=1)
    pattern: str | None = None
    extensions: list[str] | None = None


class DiffParams(_Params):
    kind: Literal["diff"] = "diff"
    original: str
    patched: str


class PatchParams(_Params):
    kind: Literal["patch"] = "patch"
    file_path: str = Field(alias="filePath")
    patch: str


class EditParams(_Params):
    kind: Literal["edit"] = "edit"
    path: str
    start_line: int = Field(alias="startLine", ge=1)
    end_line: int = Field(alias="endLine", ge=1)
    new_content: str = Field(alias="newContent")


class ExecParams(_Params):
    kind: Literal["exec"] = "exec"
    command: str
    args: list[str] | None = None
    timeout: int | None = Field(default=None, ge=1)


class NetworkParams(_Params):
    kind: Literal["network"] = "network"
    url: str
    method: str = "GET"


ToolParams = Annotated[
    Union[ReadParams, DiffParams, PatchParams, EditParams, ExecParams, NetworkParams],
    Field(discriminator="kind"),
]

_params_adapter: TypeAdapter[Any] = TypeAdapter(ToolParams)


def parse_params(data: dict[str, Any]) -> ToolParams:
    """Validate a raw parameter dict (must include ``kind``)."""
    return _params_adapter.validate_python(data)


class ToolCall(BaseModel):
    """A concrete, validated request to run one tool."""

    tool: str
    params: ToolParams

    def parameters(self) -> dict[str, Any]:
        """Generic mapping for the decision engine, using the wire names (``filePath`` ...)."""
        return self.params.model_dump(by_alias=True, exclude_none=True, exclude={"kind"})

"""
Toolgate Core Data Models

All shared types used across the gate. This module is the foundation
that every other component imports from — it must have zero internal
dependencies beyond pydantic.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ─── Enums ───────────────────────────────────────────────────

class RiskClass(str, Enum):
    """Coarse category of a tool's potential impact."""
    READ = "read"
    WRITE = "write"
    EXEC = "exec"
    NETWORK = "network"


class ConfirmationMode(str, Enum):
    """Whether a human must approve a tool before it runs.

    - NONE: never asks
    - ONCE: one approval per session (the caller clears the ledger at session end)
    - ALWAYS: approval is required; the ledger entry is still what is checked
    """
    NONE = "none"
    ONCE = "once"
    ALWAYS = "always"


class Severity(str, Enum):
    """Severity of a scanner finding."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AuditResult(str, Enum):
    """Outcome recorded for an audit event."""
    ALLOWED = "allowed"
    DENIED = "denied"
    APPROVED = "approved"
    REJECTED = "rejected"


class ParameterType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


# ─── Tool metadata ───────────────────────────────────────────

class ParameterSpec(BaseModel):
    """Declared shape of one tool parameter.

    The gate does not validate arguments against it; ``sensitive`` marks
    values that are scrubbed before they reach the audit trail.
    """
    type: ParameterType = ParameterType.STRING
    required: bool = False
    description: str = ""
    sensitive: bool = False


class ToolScope(BaseModel):
    """Tool-level narrowing of the global policy.

    Scope rules are checked in addition to the global policy, never
    instead of it.
    """
    path_allowlist: list[str] = Field(default_factory=list)
    path_denylist: list[str] = Field(default_factory=list)
    command_allowlist: list[str] = Field(default_factory=list)
    command_denylist: list[str] = Field(default_factory=list)
    max_file_size: int | None = Field(default=None, ge=0)
    max_output_size: int | None = Field(default=None, ge=0)


class ToolMetadata(BaseModel):
    """Static description of one callable action."""
    name: str
    risk_class: RiskClass
    description: str = ""
    parameters: dict[str, ParameterSpec] = Field(default_factory=dict)
    scope: ToolScope = Field(default_factory=ToolScope)
    confirmation: ConfirmationMode = ConfirmationMode.NONE

    def sensitive_parameters(self) -> set[str]:
        return {name for name, spec in self.parameters.items() if spec.sensitive}


# ─── Policy ──────────────────────────────────────────────────

class PolicyConfig(BaseModel):
    """The live rule set consulted by the decision engine.

    Denylists always take precedence over allowlists. An empty allowlist
    means "no restriction beyond the denylist".
    """
    model_config = ConfigDict(extra="forbid")

    default_confirmation: ConfirmationMode = ConfirmationMode.ONCE
    deny_network: bool = True
    max_file_size: int = Field(default=1024 * 1024, ge=0)
    max_output_size: int = Field(default=1024 * 1024, ge=0)
    path_allowlist: list[str] = Field(default_factory=list)
    path_denylist: list[str] = Field(default_factory=list)
    command_allowlist: list[str] = Field(default_factory=list)
    command_denylist: list[str] = Field(default_factory=list)
    secret_patterns: list[str] = Field(default_factory=list)
    pii_patterns: list[str] = Field(default_factory=list)


class EvaluationContext(BaseModel):
    """Who is asking, and whether the confirmation step is bypassed."""
    user_id: str = "anonymous"
    project_id: str | None = None
    skip_confirmation: bool = False


class Verdict(BaseModel):
    """Allow/deny decision plus a human-readable explanation.

    A denial is an ordinary return value, never an exception.
    """
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str | None = None
    suggestions: list[str] = Field(default_factory=list)

    @classmethod
    def allow(cls) -> Verdict:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, *suggestions: str) -> Verdict:
        return cls(allowed=False, reason=reason, suggestions=list(suggestions))


# ─── Audit ───────────────────────────────────────────────────

def _new_audit_id() -> str:
    now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"audit_{now_ms}_{uuid.uuid4().hex[:10]}"


class AuditEvent(BaseModel):
    """Immutable record of one decision or executed action."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_audit_id)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tool: str
    action: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    result: AuditResult
    reason: str | None = None
    user_id: str | None = None
    project_id: str | None = None
    duration_ms: int | None = None


class SessionRecord(BaseModel):
    """Lifecycle bookend for a group of audit events."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    workspace: str | None = None
    actions_count: int = 0


# ─── Scanner ─────────────────────────────────────────────────

class Span(BaseModel):
    start: int
    end: int


class DetectedItem(BaseModel):
    """One sensitive substring found by the scanner."""
    type: str
    value: str
    position: Span
    severity: Severity


class ScanResult(BaseModel):
    """All findings for one piece of content, plus its masked copy."""
    redacted_content: str
    detected_secrets: list[DetectedItem] = Field(default_factory=list)
    detected_pii: list[DetectedItem] = Field(default_factory=list)

    @property
    def has_secrets(self) -> bool:
        return bool(self.detected_secrets)

    @property
    def has_pii(self) -> bool:
        return bool(self.detected_pii)

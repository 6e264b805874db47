"""
Toolgate Decision Engine

Decides whether a requested tool call may proceed. Every call is:

1. Looked up in the ToolRegistry (unknown tools are denied)
2. Checked against its risk class (network strict mode, command lists)
3. Checked against path scope (global denylist, tool denylist/allowlist, size)
4. Checked against the ConfirmationLedger (if the tool needs a human)

First failing check wins. Each step can only deny; the final allow is
reached only by surviving every applicable check. Cheap deterministic
checks run before the filesystem stat used by the size limit.

Matching is literal: command denylist entries match by
substring anywhere in the command line, the allowlist compares only the
base name of the first token, and paths are matched by substring/prefix
without canonicalization (``../`` tricks are not resolved).
"""

from __future__ import annotations

import os
import time
from collections.abc import Mapping
from typing import Any

from toolgate.core.models import (
    ConfirmationMode,
    EvaluationContext,
    PolicyConfig,
    RiskClass,
    ToolMetadata,
    Verdict,
)
from toolgate.logging import get_logger
from toolgate.observability.metrics import record_decision
from toolgate.policy.config import PolicyStore
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.tools.registry import ToolRegistry

logger = get_logger("toolgate.policy")

# Parameter names that may carry a filesystem path, in preference order.
PATH_KEYS = ("path", "filePath", "original", "patched")


class DecisionEngine:
    """Evaluate tool calls against registry, policy and ledger state."""

    def __init__(
        self,
        registry: ToolRegistry,
        policy: PolicyStore,
        ledger: ConfirmationLedger,
    ) -> None:
        self._registry = registry
        self._policy = policy
        self._ledger = ledger

    def evaluate(
        self,
        tool_name: str,
        parameters: Mapping[str, Any] | None = None,
        context: EvaluationContext | None = None,
    ) -> Verdict:
        """Return the verdict for calling *tool_name* with *parameters*.

        Never raises for a denial: a disallowed call is an ordinary
        ``Verdict(allowed=False, reason=...)``.
        """
        params = parameters or {}
        ctx = context or EvaluationContext()
        start = time.perf_counter()

        metadata = self._registry.lookup(tool_name)
        if metadata is None:
            known = ", ".join(sorted(self._registry.names())) or "(none registered)"
            verdict = Verdict.deny(
                f"Unknown tool: {tool_name}",
                f"Use a registered tool from {known}",
            )
            risk = "unknown"
        else:
            verdict = self._evaluate_known(tool_name, metadata, params, ctx, self._policy.current())
            risk = metadata.risk_class.value

        duration_ms = (time.perf_counter() - start) * 1000
        record_decision(
            tool_name=tool_name,
            allowed=verdict.allowed,
            risk_class=risk,
            duration_ms=duration_ms,
        )
        _log_verdict(tool_name, verdict, ctx, risk, duration_ms)
        return verdict

    def _evaluate_known(
        self,
        tool_name: str,
        metadata: ToolMetadata,
        params: Mapping[str, Any],
        ctx: EvaluationContext,
        policy: PolicyConfig,
    ) -> Verdict:
        verdict = check_risk(metadata, params, policy)
        if not verdict.allowed:
            return verdict

        verdict = check_scope(metadata, params, policy)
        if not verdict.allowed:
            return verdict

        return self._check_confirmation(tool_name, metadata, ctx)

    def _check_confirmation(
        self, tool_name: str, metadata: ToolMetadata, ctx: EvaluationContext
    ) -> Verdict:
        if metadata.confirmation == ConfirmationMode.NONE or ctx.skip_confirmation:
            return Verdict.allow()

        if self._ledger.is_approved(tool_name, ctx.user_id):
            return Verdict.allow()

        return Verdict.deny(
            f'Tool "{tool_name}" requires user confirmation',
            f'This tool has "{metadata.confirmation.value}" confirmation mode',
            "Approve this tool call to proceed",
        )


def check_risk(metadata: ToolMetadata, params: Mapping[str, Any], policy: PolicyConfig) -> Verdict:
    """Risk-class rules: network strict mode and command allow/deny lists."""
    if metadata.risk_class == RiskClass.NETWORK and policy.deny_network:
        return Verdict.deny(
            "Network access is denied in strict mode",
            "Use local tools instead",
            "Disable strict mode to allow network",
        )

    if metadata.risk_class == RiskClass.EXEC:
        command = params.get("command")
        if isinstance(command, str) and command:
            if any(denied in command for denied in policy.command_denylist):
                return Verdict.deny(
                    f'Command "{command}" is in the deny list',
                    "Use a safe alternative command",
                )

            if policy.command_allowlist:
                base = command_basename(command)
                if base not in policy.command_allowlist:
                    return Verdict.deny(
                        f'Command "{base}" is not in the allowed list',
                        f"Allowed commands: {', '.join(policy.command_allowlist)}",
                    )

    return Verdict.allow()


def check_scope(metadata: ToolMetadata, params: Mapping[str, Any], policy: PolicyConfig) -> Verdict:
    """Path rules: global denylist, tool denylist, tool allowlist, size ceiling."""
    scope = metadata.scope
    file_path = extract_path(params)
    if not isinstance(file_path, str):
        return Verdict.allow()

    for denied in policy.path_denylist:
        if denied in file_path:
            return Verdict.deny(
                f'Path "{file_path}" is in the deny list',
                "Access a file outside the denied paths",
            )

    for denied in scope.path_denylist:
        if denied in file_path:
            return Verdict.deny(
                f'Path "{file_path}" is not allowed for this tool',
                "Use a path within the allowed scope",
            )

    if scope.path_allowlist and not any(file_path.startswith(a) for a in scope.path_allowlist):
        return Verdict.deny(
            f"Path \"{file_path}\" is not in the tool's allow list",
            f"Allowed paths: {', '.join(scope.path_allowlist)}",
        )

    if scope.max_file_size is not None:
        try:
            size = os.stat(file_path).st_size
        except OSError:
            # Inconclusive: missing or unreadable files are not denied here.
            size = None
        if size is not None and size > scope.max_file_size:
            return Verdict.deny(
                f"File size ({size}) exceeds size limit ({scope.max_file_size})",
                "Use a smaller file or use chunking",
            )

    return Verdict.allow()


def extract_path(params: Mapping[str, Any]) -> Any:
    """First truthy value among the path-like parameter keys."""
    for key in PATH_KEYS:
        value = params.get(key)
        if value:
            return value
    return None


def command_basename(command: str) -> str:
    """Base name of the first space-delimited token (``/usr/bin/npm test`` -> ``npm``)."""
    return os.path.basename(command.split(" ")[0])


def _log_verdict(
    tool_name: str,
    verdict: Verdict,
    ctx: EvaluationContext,
    risk: str,
    duration_ms: float,
) -> None:
    extra = {
        "tool_name": tool_name,
        "user_id": ctx.user_id,
        "project_id": ctx.project_id,
        "risk_class": risk,
        "result": "allowed" if verdict.allowed else "denied",
        "duration_ms": round(duration_ms, 3),
    }
    if verdict.allowed:
        logger.debug("Tool call allowed", extra=extra)
    else:
        logger.info("Tool call denied: %s", verdict.reason, extra=extra)

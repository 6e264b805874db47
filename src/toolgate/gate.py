"""
Toolgate Policy Gate

Composition root that wires the registry, policy store, confirmation
ledger, decision engine, audit log and content scanner together. Every
collaborator is passed in (or created fresh), so independent gates never
share hidden state.

    Task loop → PolicyGate.check() → DecisionEngine → Verdict
                        └──────────→ AuditLog.record()

The task loop either calls ``check()`` and runs the tool itself, or
hands the tool's callable to ``execute()`` which runs it only when the
verdict allows it and records the real outcome.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from toolgate.audit.log import AuditLog
from toolgate.core.models import (
    AuditResult,
    EvaluationContext,
    PolicyConfig,
    Severity,
    ToolMetadata,
    Verdict,
)
from toolgate.exceptions import ConfigurationError, ScanPatternError
from toolgate.logging import get_logger
from toolgate.policy.config import PolicyStore
from toolgate.policy.engine import DecisionEngine
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.policy.loader import load_policy
from toolgate.security.patterns import ContentPattern
from toolgate.security.scanner import ContentScanner
from toolgate.tools.catalog import default_registry
from toolgate.tools.registry import ToolRegistry

logger = get_logger("toolgate.gate")

POLICY_PATTERN_PREFIX = "policy:"


@dataclass
class ExecutionOutcome:
    """What happened to one ``PolicyGate.execute()`` request."""

    verdict: Verdict
    output: Any = None
    duration_ms: float = 0.0

    @property
    def executed(self) -> bool:
        return self.verdict.allowed


class PolicyGate:
    """Security checkpoint in front of every tool invocation.

    Without an ``audit`` log the gate still decides but records nothing.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        policy: PolicyStore | PolicyConfig | None = None,
        ledger: ConfirmationLedger | None = None,
        audit: AuditLog | None = None,
        scanner: ContentScanner | None = None,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.policy = policy if isinstance(policy, PolicyStore) else PolicyStore(policy)
        self.ledger = ledger if ledger is not None else ConfirmationLedger()
        self.audit = audit
        if audit is None:
            logger.debug("Policy gate created without an audit log; decisions are not recorded")
        self.scanner = scanner if scanner is not None else ContentScanner()
        self.engine = DecisionEngine(self.registry, self.policy, self.ledger)
        self._policy_patterns: list[str] = []
        self._sync_policy_patterns(self.policy.current())

    @classmethod
    def from_config(cls, path: str | Path, **kwargs: Any) -> PolicyGate:
        """Build a gate from a policy file.

        Fails closed: an unreadable or invalid file, including an invalid
        scanner pattern in it, raises ``ConfigurationError``.
        """
        config = load_policy(path)
        try:
            return cls(policy=config, **kwargs)
        except ScanPatternError as exc:
            raise ConfigurationError(str(path), str(exc), details=exc.details) from exc

    # ─── Decisions ───────────────────────────────────────────

    def check(
        self,
        tool_name: str,
        parameters: Mapping[str, Any] | None = None,
        context: EvaluationContext | None = None,
        *,
        action: str = "evaluate",
    ) -> Verdict:
        """Evaluate a tool call and record the verdict."""
        ctx = context or EvaluationContext()
        params = dict(parameters or {})

        start = time.perf_counter()
        verdict = self.engine.evaluate(tool_name, params, ctx)
        duration_ms = (time.perf_counter() - start) * 1000

        self._record(
            tool_name,
            AuditResult.ALLOWED if verdict.allowed else AuditResult.DENIED,
            action=action,
            parameters=params,
            reason=verdict.reason,
            context=ctx,
            duration_ms=duration_ms,
        )
        return verdict

    def execute(
        self,
        tool_name: str,
        parameters: Mapping[str, Any] | None,
        handler: Callable[..., Any],
        context: EvaluationContext | None = None,
    ) -> ExecutionOutcome:
        """Run ``handler(**parameters)`` only if the gate allows it.

        The execution is recorded with its duration. A handler exception
        is recorded with its message as the reason and then re-raised.
        """
        ctx = context or EvaluationContext()
        params = dict(parameters or {})
        verdict = self.check(tool_name, params, ctx)
        if not verdict.allowed:
            return ExecutionOutcome(verdict=verdict)

        start = time.perf_counter()
        try:
            output = handler(**params)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "Tool handler failed: %s", exc, extra={"tool_name": tool_name, "user_id": ctx.user_id}
            )
            self._record(
                tool_name,
                AuditResult.ALLOWED,
                action="execute:failed",
                parameters=params,
                reason=f"{type(exc).__name__}: {exc}",
                context=ctx,
                duration_ms=duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        self._record(
            tool_name,
            AuditResult.ALLOWED,
            action="execute:ok",
            parameters=params,
            reason=None,
            context=ctx,
            duration_ms=duration_ms,
        )
        return ExecutionOutcome(verdict=verdict, output=output, duration_ms=duration_ms)

    # ─── Confirmations ───────────────────────────────────────

    def approve(self, tool_name: str, user_id: str = "anonymous", project_id: str | None = None) -> None:
        """Record a human approval for (user_id, tool_name)."""
        self.ledger.approve(tool_name, user_id)
        self._record(
            tool_name,
            AuditResult.APPROVED,
            action="confirm",
            context=EvaluationContext(user_id=user_id, project_id=project_id),
        )

    def reject(self, tool_name: str, user_id: str = "anonymous", project_id: str | None = None) -> None:
        """Withdraw an approval (or record a refusal) for (user_id, tool_name)."""
        self.ledger.reject(tool_name, user_id)
        self._record(
            tool_name,
            AuditResult.REJECTED,
            action="confirm",
            context=EvaluationContext(user_id=user_id, project_id=project_id),
        )

    def clear_confirmations(self, user_id: str = "anonymous") -> None:
        self.ledger.clear_all(user_id)

    # ─── Policy & registry ───────────────────────────────────

    def register_tool(self, metadata: ToolMetadata, name: str | None = None) -> None:
        self.registry.register(name or metadata.name, metadata)

    def unregister_tool(self, name: str) -> None:
        self.registry.unregister(name)

    def update_policy(self, partial: Mapping[str, Any] | None = None, **fields: Any) -> PolicyConfig:
        """Merge fields into the live policy and resync policy scanner patterns.

        Scanner patterns are compiled before the policy changes, so an
        invalid pattern raises ``ScanPatternError`` and leaves both untouched.
        """
        changes = {**(partial or {}), **fields}
        candidate = self.policy.current().model_copy(update=changes)
        _compile_policy_patterns(candidate)
        config = self.policy.update(changes)
        self._sync_policy_patterns(config)
        return config

    def close(self) -> None:
        if self.audit is not None:
            self.audit.close()

    def __enter__(self) -> PolicyGate:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ─── Internals ───────────────────────────────────────────

    def _record(
        self,
        tool_name: str,
        result: AuditResult,
        *,
        action: str,
        context: EvaluationContext,
        parameters: Mapping[str, Any] | None = None,
        reason: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.record(
            tool_name,
            result,
            action=action,
            parameters=self._scrub(tool_name, parameters or {}),
            reason=reason,
            user_id=context.user_id,
            project_id=context.project_id,
            duration_ms=duration_ms,
        )

    def _scrub(self, tool_name: str, parameters: Mapping[str, Any]) -> dict[str, Any]:
        """Mask sensitive parameter values before they reach the audit trail."""
        metadata = self.registry.lookup(tool_name)
        sensitive = metadata.sensitive_parameters() if metadata else set()
        scrubbed: dict[str, Any] = {}
        for key, value in parameters.items():
            if key in sensitive and isinstance(value, str):
                scrubbed[key] = self.scanner.filter_for_llm(value)
            else:
                scrubbed[key] = value
        return scrubbed

    def _sync_policy_patterns(self, config: PolicyConfig) -> None:
        for name in self._policy_patterns:
            self.scanner.unregister_pattern(name)
        self._policy_patterns = []

        for name, pattern, pii in _policy_pattern_entries(config):
            self.scanner.register_pattern(name, pattern, pii=pii)
            self._policy_patterns.append(name)


def _policy_pattern_entries(config: PolicyConfig) -> list[tuple[str, str, bool]]:
    entries = [(f"{POLICY_PATTERN_PREFIX}secret:{i}", p, False) for i, p in enumerate(config.secret_patterns)]
    entries += [(f"{POLICY_PATTERN_PREFIX}pii:{i}", p, True) for i, p in enumerate(config.pii_patterns)]
    return entries


def _compile_policy_patterns(config: PolicyConfig) -> None:
    for name, pattern, _ in _policy_pattern_entries(config):
        try:
            ContentPattern(name, pattern, Severity.HIGH)
        except re.error as exc:
            raise ScanPatternError(name, pattern, str(exc)) from exc

"""
Toolgate — Policy Gate for a Local Developer Assistant

Every file edit, shell command and repository inspection the assistant's
task loop wants to run is checked here first, and every decision lands
in an audit trail.

Usage:
    from toolgate import AuditLog, EvaluationContext, PolicyGate

    gate = PolicyGate(audit=AuditLog())
    ctx = EvaluationContext(user_id="u1", project_id="repo")

    verdict = gate.check("execute_command", {"command": "pytest -q"}, ctx)
    if not verdict.allowed:
        print(verdict.reason, verdict.suggestions)

    gate.approve("execute_command", "u1")
    outcome = gate.execute("execute_command", {"command": "pytest -q"}, run_command, ctx)

    # Content leaving the trust boundary:
    prompt = gate.scanner.filter_for_llm(file_text)
"""

from toolgate.audit.log import AuditLog
from toolgate.core.models import (
    AuditEvent,
    AuditResult,
    ConfirmationMode,
    DetectedItem,
    EvaluationContext,
    ParameterSpec,
    PolicyConfig,
    RiskClass,
    ScanResult,
    SessionRecord,
    Severity,
    ToolMetadata,
    ToolScope,
    Verdict,
)
from toolgate.exceptions import (
    AuditPersistenceError,
    ConfigurationError,
    ScanPatternError,
    ToolgateError,
)
from toolgate.gate import ExecutionOutcome, PolicyGate
from toolgate.policy.config import DEFAULT_POLICY, PolicyStore
from toolgate.policy.engine import DecisionEngine
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.policy.loader import load_policy
from toolgate.security.memory import MemoryGuard
from toolgate.security.scanner import ContentScanner
from toolgate.tools.catalog import default_registry
from toolgate.tools.registry import ToolRegistry

__version__ = "0.3.0"

__all__ = [
    "__version__",
    # Main API
    "PolicyGate",
    "ExecutionOutcome",
    # Components
    "AuditLog",
    "ConfirmationLedger",
    "ContentScanner",
    "DecisionEngine",
    "MemoryGuard",
    "PolicyStore",
    "ToolRegistry",
    "DEFAULT_POLICY",
    "default_registry",
    "load_policy",
    # Models
    "AuditEvent",
    "AuditResult",
    "ConfirmationMode",
    "DetectedItem",
    "EvaluationContext",
    "ParameterSpec",
    "PolicyConfig",
    "RiskClass",
    "ScanResult",
    "SessionRecord",
    "Severity",
    "ToolMetadata",
    "ToolScope",
    "Verdict",
    # Errors
    "AuditPersistenceError",
    "ConfigurationError",
    "ScanPatternError",
    "ToolgateError",
]

"""Toolgate observability: OpenTelemetry metrics for decisions and audit."""

from toolgate.observability.metrics import record_audit_failure, record_decision

__all__ = [
    "record_audit_failure",
    "record_decision",
]

"""OpenTelemetry metrics for the policy gate.

Counters and histograms for decisions and audit persistence. The
OpenTelemetry API records into a no-op meter until an SDK meter provider
is installed by the embedding application.
"""

from __future__ import annotations

import threading

from opentelemetry import metrics

_lock = threading.Lock()
_instruments: dict[str, object] | None = None


def _get_instruments() -> dict[str, object]:
    """Lazily create instruments on first use, after any provider is set."""
    global _instruments
    with _lock:
        if _instruments is None:
            meter = metrics.get_meter("toolgate", "0.3.0")
            _instruments = {
                "decisions": meter.create_counter(
                    "toolgate.decisions.total",
                    description="Policy decisions by tool and result",
                    unit="1",
                ),
                "decision_duration": meter.create_histogram(
                    "toolgate.decision.duration_ms",
                    description="Time spent evaluating a tool call",
                    unit="ms",
                ),
                "audit_failures": meter.create_counter(
                    "toolgate.audit.failures.total",
                    description="Audit records a sink failed to persist",
                    unit="1",
                ),
            }
        return _instruments


def record_decision(*, tool_name: str, allowed: bool, risk_class: str, duration_ms: float) -> None:
    """Record one decision engine verdict."""
    instruments = _get_instruments()
    attributes = {
        "toolgate.tool": tool_name,
        "toolgate.result": "allowed" if allowed else "denied",
        "toolgate.risk_class": risk_class,
    }
    instruments["decisions"].add(1, attributes)  # type: ignore[attr-defined]
    instruments["decision_duration"].record(duration_ms, attributes)  # type: ignore[attr-defined]


def record_audit_failure(*, sink: str) -> None:
    """Record a swallowed audit sink failure."""
    _get_instruments()["audit_failures"].add(1, {"toolgate.sink": sink})  # type: ignore[attr-defined]

"""
Toolgate Custom Exceptions

Structured exception hierarchy for the policy gate. Policy denials are
NOT exceptions: the decision engine returns them as ``Verdict`` data.
Exceptions are reserved for faults.

Exception hierarchy:
    ToolgateError
    +-- ConfigurationError      (malformed/missing policy at startup — fatal)
    +-- ScanPatternError        (custom pattern failed to compile — rejected)
    +-- AuditPersistenceError   (sink write failed — logged, never propagated)
"""

from __future__ import annotations


class ToolgateError(Exception):
    """Base exception for all toolgate errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(ToolgateError):
    """Raised when policy configuration cannot be loaded or validated.

    The gate refuses to start rather than run with an undefined policy.
    """

    def __init__(self, source: str, message: str, details: dict | None = None):
        super().__init__(
            f"Invalid policy configuration '{source}': {message}",
            details={"source": source, **(details or {})},
        )
        self.source = source


class ScanPatternError(ToolgateError):
    """Raised when a custom scanner pattern is not a valid regular expression."""

    def __init__(self, name: str, pattern: str, message: str):
        super().__init__(
            f"Pattern '{name}' rejected: {message}",
            details={"name": name, "pattern": pattern},
        )
        self.name = name
        self.pattern = pattern


class AuditPersistenceError(ToolgateError):
    """A sink failed to persist an audit record.

    Raised inside sinks and caught by ``AuditLog``; callers never see it.
    """

    def __init__(self, sink: str, message: str, details: dict | None = None):
        super().__init__(
            f"Audit sink '{sink}' failed: {message}",
            details={"sink": sink, **(details or {})},
        )
        self.sink = sink

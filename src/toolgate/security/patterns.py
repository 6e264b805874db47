"""
Content pattern catalog.

Named regular expressions for credentials and personal data, each with a
severity fixed per pattern family. All patterns are matched
case-insensitively, in the order listed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from toolgate.core.models import Severity


@dataclass(frozen=True)
class ContentPattern:
    name: str
    pattern: str
    severity: Severity
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))


SECRET_PATTERNS: tuple[ContentPattern, ...] = (
    ContentPattern("AWS Access Key", r"AKIA[0-9A-Z]{16}", Severity.CRITICAL),
    ContentPattern("GitHub Token", r"(?:ghp|gho|ghu|ghs|ghr)_[0-9a-zA-Z_]{36,}", Severity.CRITICAL),
    ContentPattern(
        "Private Key",
        r"-----BEGIN\s+(?:(?:RSA|DSA|EC|PGP|OPENSSH)\s+)?PRIVATE KEY-----",
        Severity.CRITICAL,
    ),
    ContentPattern("JWT Token", r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*", Severity.HIGH),
    ContentPattern("Bearer Token", r"Bearer\s+[a-zA-Z0-9_\-.]+", Severity.HIGH),
    ContentPattern(
        "Database URL",
        r"(?:mongodb(?:\+srv)?|postgres|postgresql|mysql|redis)://[^\s\"'<>]+",
        Severity.HIGH,
    ),
    ContentPattern("API Key", r"api[_-]?key\s*[=:]?\s*[\"']?[0-9a-zA-Z_-]{16,}[\"']?", Severity.MEDIUM),
    ContentPattern("Password", r"password\s*[=:]?\s*[\"']?[^\"'\s]{8,}[\"']?", Severity.MEDIUM),
    ContentPattern("Secret", r"secret\s*[=:]?\s*[\"']?[^\"'\s]{8,}[\"']?", Severity.MEDIUM),
    ContentPattern("Token", r"token\s*[=:]?\s*[\"']?[a-zA-Z0-9_-]{20,}[\"']?", Severity.MEDIUM),
)

PII_PATTERNS: tuple[ContentPattern, ...] = (
    ContentPattern("Phone Number", r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b", Severity.HIGH),
    ContentPattern("Email Address", r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", Severity.MEDIUM),
    ContentPattern("Government ID", r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b", Severity.HIGH),
    ContentPattern("Credit Card", r"\b(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14})\b", Severity.HIGH),
)

# Shell/code-injection markers. Informational; never redacted.
SUSPICIOUS_PATTERNS: tuple[ContentPattern, ...] = (
    ContentPattern("Shell Variable Expansion", r"\$\{.*?\}", Severity.LOW),
    ContentPattern("Command Substitution", r"\$\(.*?\)", Severity.MEDIUM),
    ContentPattern("eval", r"\beval\s*\(", Severity.MEDIUM),
    ContentPattern("exec", r"\bexec\s*\(", Severity.MEDIUM),
    ContentPattern("subprocess", r"\bsubprocess\b", Severity.LOW),
    ContentPattern("os.system", r"\bos\.system\b", Severity.MEDIUM),
    ContentPattern("os.popen", r"\bos\.popen\b", Severity.MEDIUM),
    ContentPattern("process.exec", r"\bprocess\.exec", Severity.MEDIUM),
    ContentPattern("child_process", r"\bchild_process\b", Severity.MEDIUM),
)

CUSTOM_SEVERITY = Severity.HIGH

"""
Toolgate Content Scanner

Detects and masks secrets and personal data in text before it crosses a
trust boundary: persisted to shared memory, written to the audit trail,
or sent to a language model.

Scanning never touches the caller's string. Redaction replaces each
detected span with the mask character repeated to the span's length, so
line structure and offsets survive while the value does not.

Usage:
    scanner = ContentScanner()
    result = scanner.scan(text)
    if result.has_secrets:
        ...
    safe = scanner.filter_for_llm(text)
"""

from __future__ import annotations

import re
import threading

from toolgate.core.models import DetectedItem, ScanResult, Severity, Span
from toolgate.exceptions import ScanPatternError
from toolgate.logging import get_logger
from toolgate.security.patterns import (
    CUSTOM_SEVERITY,
    PII_PATTERNS,
    SECRET_PATTERNS,
    SUSPICIOUS_PATTERNS,
    ContentPattern,
)

logger = get_logger("toolgate.security")

DEFAULT_MASK = "█"


class ContentScanner:
    """Regex-based secret and PII detector with runtime custom patterns."""

    def __init__(
        self,
        secret_patterns: tuple[ContentPattern, ...] = SECRET_PATTERNS,
        pii_patterns: tuple[ContentPattern, ...] = PII_PATTERNS,
    ) -> None:
        self._secret_patterns = secret_patterns
        self._pii_patterns = pii_patterns
        self._custom_secrets: dict[str, ContentPattern] = {}
        self._custom_pii: dict[str, ContentPattern] = {}
        self._lock = threading.Lock()

    # ─── Custom patterns ─────────────────────────────────────

    def register_pattern(
        self,
        name: str,
        pattern: str,
        severity: Severity = CUSTOM_SEVERITY,
        *,
        pii: bool = False,
    ) -> None:
        """Add or replace a named project-specific pattern.

        The pattern is compiled now; an invalid expression raises
        ``ScanPatternError`` and nothing is registered.
        """
        if not name:
            raise ScanPatternError(name, pattern, "pattern name must be non-empty")
        try:
            compiled = ContentPattern(name, pattern, Severity(severity))
        except re.error as exc:
            raise ScanPatternError(name, pattern, str(exc)) from exc

        with self._lock:
            self._custom_secrets.pop(name, None)
            self._custom_pii.pop(name, None)
            target = self._custom_pii if pii else self._custom_secrets
            target[name] = compiled
        logger.info("Registered scanner pattern %s", name)

    def unregister_pattern(self, name: str) -> None:
        with self._lock:
            self._custom_secrets.pop(name, None)
            self._custom_pii.pop(name, None)

    def custom_patterns(self) -> dict[str, str]:
        with self._lock:
            return {
                name: p.pattern
                for name, p in {**self._custom_secrets, **self._custom_pii}.items()
            }

    # ─── Scanning ────────────────────────────────────────────

    def scan(
        self,
        content: str,
        *,
        redact_secrets: bool = True,
        redact_pii: bool = True,
        mask_char: str = DEFAULT_MASK,
    ) -> ScanResult:
        """Find every secret and PII match; mask the selected families."""
        _check_mask(mask_char)
        with self._lock:
            secret_patterns = self._secret_patterns + tuple(self._custom_secrets.values())
            pii_patterns = self._pii_patterns + tuple(self._custom_pii.values())

        secrets = _find_all(content, secret_patterns)
        pii = _find_all(content, pii_patterns)

        spans: list[Span] = []
        if redact_secrets:
            spans.extend(item.position for item in secrets)
        if redact_pii:
            spans.extend(item.position for item in pii)

        return ScanResult(
            redacted_content=_mask_spans(content, spans, mask_char),
            detected_secrets=secrets,
            detected_pii=pii,
        )

    def redact(
        self,
        content: str,
        mask_char: str = DEFAULT_MASK,
        *,
        secrets: bool = True,
        pii: bool = True,
    ) -> str:
        """Copy of *content* with every detected match masked."""
        return self.scan(
            content,
            redact_secrets=secrets,
            redact_pii=pii,
            mask_char=mask_char,
        ).redacted_content

    def filter_for_llm(self, content: str) -> str:
        """Mask secrets and PII; use before content leaves the trust boundary."""
        result = self.scan(content)
        if result.has_secrets or result.has_pii:
            logger.info(
                "Filtered %d secret(s) and %d PII item(s) from outbound content",
                len(result.detected_secrets),
                len(result.detected_pii),
            )
        return result.redacted_content

    def find_suspicious(self, content: str) -> list[DetectedItem]:
        """Shell/code-injection markers such as ``$(...)`` or ``eval(``."""
        return _find_all(content, SUSPICIOUS_PATTERNS)


def _find_all(content: str, patterns: tuple[ContentPattern, ...]) -> list[DetectedItem]:
    items: list[DetectedItem] = []
    for p in patterns:
        for match in p.regex.finditer(content):
            if not match.group(0):
                continue
            items.append(
                DetectedItem(
                    type=p.name,
                    value=match.group(0),
                    position=Span(start=match.start(), end=match.end()),
                    severity=p.severity,
                )
            )
    return items


def _mask_spans(content: str, spans: list[Span], mask_char: str) -> str:
    if not spans:
        return content
    chars = list(content)
    for span in spans:
        for i in range(span.start, span.end):
            chars[i] = mask_char
    return "".join(chars)


def _check_mask(mask_char: str) -> None:
    if len(mask_char) != 1:
        raise ValueError("mask_char must be a single character")

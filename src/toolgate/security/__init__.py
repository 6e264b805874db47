"""Content inspection: secret/PII scanning, redaction and the memory guard."""

from toolgate.security.memory import MemoryBlock, MemoryGuard
from toolgate.security.scanner import DEFAULT_MASK, ContentScanner

__all__ = [
    "DEFAULT_MASK",
    "ContentScanner",
    "MemoryBlock",
    "MemoryGuard",
]

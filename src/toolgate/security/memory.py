"""
Memory guard.

Decides what the assistant may persist to its long-term memory and
scrubs what it does persist. Paths that usually hold credentials are
never stored; other content is stored only after the scanner has masked
its secrets and personal data.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from toolgate.core.models import Verdict
from toolgate.security.scanner import ContentScanner

EXCLUDED_PATHS = (
    ".env",
    ".env.local",
    "secrets/",
    "private/",
    "keys/",
    "credentials/",
    ".aws/",
    ".ssh/",
    ".gnupg/",
)

EXCLUDED_FILES = (
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "poetry.lock",
    "*.min.js",
    "*.min.css",
)


@dataclass
class MemoryBlock:
    safe: bool
    content: str
    warnings: list[str] = field(default_factory=list)


class MemoryGuard:
    """Path exclusion plus scanner-backed scrubbing for memory writes."""

    def __init__(self, scanner: ContentScanner | None = None) -> None:
        self._scanner = scanner or ContentScanner()
        self._excluded_paths = list(EXCLUDED_PATHS)
        self._excluded_files = list(EXCLUDED_FILES)
        self._lock = threading.Lock()

    def add_excluded_path(self, path: str) -> None:
        with self._lock:
            if path not in self._excluded_paths:
                self._excluded_paths.append(path)

    def is_path_excluded(self, file_path: str) -> bool:
        file_name = PurePosixPath(file_path.replace("\\", "/")).name
        with self._lock:
            excluded_paths = list(self._excluded_paths)
            excluded_files = list(self._excluded_files)

        if any(excluded in file_path for excluded in excluded_paths):
            return True

        for excluded in excluded_files:
            if excluded.startswith("*."):
                if file_name.endswith(excluded[1:]):
                    return True
            elif file_name == excluded:
                return True
        return False

    def should_store(self, file_path: str, content: str) -> Verdict:
        """Whether *content* read from *file_path* may be stored at all."""
        if self.is_path_excluded(file_path):
            return Verdict.deny("Path is excluded for security reasons")

        result = self._scanner.scan(content)
        if result.has_secrets:
            found = ", ".join(sorted({f"{i.type} ({i.severity.value})" for i in result.detected_secrets}))
            return Verdict.deny(
                f"Content contains secrets: {found}",
                "Store a redacted copy instead",
            )
        return Verdict.allow()

    def safe_block(self, content: str, label: str = "") -> MemoryBlock:
        """Scrubbed copy of *content* ready for memory, with warnings."""
        result = self._scanner.scan(content)
        warnings: list[str] = []
        if result.has_secrets:
            types = ", ".join(sorted({i.type for i in result.detected_secrets}))
            prefix = f"[{label}] " if label else ""
            warnings.append(f"{prefix}Secrets detected and redacted: {types}")
        return MemoryBlock(
            safe=not warnings,
            content=result.redacted_content,
            warnings=warnings,
        )

"""
Policy Configuration

Holds the live rule set. ``current()`` hands out a snapshot and
``update()`` merges a partial set of fields over it; unspecified fields
keep their previous values. List contents are not validated, so an empty
allowlist means "no restriction beyond the denylist".
"""

from __future__ import annotations

import threading
from typing import Any

from toolgate.core.models import ConfirmationMode, PolicyConfig
from toolgate.logging import get_logger

logger = get_logger("toolgate.policy")

DEFAULT_POLICY = PolicyConfig(
    default_confirmation=ConfirmationMode.ONCE,
    deny_network=True,
    max_file_size=1024 * 1024,
    max_output_size=1024 * 1024,
    path_allowlist=[],
    path_denylist=[".env", "secrets/", "credentials/", ".ssh/", ".aws/"],
    command_allowlist=["echo", "ls", "cat", "grep", "find", "pytest", "npm", "go", "cargo", "make"],
    command_denylist=["rm", "dd", "mkfs", "format", "chmod", "chown"],
    secret_patterns=[],
    pii_patterns=[],
)


class PolicyStore:
    """Thread-safe holder of the active PolicyConfig."""

    def __init__(self, config: PolicyConfig | None = None) -> None:
        self._lock = threading.RLock()
        self._config = (config or DEFAULT_POLICY).model_copy(deep=True)

    def current(self) -> PolicyConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def update(self, partial: dict[str, Any] | None = None, **fields: Any) -> PolicyConfig:
        """Merge *partial* and keyword *fields* over the active policy.

        Returns the new snapshot. Raises ``pydantic.ValidationError`` for
        unknown fields or values of the wrong type; the active policy is
        left untouched in that case.
        """
        changes = {**(partial or {}), **fields}
        with self._lock:
            merged = {**self._config.model_dump(), **changes}
            self._config = PolicyConfig.model_validate(merged)
            logger.info("Policy updated: %s", ", ".join(sorted(changes)) or "no fields")
            return self._config.model_copy(deep=True)

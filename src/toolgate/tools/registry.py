"""
Toolgate Tool Registry

Mapping of tool name to declared risk metadata. Tools must be registered
here before the decision engine will ever allow them; unknown names are
always denied.

The registry is pure storage: no validation beyond a non-empty name and
no I/O. Reads hand out deep copies so callers cannot mutate internal
state behind the lock.
"""

from __future__ import annotations

import threading

from toolgate.core.models import ToolMetadata


class ToolRegistry:
    """Thread-safe name -> ToolMetadata store."""

    def __init__(self, tools: dict[str, ToolMetadata] | None = None) -> None:
        self._lock = threading.RLock()
        self._tools: dict[str, ToolMetadata] = {}
        for name, metadata in (tools or {}).items():
            self.register(name, metadata)

    def register(self, name: str, metadata: ToolMetadata) -> None:
        """Insert or overwrite the metadata for *name*.

        Raises ValueError if *name* is empty.
        """
        if not name or not name.strip():
            raise ValueError("Tool name must be a non-empty string")
        with self._lock:
            self._tools[name] = metadata.model_copy(deep=True)

    def unregister(self, name: str) -> None:
        """Remove *name*; a missing name is ignored."""
        with self._lock:
            self._tools.pop(name, None)

    def lookup(self, name: str) -> ToolMetadata | None:
        with self._lock:
            metadata = self._tools.get(name)
            return metadata.model_copy(deep=True) if metadata is not None else None

    def all(self) -> dict[str, ToolMetadata]:
        """Snapshot of every registered tool."""
        with self._lock:
            return {name: m.model_copy(deep=True) for name, m in self._tools.items()}

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

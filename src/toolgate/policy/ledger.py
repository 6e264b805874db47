"""
Confirmation Ledger

Per-user record of tools a human has approved. Inert storage: entries
only disappear through ``reject`` or ``clear_all`` (e.g. at session end).
"""

from __future__ import annotations

import threading


class ConfirmationLedger:
    """Set of (user_id, tool_name) approvals."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._approvals: dict[str, set[str]] = {}

    def approve(self, tool: str, user_id: str) -> None:
        with self._lock:
            self._approvals.setdefault(user_id, set()).add(tool)

    def reject(self, tool: str, user_id: str) -> None:
        with self._lock:
            tools = self._approvals.get(user_id)
            if tools is not None:
                tools.discard(tool)
                if not tools:
                    del self._approvals[user_id]

    def is_approved(self, tool: str, user_id: str) -> bool:
        with self._lock:
            return tool in self._approvals.get(user_id, ())

    def clear_all(self, user_id: str) -> None:
        with self._lock:
            self._approvals.pop(user_id, None)

    def approved_tools(self, user_id: str) -> set[str]:
        with self._lock:
            return set(self._approvals.get(user_id, ()))

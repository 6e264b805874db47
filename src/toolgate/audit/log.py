"""
Toolgate Audit Log

Durable record of every policy decision and executed action.

``record()`` stamps an event with an id and timestamp, then hands it to
two independent sinks: the structured store (queryable) and the daily
JSON-lines file (tailable). The sinks are isolated from each other and
from the caller: a failing sink is logged on ``toolgate.audit`` and
counted, and the failure never reaches the caller or changes a decision
that has already been made.

With ``background=True`` the sink writes run on a single worker thread,
so callers never wait for durability. ``flush()`` blocks until every
pending write has been attempted.
"""

from __future__ import annotations

import functools
import os
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from toolgate.audit.sinks import MAX_QUERY_RESULTS, DailyJsonlLog, SqlAuditStore
from toolgate.core.models import AuditEvent, AuditResult, SessionRecord
from toolgate.exceptions import AuditPersistenceError
from toolgate.logging import get_logger
from toolgate.observability.metrics import record_audit_failure

logger = get_logger("toolgate.audit")


@functools.lru_cache(maxsize=1)
def default_log_dir() -> Path:
    """Process-wide log directory, resolved on first use.

    ``TOOLGATE_LOG_DIR`` overrides the default ``~/.toolgate/logs``.
    """
    configured = os.environ.get("TOOLGATE_LOG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".toolgate" / "logs"


class AuditLog:
    """Append-only audit trail over a SQL store and a daily JSON-lines file."""

    def __init__(
        self,
        db_url: str | None = None,
        log_dir: str | Path | None = None,
        *,
        background: bool = False,
        store: SqlAuditStore | None = None,
        file_log: DailyJsonlLog | None = None,
    ) -> None:
        directory = Path(log_dir).expanduser() if log_dir is not None else default_log_dir()
        self._file_log = file_log or DailyJsonlLog(directory)
        self._store = store
        if self._store is None:
            url = db_url or os.environ.get("TOOLGATE_DB_URL") or str(directory / "audit.db")
            try:
                self._store = SqlAuditStore(url)
            except AuditPersistenceError as exc:
                # Decisions keep flowing; only the file sink remains.
                self._report_failure(exc)

        self._session: SessionRecord | None = None
        self._session_lock = threading.RLock()
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="toolgate-audit")
            if background
            else None
        )

    # ─── Recording ───────────────────────────────────────────

    def record(
        self,
        tool: str,
        result: AuditResult | str,
        *,
        action: str = "",
        parameters: dict[str, Any] | None = None,
        reason: str | None = None,
        user_id: str | None = None,
        project_id: str | None = None,
        duration_ms: int | float | None = None,
    ) -> AuditEvent:
        """Stamp and persist one audit event; returns it immediately."""
        event = AuditEvent(
            tool=tool,
            action=action,
            parameters=dict(parameters or {}),
            result=AuditResult(result),
            reason=reason,
            user_id=user_id,
            project_id=project_id,
            duration_ms=round(duration_ms) if duration_ms is not None else None,
        )

        with self._session_lock:
            session = self._session
            if session is not None:
                session.actions_count += 1

        store = self._store
        if store is not None:
            self._submit(store.name, store.write_event, event)
            if session is not None:
                self._submit(store.name, store.increment_actions, session.id)

        self._submit(self._file_log.name, self._file_log.write_event, event)
        return event

    def log_event(self, event_type: str, details: dict[str, Any], approved: bool) -> None:
        """Free-form session event, written to the daily file only.

        Ignored when no session is active.
        """
        with self._session_lock:
            session = self._session
        if session is None:
            return
        self._submit(
            self._file_log.name,
            self._file_log.write,
            event_type,
            {"session_id": session.id, "details": details, "approved": approved},
        )

    # ─── Sessions ────────────────────────────────────────────

    def start_session(self, workspace: str | None = None) -> str:
        """Open a session; an already open session is ended first."""
        with self._session_lock:
            if self._session is not None:
                self.end_session()
            session = SessionRecord(workspace=workspace)
            self._session = session

        if self._store is not None:
            self._submit(self._store.name, self._store.start_session, session.model_copy())
        self._submit(
            self._file_log.name,
            self._file_log.write,
            "session_start",
            {"session_id": session.id, "workspace": workspace},
        )
        logger.info("Audit session started", extra={"session_id": session.id})
        return session.id

    def end_session(self) -> SessionRecord | None:
        """Close the active session and return its final record."""
        with self._session_lock:
            session = self._session
            if session is None:
                return None
            self._session = None
            session.end_time = datetime.now(timezone.utc)

        if self._store is not None:
            self._submit(self._store.name, self._store.end_session, session.model_copy())
        self._submit(
            self._file_log.name,
            self._file_log.write,
            "session_end",
            {"session_id": session.id, "actions_count": session.actions_count},
        )
        logger.info("Audit session ended", extra={"session_id": session.id})
        return session

    @property
    def session_id(self) -> str | None:
        with self._session_lock:
            return self._session.id if self._session else None

    # ─── Reading ─────────────────────────────────────────────

    def query(
        self,
        *,
        tool: str | None = None,
        user_id: str | None = None,
        result: AuditResult | str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditEvent]:
        """Recorded events matching every given filter, most recent first.

        At most ``MAX_QUERY_RESULTS`` events are returned. Raises
        ``AuditPersistenceError`` if the structured store is unavailable.
        """
        self.flush()
        store = self._require_store()
        cap = MAX_QUERY_RESULTS if limit is None else min(limit, MAX_QUERY_RESULTS)
        return store.query(
            tool=tool,
            user_id=user_id,
            result=result,
            start_time=start_time,
            end_time=end_time,
            limit=cap,
        )

    def get_session(self, session_id: str) -> SessionRecord | None:
        self.flush()
        return self._require_store().get_session(session_id)

    def list_sessions(self, limit: int = 50) -> list[SessionRecord]:
        self.flush()
        return self._require_store().list_sessions(limit)

    def recent_lines(self, count: int = 50) -> list[str]:
        """Tail of the daily JSON-lines files."""
        self.flush()
        return self._file_log.recent_lines(count)

    @property
    def log_dir(self) -> Path:
        return self._file_log.log_dir

    # ─── Lifecycle ───────────────────────────────────────────

    def flush(self) -> None:
        """Wait for queued background writes (no-op when synchronous)."""
        if self._executor is None:
            return
        self._executor.submit(lambda: None).result()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._store is not None:
            self._store.close()
            self._store = None

    def __enter__(self) -> AuditLog:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ─── Internals ───────────────────────────────────────────

    def _require_store(self) -> SqlAuditStore:
        if self._store is None:
            raise AuditPersistenceError(SqlAuditStore.name, "structured audit store is unavailable")
        return self._store

    def _submit(self, sink: str, fn: Callable[..., None], *args: Any) -> Future | None:
        call = functools.partial(self._guarded, sink, fn, *args)
        if self._executor is not None:
            return self._executor.submit(call)
        call()
        return None

    def _guarded(self, sink: str, fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except AuditPersistenceError as exc:
            self._report_failure(exc)
        except Exception as exc:
            self._report_failure(AuditPersistenceError(sink, f"{type(exc).__name__}: {exc}"))

    @staticmethod
    def _report_failure(exc: AuditPersistenceError) -> None:
        logger.error("Audit write failed: %s", exc, extra={"sink": exc.sink})
        record_audit_failure(sink=exc.sink)

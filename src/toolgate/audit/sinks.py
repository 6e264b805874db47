"""
Audit sinks.

Two independent destinations for audit data:

- ``SqlAuditStore`` — structured, queryable rows (``policy_audit`` and
  ``sessions`` tables) on SQLite or PostgreSQL.
- ``DailyJsonlLog`` — append-only ``audit-YYYY-MM-DD.log`` files with one
  JSON object per line, for tailing without touching the database.

Each sink raises ``AuditPersistenceError`` when it cannot persist; the
``AuditLog`` that drives them decides what to do with that.
"""

from __future__ import annotations

import itertools
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from toolgate.core.models import AuditEvent, AuditResult, SessionRecord
from toolgate.exceptions import AuditPersistenceError
from toolgate.storage.db import DbConnection, connect

MAX_QUERY_RESULTS = 1000

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS policy_audit (
        id TEXT PRIMARY KEY,
        seq INTEGER NOT NULL,
        timestamp BIGINT NOT NULL,
        tool TEXT NOT NULL,
        action TEXT DEFAULT '',
        parameters TEXT DEFAULT '{}',
        result TEXT NOT NULL,
        reason TEXT,
        user_id TEXT,
        project_id TEXT,
        duration_ms INTEGER
    );

    CREATE INDEX IF NOT EXISTS idx_policy_audit_ts ON policy_audit(timestamp);
    CREATE INDEX IF NOT EXISTS idx_policy_audit_tool ON policy_audit(tool);

    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        start_time BIGINT NOT NULL,
        end_time BIGINT,
        workspace TEXT,
        actions_count INTEGER DEFAULT 0
    )
"""


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class SqlAuditStore:
    """Database-backed audit rows and session records."""

    name = "sql"

    def __init__(self, db_url: str) -> None:
        self._db_url = db_url
        try:
            self._conn: DbConnection = connect(db_url)
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
            row = self._conn.execute("SELECT MAX(seq) AS max_seq FROM policy_audit").fetchone()
        except Exception as exc:
            raise AuditPersistenceError(self.name, f"cannot open {db_url}: {exc}") from exc
        start = (row or {}).get("max_seq") or 0
        self._seq = itertools.count(start + 1)
        self._seq_lock = threading.Lock()

    @property
    def db_url(self) -> str:
        return self._db_url

    def write_event(self, event: AuditEvent) -> None:
        with self._seq_lock:
            seq = next(self._seq)
        row = (
            event.id,
            seq,
            to_millis(event.timestamp),
            event.tool,
            event.action,
            json.dumps(event.parameters, default=str),
            event.result.value,
            event.reason,
            event.user_id,
            event.project_id,
            event.duration_ms,
        )
        try:
            with self._conn.lock:
                self._conn.execute(
                    "INSERT INTO policy_audit (id, seq, timestamp, tool, action, parameters, result, "
                    "reason, user_id, project_id, duration_ms) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    row,
                )
                self._conn.commit()
        except Exception as exc:
            raise AuditPersistenceError(self.name, str(exc), {"event_id": event.id}) from exc

    def start_session(self, session: SessionRecord) -> None:
        self._write(
            "INSERT INTO sessions (id, start_time, workspace, actions_count) VALUES (?, ?, ?, 0)",
            (session.id, to_millis(session.start_time), session.workspace),
        )

    def end_session(self, session: SessionRecord) -> None:
        end_time = session.end_time or datetime.now(timezone.utc)
        self._write(
            "UPDATE sessions SET end_time = ? WHERE id = ?",
            (to_millis(end_time), session.id),
        )

    def increment_actions(self, session_id: str) -> None:
        self._write(
            "UPDATE sessions SET actions_count = actions_count + 1 WHERE id = ?",
            (session_id,),
        )

    def query(
        self,
        *,
        tool: str | None = None,
        user_id: str | None = None,
        result: AuditResult | str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int = MAX_QUERY_RESULTS,
    ) -> list[AuditEvent]:
        """Filtered events, most recent first."""
        sql = "SELECT * FROM policy_audit WHERE 1=1"
        params: list[Any] = []
        if tool:
            sql += " AND tool = ?"
            params.append(tool)
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        if result:
            sql += " AND result = ?"
            params.append(AuditResult(result).value)
        if start_time:
            sql += " AND timestamp >= ?"
            params.append(to_millis(start_time))
        if end_time:
            sql += " AND timestamp <= ?"
            params.append(to_millis(end_time))
        sql += " ORDER BY timestamp DESC, seq DESC LIMIT ?"
        params.append(max(0, min(limit, MAX_QUERY_RESULTS)))

        try:
            with self._conn.lock:
                rows = self._conn.execute(sql, tuple(params)).fetchall()
        except Exception as exc:
            raise AuditPersistenceError(self.name, f"query failed: {exc}") from exc
        return [_row_to_event(row) for row in rows]

    def get_session(self, session_id: str) -> SessionRecord | None:
        try:
            with self._conn.lock:
                row = self._conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        except Exception as exc:
            raise AuditPersistenceError(self.name, f"query failed: {exc}") from exc
        return _row_to_session(row) if row else None

    def list_sessions(self, limit: int = 50) -> list[SessionRecord]:
        try:
            with self._conn.lock:
                rows = self._conn.execute(
                    "SELECT * FROM sessions ORDER BY start_time DESC LIMIT ?", (limit,)
                ).fetchall()
        except Exception as exc:
            raise AuditPersistenceError(self.name, f"query failed: {exc}") from exc
        return [_row_to_session(row) for row in rows]

    def close(self) -> None:
        self._conn.close()

    def _write(self, sql: str, params: tuple) -> None:
        try:
            with self._conn.lock:
                self._conn.execute(sql, params)
                self._conn.commit()
        except Exception as exc:
            raise AuditPersistenceError(self.name, str(exc)) from exc


def _row_to_event(row: dict[str, Any]) -> AuditEvent:
    return AuditEvent(
        id=row["id"],
        timestamp=from_millis(row["timestamp"]),
        tool=row["tool"],
        action=row["action"] or "",
        parameters=json.loads(row["parameters"] or "{}"),
        result=AuditResult(row["result"]),
        reason=row["reason"],
        user_id=row["user_id"],
        project_id=row["project_id"],
        duration_ms=row["duration_ms"],
    )


def _row_to_session(row: dict[str, Any]) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        start_time=from_millis(row["start_time"]),
        end_time=from_millis(row["end_time"]) if row["end_time"] is not None else None,
        workspace=row["workspace"],
        actions_count=row["actions_count"] or 0,
    )


class DailyJsonlLog:
    """Append-only JSON-lines log, one file per UTC day."""

    name = "file"
    PREFIX = "audit-"
    SUFFIX = ".log"

    def __init__(self, log_dir: str | Path) -> None:
        self.log_dir = Path(log_dir).expanduser()
        self._lock = threading.Lock()

    def path_for(self, day: datetime) -> Path:
        return self.log_dir / f"{self.PREFIX}{day.strftime('%Y-%m-%d')}{self.SUFFIX}"

    def write(self, event_type: str, data: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        line = json.dumps({"timestamp": now.isoformat(), "type": event_type, **data}, default=str)
        try:
            with self._lock:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                with self.path_for(now).open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as exc:
            raise AuditPersistenceError(self.name, str(exc), {"type": event_type}) from exc

    def write_event(self, event: AuditEvent) -> None:
        """Append a policy decision; parameters are stringified like the SQL store does."""
        data = event.model_dump(mode="json", exclude={"parameters"})
        data["parameters"] = event.parameters
        self.write("policy_event", data)

    def recent_lines(self, count: int = 50) -> list[str]:
        """Last *count* lines across the five newest daily files."""
        if not self.log_dir.is_dir():
            return []
        files = sorted(
            p for p in self.log_dir.iterdir()
            if p.name.startswith(self.PREFIX) and p.name.endswith(self.SUFFIX)
        )
        lines: list[str] = []
        for path in files[-5:]:
            try:
                content = path.read_text(encoding="utf-8")
            except OSError:
                continue
            lines.extend(line for line in content.splitlines() if line.strip())
        return lines[-count:] if count > 0 else []

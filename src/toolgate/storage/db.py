"""
Toolgate Database Connection

Thin wrapper that lets the audit store run on SQLite or PostgreSQL.
The backend is picked from the connection URL:
- ``postgresql://`` or ``postgres://`` → psycopg (PostgreSQL)
- anything else (file path, ``:memory:``) → sqlite3

Usage::

    from toolgate.storage.db import connect

    conn = connect("~/.toolgate/logs/audit.db")
    conn.execute("SELECT * FROM policy_audit WHERE tool = ?", ("read_file",))
    rows = conn.fetchall()

SQL is written with ``?`` placeholders; they are rewritten to ``%s`` for
PostgreSQL.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any


class DbConnection:
    """Unified database connection wrapper.

    A connection-level lock serializes statements so the wrapper can be
    shared between the caller's thread and a background audit writer.
    """

    def __init__(self, conn: Any, *, is_postgres: bool = False) -> None:
        self._conn = conn
        self._cursor: Any = None
        self.is_postgres = is_postgres
        self.lock = threading.RLock()

    def _convert_sql(self, sql: str) -> str:
        if not self.is_postgres:
            return sql
        return sql.replace("?", "%s")

    def execute(self, sql: str, params: tuple = ()) -> DbConnection:
        """Execute a single SQL statement. Returns self for chaining."""
        sql = self._convert_sql(sql)
        with self.lock:
            if self.is_postgres:
                self._cursor = self._conn.cursor()
                self._cursor.execute(sql, params or None)
            else:
                self._cursor = self._conn.execute(sql, params)
        return self

    def executescript(self, sql: str) -> None:
        """Execute several ``;``-separated statements and commit."""
        with self.lock:
            if self.is_postgres:
                cur = self._conn.cursor()
                for stmt in sql.split(";"):
                    stmt = stmt.strip()
                    if stmt:
                        cur.execute(stmt)
                self._conn.commit()
            else:
                self._conn.executescript(sql)

    def fetchone(self) -> dict[str, Any] | None:
        if self._cursor is None:
            return None
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetchall(self) -> list[dict[str, Any]]:
        if self._cursor is None:
            return []
        return [dict(r) for r in self._cursor.fetchall()]

    def commit(self) -> None:
        with self.lock:
            self._conn.commit()

    def close(self) -> None:
        with self.lock:
            self._conn.close()


def connect(db_url: str) -> DbConnection:
    """Create a database connection from a URL or path.

    Args:
        db_url: PostgreSQL URL (``postgresql://...`` or ``postgres://...``)
                or SQLite path (file path or ``:memory:``). Parent
                directories of a SQLite file are created as needed.
    """
    if db_url.startswith(("postgresql://", "postgres://")):
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError:
            raise ImportError(
                "PostgreSQL support requires psycopg. Install with: pip install 'toolgate[postgres]'"
            ) from None

        conn = psycopg.connect(db_url, row_factory=dict_row, autocommit=False)
        return DbConnection(conn, is_postgres=True)

    if db_url != ":memory:":
        path = Path(db_url).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        db_url = str(path)

    conn = sqlite3.connect(db_url, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return DbConnection(conn, is_postgres=False)

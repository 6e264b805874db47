"""Tests for the audit log, its SQL store and the daily JSON-lines file."""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from toolgate.audit.log import AuditLog
from toolgate.audit.sinks import MAX_QUERY_RESULTS, DailyJsonlLog, SqlAuditStore
from toolgate.core.models import AuditEvent, AuditResult
from toolgate.exceptions import AuditPersistenceError


# ─── Helpers ────────────────────────────────────────────────


def _failing_store() -> MagicMock:
    store = MagicMock(spec=SqlAuditStore)
    store.name = "sql"
    store.write_event.side_effect = AuditPersistenceError("sql", "disk full")
    store.increment_actions.side_effect = RuntimeError("locked")
    return store


def _read_lines(log: AuditLog) -> list[dict]:
    return [json.loads(line) for line in log.recent_lines(1000)]


# ─── SqlAuditStore ──────────────────────────────────────────


class TestSqlAuditStore:
    def setup_method(self):
        self.store = SqlAuditStore(":memory:")

    def teardown_method(self):
        self.store.close()

    def test_write_and_query(self):
        event = AuditEvent(tool="read_file", result=AuditResult.ALLOWED, parameters={"path": "a.py"})
        self.store.write_event(event)
        rows = self.store.query()
        assert len(rows) == 1
        assert rows[0].id == event.id
        assert rows[0].parameters == {"path": "a.py"}
        assert rows[0].result == AuditResult.ALLOWED

    def test_filters(self):
        self.store.write_event(AuditEvent(tool="read_file", result="allowed", user_id="u1"))
        self.store.write_event(AuditEvent(tool="read_file", result="denied", user_id="u2"))
        self.store.write_event(AuditEvent(tool="run", result="denied", user_id="u1"))
        assert len(self.store.query(tool="read_file")) == 2
        assert len(self.store.query(result="denied")) == 2
        assert len(self.store.query(user_id="u1", result=AuditResult.DENIED)) == 1

    def test_time_range(self):
        old = datetime.now(timezone.utc) - timedelta(days=2)
        self.store.write_event(AuditEvent(tool="t", result="allowed", timestamp=old))
        self.store.write_event(AuditEvent(tool="t", result="allowed"))
        since = datetime.now(timezone.utc) - timedelta(hours=1)
        assert len(self.store.query(start_time=since)) == 1
        assert len(self.store.query(end_time=since)) == 1

    def test_newest_first_with_same_timestamp(self):
        ts = datetime.now(timezone.utc)
        for i in range(3):
            self.store.write_event(AuditEvent(tool=f"t{i}", result="allowed", timestamp=ts))
        assert [e.tool for e in self.store.query()] == ["t2", "t1", "t0"]

    def test_limit_capped(self):
        for _ in range(5):
            self.store.write_event(AuditEvent(tool="t", result="allowed"))
        assert len(self.store.query(limit=2)) == 2
        assert len(self.store.query(limit=MAX_QUERY_RESULTS * 10)) == 5

    def test_sequence_resumes_from_existing_rows(self, tmp_path):
        db = str(tmp_path / "audit.db")
        ts = datetime.now(timezone.utc)
        first = SqlAuditStore(db)
        first.write_event(AuditEvent(tool="before", result="allowed", timestamp=ts))
        first.close()
        second = SqlAuditStore(db)
        second.write_event(AuditEvent(tool="after", result="allowed", timestamp=ts))
        assert [e.tool for e in second.query()] == ["after", "before"]
        second.close()

    def test_write_after_close_raises(self):
        self.store.close()
        with pytest.raises(AuditPersistenceError):
            self.store.write_event(AuditEvent(tool="t", result="allowed"))
        self.store = SqlAuditStore(":memory:")

    def test_unopenable_database(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(AuditPersistenceError):
            SqlAuditStore(str(blocker / "audit.db"))


# ─── DailyJsonlLog ──────────────────────────────────────────


class TestDailyJsonlLog:
    def test_appends_one_line_per_write(self, tmp_path):
        log = DailyJsonlLog(tmp_path)
        log.write("policy_event", {"tool": "read_file"})
        log.write("policy_event", {"tool": "run"})
        path = log.path_for(datetime.now(timezone.utc))
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["type"] == "policy_event"
        assert first["tool"] == "read_file"
        assert "timestamp" in first

    def test_file_name_format(self, tmp_path):
        log = DailyJsonlLog(tmp_path)
        path = log.path_for(datetime(2025, 1, 15, tzinfo=timezone.utc))
        assert path.name == "audit-2025-01-15.log"

    def test_recent_lines_across_five_newest_files(self, tmp_path):
        for day in range(1, 8):
            (tmp_path / f"audit-2025-01-0{day}.log").write_text(f'{{"day": {day}}}\n')
        (tmp_path / "unrelated.txt").write_text("ignored\n")
        lines = DailyJsonlLog(tmp_path).recent_lines(100)
        assert [json.loads(line)["day"] for line in lines] == [3, 4, 5, 6, 7]

    def test_recent_lines_count(self, tmp_path):
        log = DailyJsonlLog(tmp_path)
        for i in range(10):
            log.write("e", {"i": i})
        lines = log.recent_lines(3)
        assert [json.loads(line)["i"] for line in lines] == [7, 8, 9]

    def test_missing_directory(self, tmp_path):
        assert DailyJsonlLog(tmp_path / "nope").recent_lines() == []

    def test_unwritable_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(AuditPersistenceError):
            DailyJsonlLog(blocker / "logs").write("e", {})


# ─── AuditLog ───────────────────────────────────────────────


class TestAuditLogRecording:
    def test_record_returns_stamped_event(self, audit_log):
        event = audit_log.record("read_file", AuditResult.ALLOWED, action="evaluate", user_id="u1")
        assert event.id.startswith("audit_")
        assert event.timestamp.tzinfo is not None

    def test_record_reaches_both_sinks(self, audit_log):
        event = audit_log.record("run", "denied", reason="nope", duration_ms=1.6)
        stored = audit_log.query()
        assert [e.id for e in stored] == [event.id]
        assert stored[0].duration_ms == 2
        lines = _read_lines(audit_log)
        assert lines[-1]["type"] == "policy_event"
        assert lines[-1]["id"] == event.id
        assert lines[-1]["result"] == "denied"

    def test_unserializable_parameters_reach_both_sinks(self, audit_log):
        event = audit_log.record("read_file", "allowed", parameters={"blob": b"\xff", "obj": object()})
        [stored] = audit_log.query()
        assert stored.id == event.id
        assert stored.parameters["blob"] == str(b"\xff")
        [line] = _read_lines(audit_log)
        assert line["id"] == event.id
        assert line["parameters"]["blob"] == str(b"\xff")

    def test_query_filters_and_order(self, audit_log):
        audit_log.record("a", "allowed", user_id="u1")
        audit_log.record("b", "denied", user_id="u1")
        audit_log.record("c", "denied", user_id="u2")
        assert [e.tool for e in audit_log.query(result="denied")] == ["c", "b"]
        assert [e.tool for e in audit_log.query(user_id="u1", limit=1)] == ["b"]

    def test_log_event_requires_session(self, audit_log):
        audit_log.log_event("note", {"k": "v"}, approved=True)
        assert _read_lines(audit_log) == []

        session_id = audit_log.start_session("/repo")
        audit_log.log_event("note", {"k": "v"}, approved=True)
        note = _read_lines(audit_log)[-1]
        assert note["type"] == "note"
        assert note["session_id"] == session_id
        assert note["details"] == {"k": "v"}
        assert note["approved"] is True


class TestAuditLogSessions:
    def test_session_lifecycle(self, audit_log):
        session_id = audit_log.start_session("/repo")
        assert audit_log.session_id == session_id
        audit_log.record("a", "allowed")
        audit_log.record("b", "denied")
        ended = audit_log.end_session()
        assert ended.id == session_id
        assert ended.actions_count == 2
        assert ended.end_time is not None
        assert audit_log.session_id is None

        stored = audit_log.get_session(session_id)
        assert stored.actions_count == 2
        assert stored.workspace == "/repo"
        assert stored.end_time is not None

    def test_starting_session_ends_previous(self, audit_log):
        first = audit_log.start_session()
        second = audit_log.start_session()
        assert first != second
        assert audit_log.get_session(first).end_time is not None
        assert audit_log.get_session(second).end_time is None

    def test_end_without_session(self, audit_log):
        assert audit_log.end_session() is None

    def test_list_sessions(self, audit_log):
        audit_log.start_session("a")
        audit_log.start_session("b")
        assert len(audit_log.list_sessions()) == 2

    def test_session_events_in_file(self, audit_log):
        session_id = audit_log.start_session("/repo")
        audit_log.end_session()
        types = [line["type"] for line in _read_lines(audit_log)]
        assert types == ["session_start", "session_end"]
        assert _read_lines(audit_log)[0]["session_id"] == session_id


class TestAuditLogFailures:
    def test_failing_store_is_swallowed(self, tmp_path, caplog):
        log = AuditLog(log_dir=tmp_path, store=_failing_store())
        log.start_session()
        with caplog.at_level(logging.ERROR, logger="toolgate.audit"):
            logging.getLogger("toolgate").propagate = True
            try:
                event = log.record("run", "denied")
            finally:
                logging.getLogger("toolgate").propagate = False
        assert event.tool == "run"
        assert "disk full" in caplog.text
        # The file sink still received the event.
        assert any(json.loads(line).get("id") == event.id for line in log.recent_lines())

    def test_failing_file_sink_is_swallowed(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        log = AuditLog(db_url=":memory:", file_log=DailyJsonlLog(blocker / "logs"))
        event = log.record("run", "allowed")
        assert [e.id for e in log.query()] == [event.id]
        log.close()

    def test_unavailable_store_falls_back_to_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        log = AuditLog(db_url=str(blocker / "audit.db"), log_dir=tmp_path / "logs")
        log.record("run", "allowed")
        assert len(log.recent_lines()) == 1
        with pytest.raises(AuditPersistenceError):
            log.query()


class TestAuditLogBackground:
    def test_flush_waits_for_writes(self, tmp_path):
        with AuditLog(db_url=":memory:", log_dir=tmp_path, background=True) as log:
            for i in range(20):
                log.record(f"tool{i}", "allowed")
            log.flush()
            assert len(log.query()) == 20
            assert len(log.recent_lines(100)) == 20

    @pytest.mark.parametrize("background", [False, True])
    def test_concurrent_records_are_all_kept(self, tmp_path, background):
        threads_count, per_thread = 8, 25

        with AuditLog(db_url=str(tmp_path / "audit.db"), log_dir=tmp_path / "logs", background=background) as log:
            def worker(n):
                for i in range(per_thread):
                    log.record(f"tool{n}", "allowed", parameters={"i": i})

            threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_count)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            log.flush()

            total = threads_count * per_thread
            assert len(log.query()) == total
            lines = _read_lines(log)
            assert sum(1 for line in lines if line["type"] == "policy_event") == total

    def test_query_flushes_first(self, tmp_path):
        with AuditLog(db_url=":memory:", log_dir=tmp_path, background=True) as log:
            event = log.record("run", "denied")
            assert log.query()[0].id == event.id


class TestAuditLogConfiguration:
    def test_default_database_inside_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TOOLGATE_DB_URL", raising=False)
        with AuditLog(log_dir=tmp_path) as log:
            log.record("run", "allowed")
            assert log.log_dir == tmp_path
        assert (tmp_path / "audit.db").exists()

    def test_db_url_from_environment(self, tmp_path, monkeypatch):
        db = tmp_path / "env" / "custom.db"
        monkeypatch.setenv("TOOLGATE_DB_URL", str(db))
        with AuditLog(log_dir=tmp_path / "logs") as log:
            log.record("run", "allowed")
        assert db.exists()

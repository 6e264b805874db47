"""Tests for toolgate structured logging."""

import json
import logging
import sys

from toolgate.logging import ToolgateFormatter, configure_logging, get_logger


def _record(name="toolgate.policy", level=logging.INFO, msg="Tool call denied", **extra):
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestToolgateFormatter:
    def test_human_readable_format(self):
        output = ToolgateFormatter(json_output=False).format(_record())
        assert "toolgate.policy" in output
        assert "Tool call denied" in output
        assert "INFO" in output

    def test_json_format(self):
        output = ToolgateFormatter(json_output=True).format(_record(level=logging.WARNING))
        data = json.loads(output)
        assert data["logger"] == "toolgate.policy"
        assert data["message"] == "Tool call denied"
        assert data["level"] == "WARNING"
        assert "timestamp" in data

    def test_structured_fields_in_human_format(self):
        output = ToolgateFormatter().format(_record(tool_name="read_file", result="denied"))
        assert "tool_name=read_file" in output
        assert "result=denied" in output

    def test_structured_fields_in_json(self):
        output = ToolgateFormatter(json_output=True).format(_record(sink="sql", user_id="u1"))
        data = json.loads(output)
        assert data["sink"] == "sql"
        assert data["user_id"] == "u1"

    def test_unknown_extras_ignored(self):
        data = json.loads(ToolgateFormatter(json_output=True).format(_record(colour="blue")))
        assert "colour" not in data

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        output = ToolgateFormatter().format(record)
        assert "ValueError: bad" in output


class TestConfigureLogging:
    def teardown_method(self):
        configure_logging()

    def test_sets_level(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger("toolgate").level == logging.DEBUG

    def test_single_handler(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger("toolgate").handlers) == 1

    def test_does_not_propagate(self):
        configure_logging(json_output=True)
        logger = logging.getLogger("toolgate")
        assert logger.propagate is False
        assert isinstance(logger.handlers[0].formatter, ToolgateFormatter)

    def test_unknown_level_falls_back_to_warning(self):
        configure_logging(level="chatty")
        assert logging.getLogger("toolgate").level == logging.WARNING


class TestGetLogger:
    def test_child_logger(self):
        logger = get_logger("toolgate.audit")
        assert logger.name == "toolgate.audit"
        assert logger.parent.name == "toolgate"

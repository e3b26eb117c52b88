import json
import logging

from toolagent.infrastructure.logging.logger import JsonFormatter, logger


def _record(msg, extra=None, exc_info=None):
    record = logging.LogRecord("toolagent", logging.INFO, __file__, 1, msg, None, exc_info)
    if extra is not None:
        record.extra = extra
    return record


def test_json_formatter_merges_extra():
    line = JsonFormatter().format(_record("Tool call received", {"run_id": "run-1", "tool_name": "add"}))
    data = json.loads(line)
    assert data["msg"] == "Tool call received"
    assert data["level"] == "INFO"
    assert data["run_id"] == "run-1"
    assert data["tool_name"] == "add"


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        import sys

        line = JsonFormatter().format(_record("failed", exc_info=sys.exc_info()))
    assert "ValueError" in json.loads(line)["exc"]


def test_logger_has_single_file_handler():
    handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(handlers) == 1
    assert logger.name == "toolagent"

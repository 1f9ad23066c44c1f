import json
import logging

from patchpilot.utils.logger import JSONFormatter, get_logger


def _record(**extra):
    record = logging.LogRecord("patchpilot.test", logging.INFO, __file__, 1, "Cloned %s", ("repo",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_includes_context_keys():
    entry = json.loads(JSONFormatter().format(_record(session_id="s1", step="cloning", duration_ms=12)))
    assert entry["message"] == "Cloned repo"
    assert entry["level"] == "INFO"
    assert entry["session_id"] == "s1"
    assert entry["step"] == "cloning"
    assert entry["duration_ms"] == 12
    assert "action" not in entry


def test_get_logger_installs_single_handler():
    logger = get_logger("patchpilot.test_single")
    again = get_logger("patchpilot.test_single")
    assert logger is again
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    assert logger.propagate is False

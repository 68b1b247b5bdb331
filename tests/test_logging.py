"""Tests for logging configuration."""

import json
import logging

import pytest

from blogplatform.core.logging import JSONFormatter, get_logger, setup_logging


def _record(msg: str, level: int = logging.WARNING) -> logging.LogRecord:
    return logging.LogRecord(
        name="blogplatform.auth",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_get_logger_is_namespaced():
    assert get_logger("auth").name == "blogplatform.auth"


def test_json_formatter_escapes_message():
    entry = json.loads(JSONFormatter().format(_record('login "quoted"\nnewline')))

    assert entry["level"] == "WARNING"
    assert entry["logger"] == "blogplatform.auth"
    assert entry["message"] == 'login "quoted"\nnewline'
    assert "security" not in entry
    assert entry["ts"].endswith("+00:00")


def test_json_formatter_flags_security_lines():
    entry = json.loads(JSONFormatter().format(_record("SECURITY: compromised token reuse")))
    assert entry["security"] is True


def test_setup_logging_structured(restore_root_logger):
    setup_logging(level="debug", format_type="structured")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)


def test_setup_logging_dev(restore_root_logger):
    setup_logging(level="WARNING", format_type="dev")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert not isinstance(root.handlers[0].formatter, JSONFormatter)

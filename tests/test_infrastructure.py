"""Tests for logging and database session plumbing."""

import json
import logging

import pytest

from lms.core.logging import AttemptJsonFormatter, setup_logging
from lms.db.session import get_db


def test_formatter_renders_event_and_extra_fields():
    formatter = AttemptJsonFormatter("%(timestamp)s %(level)s %(logger)s")
    record = logging.LogRecord("lms.services", logging.INFO, __file__, 1, "Attempt started", None, None)
    record.session_id = "abc"

    data = json.loads(formatter.format(record))

    assert data["event"] == "Attempt started"
    assert data["level"] == "INFO"
    assert data["logger"] == "lms.services"
    assert data["env"] == "test"
    assert data["session_id"] == "abc"
    assert "message" not in data


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        setup_logging("debug")

        json_handlers = [h for h in root.handlers if isinstance(h.formatter, AttemptJsonFormatter)]
        assert len(json_handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_get_db_rolls_back_when_request_fails():
    gen = get_db()
    session = next(gen)
    rolled_back = []
    session.rollback = lambda: rolled_back.append(True)

    with pytest.raises(RuntimeError):
        gen.throw(RuntimeError("handler failed"))

    assert rolled_back == [True]

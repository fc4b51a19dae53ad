"""Tests for the structured JSON logger."""

import io
import json

from mailpop.utils.logging import JsonLogger


def _records(stream: io.StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_secrets_are_redacted():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="t")

    logger.info("pop3_login", password="hunter2", extra={"token": "abc"}, host="h")

    (record,) = _records(stream)
    assert record["msg"] == "pop3_login"
    assert record["component"] == "t"
    assert record["password"] == "[redacted]"
    assert record["extra"]["token"] == "[redacted]"
    assert record["host"] == "h"
    assert "hunter2" not in stream.getvalue()


def test_min_level_filters_lower_severities():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, min_level="warn")

    logger.debug("a")
    logger.info("b")
    logger.warning("c")
    logger.error("d")

    assert [(r["lvl"], r["msg"]) for r in _records(stream)] == [("WARN", "c"), ("ERROR", "d")]

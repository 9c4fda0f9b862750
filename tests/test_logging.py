"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from tutor.app.core.config import settings
from tutor.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)


def make_record(msg="Test message", **attrs):
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_context_fields_promoted(self):
        record = make_record("Chat intent FreeChat", request_id="req-1", student_id=7, flow="chat")

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["student_id"] == 7
        assert data["flow"] == "chat"
        assert "extra" not in data

    def test_unknown_attributes_go_to_extra(self):
        data = json.loads(JSONFormatter().format(make_record(cache_key="topic:Ondas")))
        assert data["extra"] == {"cache_key": "topic:Ondas"}

    def test_non_ascii_kept(self):
        data = json.loads(JSONFormatter().format(make_record("Cinemática")))
        assert data["message"] == "Cinemática"

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in "".join(data["exception"])


class TestContextFilter:
    def test_defaults_added(self):
        record = make_record()
        assert ContextFilter().filter(record)
        assert record.request_id is None
        assert record.flow is None

    def test_existing_values_kept(self):
        record = make_record(student_id=7)
        ContextFilter().filter(record)
        assert record.student_id == 7


class TestLoggingConfig:
    @pytest.mark.parametrize(
        "log_format, formatter",
        [("text", "standard"), ("structured", "structured"), ("json", "json")],
    )
    def test_formatter_selection(self, monkeypatch, log_format, formatter):
        monkeypatch.setattr(settings, "log_format", log_format)
        config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == formatter

    def test_level_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "log_level", "debug")
        config = get_logging_config()
        assert config["loggers"]["tutor"]["level"] == "DEBUG"


def test_get_log_context_drops_none():
    assert get_log_context(student_id=7, flow=None, cache="hit") == {
        "student_id": 7,
        "cache": "hit",
    }


def test_get_logger_name():
    assert get_logger("tutor.app.services.router").name == "tutor.app.services.router"

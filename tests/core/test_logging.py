"""
Tests for the logging module.

Tests verify:
- JSON events carry ECS field names and the service name
- DEBUG events are suppressed at INFO level
- Bound context is merged into every event
"""

import json
from types import SimpleNamespace

import pytest
import structlog

from folio.core.logging import (
    bind_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def _events(capsys) -> list[dict]:
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestJsonFormat:
    def test_event_uses_ecs_field_names(self, capsys):
        configure_logging(level="INFO", json_format=True, service="folio-test")
        get_logger("tests").info("bucket.created", bucket="logos")

        (event,) = _events(capsys)
        assert event["event"] == "bucket.created"
        assert event["bucket"] == "logos"
        assert event["log.level"] == "info"
        assert event["service.name"] == "folio-test"
        assert "@timestamp" in event
        assert "level" not in event

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("tests")
        logger.debug("query.compiled")
        logger.warning("migration.skipped_statement")

        events = _events(capsys)
        assert [e["event"] for e in events] == ["migration.skipped_statement"]

    def test_debug_emitted_at_debug(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        get_logger("tests").debug("query.compiled")

        assert [e["event"] for e in _events(capsys)] == ["query.compiled"]


class TestContext:
    def test_bound_context_is_merged(self, capsys):
        configure_logging(level="INFO", json_format=True)
        bind_context(request_id="req-1")
        get_logger("tests").info("auth.signin")
        unbind_context("request_id")
        get_logger("tests").info("auth.signout")

        first, second = _events(capsys)
        assert first["request_id"] == "req-1"
        assert "request_id" not in second


class TestConfigureFromSettings:
    def test_log_format_json(self, capsys):
        settings = SimpleNamespace(log_level="WARNING", log_format="json")
        configure_from_settings(settings, service="folio-cli")
        logger = get_logger("tests")
        logger.info("ignored")
        logger.error("db.unreachable")

        (event,) = _events(capsys)
        assert event["event"] == "db.unreachable"
        assert event["service.name"] == "folio-cli"

"""Unit tests for structlog configuration."""

from __future__ import annotations

import json

import pytest
import structlog

from topic_reconciler.config.models import LoggingConfig
from topic_reconciler.observability.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(LoggingConfig(json_output=True))
        structlog.get_logger().info("topic.created", topic="library-events")
        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "topic.created"
        assert event["topic"] == "library-events"
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filter(self, capsys):
        configure_logging(LoggingConfig(level="WARNING", json_output=True))
        log = structlog.get_logger()
        log.info("quiet")
        log.warning("loud")
        out = capsys.readouterr().out
        assert "quiet" not in out
        assert "loud" in out

    def test_console_default(self, capsys):
        configure_logging()
        structlog.get_logger().info("provisioning.skipped", profile="prod")
        assert "provisioning.skipped" in capsys.readouterr().out

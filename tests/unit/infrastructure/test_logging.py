"""Unit tests for logging configuration."""

from __future__ import annotations

import json

import pytest
import structlog

from deployctl.infrastructure.observability.logging import setup_logging


class TestLogging:
    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "bogus"])
    def test_setup_logging_levels(self, level: str) -> None:
        setup_logging(level)  # Should not raise

    def test_json_output_includes_bound_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO", json_output=True)
        logger = structlog.get_logger("test")
        with structlog.contextvars.bound_contextvars(operation_id="op-1"):
            logger.info("operation_started", service="api")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "operation_started"
        assert record["operation_id"] == "op-1"
        assert record["service"] == "api"
        assert record["level"] == "info"

    def test_console_output(self) -> None:
        setup_logging("INFO", json_output=False)  # Should not raise

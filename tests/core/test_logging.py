"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from docplane.config.models import LoggingConfig, LogOutputConfig
from docplane.core.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Restore a plain configuration after each test."""
    yield
    configure_logging(level="INFO")
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_simple_level_sets_root_logger(self) -> None:
        """The level parameter drives the root logger level."""
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_replaces_existing_handlers(self) -> None:
        """Reconfiguring does not stack handlers."""
        configure_logging(level="INFO")
        configure_logging(level="INFO")
        assert len(logging.getLogger().handlers) == 1

    def test_sqlalchemy_engine_logger_quieted(self) -> None:
        """SQL echo stays off even at DEBUG."""
        configure_logging(level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_file_output(self, tmp_path: Path) -> None:
        """JSON outputs write one JSON object per event to the file."""
        log_file = tmp_path / "logs" / "docplane.jsonl"
        configure_logging(
            config=LoggingConfig(
                level="INFO",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )

        get_logger("test").info("index_directory_completed", indexed=3)
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text().strip().splitlines()
        payload = json.loads(lines[-1])
        assert payload["event"] == "index_directory_completed"
        assert payload["indexed"] == 3
        assert payload["logger"] == "test"
        assert payload["level"] == "info"

    def test_per_output_level(self, tmp_path: Path) -> None:
        """An output with its own level filters independently."""
        log_file = tmp_path / "warn.jsonl"
        configure_logging(
            config=LoggingConfig(
                level="DEBUG",
                outputs=[
                    LogOutputConfig(format="json", destination=str(log_file), level="WARNING")
                ],
            )
        )

        log = get_logger()
        log.info("quiet_event")
        log.warning("loud_event")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert "loud_event" in content
        assert "quiet_event" not in content


class TestLogOutputConfig:
    """Destination validation."""

    def test_relative_file_destination_rejected(self) -> None:
        with pytest.raises(ValueError, match="absolute"):
            LogOutputConfig(destination="relative/log.txt")

    @pytest.mark.parametrize("destination", ["stderr", "stdout"])
    def test_stream_destinations_accepted(self, destination: str) -> None:
        assert LogOutputConfig(destination=destination).destination == destination

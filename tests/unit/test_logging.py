"""Unit tests for contextune.utils.logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from contextune.utils.logging import SERVICE_NAME, configure_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def _events(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_events_carry_service_and_bindings(self) -> None:
        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)

        get_logger("contextune.providers.spotify", provider="spotify").info(
            "tracks_fetched", count=3
        )

        event = _events(stream)[-1]
        assert event["event"] == "tracks_fetched"
        assert event["service"] == SERVICE_NAME
        assert event["logger_name"] == "contextune.providers.spotify"
        assert event["provider"] == "spotify"
        assert event["count"] == 3
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filters_events(self) -> None:
        stream = io.StringIO()
        configure_logging(log_level="WARNING", json_output=True, stream=stream)
        logger = get_logger("contextune.test")

        logger.info("dropped")
        logger.warning("kept")

        assert [e["event"] for e in _events(stream)] == ["kept"]

    def test_contextvars_merged(self) -> None:
        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)

        with structlog.contextvars.bound_contextvars(rec_id="rec-1"):
            get_logger("contextune.test").info("phase_complete")

        assert _events(stream)[-1]["rec_id"] == "rec-1"

    @pytest.mark.parametrize("library", ["httpx", "httpcore", "aiosqlite"])
    def test_client_libraries_held_at_warning(self, library: str) -> None:
        configure_logging(stream=io.StringIO())
        assert logging.getLogger(library).level == logging.WARNING

        configure_logging(stream=io.StringIO(), library_level="DEBUG")
        assert logging.getLogger(library).level == logging.DEBUG

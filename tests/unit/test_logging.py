"""Unit tests for the structlog configuration."""

from __future__ import annotations

import logging

import structlog

from docvault.utils.logging import configure_logging, get_logger, redact_payloads


class TestRedactPayloads:
    def test_bytes_values_are_replaced(self) -> None:
        event = {
            "event": "content_ingested",
            "data": b"secret contents",
            "buffer": bytearray(b"abc"),
            "view": memoryview(b"12345"),
            "size": 15,
        }
        out = redact_payloads(None, "info", event)
        assert out["data"] == "<15 bytes>"
        assert out["buffer"] == "<3 bytes>"
        assert out["view"] == "<5 bytes>"
        assert out["size"] == 15
        assert out["event"] == "content_ingested"


class TestConfigureLogging:
    def test_levels_applied(self) -> None:
        configure_logging(log_level="debug", json_output=True)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("aiosqlite").level == logging.WARNING
        assert structlog.is_configured()

    def test_get_logger_returns_usable_logger(self) -> None:
        configure_logging(log_level="WARNING")
        logger = get_logger("docvault.tests")
        logger.info("filtered_out", payload=b"never rendered")
        assert logging.getLogger().level == logging.WARNING

"""Tests for core logging module."""

import logging
from io import StringIO

from .lib import get_logger, setup_logging


class TestLogging:
    """Test core logging API."""

    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == "mmgen"

    def test_setup_logging_quiets_http_clients(self) -> None:
        """HTTP client loggers never drop below WARNING."""
        setup_logging(level=logging.DEBUG, stream=StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("anthropic").level == logging.WARNING

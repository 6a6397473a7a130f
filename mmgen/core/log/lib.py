"""Core logging implementation for mmgen."""

import logging
import sys
from typing import Optional

__all__ = ["get_logger", "setup_logging"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, stream=sys.stderr) -> None:
    """Configure basic logging for the CLI.

    Third-party HTTP client loggers are capped at WARNING so that
    retry and repair progress stays readable at INFO.

    Args:
        level: Logging level.
        stream: Output stream.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream)
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name or "mmgen")

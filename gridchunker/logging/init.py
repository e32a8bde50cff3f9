from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line written by the CLI carries one of the labels
INFO|WARN|ERROR|SUMMARY so log scrapers can split on the first token.
Service modules log through child loggers (gridchunker.services.*), which
propagate into the "gridchunker" logger configured here.

Per-chunk failures are additionally buffered as JSON Lines by
gridchunker.logging.error_log.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
    "SUMMARY_LEVEL",
    "LOGGER_NAME",
]

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25
LOGGER_NAME = "gridchunker"

# Global logger instance
_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formatter that prefixes each message with its level label.

    WARNING is shortened to WARN; SUMMARY is the custom level 25.
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{level_label} {record.getMessage()}"
        if record.exc_info and record.levelno >= logging.ERROR:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(debug: bool = False) -> logging.Logger:
    """Setup the application logger with labeled prefixes on stdout.

    Idempotent: a second call returns the configured logger, only adjusting
    the level when debug is requested.

    Args:
        debug: Enable DEBUG level output

    Returns:
        Configured "gridchunker" logger
    """
    global _logger

    level = logging.DEBUG if debug else logging.INFO
    if _logger is not None:
        if debug:
            _logger.setLevel(level)
            for handler in _logger.handlers:
                handler.setLevel(level)
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers to avoid duplication
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured application logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    logger = get_logger()
    logger.log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
        _logger.propagate = True
        _logger.setLevel(logging.NOTSET)
    _logger = None

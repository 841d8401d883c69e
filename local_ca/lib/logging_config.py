"""Logging configuration for local-ca."""

import logging
import os

from pythonjsonlogger.json import JsonFormatter


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with focused field set.

    Includes only 6 fields: timestamp, level, message, exc_info, funcName, lineno.
    Drops verbose fields like module, process, thread, processName, threadName, name.
    """

    def add_fields(self, log_record, record, message_dict):
        """Override to include only specified fields.

        Args:
            log_record: Dict to be logged as JSON
            record: LogRecord object from logging framework
            message_dict: Dict containing message and args
        """
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        allowed_fields = {
            "timestamp",
            "level",
            "message",
            "exc_info",
            "funcName",
            "lineno",
        }

        keys_to_remove = [key for key in log_record if key not in allowed_fields]
        for key in keys_to_remove:
            log_record.pop(key)


def _build_formatter(log_format: str) -> logging.Formatter:
    """Return the plain formatter for "text", JSON otherwise."""
    if log_format == "text":
        return logging.Formatter("%(message)s")
    return CustomJsonFormatter(
        fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
        timestamp=True,
    )


def _setup_logger() -> logging.Logger:
    """Initialize and configure singleton logger.

    LOCAL_CA_LOG_FORMAT selects "json" (default) or "text" output and
    LOCAL_CA_LOG_LEVEL sets the threshold (default INFO).

    Returns:
        Configured logger
    """
    logger = logging.getLogger("local_ca")

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(_build_formatter(os.environ.get("LOCAL_CA_LOG_FORMAT", "json").lower()))

    logger.setLevel(os.environ.get("LOCAL_CA_LOG_LEVEL", "INFO").upper())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


# Singleton logger instance - import this in other modules
LOGGER = _setup_logger()

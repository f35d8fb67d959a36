"""Centralized logging configuration for cropslice."""

import os
import sys
import logging
from typing import Optional


def setup_logger(
    name: str = "cropslice",
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "cropslice")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)
    configured = bool(logger.handlers)

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    # An existing logger keeps its level unless one is passed explicitly
    if level or not configured:
        logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "cropslice") -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Child loggers ("cropslice.upload", ...) share the root handler setup.
    """
    return setup_logger(name)


def set_debug(enabled: bool, name: str = "cropslice") -> None:
    """Switch the package loggers (and the root logger) to DEBUG."""
    if not enabled:
        return
    get_logger(name).setLevel(logging.DEBUG)
    for logger_name in list(logging.Logger.manager.loggerDict):
        if logger_name.startswith(name + "."):
            logging.getLogger(logger_name).setLevel(logging.DEBUG)
    logging.getLogger().setLevel(logging.DEBUG)


logger = setup_logger()

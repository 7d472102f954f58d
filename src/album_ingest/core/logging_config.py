"""Centralized logging configuration for the ingestion workers."""

import os
import sys
import logging
from typing import Optional

PIPELINE_LOGGER = "album-ingest"

_debug_enabled = False


def _is_pipeline_logger(name: str) -> bool:
    return name == PIPELINE_LOGGER or name.startswith(PIPELINE_LOGGER + ".")


def setup_logger(
    name: str = PIPELINE_LOGGER,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "album-ingest")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    # An already configured logger keeps its level unless one is given
    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    elif not logger.handlers:
        if _debug_enabled and _is_pipeline_logger(name):
            logger.setLevel(logging.DEBUG)
        else:
            env_level = os.getenv("LOG_LEVEL", "INFO").upper()
            logger.setLevel(getattr(logging, env_level, logging.INFO))

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(threadName)s | %(funcName)s() | %(message)s",
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


def get_logger(name: str = PIPELINE_LOGGER) -> logging.Logger:
    """Get a logger instance with consistent configuration."""
    return setup_logger(name)


def set_debug_logging(enabled: bool) -> None:
    """
    Switch the pipeline loggers (and the root logger) to DEBUG.

    Pipeline loggers configured later start at DEBUG too. Disabling only
    stops that; levels already set are left alone.
    """
    global _debug_enabled
    _debug_enabled = enabled
    if not enabled:
        return
    logging.getLogger().setLevel(logging.DEBUG)
    for name in list(logging.root.manager.loggerDict):
        if _is_pipeline_logger(name):
            logging.getLogger(name).setLevel(logging.DEBUG)


logger = setup_logger()

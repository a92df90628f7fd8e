"""Logging setup utilities for filedeck.

The service's own records and uvicorn's server records go through the
same handlers and format, so a connection's lifecycle reads as one
log. Per-logger levels (for example to quiet uvicorn's access log)
come from ``LoggingConfig.loggers``.
"""

from __future__ import annotations

import logging
import sys

from filedeck.config.settings import LoggingConfig

# Loggers that receive the configured handlers. uvicorn's children
# ("uvicorn.error", "uvicorn.access") propagate into "uvicorn".
OWNED_LOGGERS = ("filedeck", "uvicorn")


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Configure logging for the filedeck service and its server.

    Replaces any handlers installed by an earlier call, so it is safe
    to call again after the configuration changes. Run uvicorn with
    ``log_config=None`` to keep these handlers in place.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).

    Returns:
        The configured "filedeck" logger.
    """
    if config is None:
        config = LoggingConfig()

    level = _level(config.level)
    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)

    stale: set[logging.Handler] = set()
    for name in OWNED_LOGGERS:
        logger = logging.getLogger(name)
        stale.update(logger.handlers)
        logger.handlers = list(handlers)
        logger.setLevel(level)
        logger.propagate = False
    for handler in stale:
        handler.close()

    for name, logger_level in config.loggers.items():
        logging.getLogger(name).setLevel(_level(logger_level))

    service_logger = logging.getLogger("filedeck")
    service_logger.info("Logging initialized at %s level", config.level.upper())
    return service_logger


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)

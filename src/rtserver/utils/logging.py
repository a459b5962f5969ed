"""Logging setup for the relay server.

The ``rtserver`` logger and uvicorn's loggers share one set of handlers,
so connection, routing and HTTP access lines end up in the same stream
(and the same file, when one is configured).
"""

from __future__ import annotations

import logging
import sys

from rtserver.config.settings import LoggingConfig

# Loggers routed through our handlers besides the package logger.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the ``rtserver`` and uvicorn loggers.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    config = config or LoggingConfig()
    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers = _build_handlers(config)

    for name in ("rtserver", *SERVER_LOGGERS):
        target = logging.getLogger(name)
        for old in list(target.handlers):
            target.removeHandler(old)
            old.close()
        target.setLevel(level)
        target.propagate = False
        if name in ("rtserver", "uvicorn"):
            for handler in handlers:
                target.addHandler(handler)
        else:
            # uvicorn.error / uvicorn.access reach the handlers via "uvicorn"
            target.propagate = True

    logging.getLogger("rtserver").info("Logging initialized at %s level", config.level.upper())

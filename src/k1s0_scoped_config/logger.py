"""structlog-based logger setup."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LOGGER_NAME = "k1s0_scoped_config"


def new_logger(
    level: str = "INFO",
    format: str = "json",
    **initial_values: Any,
) -> structlog.stdlib.BoundLogger:
    """Configure structlog for the engine and return a bound logger.

    Args:
        level: level for the ``k1s0_scoped_config`` stdlib logger tree
            ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        format: output format ("json" or "text")
        initial_values: fields bound to the returned logger, e.g. the
            engine's environment and region

    Loggers are not cached on first use, so the module-level loggers of the
    resolver and evaluator follow a later reconfiguration.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger(LOGGER_NAME).setLevel(log_level)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if format == "json":
        processors.append(structlog.processors.StackInfoRenderer())
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logger = structlog.stdlib.get_logger(LOGGER_NAME)
    if initial_values:
        return logger.bind(**initial_values)
    return logger

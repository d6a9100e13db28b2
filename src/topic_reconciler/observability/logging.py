"""structlog setup for the CLI and embedding applications."""

from __future__ import annotations

import logging

import structlog

from topic_reconciler.config.models import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog with a level filter and console or JSON output."""
    cfg = config or LoggingConfig()
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if cfg.json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # ConsoleRenderer pretty-prints exc_info itself.
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[cfg.level]
        ),
        cache_logger_on_first_use=False,
    )

"""Structured logging for the governance monitor.

All modules obtain a logger via get_logger(__name__) and log with keyword
arguments so every event carries machine-readable context:

    logger.info("Bias scan completed", agent_name="TrainingCoach", risk_level="low")

configure_logging() is called once from the application lifespan. Until then
structlog's defaults apply, which keeps tests and scripts quiet but usable.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ERROR).
        json_logs: Render events as JSON lines when True, as a coloured
            console format otherwise (local development).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a structured logger bound to the given module name.

    Args:
        name: Usually the calling module's __name__.

    Returns:
        A structlog logger accepting keyword-argument context.
    """
    return structlog.get_logger(name)

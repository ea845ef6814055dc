"""Structured logging configuration for opswatch.

Sets up structlog with JSON output for production, pretty console output for dev.
Integrates with stdlib logging to capture third-party library logs (httpx, docker).
"""

import logging
import sys

import structlog

from opswatch import __version__

# Per-request chatter from the HTTP stacks behind the chat adapters and the
# docker SDK. Raised to WARNING unless the process asks for something quieter.
NOISY_LOGGERS = ("httpx", "docker", "urllib3")


def configure_logging(service_name: str = "opswatch", level: str = "INFO") -> None:
    """Configure structured logging for the process.

    Args:
        service_name: Name bound to every log entry as ``service``
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
    """
    log_level = getattr(logging, level.upper())
    is_tty = sys.stdout.isatty()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer()
        if is_tty
        else structlog.processors.JSONRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processor=renderer,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.contextvars.bind_contextvars(service=service_name, version=__version__)

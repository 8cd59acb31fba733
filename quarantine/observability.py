"""
Logging setup and the diagnostic channel.

The diagnostic channel receives non-fatal anomaly reports: situations that
indicate an internal inconsistency but must never stop the status pipeline.
"""

import logging
from typing import Protocol

import structlog

from quarantine.config import LoggingConfig

logger = structlog.get_logger(__name__)


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog with a JSON or console renderer."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level))

    renderer: structlog.types.Processor
    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class DiagnosticSink(Protocol):
    """Receives non-fatal anomaly reports (category + message)."""

    def report(self, category: str, message: str) -> None: ...


class StructlogDiagnosticSink:
    """Reports anomalies as error-level log events."""

    def __init__(self) -> None:
        self.logger = logger.bind(component="diagnostics")

    def report(self, category: str, message: str) -> None:
        self.logger.error("silent_error", category=category, message=message)


class RecordingDiagnosticSink:
    """Keeps reports in memory; handy for tests and local inspection."""

    def __init__(self) -> None:
        self.reports: list[tuple[str, str]] = []

    def report(self, category: str, message: str) -> None:
        self.reports.append((category, message))

"""Structured logging utilities for the privacy gateway.

This module provides async-safe structured logging using structlog.
All logs include request_id for tracing. Payload values are never logged;
callers pass only category names, reason codes and counters.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def add_request_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add request_id to log context if available."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "privacy_gateway") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for tracking operation performance."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 50.0,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            # Exception type only: messages from upstream clients may echo request data.
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
            )
        else:
            log_method = self.logger.warning if duration_ms > self.warn_after_ms else self.logger.debug
            log_method(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
            )

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        if self.end_time == 0:
            return (time.perf_counter() - self.start_time) * 1000
        return (self.end_time - self.start_time) * 1000


def set_request_id(request_id: str) -> None:
    """Set request ID in context for all subsequent logs."""
    request_id_var.set(request_id)


def clear_request_id() -> None:
    """Clear request ID from context."""
    request_id_var.set(None)


# Initialize logging with sensible defaults
# This will be reconfigured by main.py based on environment
configure_logging()

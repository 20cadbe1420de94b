"""
Module: logger.py
Description: Structured logging configuration for the webhook delivery service.

Configures structlog for JSON output optimized for CloudWatch Logs.
Provides consistent logging across all modules with proper context
and structured data.

Key Components:
- JSON output for CloudWatch compatibility
- Timestamp and log level processors
- Level filtering driven by settings.log_level
- get_logger() helper function

Dependencies: structlog, logging
Author: BuildDesk Platform Team
"""

import logging

import structlog

from webhook_delivery.config.settings import settings
from webhook_delivery.utils.clock import isoformat_z, utcnow


def _add_timestamp(logger, method_name, event_dict):
    """
    Add ISO 8601 timestamp to log entries.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Updated event dictionary with timestamp
    """
    event_dict["timestamp"] = isoformat_z(utcnow())
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    """Add log level to event dictionary."""
    event_dict["level"] = method_name.upper()
    return event_dict


structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        _add_timestamp,
        _add_log_level,
        structlog.processors.format_exc_info,
        # Render as JSON for CloudWatch compatibility
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.WriteLoggerFactory(),
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
    cache_logger_on_first_use=True,
)


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Delivery attempted", delivery_id="dlv_123", status_code=200)
        {"event": "Delivery attempted", "delivery_id": "dlv_123", "status_code": 200, "timestamp": "2024-01-15T10:30:00.000Z", "level": "INFO"}
    """
    return structlog.get_logger(name)

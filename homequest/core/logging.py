"""Observability for homequest on top of Pydantic Logfire.

Modules log through the standard library (`logging.getLogger(__name__)`) and
pass structured fields via `extra`; Logfire picks the records up once
`configure_logfire` has run. Service operations open a span per call so a
purchase or an award shows up as one trace with its store reads and writes.
"""

import logging

import logfire
from fastapi import FastAPI

from homequest.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire; records stay local unless LOGFIRE_TOKEN is set."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="homequest",
        service_version="0.1.0",
        environment="production",
        send_to_logfire="if-token-present",
    )
    # Outbound calls to the push provider
    logfire.instrument_httpx()
    logger.info("Logfire configured successfully")


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request handled by the app."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span named `<service>.<operation>`, e.g. "purchase_service.purchase_coupon"."""
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Fields such as household_id, task_id or claimer_id
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)

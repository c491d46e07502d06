"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.
Includes request ID tracking, saga context binding and card data redaction.
"""

import logging
import sys
from typing import Optional
import structlog
from structlog.types import EventDict, WrappedLogger

from railbook.core.config import get_settings

REQUEST_ID_HEADER = "X-Request-ID"

# Keys that may carry card data on their way to the payment service
REDACTED_KEYS = frozenset({"card_number", "cvc", "expiry_month", "expiry_year", "card"})


def redact_card_data(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_card_data,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_saga_context(operation: str, booking_id: Optional[str] = None, user_id: Optional[str] = None) -> None:
    """Attach saga identifiers to every log line emitted for the rest of the request."""
    context = {"saga_operation": operation}
    if booking_id is not None:
        context["booking_id"] = booking_id
    if user_id is not None:
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)

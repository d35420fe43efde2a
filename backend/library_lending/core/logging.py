"""
Structured logging configuration using structlog.

JSON lines in production, console rendering elsewhere. Every event carries
the request id bound by the request middleware, and evidence photos never
reach the log stream in full: data URIs are cut down to their media type.
"""

import logging
import sys
import structlog
from library_lending.core.config import get_settings

_DATA_URI_PREFIX = "data:"


def _shorten_data_uri(value):
    if isinstance(value, str) and value.startswith(_DATA_URI_PREFIX):
        media_type = value.split(";", 1)[0].split(",", 1)[0]
        return f"<{media_type} {len(value)} bytes>"
    if isinstance(value, (list, tuple)):
        return [_shorten_data_uri(item) for item in value]
    return value


def redact_data_uris(logger, method_name, event_dict):
    """Replace base64 photo payloads with a short placeholder."""
    for key, value in event_dict.items():
        event_dict[key] = _shorten_data_uri(value)
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        redact_data_uris,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Start a fresh log context for one request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

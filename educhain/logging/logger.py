"""
Logger Implementation
=====================

structlog configuration for the portal and its management scripts.

Every entry carries the service name, an ISO timestamp and whatever
request context was bound (request id, institution id). Credentials are
masked before rendering: keys naming a secret, and values that look
like a bearer header or a session token.

Production renders one JSON object per line; development renders
colored console output.

Version: 0.1.0
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor


if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger


REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "api_key",
        "secret",
        "token",
        "authorization",
        "private_key",
        "jwt",
    }
)

# "Bearer <anything>" and three-segment JWTs inside free-text values
BEARER_PATTERN = re.compile(r"Bearer\s+\S+", re.IGNORECASE)
JWT_PATTERN = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "pymongo", "web3", "urllib3", "asyncio")


def _service_context(service_name: str) -> Processor:
    """Build a processor stamping the service name and version."""

    def add_service_context(
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("version", "0.1.0")
        return event_dict

    return add_service_context


def _add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _drop_color_message(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """uvicorn duplicates its message under `color_message`."""
    event_dict.pop("color_message", None)
    return event_dict


def _is_sensitive_key(key: Any) -> bool:
    key_lower = str(key).lower()
    # token_id, institution_ids and the like are identifiers
    if key_lower.endswith(("_id", "_ids")):
        return False
    return any(s in key_lower for s in SENSITIVE_KEYS)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive_key(k) else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, list | tuple):
        return type(value)(_scrub(v) for v in value)
    if isinstance(value, str):
        return JWT_PATTERN.sub(REDACTED, BEARER_PATTERN.sub(f"Bearer {REDACTED}", value))
    return value


def _censor_secrets(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask credentials by key name and by value shape, at any depth."""
    return _scrub(event_dict)


def build_processors(service_name: str, json_logs: bool) -> list[Processor]:
    """Processor chain shared by structlog and stdlib log records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _add_timestamp,
        _service_context(service_name),
        _drop_color_message,
        _censor_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    else:
        processors.append(structlog.dev.set_exc_info)
    return processors


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    service_name: str = "educhain",
) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of console output
        service_name: Value of the `service` field on every entry
    """
    level = getattr(logging, log_level.upper())
    processors = build_processors(service_name, json_logs)

    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> "BoundLogger":
    """
    Get a structured logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """
    Bind values to every subsequent entry in this async context.

    Example:
        bind_context(request_id="abc123", institution_id="65f...")
        logger.info("certificate_issued")  # carries both ids
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all bound context."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind values for the duration of a block, e.g. one CLI command."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield

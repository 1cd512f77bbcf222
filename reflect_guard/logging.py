"""Reflect Guard — Structured logging configuration.

Every record carries the same keys regardless of the layer that emits it:
    - timestamp (ISO-8601), level, logger name
    - request_id / user_id of the request being authorized, when one is bound
    - the event name (snake_case) plus key/value context

Session and admin tokens are masked before rendering, including inside a
logged ``headers`` mapping.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_ctx_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)

_CONTEXT_FIELDS: tuple[tuple[str, ContextVar[str | None]], ...] = (
    ("request_id", _ctx_request_id),
    ("user_id", _ctx_user_id),
)

SECRET_KEYS = frozenset({"token", "session_token", "admin_token", "authorization", "x-admin-token"})
_MASK = "***"

# Third-party loggers that would otherwise log every SQL call or HTTP hop.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "asyncio", "aiosqlite")


def bind_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """Bind the request being authorized to the current async task."""
    if request_id is not None:
        _ctx_request_id.set(request_id)
    if user_id is not None:
        _ctx_user_id.set(user_id)


def clear_request_context() -> None:
    for _, var in _CONTEXT_FIELDS:
        var.set(None)


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add the bound request_id / user_id; explicit keys win."""
    for key, var in _CONTEXT_FIELDS:
        value = var.get()
        if value is not None:
            event_dict.setdefault(key, value)
    return event_dict


def _redact_secrets(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Mask token-bearing keys, including inside a ``headers`` mapping."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS and event_dict[key] is not None:
            event_dict[key] = _MASK
    headers = event_dict.get("headers")
    if isinstance(headers, dict):
        event_dict["headers"] = {
            k: (_MASK if k.lower() in SECRET_KEYS else v) for k, v in headers.items()
        }
    return event_dict


def _drop_color_message(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Remove uvicorn's ``color_message`` duplicate field."""
    event_dict.pop("color_message", None)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def _build_handlers(formatter: logging.Formatter, log_file: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for development, ``"json"`` for log shipping.
        log_file: Optional path written in addition to stdout.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _redact_secrets,
        _drop_color_message,
    ]

    renderer: Any
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    root_logger = logging.getLogger()
    root_logger.handlers = _build_handlers(formatter, log_file)
    root_logger.setLevel(level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("permission_cache_miss", user_id="u-123")
    """
    return structlog.get_logger(name)

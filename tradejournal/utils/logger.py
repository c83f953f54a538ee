from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

import structlog

from tradejournal.utils.config import Settings, get_settings

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = {"password", "password_hash", "access_token", "refresh_token", "token", "jwt_secret", "secret"}


def setup_logging(settings: Optional[Settings] = None) -> None:
    """JSON logs to stdout, plus an append-only file when ``log_file`` is set."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, mode="a"))
    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request(request_id: str) -> None:
    """Start a fresh log context for one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)


def bind_user(user_id: str) -> None:
    structlog.contextvars.bind_contextvars(user_id=user_id)


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with credential-looking keys masked, nested dicts and lists included."""
    return {key: REDACTED if key.lower() in SENSITIVE_KEYS else _sanitize_value(value)
            for key, value in data.items()}


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_log_data(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(v) for v in value]
    return value

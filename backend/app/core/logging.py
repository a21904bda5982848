"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed elsewhere.
Credential fields are masked before rendering.
Request correlation comes from contextvars bound by the request middleware.
"""

import logging
import re
import sys
from typing import Optional

import structlog

from app.core.config import Settings, get_settings


_HANDLER_NAME = "gated_signup_stdout"

# Event keys whose values never reach the log output
REDACTED_KEYS = frozenset({"password", "new_password", "hashed_password", "token", "access_token"})
# Tokens embedded in links, e.g. ...?token=eyJ...
_TOKEN_IN_URL = re.compile(r"(token=)[^&\s\"']+")


def _redact_secrets(logger, method_name, event_dict):
    for key, value in event_dict.items():
        if key in REDACTED_KEYS:
            event_dict[key] = "[redacted]"
        elif isinstance(value, str) and "token=" in value:
            event_dict[key] = _TOKEN_IN_URL.sub(r"\1[redacted]", value)
    return event_dict


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _redact_secrets,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
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

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    root_logger = logging.getLogger()
    # Lifespan may run more than once per process (reloads, tests)
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

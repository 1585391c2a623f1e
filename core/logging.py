"""
Structured logging for the Constructor clients.

Every client module logs through structlog with keyword events. Output is
rendered as JSON or as colored console lines depending on the settings, and
secrets that end up in logged request parameters (API key, tokens) are
masked before rendering.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.typing import EventDict, Processor, WrappedLogger

    from core.config import Settings

MASK = "***"

# Keys whose values never reach the log output
SENSITIVE_KEYS = frozenset({"key", "token", "api_token", "authorization", "x-cnstrc-token"})


def _mask(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: MASK if str(k).lower() in SENSITIVE_KEYS else _mask(v) for k, v in value.items()
        }
    return value


def mask_secrets(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    """
    Mask sensitive values in logged mappings.

    Top-level keys and keys of nested mappings (params, headers) listed in
    SENSITIVE_KEYS are replaced by a fixed mask.
    """
    for name, value in list(event_dict.items()):
        if name.lower() in SENSITIVE_KEYS:
            event_dict[name] = MASK
        elif isinstance(value, Mapping):
            event_dict[name] = _mask(value)
    return event_dict


def _renderers(json_format: bool) -> list[Processor]:
    if json_format:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def configure_logging(
    settings: Settings | None = None,
    *,
    json_format: bool | None = None,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog for the clients.

    Explicit keyword values win over the settings; without either the
    output is console lines at INFO.

    Args:
        settings: Settings providing json_logs and log_level.
        json_format: Render JSON lines instead of console output.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    if json_format is None:
        json_format = settings.json_logs if settings else False
    if log_level is None:
        log_level = settings.log_level if settings else "INFO"

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        mask_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        *_renderers(json_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, usually named after the calling module."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def log_context(**values: object) -> Iterator[None]:
    """
    Attach values to every event logged inside the block.

    Used around one agent conversation so its events share the thread id.
    Values bound before the block are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield

"""fixturenet — Structured logging.

structlog renders every record, including those emitted through plain
stdlib loggers by uvicorn, httpx or aiosqlite.  While a request is being
disposed, its recording id and fingerprint ride along on each record as
``recording_id`` / ``request_id``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Loggers that would otherwise report every connection or query.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "asyncio")

_current_recording: ContextVar[str | None] = ContextVar("fixturenet_recording", default=None)
_current_request: ContextVar[str | None] = ContextVar("fixturenet_request", default=None)


RequestContextTokens = list[Token[str | None]]


def bind_request_context(
    recording_id: str | None = None,
    request_id: str | None = None,
) -> RequestContextTokens:
    """Bind the request being disposed to the current async task.

    Returns the tokens to hand to ``reset_request_context`` once the request
    is done, which restores whatever an enclosing dispose had bound.
    """
    tokens: RequestContextTokens = []
    if recording_id is not None:
        tokens.append(_current_recording.set(recording_id))
    if request_id is not None:
        tokens.append(_current_request.set(request_id))
    return tokens


def reset_request_context(tokens: RequestContextTokens) -> None:
    for token in reversed(tokens):
        token.var.reset(token)


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    for key, var in (("recording_id", _current_recording), ("request_id", _current_request)):
        value = var.get()
        if value is not None:
            event_dict.setdefault(key, value)
    return event_dict


def _drop_color_message(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    # uvicorn duplicates its message with ANSI codes under this key.
    event_dict.pop("color_message", None)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _drop_color_message,
    ]


def _build_formatter(format: str, pre_chain: list[Processor]) -> logging.Formatter:
    renderer: Any
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Route structlog and stdlib logging through one formatter.

    The CLI and the recordings server call this at startup.  Test suites
    that embed a session can skip it and keep their own logging setup.

    Args:
        level:    debug, info, warning, error or critical.
        format:   ``"console"`` (human-readable) or ``"json"``.
        log_file: Also append records to this file.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = _build_formatter(format, pre_chain)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(level.upper())
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named *name*, e.g. ``get_logger(__name__)``."""
    return structlog.get_logger(name)

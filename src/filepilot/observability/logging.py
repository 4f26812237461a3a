"""structlog setup shared by the shell, the share server and the workers.

Log lines go through the stdlib root logger so uvicorn's and httpx's own
loggers end up in the same stream and format. Every entry carries the
thread it was written from: share requests run on the uvicorn thread,
searches and shares on the worker pool, commands on the main thread.

Usage::

    configure_logging(stream=sys.stderr)   # once, at startup
    logger = get_logger(__name__)
    logger.info("share_registered", token=token, path=str(path))
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from contextvars import ContextVar
from typing import IO

import structlog

# Correlation id of the share request being handled, if any.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_configured = False

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _add_context(logger, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install the structlog pipeline and a single root handler.

    Only the first call has an effect.

    Args:
        level: Level name; defaults to ``FILEPILOT_LOG_LEVEL`` or WARNING,
            so the interactive shell stays quiet unless asked.
        json_output: JSON lines instead of console rendering; defaults to
            ``FILEPILOT_LOG_FORMAT == "json"``.
        stream: Destination, stderr unless given.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("FILEPILOT_LOG_LEVEL", "WARNING")
    if json_output is None:
        json_output = os.environ.get("FILEPILOT_LOG_FORMAT", "console") == "json"

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        _add_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""
Structured logging setup for the vignette checkout automation.

All runtime logging goes through structlog. This module provides one
baseline shared by the API and the engine:

- Logs are structured (JSON) and carry contextual fields.
- Context can be bound per order (order_id, adapter, step).
- Configuration lives here rather than scattered across call sites.

The CLI prints its result as JSON on stdout, so it sends logs to stderr
with the console renderer instead.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Mapping, Optional

import structlog

if TYPE_CHECKING:
    from shared.config import AppConfig


def _build_shared_processors(json_output: bool = True) -> list[structlog.types.Processor]:
    """Processors shared by the API and the engine."""

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [
            structlog.processors.EventRenamer("message"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_stdout: bool = True,
    *,
    stream: IO[str] = sys.stdout,
    json_output: bool = True,
) -> None:
    """
    Configure structlog and the standard logging module.

    Call once at process startup (API app factory, CLI). Later calls replace
    the handlers.

    - When log_stdout is True (default), a StreamHandler(stream) is added.
    - When log_file is set, a FileHandler is added (parent dir created if needed).
    - If neither applies, `stream` is used so the process never has zero handlers.
    """

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), level))

    if log_stdout or not root.handlers:
        root.addHandler(_handler(logging.StreamHandler(stream), level))

    structlog.configure(
        processors=_build_shared_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_config(config: "AppConfig", **kwargs: Any) -> None:
    """configure_logging() with LOG_LEVEL, LOG_FILE and LOG_STDOUT taken from config."""
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    configure_logging(level=level, log_file=config.log_file, log_stdout=config.log_stdout, **kwargs)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Obtain a structured logger.

    Usage:
        from shared.logging import get_logger, bind_request_context

        logger = get_logger(__name__)
        bind_request_context(order_id="vignette_1724922000000", adapter="via_admin")
        logger.info("step.completed", step="InCart")
    """

    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_request_context(
    *,
    order_id: Optional[str] = None,
    adapter: Optional[str] = None,
    step: Optional[str] = None,
    **extra: Any,
) -> Mapping[str, Any]:
    """
    Bind common context fields for order logging.

    Convention: engine logs carry order_id and adapter; step-level logs also
    carry step. Extra keyword arguments are bound as well.
    """

    context: dict[str, Any] = {
        "order_id": order_id,
        "adapter": adapter,
        "step": step,
        **extra,
    }

    filtered_context = {k: v for k, v in context.items() if v is not None}

    structlog.contextvars.bind_contextvars(**filtered_context)
    return filtered_context


def clear_request_context() -> None:
    """Drop all context bound by bind_request_context (end of an order)."""
    structlog.contextvars.clear_contextvars()

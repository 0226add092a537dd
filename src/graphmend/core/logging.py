# src/graphmend/core/logging.py
"""Structured logging for graphmend.

structlog and stdlib logging share one ProcessorFormatter, so library
records and our own events come out in the same format (JSON lines or
console). Everything goes to stderr: the CLI owns stdout for repaired
documents and JSON reports.

Events raised while one graph is being validated or repaired carry a
``graph`` field (short graph hash) bound via ``graph_context()``, so the
lines of a batch run can be told apart.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Dependencies that log their own config loading and markup parsing
_NOISY_LOGGERS: tuple[str, ...] = (
    "dynaconf",
    "markdown_it",
)

# Change-log entries can quote whole parameter values
MAX_FIELD_LENGTH = 240

# Length of the graph hash prefix bound to log events
GRAPH_REF_LENGTH = 12


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record/_from_structlog keys ProcessorFormatter always adds."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _shorten_long_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Cut string fields longer than MAX_FIELD_LENGTH; the event name is left alone."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = f"{value[: MAX_FIELD_LENGTH - 3]}..."
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        _shorten_long_fields,
    ]


def _render_chain(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        _drop_formatter_bookkeeping,
        structlog.dev.ConsoleRenderer(colors=False),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog and stdlib logging to stderr.

    Args:
        json_output: One JSON object per line instead of console text
        level: DEBUG, INFO, WARNING or ERROR (case-insensitive)

    Raises:
        ValueError: If ``level`` is not one of the above
    """
    level_name = level.upper()
    if level_name not in _LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(_LEVELS)}")
    log_level = logging.getLevelName(level_name)

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))


@contextmanager
def graph_context(graph_hash: str) -> Iterator[None]:
    """Bind ``graph=<hash prefix>`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(graph=graph_hash[:GRAPH_REF_LENGTH]):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound structlog logger for ``name`` (usually ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

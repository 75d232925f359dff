# src/nodeflow/core/logging.py
"""Structured logging for nodeflow.

The engine only ever calls get_logger(); nothing configures logging on
import. Entry points (the CLI, or a host editor) call configure_logging()
once and may re-call it after settings load.

structlog and stdlib records share one processor chain through
ProcessorFormatter, so a dynaconf or networkx warning renders the same way
as a ``command_applied`` event. Everything goes to stderr; stdout belongs
to command output such as ``validate --format json``.

Events emitted while a flow is being processed can be tagged with it:

    with flow_context(flow.name, source="orders.yaml"):
        validate_workflow(flow)
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Libraries pulled in by config loading and CLI rendering; quiet below WARNING
_NOISY_LOGGERS: tuple[str, ...] = (
    "dynaconf",
    "markdown_it",
)


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ]


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Args:
        json_output: One JSON object per line instead of console output.
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.

    Raises:
        ValueError: If level is not a logging level name.
    """
    levels = logging.getLevelNamesMapping()
    if level.upper() not in levels:
        raise ValueError(f"Unknown log level: {level!r}")
    log_level = levels[level.upper()]

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Settings may reconfigure after the first logger is created
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_render_processors(json_output), foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))


@contextmanager
def flow_context(name: str, *, source: str | None = None) -> Iterator[None]:
    """Tag every event logged inside the block with the flow being processed."""
    fields = {"flow": name} if source is None else {"flow": name, "source": source}
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

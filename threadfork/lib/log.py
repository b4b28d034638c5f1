"""Structured logging for threadfork.

Every event is emitted to stderr so command output on stdout stays
machine-readable. Loggers carry a ``component`` key naming the module
that logged (``coordinator``, ``sequencer``, ...).
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import Processor


class _StderrProxy:
    """File-like object that resolves sys.stderr at write time.

    PrintLoggerFactory keeps the file it was given and loggers are cached
    on first use, so a redirected stderr (CliRunner, capsys) would
    otherwise leave them writing to a closed stream.
    """

    def write(self, s: str) -> int:
        return sys.stderr.write(s)

    def flush(self) -> None:
        sys.stderr.flush()

    def isatty(self) -> bool:
        return sys.stderr.isatty()


_stderr_proxy: TextIO = _StderrProxy()  # type: ignore[assignment]


def _component(name: str | None) -> str | None:
    if not name:
        return None
    return name.rsplit(".", 1)[-1]


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Install the process-wide structlog configuration.

    ``verbose`` lowers the threshold to DEBUG (resolver hops, appends);
    the default INFO shows created variants and collisions.
    """
    level = logging.DEBUG if verbose else logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.set_exc_info)
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_stderr_proxy),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    component = _component(name)
    if component is None:
        return structlog.get_logger()
    return structlog.get_logger(component=component)


__all__ = ["configure_logging", "get_logger"]

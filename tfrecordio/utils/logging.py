"""Structured logging helpers.

Library modules only obtain loggers. Events are rendered by structlog and
handed to the stdlib ``tfrecordio`` logger, which carries a NullHandler, so
nothing is printed until the application attaches a handler. The CLI does
that with :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

ROOT_LOGGER = "tfrecordio"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when a record is emitted."""

    @property
    def stream(self) -> Any:
        return sys.stderr

    @stream.setter
    def stream(self, value: Any) -> None:
        pass


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to the stdlib logger ``name``.

    Args:
        name: Logger name, usually __name__.
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def configure_logging(verbose: bool = False) -> None:
    """Render structured events as key=value lines on stderr.

    Args:
        verbose: Emit debug events as well as warnings and errors.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        if isinstance(handler, _StderrHandler):
            root.removeHandler(handler)
    root.addHandler(_StderrHandler())
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

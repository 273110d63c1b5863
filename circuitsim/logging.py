"""Logging configuration for circuitsim.

All messages go through the ``circuitsim`` logger or one of its children
(``circuitsim.dc``, ``circuitsim.transient``, ``circuitsim.devices``, ...),
so a single level controls the whole engine while individual subsystems
can still be silenced or traced on their own.

Two modes:
- Default: WARNING level only (clamped model parameters, failed sweep points)
- Tracing: DEBUG level, every record flushed and tagged with its subsystem

Usage:
    from circuitsim.logging import enable_performance_logging, get_logger

    logger = get_logger("dc")
    logger.warning("This will show")
    logger.debug("This won't show")

    enable_performance_logging()
    logger.debug("Now this shows as '[dc] ...' and flushes immediately")
"""

import logging
import sys
from typing import Optional, TextIO

ROOT_NAME = "circuitsim"
TRACE_FORMAT = "[%(subsystem)s] %(message)s"

logger = logging.getLogger(ROOT_NAME)
logger.setLevel(logging.WARNING)

if not logger.handlers:
    _default_handler = logging.StreamHandler(sys.stdout)
    _default_handler.setLevel(logging.WARNING)
    _default_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_default_handler)


def get_logger(subsystem: Optional[str] = None) -> logging.Logger:
    """Logger for one part of the engine, e.g. ``get_logger("transient")``.

    Children have no handlers or level of their own; they inherit both
    from the ``circuitsim`` logger.
    """
    if not subsystem:
        return logger
    return logger.getChild(subsystem)


class SubsystemFormatter(logging.Formatter):
    """Formatter that exposes the child logger name as ``%(subsystem)s``."""

    def format(self, record):
        name = record.name
        if name.startswith(ROOT_NAME + "."):
            record.subsystem = name[len(ROOT_NAME) + 1:]
        else:
            record.subsystem = "core"
        return super().format(record)


class FlushingHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def enable_performance_logging(stream: Optional[TextIO] = None) -> logging.Handler:
    """Trace Newton iterations, continuation steps and timestep control.

    Replaces the existing handlers with a single flushing handler at DEBUG
    level, writing to ``stream`` (stdout by default). Returns the handler so
    callers can detach it again.
    """
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = FlushingHandler(stream if stream is not None else sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(SubsystemFormatter(TRACE_FORMAT))
    logger.addHandler(handler)
    return handler


def set_log_level(level: int, subsystem: Optional[str] = None):
    """Set the logging level.

    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, etc.
        subsystem: Only change this child logger (e.g. "homotopy"); the
            root handlers are left alone in that case
    """
    if subsystem:
        get_logger(subsystem).setLevel(level)
        return
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

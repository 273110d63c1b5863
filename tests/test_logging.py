"""Tests for the circuitsim logger hierarchy"""

import io
import logging

import pytest

from circuitsim import OP, Circuit, Diode, DiodeModel, Resistor, VoltageSource
from circuitsim.logging import (
    enable_performance_logging,
    get_logger,
    logger,
    set_log_level,
)


@pytest.fixture
def restore_logger():
    """Put the package logger back the way the module configured it"""
    handlers = logger.handlers[:]
    level = logger.level
    handler_levels = [handler.level for handler in handlers]
    yield
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for handler, handler_level in zip(handlers, handler_levels):
        handler.setLevel(handler_level)
        logger.addHandler(handler)
    logger.setLevel(level)
    for name in ("devices", "homotopy"):
        get_logger(name).setLevel(logging.NOTSET)


class TestLoggerHierarchy:
    def test_children_share_the_root(self):
        assert get_logger() is logger
        child = get_logger("transient")
        assert child.name == "circuitsim.transient"
        assert child.parent is logger
        assert not child.handlers

    def test_quiet_by_default(self):
        assert logger.level == logging.WARNING
        assert not get_logger("dc").isEnabledFor(logging.INFO)


class TestPerformanceLogging:
    def test_trace_is_tagged_with_subsystem(self, restore_logger):
        stream = io.StringIO()
        handler = enable_performance_logging(stream)
        assert logger.handlers == [handler]

        circuit = Circuit(
            DiodeModel("DM").set_parameter("m", 0.95),
            VoltageSource("V1", "in", "0", 5.0),
            Resistor("R1", "in", "a", 1e3),
            Diode("D1", "a", "0", "DM"),
        )
        OP("op").run(circuit)

        lines = stream.getvalue().splitlines()
        assert "[devices] DM: grading coefficient too large, limited to 0.9" in lines

    def test_root_messages_are_tagged_core(self, restore_logger):
        stream = io.StringIO()
        enable_performance_logging(stream)
        logger.debug("hello")
        assert stream.getvalue() == "[core] hello\n"

    def test_subsystem_level(self, restore_logger):
        stream = io.StringIO()
        enable_performance_logging(stream)
        set_log_level(logging.ERROR, subsystem="homotopy")

        get_logger("homotopy").info("hidden")
        get_logger("devices").info("shown")
        assert stream.getvalue() == "[devices] shown\n"

    def test_set_log_level_updates_handlers(self, restore_logger):
        enable_performance_logging(io.StringIO())
        set_log_level(logging.ERROR)
        assert logger.level == logging.ERROR
        assert all(handler.level == logging.ERROR for handler in logger.handlers)

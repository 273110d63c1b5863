"""Pytest configuration for circuitsim tests

Handles platform-specific JAX configuration:
- macOS: Forces the CPU backend (Metal has no float64 support)

Uses the pytest_configure hook so the backend is set up before any test
module imports circuitsim.
"""

import os
import sys

import pytest


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    Configures JAX BEFORE any test modules are imported.
    """
    if sys.platform == 'darwin':
        os.environ['JAX_PLATFORMS'] = 'cpu'

    import jax

    # Junction limiting and sweeps need float64
    jax.config.update('jax_enable_x64', True)


@pytest.fixture
def divider():
    """10 V source driving two 1 kOhm resistors in series"""
    from circuitsim import Circuit, Resistor, VoltageSource

    return Circuit(
        VoltageSource("V1", "in", "0", 10.0),
        Resistor("R1", "in", "out", 1e3),
        Resistor("R2", "out", "0", 1e3),
    )


@pytest.fixture
def ccvs_circuit():
    """Current source measured by a 0 V source, amplified by a CCVS of 12 Ohm"""
    from circuitsim import (
        Circuit,
        CurrentControlledVoltageSource,
        CurrentSource,
        VoltageSource,
    )

    return Circuit(
        CurrentSource("I1", "in", "0", 0.0),
        VoltageSource("V1", "in", "0", 0.0),
        CurrentControlledVoltageSource("H1", "out", "0", "V1", 12.0),
    )

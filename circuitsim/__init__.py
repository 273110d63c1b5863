"""circuitsim: SPICE-style circuit simulation engine

Modified nodal analysis with pluggable device behaviors, Newton-Raphson
with gmin/source stepping, adaptive multistep transient integration and
small-signal AC analysis.
"""

import jax

# Junction limiting runs through jax.numpy and needs float64
jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"

from circuitsim.analysis import (  # noqa: E402
    AC,
    DC,
    OP,
    BaseConfiguration,
    DCConfiguration,
    FrequencyConfiguration,
    Gear,
    SweepConfiguration,
    TimeConfiguration,
    Transient,
    Trapezoidal,
    run_parallel,
)
from circuitsim.circuit import Circuit, Component, Entity, Model  # noqa: E402
from circuitsim.devices import *  # noqa: E402,F401,F403
from circuitsim.devices import __all__ as _device_names  # noqa: E402
from circuitsim.errors import (  # noqa: E402
    CircuitError,
    ConfigurationError,
    ConvergenceError,
    SingularMatrixError,
    TimestepTooSmallError,
    TransientTerminatedError,
)
from circuitsim.exports import (  # noqa: E402
    ComplexCurrentExport,
    ComplexVoltageExport,
    RealCurrentExport,
    RealPropertyExport,
    RealVoltageExport,
)
from circuitsim.logging import (  # noqa: E402
    enable_performance_logging,
    get_logger,
    logger,
    set_log_level,
)
from circuitsim.sweeps import DecadeSweep, LinearSweep, ListSweep, OctaveSweep  # noqa: E402

__all__ = [
    "AC",
    "DC",
    "OP",
    "BaseConfiguration",
    "Circuit",
    "CircuitError",
    "Component",
    "ComplexCurrentExport",
    "ComplexVoltageExport",
    "ConfigurationError",
    "ConvergenceError",
    "DCConfiguration",
    "DecadeSweep",
    "Entity",
    "FrequencyConfiguration",
    "Gear",
    "LinearSweep",
    "ListSweep",
    "Model",
    "OctaveSweep",
    "RealCurrentExport",
    "RealPropertyExport",
    "RealVoltageExport",
    "SingularMatrixError",
    "SweepConfiguration",
    "TimeConfiguration",
    "TimestepTooSmallError",
    "Transient",
    "TransientTerminatedError",
    "Trapezoidal",
    "enable_performance_logging",
    "get_logger",
    "logger",
    "run_parallel",
    "set_log_level",
    *_device_names,
]

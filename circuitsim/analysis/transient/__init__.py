"""Transient analysis: integration methods and the time-stepping driver"""

from circuitsim.analysis.transient.gear import Gear
from circuitsim.analysis.transient.history import History
from circuitsim.analysis.transient.integration import (
    Breakpoints,
    IntegrationMethod,
    IntegrationState,
    LocalTruncationError,
    StateDerivative,
    TruncationResult,
    TruncationStrategy,
)
from circuitsim.analysis.transient.simulation import TimeSimulation, Transient, TransientResult
from circuitsim.analysis.transient.trapezoidal import Trapezoidal

__all__ = [
    "Breakpoints",
    "Gear",
    "History",
    "IntegrationMethod",
    "IntegrationState",
    "LocalTruncationError",
    "StateDerivative",
    "TimeSimulation",
    "Transient",
    "TransientResult",
    "Trapezoidal",
    "TruncationResult",
    "TruncationStrategy",
]

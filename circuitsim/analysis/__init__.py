"""Analysis engines for circuitsim

Provides operating point, DC sweep, AC and transient analyses on top of
the shared behavior/equation-store machinery.
"""

from circuitsim.analysis.ac import AC, ACResult, FrequencySimulation
from circuitsim.analysis.batch import run_parallel
from circuitsim.analysis.behaviors import (
    AcceptBehavior,
    Behavior,
    BehaviorRegistry,
    BiasingBehavior,
    ConnectedBehavior,
    FrequencyBehavior,
    TemperatureBehavior,
    TimeBehavior,
)
from circuitsim.analysis.dc import DC, OP, DCResult, OPResult
from circuitsim.analysis.homotopy import HomotopyConfig
from circuitsim.analysis.options import (
    BaseConfiguration,
    DCConfiguration,
    FrequencyConfiguration,
    SweepConfiguration,
    TimeConfiguration,
)
from circuitsim.analysis.simulation import BaseSimulation, Simulation
from circuitsim.analysis.solver import EquationStore
from circuitsim.analysis.state import InitializationMode, SimulationState
from circuitsim.analysis.transient import Gear, Transient, TransientResult, Trapezoidal
from circuitsim.analysis.variables import Variable, VariableKind, VariableSet

__all__ = [
    "AC",
    "ACResult",
    "AcceptBehavior",
    "BaseConfiguration",
    "BaseSimulation",
    "Behavior",
    "BehaviorRegistry",
    "BiasingBehavior",
    "ConnectedBehavior",
    "DC",
    "DCConfiguration",
    "DCResult",
    "EquationStore",
    "FrequencyBehavior",
    "FrequencyConfiguration",
    "FrequencySimulation",
    "Gear",
    "HomotopyConfig",
    "InitializationMode",
    "OP",
    "OPResult",
    "Simulation",
    "SimulationState",
    "SweepConfiguration",
    "TemperatureBehavior",
    "TimeBehavior",
    "TimeConfiguration",
    "Transient",
    "TransientResult",
    "Trapezoidal",
    "Variable",
    "VariableKind",
    "VariableSet",
    "run_parallel",
]

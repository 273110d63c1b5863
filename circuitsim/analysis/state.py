"""Simulation state shared between an analysis and its behaviors

Holds the current and previous Newton solutions, the initialization mode
that drives junction device initialization, and the continuation knobs
(gmin, source factor) manipulated by the homotopy strategies.
"""

from enum import Enum
from typing import Optional

import numpy as np

from circuitsim.analysis.solver import EquationStore
from circuitsim.config import DEFAULT_TEMPERATURE_K, REFERENCE_TEMPERATURE


class InitializationMode(Enum):
    """How nonlinear devices pick their operating point in an iteration

    JUNCTION: ignore the solution and use critical junction voltages
    FIX: devices marked 'off' are held off, others follow the solution
    NONE: everything follows the solution
    """
    NONE = 'none'
    JUNCTION = 'junction'
    FIX = 'fix'


class SimulationState:
    """Real-valued state for DC and transient analyses"""

    def __init__(self, sparse: Optional[bool] = None):
        self.solver = EquationStore(np.float64, sparse=sparse)
        self.solution: Optional[np.ndarray] = None
        self.old_solution: Optional[np.ndarray] = None
        self.init = InitializationMode.NONE
        self.use_dc = True
        self.use_ic = False
        self.is_convergent = True
        self.source_factor = 1.0
        self.gmin = 1e-12
        self.diagonal_gmin = 0.0
        self.temperature = DEFAULT_TEMPERATURE_K
        self.nominal_temperature = REFERENCE_TEMPERATURE

    def setup(self, count: int) -> None:
        """Allocate solution buffers for ``count`` variables (ground included)."""
        self.solver.finalize(count)
        self.solution = np.zeros(count)
        self.old_solution = np.zeros(count)

    def store_solution(self) -> None:
        """Swap buffers: the current solution becomes the previous one."""
        self.solution, self.old_solution = self.old_solution, self.solution

    def unsetup(self) -> None:
        self.solution = None
        self.old_solution = None


class ComplexSimulationState:
    """Complex-valued state for small-signal frequency analysis"""

    def __init__(self, sparse: Optional[bool] = None):
        self.solver = EquationStore(np.complex128, sparse=sparse)
        self.solution: Optional[np.ndarray] = None
        self.laplace = 0j

    def setup(self, count: int) -> None:
        self.solver.finalize(count)
        self.solution = np.zeros(count, dtype=np.complex128)

    def unsetup(self) -> None:
        self.solution = None

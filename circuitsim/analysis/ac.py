"""Small-signal (AC) frequency analysis

The circuit is linearized around its DC operating point; then, for every
frequency, the complex system is assembled from the frequency behaviors
with s = j*2*pi*f and solved once.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from circuitsim.analysis.behaviors import (
    BehaviorRegistry,
    BiasingBehavior,
    FrequencyBehavior,
    TemperatureBehavior,
)
from circuitsim.analysis.options import BaseConfiguration, FrequencyConfiguration
from circuitsim.analysis.simulation import BaseSimulation
from circuitsim.analysis.state import ComplexSimulationState
from circuitsim.analysis.statistics import Statistics
from circuitsim.errors import ConfigurationError


@dataclass
class ACResult:
    """Complex exported values at every frequency

    Attributes:
        frequencies: Analysis frequencies (Hz)
        values: Export name -> complex values at ``frequencies``
        operating_point: DC solution the circuit was linearized around
        statistics: Counters of the run
    """
    frequencies: np.ndarray
    values: Dict[str, np.ndarray]
    operating_point: Optional[np.ndarray] = None
    statistics: Statistics = field(default_factory=Statistics)


class FrequencySimulation(BaseSimulation):
    """Biasing system plus the complex small-signal system"""

    behavior_types = (TemperatureBehavior, BiasingBehavior, FrequencyBehavior)

    def __init__(self, name: str, configuration: Optional[BaseConfiguration] = None,
                 registry: Optional[BehaviorRegistry] = None):
        super().__init__(name, configuration, registry)
        self.complex_state: Optional[ComplexSimulationState] = None

    def setup_behaviors(self) -> None:
        super().setup_behaviors()
        self.complex_state = ComplexSimulationState(sparse=self.configuration.sparse)
        self.frequency_behaviors = self.behaviors.of_type(FrequencyBehavior)
        for behavior in self.frequency_behaviors:
            behavior.allocate_frequency(self.variables, self.complex_state.solver)
        self.complex_state.setup(self.variables.count)

    def unsetup(self) -> None:
        super().unsetup()
        if self.complex_state is not None:
            self.complex_state.unsetup()

    def initialize_parameters(self) -> None:
        for behavior in self.frequency_behaviors:
            behavior.initialize_parameters(self)

    def solve_frequency(self, frequency: float) -> np.ndarray:
        """Assemble and solve the small-signal system at ``frequency`` Hz."""
        cstate = self.complex_state
        cstate.laplace = complex(0.0, 2.0 * math.pi * frequency)
        with self.statistics.timed('load_time'):
            cstate.solver.clear()
            for behavior in self.frequency_behaviors:
                behavior.load_frequency(self)
        with self.statistics.timed('solve_time'):
            return cstate.solver.solve(cstate.solution)


class AC(FrequencySimulation):
    """Frequency sweep around the operating point

    Args:
        name: Analysis name
        frequencies: A :class:`~circuitsim.sweeps.Sweep`, any iterable of
            frequencies in Hz, or a FrequencyConfiguration
        configuration: Newton-Raphson options for the operating point
        registry: Entity -> behavior table

    Example:
        >>> ac = AC("ac", DecadeSweep(1.0, 1e6, 10))
        >>> result = ac.run(circuit, [ComplexVoltageExport("out")])
    """

    def __init__(self, name: str, frequencies=None,
                 configuration: Optional[BaseConfiguration] = None,
                 registry: Optional[BehaviorRegistry] = None):
        super().__init__(name, configuration, registry)
        if isinstance(frequencies, FrequencyConfiguration):
            frequencies = frequencies.frequencies
        self.frequencies = frequencies
        self._points: List[float] = []

    def execute(self) -> None:
        if self.frequencies is None:
            raise ConfigurationError(f"{self.name}: no frequencies specified")
        frequencies = np.asarray(list(self.frequencies), dtype=np.float64)
        if np.any(frequencies < 0):
            raise ConfigurationError(f"{self.name}: frequencies cannot be negative")

        self.temperature()
        self.op(self.configuration.dc_max_iterations)
        self.operating_point = self.state.solution.copy()
        self.initialize_parameters()

        self._points = []
        for frequency in frequencies:
            self.solve_frequency(float(frequency))
            self._points.append(float(frequency))
            self.record_exports()

    def result(self) -> ACResult:
        return ACResult(
            frequencies=np.array(self._points),
            values={name: np.array(values, dtype=np.complex128)
                    for name, values in self.export_values.items()},
            operating_point=self.operating_point,
            statistics=self.statistics,
        )

"""Operating point and DC sweep analyses

OP solves the biasing system once. DC repeats that for every combination
of values of one or more swept independent sources; each point starts from
the solution of the previous one and falls back to a full operating point
search (with continuation) when that fails.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from circuitsim.analysis.behaviors import BehaviorRegistry, BiasingBehavior
from circuitsim.analysis.options import BaseConfiguration, DCConfiguration, SweepConfiguration
from circuitsim.analysis.simulation import BaseSimulation
from circuitsim.analysis.statistics import Statistics
from circuitsim.errors import ConfigurationError, ConvergenceError
from circuitsim.logging import get_logger

logger = get_logger("dc")


@dataclass
class OPResult:
    """Operating point

    Attributes:
        values: Export name -> value
        solution: Variable name -> value for every unknown (ground excluded)
        statistics: Counters of the run
    """
    values: Dict[str, float]
    solution: Dict[str, float]
    statistics: Statistics = field(default_factory=Statistics)


class OP(BaseSimulation):
    """DC operating point analysis"""

    def execute(self) -> None:
        self.temperature()
        self.op(self.configuration.dc_max_iterations)
        self.operating_point = self.state.solution.copy()
        self.record_exports()

    def result(self) -> OPResult:
        solution = {
            v.name: float(self.operating_point[v.index])
            for v in self.variables if v.index > 0
        }
        values = {name: values[-1] for name, values in self.export_values.items()}
        return OPResult(values=values, solution=solution, statistics=self.statistics)


@dataclass
class DCResult:
    """Exported values over a (possibly nested) DC sweep

    Attributes:
        sweeps: Swept source name -> its value at every point
        values: Export name -> value at every point (NaN where the point
            did not converge)
        failed_points: Source values of the points that did not converge
        statistics: Counters of the run
    """
    sweeps: Dict[str, np.ndarray]
    values: Dict[str, np.ndarray]
    failed_points: List[Tuple[float, ...]] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)


class DC(BaseSimulation):
    """DC sweep of independent sources

    Args:
        name: Analysis name
        sweeps: Swept sources, outermost first, or a :class:`DCConfiguration`
        configuration: Newton-Raphson options
        registry: Entity -> behavior table

    Example:
        >>> dc = DC("dc", [SweepConfiguration("V1", 0.0, 5.0, 0.1)])
        >>> result = dc.run(circuit, [RealVoltageExport("out")])
    """

    def __init__(
        self,
        name: str,
        sweeps: Union[DCConfiguration, Sequence[SweepConfiguration]] = (),
        configuration: Optional[BaseConfiguration] = None,
        registry: Optional[BehaviorRegistry] = None,
    ):
        super().__init__(name, configuration, registry)
        if not isinstance(sweeps, DCConfiguration):
            sweeps = DCConfiguration(list(sweeps))
        self.dc_configuration = sweeps
        self.sweeps = list(sweeps.sweeps)
        self.points: List[Tuple[float, ...]] = []
        self.failed_points: List[Tuple[float, ...]] = []

    def _sources(self) -> List[BiasingBehavior]:
        sources = []
        for sweep in self.sweeps:
            behavior = self.behaviors.get(sweep.source, BiasingBehavior)
            if not hasattr(behavior, 'dc_value'):
                raise ConfigurationError(
                    f"{self.name}: '{sweep.source}' is not an independent source"
                )
            sources.append(behavior)
        return sources

    def execute(self) -> None:
        self.dc_configuration.validate()
        cfg = self.configuration
        sweep_max_iterations = self.dc_configuration.sweep_max_iterations
        if sweep_max_iterations is None:
            sweep_max_iterations = cfg.sweep_max_iterations
        sources = self._sources()
        originals = [source.dc_value for source in sources]
        grids = [sweep.points() for sweep in self.sweeps]

        self.points = []
        self.failed_points = []
        self.temperature()
        previous_ok = False
        try:
            for point in itertools.product(*grids):
                for source, value in zip(sources, point):
                    source.dc_value = value
                self.points.append(point)
                try:
                    if not (previous_ok and self.try_iterate(sweep_max_iterations)):
                        self.op(cfg.dc_max_iterations)
                except ConvergenceError as e:
                    logger.warning(f"{self.name}: no convergence at {point}: {e}")
                    self.failed_points.append(point)
                    for export in self.exports:
                        self.export_values[export.name].append(np.nan)
                    self.state.solution.fill(0.0)
                    previous_ok = False
                    continue
                previous_ok = True
                self.record_exports()
        finally:
            for source, value in zip(sources, originals):
                source.dc_value = value

    def result(self) -> DCResult:
        points = np.array(self.points, dtype=float).reshape(len(self.points), len(self.sweeps))
        sweeps = {sweep.source: points[:, i] for i, sweep in enumerate(self.sweeps)}
        return DCResult(
            sweeps=sweeps,
            values={name: np.array(values) for name, values in self.export_values.items()},
            failed_points=list(self.failed_points),
            statistics=self.statistics,
        )

"""Transient analysis

``TimeSimulation`` adds the integration method and the time behaviors to
the biasing system. ``Transient`` drives it over time, either to
completion with :meth:`Transient.run` or one accepted timepoint at a time:

    sim = Transient("tran", TimeConfiguration(step=1e-6, final_time=1e-3))
    sim.start(circuit, [RealVoltageExport("out")])
    while sim.do_tick():
        print(sim.time, sim.exports[0].value)
    result = sim.finish()
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from circuitsim.analysis.behaviors import (
    AcceptBehavior,
    BehaviorRegistry,
    BiasingBehavior,
    TemperatureBehavior,
    TimeBehavior,
)
from circuitsim.analysis.options import BaseConfiguration, TimeConfiguration
from circuitsim.analysis.simulation import BaseSimulation
from circuitsim.analysis.state import InitializationMode
from circuitsim.analysis.statistics import Statistics
from circuitsim.errors import CircuitError, TransientTerminatedError
from circuitsim.logging import get_logger

logger = get_logger("transient")


@dataclass
class TransientResult:
    """Exported values at every recorded timepoint

    Attributes:
        time: Recorded timepoints (s)
        values: Export name -> values at ``time``
        operating_point: Solution at t=0
        statistics: Counters of the run
    """
    time: np.ndarray
    values: Dict[str, np.ndarray]
    operating_point: Optional[np.ndarray] = None
    statistics: Statistics = field(default_factory=Statistics)


class TimeSimulation(BaseSimulation):
    """Biasing system extended with charge storage and an integration method"""

    behavior_types = (TemperatureBehavior, BiasingBehavior, TimeBehavior, AcceptBehavior)

    def __init__(
        self,
        name: str,
        time_configuration: Optional[TimeConfiguration] = None,
        configuration: Optional[BaseConfiguration] = None,
        registry: Optional[BehaviorRegistry] = None,
    ):
        super().__init__(name, configuration, registry)
        self.time_configuration = time_configuration or TimeConfiguration()
        self.method = None

    def setup(self, circuit, exports: Sequence = ()) -> None:
        self.time_configuration.validate()
        # Behaviors pick up the method during their own setup
        self.method = self.time_configuration.method_factory()
        super().setup(circuit, exports)

    def allocate(self) -> None:
        self.time_behaviors = self.behaviors.of_type(TimeBehavior)
        self.accept_behaviors = self.behaviors.of_type(AcceptBehavior)
        for behavior in self.time_behaviors:
            behavior.allocate_transient(self.variables, self.state.solver)

    def setup_behaviors(self) -> None:
        super().setup_behaviors()
        for behavior in self.time_behaviors:
            behavior.create_states(self.method)
        self.method.setup(self)

    def unsetup(self) -> None:
        super().unsetup()
        if self.method is not None:
            self.method.unsetup()

    def load_behaviors(self) -> None:
        super().load_behaviors()
        if not self.state.use_dc:
            for behavior in self.time_behaviors:
                behavior.load_transient(self)

    @property
    def time(self) -> float:
        return self.method.time


class Transient(TimeSimulation):
    """Time-domain analysis from t=0 to the final time

    Errors escaping the driver are raised as
    :class:`~circuitsim.errors.TransientTerminatedError` chained to the
    original error.
    """

    def __init__(self, name: str, time_configuration: Optional[TimeConfiguration] = None,
                 configuration: Optional[BaseConfiguration] = None,
                 registry: Optional[BehaviorRegistry] = None):
        super().__init__(name, time_configuration, configuration, registry)
        self.times: List[float] = []

    def execute(self) -> None:
        self._initialize()
        while self.do_tick():
            pass

    def start(self, circuit, exports: Sequence = ()) -> None:
        """Set up and compute the initial point; continue with :meth:`do_tick`."""
        self.setup(circuit, exports)
        try:
            self._initialize()
        except BaseException:
            self.unsetup()
            raise

    def finish(self) -> TransientResult:
        """Collect the result of a step-by-step run and release the behaviors."""
        try:
            return self.result()
        finally:
            self.unsetup()

    @property
    def finished(self) -> bool:
        return self.method.time >= self.time_configuration.final_time

    def _initialize(self) -> None:
        try:
            self._initial_point()
        except CircuitError as e:
            raise TransientTerminatedError(f"{self.name}: transient terminated") from e

    def _initial_point(self) -> None:
        cfg = self.time_configuration
        state = self.state
        self.times = []
        self.temperature()

        state.use_dc = True
        state.solution.fill(0.0)
        for node, voltage in cfg.initial_conditions.items():
            state.solution[self.variables[node].index] = voltage

        if cfg.use_ic:
            state.use_ic = True
            state.init = InitializationMode.NONE
            # Devices evaluate their operating values at the initial conditions
            self.load()
        else:
            self.op(self.configuration.dc_max_iterations)
        self.operating_point = state.solution.copy()

        method = self.method
        method.initialize(min(cfg.final_time / 50.0, cfg.step) / 10.0)
        for behavior in self.time_behaviors:
            behavior.initialize_states(self)
        method.initialize_states()

        state.use_dc = False
        state.use_ic = False
        state.init = InitializationMode.NONE
        self._accept()

    def _accept(self) -> None:
        self.method.accept()
        for behavior in self.accept_behaviors:
            behavior.accept(self)
        self.statistics.accepted += 1
        if self.method.time >= self.time_configuration.init_time:
            self.times.append(self.method.time)
            self.record_exports()

    def do_tick(self) -> bool:
        """Advance to the next accepted timepoint.

        Returns:
            False once the final time has been reached, True otherwise

        Raises:
            TransientTerminatedError: If the timestep became too small or
                another error aborted the analysis
        """
        if self.finished:
            return False
        try:
            self._advance()
        except CircuitError as e:
            raise TransientTerminatedError(f"{self.name}: transient terminated") from e
        return True

    def _advance(self) -> None:
        cfg = self.time_configuration
        method = self.method
        statistics = self.statistics
        method.continue_()
        while True:
            method.probe()
            statistics.time_points += 1
            self.state.init = InitializationMode.NONE
            converged = self.try_iterate(cfg.tran_max_iterations)
            statistics.transient_iterations += self.last_iterations
            if not converged:
                statistics.rejected += 1
                method.non_convergence()
                continue
            if method.evaluate():
                break
            statistics.rejected += 1
        self._accept()
        logger.debug(f"{self.name}: t={method.time:.6g} accepted, order {method.order}")

    def result(self) -> TransientResult:
        return TransientResult(
            time=np.array(self.times),
            values={name: np.array(values) for name, values in self.export_values.items()},
            operating_point=self.operating_point,
            statistics=self.statistics,
        )

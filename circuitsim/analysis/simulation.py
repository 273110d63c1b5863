"""Simulation base classes and the Newton-Raphson engine

``Simulation`` owns the life cycle shared by every analysis: behaviors are
created from the circuit, the analysis is executed and exports are
collected. ``BaseSimulation`` adds the real-valued MNA system and the
Newton-Raphson loop with its continuation fallbacks.

A simulation instance owns all of its mutable state. Running two
simulations concurrently is safe as long as each has its own instance.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np

from circuitsim.analysis.behaviors import (
    BehaviorPool,
    BehaviorRegistry,
    BiasingBehavior,
    TemperatureBehavior,
)
from circuitsim.analysis.homotopy import run_homotopy_chain
from circuitsim.analysis.options import BaseConfiguration
from circuitsim.analysis.state import InitializationMode, SimulationState
from circuitsim.analysis.statistics import Statistics
from circuitsim.analysis.variables import VariableKind, VariableSet
from circuitsim.errors import ConfigurationError, ConvergenceError, SingularMatrixError
from circuitsim.logging import get_logger

logger = get_logger("simulation")


class Simulation:
    """Base class of all analyses

    Subclasses list the behavior capabilities they need in
    ``behavior_types`` and implement :meth:`execute`.
    """

    behavior_types: tuple = ()

    def __init__(
        self,
        name: str,
        configuration: Optional[BaseConfiguration] = None,
        registry: Optional[BehaviorRegistry] = None,
    ):
        self.name = name
        self.configuration = configuration or BaseConfiguration()
        self.registry = registry
        self.statistics = Statistics()
        self.variables: Optional[VariableSet] = None
        self.behaviors: Optional[BehaviorPool] = None
        self.circuit = None
        self.exports: List = []
        self.export_values: Dict[str, List] = {}

    def setup(self, circuit, exports: Sequence = ()) -> None:
        """Create behaviors for ``circuit`` and bind ``exports``."""
        self.configuration.validate()
        self.statistics.reset()
        registry = self.registry
        if registry is None:
            from circuitsim.devices.registry import DEFAULT_REGISTRY
            registry = DEFAULT_REGISTRY

        self.circuit = circuit
        self.variables = VariableSet()
        self.behaviors = BehaviorPool(self, circuit, registry, self.behavior_types)
        self.behaviors.create_all()
        self.setup_behaviors()

        self.exports = list(exports)
        self.export_values = {}
        for export in self.exports:
            export.bind(self)
            if export.name in self.export_values:
                raise ConfigurationError(f"Duplicate export name '{export.name}'")
            self.export_values[export.name] = []

    def setup_behaviors(self) -> None:
        """Allocate the analysis data structures once all behaviors exist."""

    def execute(self) -> None:
        raise NotImplementedError

    def unsetup(self) -> None:
        for behavior in self.behaviors.ordered:
            behavior.unsetup(self)

    def record_exports(self) -> None:
        for export in self.exports:
            self.export_values[export.name].append(export.value)

    def run(self, circuit, exports: Sequence = ()):
        """Set up, execute and tear down; returns the analysis result."""
        self.setup(circuit, exports)
        try:
            self.execute()
            return self.result()
        finally:
            self.unsetup()

    def result(self):
        raise NotImplementedError


class BaseSimulation(Simulation):
    """Simulation of the real-valued (biasing) system"""

    behavior_types = (TemperatureBehavior, BiasingBehavior)

    def __init__(self, name: str, configuration: Optional[BaseConfiguration] = None,
                 registry: Optional[BehaviorRegistry] = None):
        super().__init__(name, configuration, registry)
        self.state: Optional[SimulationState] = None
        self.last_iterations = 0
        self.operating_point: Optional[np.ndarray] = None

    def setup_behaviors(self) -> None:
        cfg = self.configuration
        self.state = SimulationState(sparse=cfg.sparse)
        self.state.gmin = cfg.gmin
        self.state.temperature = cfg.temperature
        self.state.nominal_temperature = cfg.nominal_temperature

        self.temperature_behaviors = self.behaviors.of_type(TemperatureBehavior)
        self.biasing_behaviors = self.behaviors.of_type(BiasingBehavior)
        for behavior in self.biasing_behaviors:
            behavior.allocate(self.variables, self.state.solver)
        self.allocate()

        self.state.setup(self.variables.count)
        self._abstol = np.array([
            cfg.voltage_tol if v.kind is VariableKind.VOLTAGE else cfg.abstol
            for v in self.variables
        ])[1:]
        self._uses_junctions = any(
            getattr(b, 'uses_junction_init', False) for b in self.biasing_behaviors
        )

    def allocate(self) -> None:
        """Hook for subclasses reserving extra equation slots."""

    def unsetup(self) -> None:
        super().unsetup()
        if self.state is not None:
            self.state.unsetup()

    def initial_mode(self) -> InitializationMode:
        """Junction initialization is only needed when junction devices exist."""
        if self._uses_junctions:
            return InitializationMode.JUNCTION
        return InitializationMode.NONE

    def temperature(self) -> None:
        for behavior in self.temperature_behaviors:
            behavior.temperature(self)

    def load(self) -> None:
        """Clear the equation store and let every behavior contribute."""
        state = self.state
        with self.statistics.timed('load_time'):
            state.solver.clear()
            self.load_behaviors()
            state.solver.apply_diagonal_gmin(state.diagonal_gmin)

    def load_behaviors(self) -> None:
        for behavior in self.biasing_behaviors:
            behavior.load(self)

    def is_convergent(self) -> bool:
        """Check node tolerances, then ask every biasing behavior."""
        state = self.state
        reltol = self.configuration.reltol
        new = state.solution[1:]
        old = state.old_solution[1:]
        tolerance = reltol * np.maximum(np.abs(new), np.abs(old)) + self._abstol
        if np.any(np.abs(new - old) > tolerance):
            return False
        for behavior in self.biasing_behaviors:
            if not behavior.is_convergent(self):
                return False
        return True

    def iterate(self, max_iterations: int) -> bool:
        """Run Newton-Raphson from the current solution.

        The initialization mode advances JUNCTION -> FIX -> NONE; convergence
        is only accepted once the mode is NONE.

        Returns:
            True if converged within ``max_iterations`` iterations

        Raises:
            SingularMatrixError: If the linear system cannot be solved
        """
        state = self.state
        iteration = 0
        while True:
            state.is_convergent = True
            self.load()
            iteration += 1
            self.last_iterations = iteration
            self.statistics.iterations += 1

            state.store_solution()
            with self.statistics.timed('solve_time'):
                state.solver.solve(state.solution)

            converged = state.is_convergent and self.is_convergent()
            # Time behaviors evaluated their charges at the pre-solve estimate
            if iteration == 1 and not state.use_dc:
                converged = False

            if state.init is InitializationMode.JUNCTION:
                state.init = InitializationMode.FIX
            elif state.init is InitializationMode.FIX:
                if converged:
                    state.init = InitializationMode.NONE
            elif converged:
                return True

            if iteration >= max_iterations:
                logger.debug(f"{self.name}: no convergence after {iteration} iterations")
                return False

    def try_iterate(self, max_iterations: int) -> bool:
        """Like :meth:`iterate`, but a singular matrix counts as non-convergence."""
        try:
            return self.iterate(max_iterations)
        except SingularMatrixError as e:
            logger.debug(f"{self.name}: {e}")
            self._last_error = e
            return False

    def op(self, max_iterations: int) -> None:
        """Find the operating point, falling back to the homotopy chain.

        Raises:
            ConvergenceError: If Newton-Raphson and all continuation
                strategies fail
        """
        state = self.state
        cfg = self.configuration
        state.gmin = cfg.gmin
        state.diagonal_gmin = 0.0
        state.source_factor = 1.0
        state.init = self.initial_mode()
        self._last_error = None

        guess = state.solution.copy()
        if self.try_iterate(max_iterations):
            return

        logger.info(f"{self.name}: Newton-Raphson failed, trying continuation")
        state.solution[:] = guess
        result = run_homotopy_chain(self, max_iterations, cfg.homotopy)
        if not result.converged:
            raise ConvergenceError(
                f"{self.name}: operating point did not converge",
                iterations=result.iterations,
            ) from self._last_error
        logger.info(f"{self.name}: converged using {result.method}")

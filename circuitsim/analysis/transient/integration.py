"""Multistep integration framework for transient analysis

The integration method owns the history of accepted timepoints and turns
the charges (or fluxes) registered by the time behaviors into companion
models. A transient run drives it through this cycle:

    initialize -> [probe -> Newton -> evaluate | non_convergence]* -> accept -> continue_

Timestep control is delegated to a truncation strategy: a callable that
receives the method and returns a :class:`TruncationResult`. The default,
:class:`LocalTruncationError`, estimates the local truncation error from
divided differences of the state history (SPICE ``CKTterr``).

Reference: SPICE3 source code, src/lib/ckt/cktterr.c, src/lib/ckt/dctran.c
"""

import bisect
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

import numpy as np

from circuitsim.analysis.transient.history import History
from circuitsim.errors import ConfigurationError, TimestepTooSmallError
from circuitsim.logging import get_logger

if TYPE_CHECKING:
    from circuitsim.analysis.transient.simulation import TimeSimulation

logger = get_logger("transient")


@dataclass
class IntegrationState:
    """One point of the integration history

    Attributes:
        delta: Timestep that led to this point
        solution: Solution vector at this point
        states: Values of all registered states; each state derivative
            owns two consecutive entries (value, derivative)
    """
    delta: float
    solution: np.ndarray
    states: np.ndarray


class StateDerivative:
    """A charge-like quantity whose time derivative the method approximates

    A time behavior sets :attr:`current` to the value at the present
    solution estimate, calls :meth:`integrate` and stamps the companion
    model given by :meth:`jacobian` and :meth:`rhs_current`.
    """

    def __init__(self, method: "IntegrationMethod", index: int):
        self._method = method
        self.index = index

    @property
    def current(self) -> float:
        return self._method.history[0].states[self.index]

    @current.setter
    def current(self, value: float) -> None:
        self._method.history[0].states[self.index] = value

    @property
    def derivative(self) -> float:
        return self._method.history[0].states[self.index + 1]

    def value(self, index: int) -> float:
        """Value ``index`` points back in the history."""
        return self._method.history[index].states[self.index]

    def integrate(self) -> None:
        self._method.integrate(self.index)

    def jacobian(self, derivative: float) -> float:
        """Equivalent conductance for a state with d(value)/dx = ``derivative``."""
        return self._method.slope * derivative

    def rhs_current(self, geq: float, value: float) -> float:
        """Equivalent current of the companion model linearized at ``value``.

        The device current is ``geq * x - rhs_current``, so for backward
        Euler with a constant capacitance C this equals C/h * x_prev.
        """
        return geq * value - self.derivative


class Breakpoints:
    """Sorted times the integration must land on exactly

    Points closer than ``resolution`` to an existing one are merged.
    """

    def __init__(self, resolution: float = 0.0):
        self.resolution = resolution
        self._points: List[float] = []

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    @property
    def first(self) -> float:
        return self._points[0] if self._points else math.inf

    def add(self, time: float) -> None:
        position = bisect.bisect_left(self._points, time)
        for neighbor in self._points[max(position - 1, 0):position + 1]:
            if abs(neighbor - time) <= self.resolution:
                return
        self._points.insert(position, time)

    def clear_until(self, time: float) -> None:
        """Drop every breakpoint at or before ``time``."""
        position = bisect.bisect_right(self._points, time + self.resolution)
        del self._points[:position]

    def clear(self) -> None:
        self._points.clear()


@dataclass
class TruncationResult:
    """Decision of a truncation strategy

    Attributes:
        accepted: Whether the probed point is accepted
        delta: Timestep for the next probe
        order: Integration order for the next probe
    """
    accepted: bool
    delta: float
    order: int


TruncationStrategy = Callable[["IntegrationMethod"], TruncationResult]


class LocalTruncationError:
    """Timestep control from the local truncation error of every state

    Args:
        trtol: Overestimation factor of the true truncation error
        chgtol: Charge tolerance (C)
    """

    def __init__(self, trtol: float = 7.0, chgtol: float = 1e-14):
        self.trtol = trtol
        self.chgtol = chgtol

    def estimate(self, method: "IntegrationMethod", order: int) -> float:
        """Largest timestep keeping every tracked state within tolerance at ``order``."""
        history = method.history
        delta = method.delta
        factor = method.error_coefficients[order - 1]
        reltol, abstol = method.reltol, method.abstol
        timestep = math.inf
        for index in method.tracked:
            s0 = history[0].states
            s1 = history[1].states
            volttol = abstol + reltol * max(abs(s0[index + 1]), abs(s1[index + 1]))
            chargetol = reltol * max(abs(s0[index]), abs(s1[index]), self.chgtol) / delta
            tol = max(volttol, chargetol)

            # Divided differences over order + 2 points
            diff = [history[i].states[index] for i in range(order + 2)]
            deltmp = [history[i].delta for i in range(order + 1)]
            j = order
            while True:
                for i in range(j + 1):
                    diff[i] = (diff[i] - diff[i + 1]) / deltmp[i]
                j -= 1
                if j < 0:
                    break
                for i in range(j + 1):
                    deltmp[i] = deltmp[i + 1] + history[i].delta

            step = self.trtol * tol / max(abstol, factor * abs(diff[0]))
            if order == 2:
                step = math.sqrt(step)
            elif order > 2:
                step = math.exp(math.log(step) / order)
            timestep = min(timestep, step)
        return timestep

    def __call__(self, method: "IntegrationMethod") -> TruncationResult:
        delta = method.delta
        order = method.order
        new_delta = min(2.0 * delta, self.estimate(method, order))
        if new_delta <= 0.9 * delta:
            return TruncationResult(False, new_delta, order)

        # Try one order higher once the history supports it
        if order < method.max_valid_order(extra=1):
            raised = min(2.0 * delta, self.estimate(method, order + 1))
            if raised > 1.05 * delta:
                return TruncationResult(True, raised, order + 1)
        return TruncationResult(True, new_delta, order)


class IntegrationMethod:
    """Base class of the multistep integration methods

    Subclasses set ``error_coefficients`` (per order) and implement
    :meth:`compute_coefficients` and :meth:`integrate`.

    Attributes:
        time: Time of the point being probed (or just accepted)
        base_time: Time of the last accepted point
        delta: Timestep of the point being probed
        next_delta: Timestep proposed for the next probe
        order: Integration order of the point being probed
        ag: Integration coefficients of the current order and timestep
        breakpoints: Times the method must land on
    """

    error_coefficients: Tuple[float, ...] = ()

    def __init__(self, max_order: int, truncation: Optional[TruncationStrategy] = None):
        if max_order < 1:
            raise ConfigurationError(f"Invalid maximum integration order {max_order}")
        self.max_order = max_order
        self.truncation = truncation or LocalTruncationError()
        self.breakpoints = Breakpoints()
        self.history: Optional[History[IntegrationState]] = None
        self.tracked: List[int] = []
        self.ag = np.zeros(max_order + 1)
        self.order = 1
        self.time = 0.0
        self.base_time = 0.0
        self.delta = 0.0
        self.next_delta = 0.0
        self.accepted_count = 0
        self.at_breakpoint = False
        self._state_count = 0
        self._simulation = None

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def create_derivative(self, track: bool = True) -> StateDerivative:
        """Register a state. Tracked states take part in timestep control."""
        if self.history is not None:
            raise ConfigurationError("States must be created before the method is set up")
        derivative = StateDerivative(self, self._state_count)
        if track:
            self.tracked.append(self._state_count)
        self._state_count += 2
        return derivative

    def setup(self, simulation: "TimeSimulation") -> None:
        cfg = simulation.time_configuration
        self._simulation = simulation
        self.reltol = simulation.configuration.reltol
        self.abstol = simulation.configuration.abstol
        self.max_step = cfg.effective_max_step()
        self.min_step = cfg.effective_min_step()
        self.final_time = cfg.final_time
        count = simulation.variables.count
        states = self._state_count
        self.history = History(
            self.max_order + 2,
            lambda _: IntegrationState(0.0, np.zeros(count), np.zeros(states)),
        )
        self.breakpoints = Breakpoints(resolution=self.min_step)

    def unsetup(self) -> None:
        self.history = None
        self.tracked = []
        self._state_count = 0
        self._simulation = None

    # -------------------------------------------------------------------------
    # Life cycle
    # -------------------------------------------------------------------------

    def initialize(self, initial_delta: float) -> None:
        """Start a run at t=0 from the solution in the simulation state."""
        self.time = self.base_time = 0.0
        self.order = 1
        self.accepted_count = 0
        self.at_breakpoint = False
        self.delta = self.max_step
        self.next_delta = min(initial_delta, self.max_step)
        self.breakpoints.clear()
        self.breakpoints.add(self.final_time)
        self.ag.fill(0.0)
        for point in self.history:
            point.delta = self.max_step
            point.states.fill(0.0)
        self.history[0].solution[:] = self._simulation.state.solution

    def initialize_states(self) -> None:
        """Replicate the states seeded by the time behaviors into the whole history."""
        first = self.history[0]
        for index in range(1, len(self.history)):
            point = self.history[index]
            point.states[:] = first.states
            point.solution[:] = first.solution

    def max_valid_order(self, extra: int = 0) -> int:
        """Highest order the accepted history supports."""
        return max(1, min(self.max_order, self.accepted_count - 1 + extra))

    def probe(self) -> None:
        """Set up the next point ``next_delta`` after the last accepted one."""
        delta = min(self.next_delta, self.max_step)
        upcoming = self.breakpoints.first
        if self.base_time + delta >= upcoming - self.min_step:
            delta = upcoming - self.base_time
            self.time = upcoming
            self.at_breakpoint = True
        else:
            self.time = self.base_time + delta
            self.at_breakpoint = False
        self.delta = delta
        self.history[0].delta = delta
        self.order = min(self.order, self.max_valid_order())
        self.compute_coefficients()

    def non_convergence(self) -> None:
        """Shrink the timestep after a failed Newton solve and restore the last accepted solution.

        Raises:
            TimestepTooSmallError: If the new timestep is below the minimum step
        """
        self.next_delta = self.delta / 8.0
        self.order = 1
        self._restore()
        logger.debug(f"t={self.base_time:.6g}: no convergence, timestep cut to {self.next_delta:.3g}")
        if self.next_delta < self.min_step:
            raise TimestepTooSmallError(self.base_time, self.next_delta)

    def evaluate(self) -> bool:
        """Ask the truncation strategy whether the probed point is acceptable.

        Raises:
            TimestepTooSmallError: If a rejection requires a timestep below
                the minimum step
        """
        result = self.truncation(self)
        self.next_delta = result.delta
        self.order = result.order
        if result.accepted:
            return True
        self._restore()
        logger.debug(f"t={self.time:.6g}: timepoint rejected, timestep cut to {result.delta:.3g}")
        if result.delta < self.min_step:
            raise TimestepTooSmallError(self.base_time, result.delta)
        return False

    def _restore(self) -> None:
        self._simulation.state.solution[:] = self.history[1].solution

    def accept(self) -> None:
        """Store the converged solution of the probed point."""
        self.history[0].solution[:] = self._simulation.state.solution
        self.accepted_count += 1
        self.breakpoints.clear_until(self.time)

    def continue_(self) -> None:
        """Make the accepted point the base of the next probe."""
        if self.at_breakpoint:
            # Restart at order 1 with a small step after a discontinuity
            self.order = 1
            gap = self.breakpoints.first - self.time
            self.next_delta = min(self.next_delta, 0.1 * min(self.delta, gap))
            self.next_delta = max(self.next_delta, 2.0 * self.min_step)
        self.base_time = self.time
        self.history.cycle()
        current, previous = self.history[0], self.history[1]
        current.delta = self.next_delta
        current.states[:] = previous.states
        current.solution[:] = previous.solution

    @property
    def slope(self) -> float:
        """d(derivative)/d(value) of the current formula"""
        return self.ag[0]

    # -------------------------------------------------------------------------
    # Method specific
    # -------------------------------------------------------------------------

    def compute_coefficients(self) -> None:
        raise NotImplementedError

    def integrate(self, index: int) -> None:
        """Compute the derivative of state ``index`` at the probed point."""
        raise NotImplementedError

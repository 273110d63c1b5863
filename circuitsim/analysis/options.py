"""Configuration objects for the analyses

Plain dataclasses with SPICE-compatible defaults. A configuration is read
by the simulation during setup and never modified by it, so the same
configuration object can be shared between simulations.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from circuitsim.analysis.homotopy import HomotopyConfig
from circuitsim.config import DEFAULT_TEMPERATURE_K, REFERENCE_TEMPERATURE
from circuitsim.errors import ConfigurationError


@dataclass
class BaseConfiguration:
    """Newton-Raphson and device-level options shared by all analyses

    Attributes:
        gmin: Minimum conductance placed across nonlinear junctions
        reltol: Relative tolerance for convergence checks
        abstol: Absolute current tolerance (A)
        voltage_tol: Absolute voltage tolerance (V)
        dc_max_iterations: Newton iteration cap for an operating point
        sweep_max_iterations: Newton iteration cap for DC sweep points
            that start from the previous point's solution
        homotopy: Continuation strategies tried when plain Newton fails
        temperature: Circuit temperature in Kelvin
        nominal_temperature: Temperature at which model parameters are given
        sparse: Force the sparse/dense linear solver (None = automatic)
    """
    gmin: float = 1e-12
    reltol: float = 1e-3
    abstol: float = 1e-12
    voltage_tol: float = 1e-6
    dc_max_iterations: int = 100
    sweep_max_iterations: int = 20
    homotopy: HomotopyConfig = field(default_factory=HomotopyConfig)
    temperature: float = DEFAULT_TEMPERATURE_K
    nominal_temperature: float = REFERENCE_TEMPERATURE
    sparse: Optional[bool] = None

    def validate(self) -> None:
        if self.reltol <= 0 or self.abstol <= 0 or self.voltage_tol <= 0:
            raise ConfigurationError("Tolerances must be positive")
        if self.dc_max_iterations < 1 or self.sweep_max_iterations < 1:
            raise ConfigurationError("Iteration limits must be at least 1")
        if self.gmin < 0:
            raise ConfigurationError(f"Invalid gmin {self.gmin}")


def _default_method():
    from circuitsim.analysis.transient.trapezoidal import Trapezoidal
    return Trapezoidal()


@dataclass
class TimeConfiguration:
    """Options for transient analysis

    Attributes:
        step: Suggested output step (s)
        final_time: End of the analysis (s)
        init_time: Points before this time are simulated but not exported
        max_step: Largest allowed timestep. Defaults to
            min(step, (final_time - init_time) / 50).
        min_step: Smallest allowed timestep. Defaults to 1e-9 * max_step.
        use_ic: Skip the operating point and start from initial conditions
        tran_max_iterations: Newton iteration cap per timepoint
        method_factory: Creates the integration method for each run
        initial_conditions: Node name -> initial voltage
    """
    step: float = 1e-6
    final_time: float = 1e-3
    init_time: float = 0.0
    max_step: Optional[float] = None
    min_step: Optional[float] = None
    use_ic: bool = False
    tran_max_iterations: int = 10
    method_factory: Callable = _default_method
    initial_conditions: Dict[str, float] = field(default_factory=dict)

    def validate(self) -> None:
        if self.step <= 0:
            raise ConfigurationError(f"Invalid step {self.step}")
        if self.final_time <= 0:
            raise ConfigurationError(f"Invalid final time {self.final_time}")
        if not 0 <= self.init_time < self.final_time:
            raise ConfigurationError(
                f"Invalid initial time {self.init_time} for final time {self.final_time}"
            )
        if self.max_step is not None and self.max_step <= 0:
            raise ConfigurationError(f"Invalid maximum step {self.max_step}")

    def effective_max_step(self) -> float:
        if self.max_step is not None:
            return self.max_step
        return min(self.step, (self.final_time - self.init_time) / 50.0)

    def effective_min_step(self) -> float:
        if self.min_step is not None:
            return self.min_step
        return 1e-9 * self.effective_max_step()


@dataclass
class SweepConfiguration:
    """One swept independent source of a DC analysis"""
    source: str
    start: float
    stop: float
    step: float

    def points(self) -> List[float]:
        if self.step == 0 or (self.stop - self.start) * self.step < 0:
            raise ConfigurationError(
                f"Invalid sweep of '{self.source}': {self.start} to {self.stop} step {self.step}"
            )
        count = int(round((self.stop - self.start) / self.step))
        return [self.start + i * self.step for i in range(count + 1)]


@dataclass
class DCConfiguration:
    """Nested DC sweeps; the first entry is the outermost loop

    Attributes:
        sweeps: Swept sources
        sweep_max_iterations: Newton iteration cap for points warm-started
            from the previous point (None = use the simulation's
            ``BaseConfiguration.sweep_max_iterations``)
    """
    sweeps: List[SweepConfiguration] = field(default_factory=list)
    sweep_max_iterations: Optional[int] = None

    def validate(self) -> None:
        if not self.sweeps:
            raise ConfigurationError("No sweep specified")
        if self.sweep_max_iterations is not None and self.sweep_max_iterations < 1:
            raise ConfigurationError("Iteration limits must be at least 1")


@dataclass
class FrequencyConfiguration:
    """Frequency points of an AC analysis (any iterable of Hz values)"""
    frequencies: object = None

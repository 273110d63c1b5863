"""Exception hierarchy for circuitsim.

Configuration problems are raised while a simulation is being set up and
are never retried. Numerical problems (singular matrices, Newton loops that
run out of iterations) are first handled by the continuation strategies of
the analyses; only when every strategy is exhausted do they escape as one
of the errors below.
"""

from typing import Optional


class CircuitError(Exception):
    """Base class for all structured simulator errors."""


class ConfigurationError(CircuitError):
    """Invalid circuit or simulation setup.

    Raised for pin count mismatches, missing named dependencies (e.g. the
    controlling source of a current-controlled source), unknown nodes or
    entities and nonsensical parameter values.
    """


class SingularMatrixError(CircuitError):
    """The linear system could not be factored or produced a non-finite solution."""

    def __init__(self, message: str, row: Optional[int] = None):
        super().__init__(message)
        self.row = row


class ConvergenceError(CircuitError):
    """The Newton-Raphson loop and all continuation strategies failed."""

    def __init__(self, message: str, iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations


class TimestepTooSmallError(ConvergenceError):
    """Transient analysis had to reduce the timestep below the minimum step."""

    def __init__(self, time: float, delta: float):
        super().__init__(f"Timestep too small at t={time:.6g}s: delta={delta:.3g}s")
        self.time = time
        self.delta = delta


class TransientTerminatedError(CircuitError):
    """A transient analysis was aborted by an unrecoverable error."""

"""Trapezoidal integration (orders 1 and 2)

Order 1 is backward Euler, used on the first step and after every
breakpoint; order 2 is the trapezoidal rule.
"""

from typing import Optional

from circuitsim.analysis.transient.integration import IntegrationMethod, TruncationStrategy


class Trapezoidal(IntegrationMethod):
    """Trapezoidal rule with backward Euler start-up

    Args:
        xmu: Weight of the trapezoidal rule (0.5 is the pure rule)
        truncation: Timestep control strategy
    """

    error_coefficients = (0.5, 0.08333333333)

    def __init__(self, xmu: float = 0.5, truncation: Optional[TruncationStrategy] = None):
        super().__init__(2, truncation)
        self.xmu = xmu

    def compute_coefficients(self) -> None:
        delta = self.delta
        if self.order == 1:
            self.ag[0] = 1.0 / delta
            self.ag[1] = -1.0 / delta
        else:
            self.ag[0] = 1.0 / delta / (1.0 - self.xmu)
            self.ag[1] = self.xmu / (1.0 - self.xmu)

    def integrate(self, index: int) -> None:
        current = self.history[0].states
        previous = self.history[1].states
        if self.order == 1:
            current[index + 1] = self.ag[0] * current[index] + self.ag[1] * previous[index]
        else:
            current[index + 1] = (
                -previous[index + 1] * self.ag[1]
                + self.ag[0] * (current[index] - previous[index])
            )

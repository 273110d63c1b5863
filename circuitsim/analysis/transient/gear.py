"""Gear (backward differentiation) integration, orders 1 to 6"""

from typing import Optional

import numpy as np

from circuitsim.analysis.transient.integration import IntegrationMethod, TruncationStrategy
from circuitsim.errors import ConfigurationError


class Gear(IntegrationMethod):
    """Variable-step BDF

    The coefficients are found by requiring the formula to be exact for
    polynomials up to the current order on the actual (unequal) timesteps
    of the history.
    """

    error_coefficients = (
        0.5,
        0.2222222222,
        0.1363636364,
        0.096,
        0.07299270073,
        0.05830903790,
    )

    def __init__(self, max_order: int = 2, truncation: Optional[TruncationStrategy] = None):
        if not 1 <= max_order <= 6:
            raise ConfigurationError(f"Gear order must be between 1 and 6, got {max_order}")
        super().__init__(max_order, truncation)

    def compute_coefficients(self) -> None:
        order = self.order
        delta = self.delta
        size = order + 1

        matrix = np.zeros((size, size))
        matrix[0, :] = 1.0
        elapsed = 0.0
        for i in range(1, size):
            elapsed += self.history[i - 1].delta
            matrix[1:, i] = (elapsed / delta) ** np.arange(1, size)

        rhs = np.zeros(size)
        rhs[1] = -1.0 / delta
        self.ag.fill(0.0)
        self.ag[:size] = np.linalg.solve(matrix, rhs)

    def integrate(self, index: int) -> None:
        history = self.history
        derivative = 0.0
        for i in range(self.order + 1):
            derivative += self.ag[i] * history[i].states[index]
        history[0].states[index + 1] = derivative

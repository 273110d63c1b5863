"""Equation store for Modified Nodal Analysis

Behaviors reserve matrix and right-hand-side accumulators once, during
setup, and receive integer handles. During every Newton iteration they add
their contributions through those handles; the store then assembles the
system and solves it.

Ground (row or column 0) is not an unknown: every coordinate touching it
maps to a shared sink slot whose value is discarded.

Small systems are solved densely with numpy; larger systems are assembled
in COO format, converted to CSC and factored with scipy's SuperLU.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.linalg import splu

from circuitsim.errors import ConfigurationError, SingularMatrixError

# Handle of the slot absorbing all ground contributions
GROUND_SLOT = 0

# Above this many unknowns the sparse path is used when not configured
DENSE_LIMIT = 64


class EquationStore:
    """Arena of matrix/RHS accumulators addressed by stable integer handles

    Args:
        dtype: np.float64 for DC/transient, np.complex128 for AC
        sparse: Force the sparse (True) or dense (False) solver.
            None picks one from the system size.
    """

    def __init__(self, dtype=np.float64, sparse: Optional[bool] = None):
        self.dtype = np.dtype(dtype)
        self.sparse = sparse
        self._slots: Dict[Tuple[int, int], int] = {}
        self._rows: List[int] = [0]
        self._cols: List[int] = [0]
        self._size = 0
        self._order = 0
        self._finalized = False
        self._values: Optional[np.ndarray] = None
        self._rhs: Optional[np.ndarray] = None

    @property
    def order(self) -> int:
        """Number of equations including the ground row"""
        return self._order

    @property
    def finalized(self) -> bool:
        return self._finalized

    def matrix_slot(self, row: int, col: int) -> int:
        """Reserve (or look up) the accumulator for matrix element (row, col)."""
        if row < 0 or col < 0:
            raise ConfigurationError(f"Invalid matrix coordinate ({row}, {col})")
        if row == 0 or col == 0:
            return GROUND_SLOT
        handle = self._slots.get((row, col))
        if handle is None:
            if self._finalized:
                raise ConfigurationError(
                    f"Cannot allocate matrix element ({row}, {col}) after setup"
                )
            handle = len(self._rows)
            self._slots[(row, col)] = handle
            self._rows.append(row)
            self._cols.append(col)
            self._size = max(self._size, row, col)
        return handle

    def rhs_slot(self, row: int) -> int:
        """Reserve the right-hand-side accumulator of a row.

        The handle is the row index itself; row 0 is the ground sink.
        """
        if row < 0:
            raise ConfigurationError(f"Invalid right-hand side row {row}")
        if row > 0 and self._finalized and row >= self._order:
            raise ConfigurationError(f"Right-hand side row {row} is out of range")
        self._size = max(self._size, row)
        return row

    def finalize(self, order: int) -> None:
        """Lock the structure and allocate storage.

        Args:
            order: Number of variables including ground
        """
        if self._size >= order:
            raise ConfigurationError(
                f"Matrix element in row/column {self._size} exceeds {order - 1} unknowns"
            )
        # Every unknown gets a diagonal element so diagonal gmin can be applied
        self._diagonal = np.array(
            [self.matrix_slot(i, i) for i in range(1, order)], dtype=np.int64
        )
        self._order = order
        self._finalized = True
        self._values = np.zeros(len(self._rows), dtype=self.dtype)
        self._rhs = np.zeros(order, dtype=self.dtype)
        self._row_index = np.array(self._rows[1:], dtype=np.int64) - 1
        self._col_index = np.array(self._cols[1:], dtype=np.int64) - 1
        if self.sparse is None:
            self.sparse = order - 1 > DENSE_LIMIT

    def add_matrix(self, handle: int, value) -> None:
        self._values[handle] += value

    def add_rhs(self, handle: int, value) -> None:
        self._rhs[handle] += value

    def clear(self) -> None:
        """Zero all accumulators before a new load."""
        self._values.fill(0)
        self._rhs.fill(0)

    def apply_diagonal_gmin(self, gmin: float) -> None:
        """Add a conductance from every unknown to ground."""
        if gmin > 0:
            self._values[self._diagonal] += gmin

    def element(self, row: int, col: int):
        """Current value of a matrix element (0 if never allocated)."""
        handle = self._slots.get((row, col))
        return self.dtype.type(0) if handle is None else self._values[handle]

    def rhs(self, row: int):
        return self._rhs[row]

    def matrix(self) -> np.ndarray:
        """Dense copy of the system matrix without the ground row/column."""
        n = self._order - 1
        A = np.zeros((n, n), dtype=self.dtype)
        A[self._row_index, self._col_index] = self._values[1:]
        return A

    def solve(self, out: np.ndarray) -> np.ndarray:
        """Solve the assembled system into ``out`` (ground entry set to 0).

        Raises:
            SingularMatrixError: If the matrix cannot be factored or the
                solution is not finite.
        """
        n = self._order - 1
        out[0] = 0
        if n == 0:
            return out
        b = self._rhs[1:]
        if self.sparse:
            A = coo_matrix(
                (self._values[1:], (self._row_index, self._col_index)), shape=(n, n)
            ).tocsc()
            try:
                x = splu(A).solve(b)
            except RuntimeError as e:
                raise SingularMatrixError(f"Matrix factorization failed: {e}") from e
        else:
            try:
                x = np.linalg.solve(self.matrix(), b)
            except np.linalg.LinAlgError as e:
                raise SingularMatrixError(f"Matrix factorization failed: {e}") from e

        finite = np.isfinite(x)
        if not np.all(finite):
            row = int(np.argmin(finite)) + 1
            raise SingularMatrixError(f"Solution is not finite in row {row}", row=row)
        out[1:] = x
        return out

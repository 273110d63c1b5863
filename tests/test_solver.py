"""Tests for the equation store and the simulation state"""

import numpy as np
import pytest

from circuitsim.analysis.solver import GROUND_SLOT, EquationStore
from circuitsim.analysis.state import ComplexSimulationState, SimulationState
from circuitsim.errors import ConfigurationError, SingularMatrixError


def _divider_store(sparse):
    """Two 1k resistors in series with a 1 mA source into node 1"""
    store = EquationStore(np.float64, sparse=sparse)
    g = 1e-3
    h11 = store.matrix_slot(1, 1)
    h12 = store.matrix_slot(1, 2)
    h21 = store.matrix_slot(2, 1)
    h22 = store.matrix_slot(2, 2)
    r1 = store.rhs_slot(1)
    store.finalize(3)
    store.add_matrix(h11, g)
    store.add_matrix(h12, -g)
    store.add_matrix(h21, -g)
    store.add_matrix(h22, 2 * g)
    store.add_rhs(r1, 1e-3)
    return store


class TestEquationStore:
    """Slot reservation, accumulation and solving"""

    @pytest.mark.parametrize("sparse", [False, True])
    def test_solve(self, sparse):
        store = _divider_store(sparse)
        solution = np.zeros(3)
        store.solve(solution)
        np.testing.assert_allclose(solution, [0.0, 2.0, 1.0])

    def test_same_coordinate_same_handle(self):
        store = EquationStore()
        assert store.matrix_slot(1, 2) == store.matrix_slot(1, 2)
        assert store.matrix_slot(1, 2) != store.matrix_slot(2, 1)

    def test_ground_goes_to_sink(self):
        store = EquationStore()
        assert store.matrix_slot(0, 1) == GROUND_SLOT
        assert store.matrix_slot(1, 0) == GROUND_SLOT
        assert store.rhs_slot(0) == 0
        slot = store.matrix_slot(1, 1)
        store.finalize(2)
        store.add_matrix(GROUND_SLOT, 123.0)
        store.add_matrix(slot, 1.0)
        store.add_rhs(0, 55.0)
        store.add_rhs(1, 2.0)
        solution = np.zeros(2)
        store.solve(solution)
        assert solution[1] == pytest.approx(2.0)
        assert solution[0] == 0.0

    def test_accumulates_until_cleared(self):
        store = EquationStore()
        slot = store.matrix_slot(1, 1)
        store.finalize(2)
        store.add_matrix(slot, 1.0)
        store.add_matrix(slot, 2.0)
        assert store.element(1, 1) == 3.0
        store.clear()
        assert store.element(1, 1) == 0.0
        assert store.rhs(1) == 0.0

    def test_no_allocation_after_finalize(self):
        store = EquationStore()
        store.matrix_slot(1, 1)
        store.finalize(2)
        with pytest.raises(ConfigurationError):
            store.matrix_slot(1, 2)

    def test_diagonal_gmin(self):
        store = EquationStore()
        store.matrix_slot(1, 2)
        store.finalize(3)
        # Diagonal slots exist even if no behavior reserved them
        store.apply_diagonal_gmin(1e-3)
        assert store.element(1, 1) == pytest.approx(1e-3)
        assert store.element(2, 2) == pytest.approx(1e-3)

    @pytest.mark.parametrize("sparse", [False, True])
    def test_singular(self, sparse):
        store = EquationStore(sparse=sparse)
        store.matrix_slot(1, 1)
        store.finalize(3)
        with pytest.raises(SingularMatrixError):
            store.solve(np.zeros(3))

    def test_complex(self):
        store = EquationStore(np.complex128)
        slot = store.matrix_slot(1, 1)
        store.finalize(2)
        store.add_matrix(slot, 2j)
        store.add_rhs(1, 4.0)
        solution = np.zeros(2, dtype=np.complex128)
        store.solve(solution)
        assert solution[1] == pytest.approx(-2j)


class TestSimulationState:
    """Solution buffers"""

    def test_store_solution_swaps(self):
        state = SimulationState()
        state.solver.matrix_slot(1, 1)
        state.setup(2)
        current = state.solution
        previous = state.old_solution
        current[1] = 3.0
        state.store_solution()
        # Buffers are exchanged, not copied
        assert state.old_solution is current
        assert state.solution is previous
        assert state.old_solution[1] == 3.0

    def test_complex_state(self):
        state = ComplexSimulationState()
        state.solver.matrix_slot(1, 1)
        state.setup(2)
        assert state.solution.dtype == np.complex128
        state.unsetup()
        assert state.solution is None

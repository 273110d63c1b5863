"""Tests for the integration history, methods and timestep control"""

from types import SimpleNamespace

import numpy as np
import pytest

from circuitsim.analysis.options import BaseConfiguration, TimeConfiguration
from circuitsim.analysis.transient import (
    Breakpoints,
    Gear,
    History,
    LocalTruncationError,
    Trapezoidal,
    TruncationResult,
)
from circuitsim.errors import ConfigurationError, TimestepTooSmallError


def _simulation(count=2, **time_options):
    """Stand-in exposing what an integration method reads from a simulation"""
    options = dict(step=1e-6, final_time=1e-3)
    options.update(time_options)
    return SimpleNamespace(
        time_configuration=TimeConfiguration(**options),
        configuration=BaseConfiguration(),
        variables=SimpleNamespace(count=count),
        state=SimpleNamespace(solution=np.zeros(count)),
    )


def _prepared(method, initial_delta=1e-7):
    charge = method.create_derivative()
    simulation = _simulation()
    method.setup(simulation)
    method.initialize(initial_delta)
    return charge, simulation


def _first_probe(method, charge, value):
    """Seed the initial state, accept t=0 and probe the first timepoint."""
    charge.current = value
    method.initialize_states()
    method.accept()
    method.continue_()
    method.probe()


class TestHistory:
    """Ring buffer of integration points"""

    @pytest.mark.parametrize("length", [2, 3, 4, 7])
    def test_cycle_shifts_points_back(self, length):
        history = History(length, lambda i: i)
        before = list(history)
        history.cycle()
        after = list(history)
        # Oldest point becomes the newest, everything else moves back by one
        assert after[0] == before[-1]
        assert after[1:] == before[:-1]

    def test_full_cycle_is_identity(self):
        history = History(4, lambda i: i)
        for _ in range(4):
            history.cycle()
        assert list(history) == [0, 1, 2, 3]

    def test_setitem_and_current(self):
        history = History(3, lambda i: 0)
        history.cycle()
        history[0] = 'newest'
        assert history.current == 'newest'
        assert history[1] == 0

    def test_bounds(self):
        history = History(2, lambda i: i)
        with pytest.raises(IndexError):
            history[2]
        with pytest.raises(ValueError):
            History(0, lambda i: i)


class TestBreakpoints:
    def test_sorted_and_merged(self):
        breakpoints = Breakpoints(resolution=1e-9)
        for time in (3e-6, 1e-6, 2e-6, 1e-6 + 1e-10):
            breakpoints.add(time)
        assert list(breakpoints) == [1e-6, 2e-6, 3e-6]
        assert breakpoints.first == 1e-6

    def test_clear_until(self):
        breakpoints = Breakpoints()
        for time in (1.0, 2.0, 3.0):
            breakpoints.add(time)
        breakpoints.clear_until(2.0)
        assert list(breakpoints) == [3.0]
        breakpoints.clear()
        assert breakpoints.first == float('inf')


class TestTrapezoidal:
    def test_backward_euler_companion_model(self):
        """First step: G_eq = C/h and I_eq = C/h * v_prev"""
        method = Trapezoidal()
        charge, _ = _prepared(method, initial_delta=1e-7)
        capacitance = 1e-6
        _first_probe(method, charge, capacitance * 2.0)

        assert method.order == 1
        assert method.delta == pytest.approx(1e-7)
        assert method.time == pytest.approx(1e-7)

        charge.current = capacitance * 3.0
        charge.integrate()
        geq = charge.jacobian(capacitance)
        assert geq == pytest.approx(capacitance / 1e-7)
        assert charge.rhs_current(geq, 3.0) == pytest.approx(geq * 2.0)
        assert charge.derivative == pytest.approx(capacitance * 1.0 / 1e-7)

    def test_trapezoidal_coefficients(self):
        method = Trapezoidal()
        charge, _ = _prepared(method)
        method.delta = 1e-6
        method.order = 2
        method.compute_coefficients()
        assert method.slope == pytest.approx(2e6)

        # q(t) = t with dq/dt = 1 at the previous point stays exact
        method.history[1].states[charge.index] = 0.0
        method.history[1].states[charge.index + 1] = 1.0
        charge.current = 1e-6
        charge.integrate()
        assert charge.derivative == pytest.approx(1.0)


class TestGear:
    @pytest.mark.parametrize("order", [0, 7])
    def test_invalid_order(self, order):
        with pytest.raises(ConfigurationError):
            Gear(order)

    def test_bdf2_equal_steps(self):
        method = Gear(2)
        _prepared(method)
        h = 1e-6
        for point in method.history:
            point.delta = h
        method.delta = h
        method.order = 2
        method.compute_coefficients()
        np.testing.assert_allclose(method.ag[:3], [1.5 / h, -2.0 / h, 0.5 / h])

    def test_exact_for_quadratic_on_unequal_steps(self):
        method = Gear(2)
        charge, _ = _prepared(method)
        deltas = (1e-6, 3e-6, 3e-6)
        for point, delta in zip(method.history, deltas):
            point.delta = delta
        method.delta = deltas[0]
        method.order = 2
        method.compute_coefficients()

        # q(t) = 1 + 2t + t^2 sampled at t = 0, -1us, -4us
        for index, t in enumerate((0.0, -1e-6, -4e-6)):
            method.history[index].states[charge.index] = 1.0 + 2.0 * t + t * t
        charge.integrate()
        assert charge.derivative == pytest.approx(2.0, rel=1e-6)


class TestTimestepControl:
    def test_max_valid_order(self):
        method = Gear(4)
        _prepared(method)
        assert method.max_valid_order() == 1
        method.accepted_count = 3
        assert method.max_valid_order() == 2
        assert method.max_valid_order(extra=1) == 3
        method.accepted_count = 100
        assert method.max_valid_order(extra=1) == 4

    def test_probe_lands_on_breakpoint(self):
        method = Trapezoidal()
        charge, _ = _prepared(method, initial_delta=1e-6)
        method.breakpoints.add(0.5e-6)
        _first_probe(method, charge, 0.0)
        assert method.time == pytest.approx(0.5e-6)
        assert method.delta == pytest.approx(0.5e-6)
        assert method.at_breakpoint

    def test_restart_after_breakpoint(self):
        method = Trapezoidal()
        charge, _ = _prepared(method, initial_delta=1e-6)
        method.breakpoints.add(0.5e-6)
        _first_probe(method, charge, 0.0)
        method.accept()
        method.continue_()
        # Small first-order step after a discontinuity
        assert method.order == 1
        assert method.next_delta <= 0.1 * 0.5e-6
        assert list(method.breakpoints) == [1e-3]

    def test_non_convergence_cuts_step(self):
        method = Trapezoidal()
        charge, simulation = _prepared(method, initial_delta=1e-6)
        _first_probe(method, charge, 0.0)
        simulation.state.solution[:] = [0.0, 5.0]
        method.non_convergence()
        assert method.next_delta == pytest.approx(1e-6 / 8)
        assert method.order == 1
        np.testing.assert_array_equal(simulation.state.solution, [0.0, 0.0])

    def test_rejection_restores_solution(self):
        method = Trapezoidal(truncation=lambda m: TruncationResult(False, m.delta / 4, 1))
        charge, simulation = _prepared(method, initial_delta=1e-6)
        _first_probe(method, charge, 0.0)
        simulation.state.solution[:] = [0.0, 5.0]
        assert not method.evaluate()
        assert method.next_delta == pytest.approx(0.25e-6)
        np.testing.assert_array_equal(simulation.state.solution, [0.0, 0.0])

    def test_rejection_below_min_step(self):
        method = Trapezoidal(truncation=lambda m: TruncationResult(False, 1e-30, 1))
        charge, _ = _prepared(method, initial_delta=1e-6)
        _first_probe(method, charge, 0.0)
        with pytest.raises(TimestepTooSmallError):
            method.evaluate()


class TestLocalTruncationError:
    def test_constant_state_doubles_step(self):
        method = Trapezoidal()
        charge, _ = _prepared(method, initial_delta=1e-6)
        _first_probe(method, charge, 1e-9)
        charge.integrate()
        result = LocalTruncationError()(method)
        assert result.accepted
        assert result.delta == pytest.approx(2e-6)

    def test_jump_is_rejected(self):
        method = Trapezoidal()
        charge, _ = _prepared(method, initial_delta=1e-6)
        _first_probe(method, charge, 0.0)
        # A unit jump in one microsecond is far outside the tolerance
        charge.current = 1.0
        result = LocalTruncationError()(method)
        assert not result.accepted
        assert result.delta == pytest.approx(7 * 1e3 / 2.5e11)

"""Capacitor device model for circuitsim

Two-terminal capacitor with optional initial condition support.

For DC analysis: open circuit (no current)
For transient: I = dQ/dt with Q = C * V, modeled as companion model

The integration method turns the charge state into a Norton equivalent:
    G_eq = dI/dV (equivalent conductance, e.g. C/h for backward Euler)
    I_eq = G_eq * V - I (history current source, C/h * V(n) for backward Euler)
    I = G_eq * V(n+1) - I_eq
"""

from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import FrequencyBehavior, TimeBehavior
from circuitsim.circuit import Component
from circuitsim.devices.base import ConductanceSlots, CurrentSlots, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError


@dataclass
class CapacitorParameters:
    capacitance: Optional[float] = None
    initial_condition: Optional[float] = None


class Capacitor(Component):
    """Linear capacitor between ``pos`` and ``neg``

    Parameters:
        capacitance: Capacitance in Farads
        initial_condition: Voltage used instead of the operating point
            when the transient analysis starts from initial conditions
    """

    parameters_class = CapacitorParameters
    aliases = {'c': 'capacitance', 'ic': 'initial_condition'}

    def __init__(self, name: str, pos: str, neg: str, capacitance: Optional[float] = None):
        super().__init__(name, pos, neg)
        self.parameters.capacitance = capacitance


def _capacitance(name: str, provider) -> float:
    capacitance = provider.parameters.capacitance
    if capacitance is None or capacitance < 0:
        raise ConfigurationError(f"{name}: invalid capacitance {capacitance}")
    return capacitance


class CapacitorTimeBehavior(TwoTerminalBehavior, TimeBehavior):
    """Charge storage of a capacitor"""

    def setup(self, simulation, provider):
        self.capacitance = _capacitance(self.name, provider)
        self.initial_condition = provider.parameters.initial_condition

    def allocate_transient(self, variables, store):
        self._matrix = ConductanceSlots(store, self.pos, self.neg)
        self._rhs = CurrentSlots(store, self.pos, self.neg)

    def create_states(self, method):
        self.charge = method.create_derivative()

    def _voltage(self, simulation) -> float:
        solution = simulation.state.solution
        return solution[self.pos] - solution[self.neg]

    def initialize_states(self, simulation):
        if simulation.state.use_ic and self.initial_condition is not None:
            voltage = self.initial_condition
        else:
            voltage = self._voltage(simulation)
        self.charge.current = self.capacitance * voltage

    def load_transient(self, simulation):
        voltage = self._voltage(simulation)
        self.charge.current = self.capacitance * voltage
        self.charge.integrate()
        geq = self.charge.jacobian(self.capacitance)
        ieq = self.charge.rhs_current(geq, voltage)
        self._matrix.add(geq)
        self._rhs.add(ieq)

    @property
    def current(self) -> float:
        return self.charge.derivative


class CapacitorFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    """Admittance s*C of a capacitor"""

    def setup(self, simulation, provider):
        self.capacitance = _capacitance(self.name, provider)

    def allocate_frequency(self, variables, store):
        self._slots = ConductanceSlots(store, self.pos, self.neg)

    def load_frequency(self, simulation):
        self._slots.add(simulation.complex_state.laplace * self.capacitance)

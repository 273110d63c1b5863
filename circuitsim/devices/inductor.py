"""Inductor device for circuitsim

The inductor current is an extra unknown (its branch). In DC the branch
equation shorts the terminals; in transient it becomes

    v(pos) - v(neg) - dPhi/dt = 0,  Phi = L * i
"""

from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import BiasingBehavior, FrequencyBehavior, TimeBehavior
from circuitsim.analysis.variables import VariableKind, VariableSet
from circuitsim.circuit import Component
from circuitsim.devices.base import BranchSlots, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError


@dataclass
class InductorParameters:
    inductance: Optional[float] = None
    initial_condition: Optional[float] = None


class Inductor(Component):
    """Linear inductor between ``pos`` and ``neg``"""

    parameters_class = InductorParameters
    aliases = {'l': 'inductance', 'ic': 'initial_condition'}

    def __init__(self, name: str, pos: str, neg: str, inductance: Optional[float] = None):
        super().__init__(name, pos, neg)
        self.parameters.inductance = inductance


class InductorBiasingBehavior(TwoTerminalBehavior, BiasingBehavior):
    """Branch equation of an inductor (a short in DC)"""

    def setup(self, simulation, provider):
        inductance = provider.parameters.inductance
        if inductance is None or inductance < 0:
            raise ConfigurationError(f"{self.name}: invalid inductance {inductance}")
        self.inductance = inductance
        self.initial_condition = provider.parameters.initial_condition

    def allocate(self, variables, store):
        name = VariableSet.combine(self.name, 'branch')
        self.branch = variables.create(name, VariableKind.CURRENT).index
        self._slots = BranchSlots(store, self.pos, self.neg, self.branch)

    def load(self, simulation):
        self._slots.add()


class InductorTimeBehavior(TimeBehavior):
    """Flux storage of an inductor"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(InductorBiasingBehavior)

    def allocate_transient(self, variables, store):
        branch = self._bias.branch
        self._branch_branch = store.matrix_slot(branch, branch)
        self._rhs = store.rhs_slot(branch)

    def create_states(self, method):
        self.flux = method.create_derivative()

    def initialize_states(self, simulation):
        bias = self._bias
        if simulation.state.use_ic and bias.initial_condition is not None:
            current = bias.initial_condition
        else:
            current = simulation.state.solution[bias.branch]
        self.flux.current = bias.inductance * current

    def load_transient(self, simulation):
        store = simulation.state.solver
        bias = self._bias
        current = simulation.state.solution[bias.branch]
        self.flux.current = bias.inductance * current
        self.flux.integrate()
        req = self.flux.jacobian(bias.inductance)
        veq = self.flux.rhs_current(req, current)
        store.add_matrix(self._branch_branch, -req)
        store.add_rhs(self._rhs, -veq)


class InductorFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    """Impedance s*L in the branch equation"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(InductorBiasingBehavior)

    def allocate_frequency(self, variables, store):
        branch = self._bias.branch
        self.branch = branch
        self._slots = BranchSlots(store, self.pos, self.neg, branch)
        self._branch_branch = store.matrix_slot(branch, branch)

    def load_frequency(self, simulation):
        store = simulation.complex_state.solver
        self._slots.add()
        store.add_matrix(self._branch_branch, -simulation.complex_state.laplace * self._bias.inductance)

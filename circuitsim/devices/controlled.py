"""Linear controlled sources

    E  voltage-controlled voltage source   v(pos,neg) = gain * v(cpos,cneg)
    G  voltage-controlled current source   i(pos->neg) = gm * v(cpos,cneg)
    F  current-controlled current source   i(pos->neg) = gain * i(control)
    H  current-controlled voltage source   v(pos,neg) = transresistance * i(control)

The controlling current of F and H sources is the branch current of a
named voltage source (or any other entity owning a branch current).

The stamps are linear and identical in the real and complex systems, so
each stamp class below is shared by a biasing and a frequency behavior.
"""

from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import BiasingBehavior, FrequencyBehavior
from circuitsim.analysis.variables import VariableKind, VariableSet
from circuitsim.circuit import Component
from circuitsim.devices.base import BranchSlots, FourTerminalBehavior, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError


@dataclass
class ControlledSourceParameters:
    coefficient: float = 0.0
    control: Optional[str] = None


class VoltageControlledVoltageSource(Component):
    parameters_class = ControlledSourceParameters
    aliases = {'gain': 'coefficient'}

    def __init__(self, name: str, pos: str, neg: str, cpos: str, cneg: str, gain: float = 0.0):
        super().__init__(name, pos, neg, cpos, cneg)
        self.parameters.coefficient = gain


class VoltageControlledCurrentSource(VoltageControlledVoltageSource):
    aliases = {'gm': 'coefficient', 'transconductance': 'coefficient'}


class CurrentControlledCurrentSource(Component):
    parameters_class = ControlledSourceParameters
    aliases = {'gain': 'coefficient'}

    def __init__(self, name: str, pos: str, neg: str, control: str, gain: float = 0.0):
        super().__init__(name, pos, neg)
        self.parameters.coefficient = gain
        self.parameters.control = control


class CurrentControlledVoltageSource(CurrentControlledCurrentSource):
    aliases = {'transresistance': 'coefficient'}


def _control_branch(name: str, control) -> int:
    branch = getattr(control, 'branch', None)
    if branch is None:
        raise ConfigurationError(f"{name}: controlling entity '{control.name}' has no branch current")
    return branch


def _branch_variable(variables, name: str) -> int:
    return variables.create(VariableSet.combine(name, 'branch'), VariableKind.CURRENT).index


class _VcvsStamp:
    def __init__(self, store, pos, neg, cpos, cneg, branch):
        self.slots = BranchSlots(store, pos, neg, branch)
        self.branch_cpos = store.matrix_slot(branch, cpos)
        self.branch_cneg = store.matrix_slot(branch, cneg)

    def load(self, gain):
        self.slots.add()
        self.slots.store.add_matrix(self.branch_cpos, -gain)
        self.slots.store.add_matrix(self.branch_cneg, gain)


class _VccsStamp:
    def __init__(self, store, pos, neg, cpos, cneg):
        self.store = store
        self.pos_cpos = store.matrix_slot(pos, cpos)
        self.pos_cneg = store.matrix_slot(pos, cneg)
        self.neg_cpos = store.matrix_slot(neg, cpos)
        self.neg_cneg = store.matrix_slot(neg, cneg)

    def load(self, gm):
        store = self.store
        store.add_matrix(self.pos_cpos, gm)
        store.add_matrix(self.pos_cneg, -gm)
        store.add_matrix(self.neg_cpos, -gm)
        store.add_matrix(self.neg_cneg, gm)


class _CccsStamp:
    def __init__(self, store, pos, neg, control_branch):
        self.store = store
        self.pos_control = store.matrix_slot(pos, control_branch)
        self.neg_control = store.matrix_slot(neg, control_branch)

    def load(self, gain):
        self.store.add_matrix(self.pos_control, gain)
        self.store.add_matrix(self.neg_control, -gain)


class _CcvsStamp:
    def __init__(self, store, pos, neg, control_branch, branch):
        self.slots = BranchSlots(store, pos, neg, branch)
        self.branch_control = store.matrix_slot(branch, control_branch)

    def load(self, transresistance):
        self.slots.add()
        self.slots.store.add_matrix(self.branch_control, -transresistance)


class VcvsBiasingBehavior(FourTerminalBehavior, BiasingBehavior):
    def setup(self, simulation, provider):
        self.gain = provider.parameters.coefficient

    def allocate(self, variables, store):
        self.branch = _branch_variable(variables, self.name)
        self._stamp = _VcvsStamp(store, self.pos, self.neg, self.cpos, self.cneg, self.branch)

    def load(self, simulation):
        self._stamp.load(self.gain)


class VcvsFrequencyBehavior(FourTerminalBehavior, FrequencyBehavior):
    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(VcvsBiasingBehavior)

    def allocate_frequency(self, variables, store):
        self.branch = self._bias.branch
        self._stamp = _VcvsStamp(store, self.pos, self.neg, self.cpos, self.cneg, self.branch)

    def load_frequency(self, simulation):
        self._stamp.load(self._bias.gain)


class VccsBiasingBehavior(FourTerminalBehavior, BiasingBehavior):
    def setup(self, simulation, provider):
        self.transconductance = provider.parameters.coefficient

    def allocate(self, variables, store):
        self._stamp = _VccsStamp(store, self.pos, self.neg, self.cpos, self.cneg)

    def load(self, simulation):
        self._stamp.load(self.transconductance)


class VccsFrequencyBehavior(FourTerminalBehavior, FrequencyBehavior):
    def setup(self, simulation, provider):
        self.transconductance = provider.parameters.coefficient

    def allocate_frequency(self, variables, store):
        self._stamp = _VccsStamp(store, self.pos, self.neg, self.cpos, self.cneg)

    def load_frequency(self, simulation):
        self._stamp.load(self.transconductance)


class _CurrentControlled(TwoTerminalBehavior):
    """Resolves the controlling branch named in the parameters"""

    def setup(self, simulation, provider):
        p = provider.parameters
        if not p.control:
            raise ConfigurationError(f"{self.name}: no controlling source specified")
        self.coefficient = p.coefficient
        self._control = provider.get_behavior(BiasingBehavior, p.control)


class CccsBiasingBehavior(_CurrentControlled, BiasingBehavior):
    def allocate(self, variables, store):
        control = _control_branch(self.name, self._control)
        self._stamp = _CccsStamp(store, self.pos, self.neg, control)

    def load(self, simulation):
        self._stamp.load(self.coefficient)


class CccsFrequencyBehavior(_CurrentControlled, FrequencyBehavior):
    def allocate_frequency(self, variables, store):
        control = _control_branch(self.name, self._control)
        self._stamp = _CccsStamp(store, self.pos, self.neg, control)

    def load_frequency(self, simulation):
        self._stamp.load(self.coefficient)


class CcvsBiasingBehavior(_CurrentControlled, BiasingBehavior):
    def allocate(self, variables, store):
        control = _control_branch(self.name, self._control)
        self.branch = _branch_variable(variables, self.name)
        self._stamp = _CcvsStamp(store, self.pos, self.neg, control, self.branch)

    def load(self, simulation):
        self._stamp.load(self.coefficient)


class CcvsFrequencyBehavior(_CurrentControlled, FrequencyBehavior):
    def setup(self, simulation, provider):
        super().setup(simulation, provider)
        self._bias = provider.get_behavior(CcvsBiasingBehavior)

    def allocate_frequency(self, variables, store):
        control = _control_branch(self.name, self._control)
        self.branch = self._bias.branch
        self._stamp = _CcvsStamp(store, self.pos, self.neg, control, self.branch)

    def load_frequency(self, simulation):
        self._stamp.load(self.coefficient)

"""Voltage- and current-controlled switches

A switch is a resistor that toggles between ``ron`` and ``roff``. It turns
on when the controlling quantity rises above ``threshold + hysteresis`` and
off when it drops below ``threshold - hysteresis``; in between it keeps
the state of the last accepted timepoint.

The controlling quantity is v(cpos) - v(cneg) for the voltage switch and
the branch current of a named source for the current switch.
"""

from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import (
    AcceptBehavior,
    BiasingBehavior,
    FrequencyBehavior,
)
from circuitsim.analysis.state import InitializationMode
from circuitsim.circuit import Component, Model
from circuitsim.devices.base import ConductanceSlots, FourTerminalBehavior, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError


@dataclass
class SwitchModelParameters:
    ron: float = 1.0
    roff: float = 1e12
    threshold: float = 0.0
    hysteresis: float = 0.0


@dataclass
class SwitchParameters:
    on: bool = False  # state used while devices are initialized
    control: Optional[str] = None


class VoltageSwitchModel(Model):
    parameters_class = SwitchModelParameters
    aliases = {'vt': 'threshold', 'vh': 'hysteresis'}


class CurrentSwitchModel(Model):
    parameters_class = SwitchModelParameters
    aliases = {'it': 'threshold', 'ih': 'hysteresis'}


class VoltageSwitch(Component):
    parameters_class = SwitchParameters

    def __init__(self, name: str, pos: str, neg: str, cpos: str, cneg: str, model: str):
        super().__init__(name, pos, neg, cpos, cneg)
        self.model = model


class CurrentSwitch(Component):
    parameters_class = SwitchParameters

    def __init__(self, name: str, pos: str, neg: str, control: str, model: str):
        super().__init__(name, pos, neg)
        self.model = model
        self.parameters.control = control


def _model_conductances(name: str, provider):
    mp = provider.model_parameters
    if mp.ron <= 0 or mp.roff <= 0:
        raise ConfigurationError(f"{name}: on and off resistances must be positive")
    if mp.hysteresis < 0:
        raise ConfigurationError(f"{name}: hysteresis cannot be negative")
    return mp, 1.0 / mp.ron, 1.0 / mp.roff


class _SwitchBiasing(BiasingBehavior, AcceptBehavior):
    """State machine shared by both switches

    Attributes:
        on: State used in the last load
        accepted_state: State at the last accepted timepoint
    """

    def setup(self, simulation, provider):
        self.model, self.on_conductance, self.off_conductance = _model_conductances(self.name, provider)
        self.zero_state = provider.parameters.on
        self.on = self.zero_state
        self.accepted_state = self.zero_state

    def control_value(self, simulation) -> float:
        raise NotImplementedError

    def allocate(self, variables, store):
        self._slots = ConductanceSlots(store, self.pos, self.neg)

    def load(self, simulation):
        state = simulation.state
        previous = self.on
        if state.init is not InitializationMode.NONE:
            on = self.zero_state
        else:
            value = self.control_value(simulation)
            model = self.model
            if value > model.threshold + model.hysteresis:
                on = True
            elif value < model.threshold - model.hysteresis:
                on = False
            else:
                on = self.accepted_state
            if on != previous:
                state.is_convergent = False
        self.on = on
        self._slots.add(self.conductance)

    @property
    def conductance(self) -> float:
        return self.on_conductance if self.on else self.off_conductance

    def accept(self, simulation):
        self.accepted_state = self.on


class VoltageSwitchBiasingBehavior(FourTerminalBehavior, _SwitchBiasing):
    def control_value(self, simulation):
        solution = simulation.state.solution
        return solution[self.cpos] - solution[self.cneg]


class CurrentSwitchBiasingBehavior(TwoTerminalBehavior, _SwitchBiasing):
    def setup(self, simulation, provider):
        super().setup(simulation, provider)
        control = provider.parameters.control
        if not control:
            raise ConfigurationError(f"{self.name}: no controlling source specified")
        self._control = provider.get_behavior(BiasingBehavior, control)

    def allocate(self, variables, store):
        super().allocate(variables, store)
        branch = getattr(self._control, 'branch', None)
        if branch is None:
            raise ConfigurationError(
                f"{self.name}: controlling entity '{self._control.name}' has no branch current"
            )
        self.control_branch = branch

    def control_value(self, simulation):
        return simulation.state.solution[self.control_branch]


class SwitchFrequencyBehavior(FrequencyBehavior):
    """Fixed conductance of the switch state at the operating point"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(_SwitchBiasing)

    def allocate_frequency(self, variables, store):
        self._slots = ConductanceSlots(store, self._bias.pos, self._bias.neg)

    def load_frequency(self, simulation):
        self._slots.add(self._bias.conductance)

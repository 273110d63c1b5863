"""Independent voltage and current sources

Both sources have a DC value, an optional time-domain waveform and a
small-signal (AC) magnitude and phase. During operating point searches the
value is scaled by the source stepping factor of the simulation state.

Polarity: a voltage source forces v(pos) - v(neg) = value and its branch
current flows into ``pos`` through the source. A current source delivers
``value`` into ``pos`` and draws it from ``neg``.
"""

import cmath
import math
from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import AcceptBehavior, BiasingBehavior, FrequencyBehavior
from circuitsim.analysis.variables import VariableKind, VariableSet
from circuitsim.circuit import Component
from circuitsim.devices.base import BranchSlots, CurrentSlots, TwoTerminalBehavior
from circuitsim.devices.waveforms import Waveform
from circuitsim.errors import ConfigurationError
from circuitsim.logging import get_logger

logger = get_logger("devices")


@dataclass
class IndependentSourceParameters:
    dc: Optional[float] = None
    waveform: Optional[Waveform] = None
    ac_magnitude: float = 0.0
    ac_phase: float = 0.0


class IndependentSource(Component):
    parameters_class = IndependentSourceParameters
    aliases = {'acmag': 'ac_magnitude', 'acphase': 'ac_phase'}

    def __init__(self, name: str, pos: str, neg: str, dc: Optional[float] = None,
                 waveform: Optional[Waveform] = None):
        super().__init__(name, pos, neg)
        self.parameters.dc = dc
        self.parameters.waveform = waveform


class VoltageSource(IndependentSource):
    """Independent voltage source"""


class CurrentSource(IndependentSource):
    """Independent current source"""


class IndependentSourceBehavior(TwoTerminalBehavior, BiasingBehavior, AcceptBehavior):
    """Value handling shared by the biasing behaviors of both sources

    ``dc_value`` belongs to this behavior, so a DC sweep can change it
    without touching the circuit.
    """

    def setup(self, simulation, provider):
        p = provider.parameters
        self.waveform = p.waveform
        if p.dc is not None:
            self.dc_value = p.dc
        elif self.waveform is not None:
            self.dc_value = self.waveform.value(0.0)
            logger.warning(f"{self.name}: no DC value, using transient value at t=0")
        else:
            self.dc_value = 0.0
            logger.warning(f"{self.name}: no value specified, DC 0 assumed")
        self._method = getattr(simulation, 'method', None)

    def value(self, simulation) -> float:
        if self.waveform is not None and self._method is not None:
            value = self.waveform.value(self._method.time)
        else:
            value = self.dc_value
        return value * simulation.state.source_factor

    def accept(self, simulation):
        if self.waveform is None:
            return
        method = simulation.method
        corner = self.waveform.next_breakpoint(method.time)
        if corner is not None:
            method.breakpoints.add(corner)


class VoltageSourceBiasingBehavior(IndependentSourceBehavior):
    def allocate(self, variables, store):
        name = VariableSet.combine(self.name, 'branch')
        self.branch = variables.create(name, VariableKind.CURRENT).index
        self._slots = BranchSlots(store, self.pos, self.neg, self.branch)

    def load(self, simulation):
        self._slots.add()
        simulation.state.solver.add_rhs(self._slots.rhs, self.value(simulation))


class CurrentSourceBiasingBehavior(IndependentSourceBehavior):
    def allocate(self, variables, store):
        self._slots = CurrentSlots(store, self.pos, self.neg)

    def load(self, simulation):
        self.current = self.value(simulation)
        self._slots.add(self.current)


def ac_phasor(provider) -> complex:
    p = provider.parameters
    if p.ac_magnitude < 0:
        raise ConfigurationError(f"Invalid AC magnitude {p.ac_magnitude}")
    return cmath.rect(p.ac_magnitude, math.radians(p.ac_phase))


class VoltageSourceFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(VoltageSourceBiasingBehavior)
        self.phasor = ac_phasor(provider)

    def allocate_frequency(self, variables, store):
        self.branch = self._bias.branch
        self._slots = BranchSlots(store, self.pos, self.neg, self.branch)

    def load_frequency(self, simulation):
        self._slots.add()
        simulation.complex_state.solver.add_rhs(self._slots.rhs, self.phasor)


class CurrentSourceFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    def setup(self, simulation, provider):
        self.phasor = ac_phasor(provider)

    def allocate_frequency(self, variables, store):
        self._slots = CurrentSlots(store, self.pos, self.neg)

    def load_frequency(self, simulation):
        self._slots.add(self.phasor)

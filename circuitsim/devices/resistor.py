"""Resistor device for circuitsim

Two-terminal linear resistor with optional temperature coefficients:

    R(T) = R * (1 + tc1 * (T - Tnom) + tc2 * (T - Tnom)^2)
"""

from dataclasses import dataclass
from typing import Optional

from circuitsim.analysis.behaviors import BiasingBehavior, FrequencyBehavior, TemperatureBehavior
from circuitsim.circuit import Component
from circuitsim.devices.base import ConductanceSlots, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError
from circuitsim.logging import get_logger

logger = get_logger("devices")

# Resistances below this value are clamped
MINIMUM_RESISTANCE = 1e-3


@dataclass
class ResistorParameters:
    resistance: Optional[float] = None
    tc1: float = 0.0
    tc2: float = 0.0
    nominal_temperature: Optional[float] = None


class Resistor(Component):
    """Linear resistor between ``pos`` and ``neg``"""

    parameters_class = ResistorParameters
    aliases = {'r': 'resistance', 'tnom': 'nominal_temperature'}

    def __init__(self, name: str, pos: str, neg: str, resistance: Optional[float] = None):
        super().__init__(name, pos, neg)
        self.parameters.resistance = resistance


class ResistorBiasingBehavior(TwoTerminalBehavior, TemperatureBehavior, BiasingBehavior):
    """Conductance stamp of a resistor"""

    def setup(self, simulation, provider):
        p = provider.parameters
        if p.resistance is None:
            raise ConfigurationError(f"{self.name}: no resistance specified")
        self.parameters = p
        self.conductance = 1.0 / MINIMUM_RESISTANCE

    def temperature(self, simulation):
        p = self.parameters
        state = simulation.state
        tnom = p.nominal_temperature if p.nominal_temperature is not None else state.nominal_temperature
        dt = state.temperature - tnom
        resistance = p.resistance * (1.0 + p.tc1 * dt + p.tc2 * dt * dt)
        if abs(resistance) < MINIMUM_RESISTANCE:
            logger.warning(
                f"{self.name}: resistance {resistance:g} too small, set to {MINIMUM_RESISTANCE:g}"
            )
            resistance = MINIMUM_RESISTANCE
        self.conductance = 1.0 / resistance

    def allocate(self, variables, store):
        self._slots = ConductanceSlots(store, self.pos, self.neg)

    def load(self, simulation):
        self._slots.add(self.conductance)


class ResistorFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    """Small-signal stamp of a resistor (same conductance)"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(ResistorBiasingBehavior)

    def allocate_frequency(self, variables, store):
        self._slots = ConductanceSlots(store, self.pos, self.neg)

    def load_frequency(self, simulation):
        self._slots.add(self._bias.conductance)

"""Device library: entities and their behaviors"""

from circuitsim.devices.bipolar import BipolarModel, BipolarTransistor
from circuitsim.devices.capacitor import Capacitor
from circuitsim.devices.controlled import (
    CurrentControlledCurrentSource,
    CurrentControlledVoltageSource,
    VoltageControlledCurrentSource,
    VoltageControlledVoltageSource,
)
from circuitsim.devices.diode import Diode, DiodeModel
from circuitsim.devices.inductor import Inductor
from circuitsim.devices.registry import DEFAULT_REGISTRY, build_default_registry
from circuitsim.devices.resistor import Resistor
from circuitsim.devices.sources import CurrentSource, VoltageSource
from circuitsim.devices.switches import (
    CurrentSwitch,
    CurrentSwitchModel,
    VoltageSwitch,
    VoltageSwitchModel,
)
from circuitsim.devices.waveforms import Pulse, Pwl, Sine, Waveform

__all__ = [
    "BipolarModel",
    "BipolarTransistor",
    "Capacitor",
    "CurrentControlledCurrentSource",
    "CurrentControlledVoltageSource",
    "CurrentSource",
    "CurrentSwitch",
    "CurrentSwitchModel",
    "DEFAULT_REGISTRY",
    "Diode",
    "DiodeModel",
    "Inductor",
    "Pulse",
    "Pwl",
    "Resistor",
    "Sine",
    "VoltageControlledCurrentSource",
    "VoltageControlledVoltageSource",
    "VoltageSource",
    "VoltageSwitch",
    "VoltageSwitchModel",
    "Waveform",
    "build_default_registry",
]

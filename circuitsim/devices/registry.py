"""Default entity -> behavior table

Built once at import time and frozen. To add a device family, derive a
registry with ``DEFAULT_REGISTRY.copy()``, register the new entity type
and pass the copy to the simulations that need it.
"""

from circuitsim.analysis.behaviors import BehaviorRegistry
from circuitsim.devices import bipolar, capacitor, controlled, diode, inductor, resistor, sources, switches


def build_default_registry() -> BehaviorRegistry:
    registry = BehaviorRegistry()
    registry.register(resistor.Resistor, [
        resistor.ResistorBiasingBehavior,
        resistor.ResistorFrequencyBehavior,
    ])
    registry.register(capacitor.Capacitor, [
        capacitor.CapacitorTimeBehavior,
        capacitor.CapacitorFrequencyBehavior,
    ])
    registry.register(inductor.Inductor, [
        inductor.InductorBiasingBehavior,
        inductor.InductorTimeBehavior,
        inductor.InductorFrequencyBehavior,
    ])
    registry.register(sources.VoltageSource, [
        sources.VoltageSourceBiasingBehavior,
        sources.VoltageSourceFrequencyBehavior,
    ])
    registry.register(sources.CurrentSource, [
        sources.CurrentSourceBiasingBehavior,
        sources.CurrentSourceFrequencyBehavior,
    ])
    registry.register(controlled.VoltageControlledVoltageSource, [
        controlled.VcvsBiasingBehavior,
        controlled.VcvsFrequencyBehavior,
    ])
    registry.register(controlled.VoltageControlledCurrentSource, [
        controlled.VccsBiasingBehavior,
        controlled.VccsFrequencyBehavior,
    ])
    registry.register(controlled.CurrentControlledCurrentSource, [
        controlled.CccsBiasingBehavior,
        controlled.CccsFrequencyBehavior,
    ])
    registry.register(controlled.CurrentControlledVoltageSource, [
        controlled.CcvsBiasingBehavior,
        controlled.CcvsFrequencyBehavior,
    ])
    registry.register(diode.DiodeModel, [diode.DiodeModelBehavior])
    registry.register(diode.Diode, [
        diode.DiodeBiasingBehavior,
        diode.DiodeTimeBehavior,
        diode.DiodeFrequencyBehavior,
    ])
    registry.register(bipolar.BipolarModel, [bipolar.BipolarModelBehavior])
    registry.register(bipolar.BipolarTransistor, [
        bipolar.BipolarBiasingBehavior,
        bipolar.BipolarTimeBehavior,
        bipolar.BipolarFrequencyBehavior,
    ])
    registry.register(switches.VoltageSwitchModel, [])
    registry.register(switches.CurrentSwitchModel, [])
    registry.register(switches.VoltageSwitch, [
        switches.VoltageSwitchBiasingBehavior,
        switches.SwitchFrequencyBehavior,
    ])
    registry.register(switches.CurrentSwitch, [
        switches.CurrentSwitchBiasingBehavior,
        switches.SwitchFrequencyBehavior,
    ])
    return registry


DEFAULT_REGISTRY = build_default_registry().freeze()

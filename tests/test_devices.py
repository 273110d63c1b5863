"""Tests for the device library: models, junction helpers and setup errors"""

import math
from types import SimpleNamespace

import numpy as np
import pytest

from circuitsim import (
    AC,
    OP,
    BipolarModel,
    BipolarTransistor,
    Circuit,
    ComplexVoltageExport,
    ConfigurationError,
    CurrentControlledCurrentSource,
    CurrentSource,
    CurrentSwitch,
    CurrentSwitchModel,
    Pulse,
    Pwl,
    RealPropertyExport,
    RealVoltageExport,
    Resistor,
    Sine,
    VoltageSource,
    VoltageSwitch,
    VoltageSwitchModel,
)
from circuitsim.analysis.limiting import limit_junction, pnjlim
from circuitsim.analysis.options import BaseConfiguration
from circuitsim.circuit import Component
from circuitsim.config import KOVERQ
from circuitsim.devices.bipolar import BipolarBiasingBehavior
from circuitsim.devices.diode import DiodeBiasingBehavior
from circuitsim.devices.registry import DEFAULT_REGISTRY
from circuitsim.devices.resistor import ResistorBiasingBehavior

VT = KOVERQ * 300.15


# =============================================================================
# Junction limiting
# =============================================================================


class TestLimiting:
    def test_forward_step_is_compressed(self):
        vt, vcrit = 0.025, 0.6
        limited, flag = limit_junction(2.0, 0.7, vt, vcrit)
        assert flag
        assert limited == pytest.approx(0.7 + vt * math.log(1.0 + 1.3 / vt))
        assert limited < 2.0

    def test_from_reverse_bias(self):
        vt, vcrit = 0.025, 0.6
        limited, flag = limit_junction(1.0, -1.0, vt, vcrit)
        assert flag
        assert limited == pytest.approx(vt * math.log(1.0 / vt))

    def test_small_steps_pass_through(self):
        assert limit_junction(0.72, 0.7, 0.025, 0.6) == (pytest.approx(0.72), False)
        # Below vcrit nothing is limited
        assert limit_junction(0.5, -3.0, 0.025, 0.6) == (pytest.approx(0.5), False)

    def test_elementwise(self):
        vnew = np.array([2.0, 0.72, 0.5])
        vold = np.array([0.7, 0.7, 0.0])
        limited, mask = pnjlim(vnew, vold, 0.025, 0.6)
        np.testing.assert_array_equal(np.asarray(mask), [True, False, False])
        assert float(limited[1]) == pytest.approx(0.72)


# =============================================================================
# Diode
# =============================================================================


def _stand_in(solution):
    return SimpleNamespace(
        state=SimpleNamespace(solution=np.asarray(solution, dtype=float), is_convergent=True),
        configuration=BaseConfiguration(),
    )


def _loaded_diode(voltage):
    behavior = DiodeBiasingBehavior("D1")
    behavior.connect(1, 0)
    behavior.pos_prime = 1
    isat, vte = 1e-14, VT
    behavior.voltage = voltage
    behavior.current = isat * (math.exp(voltage / vte) - 1.0)
    behavior.conductance = isat * math.exp(voltage / vte) / vte
    return behavior


class TestDiodeConvergence:
    @pytest.mark.parametrize("voltage", [0.65, -0.65])
    def test_converged_when_prediction_matches(self, voltage):
        diode = _loaded_diode(voltage)
        simulation = _stand_in([0.0, voltage + 1e-9])
        assert diode.is_convergent(simulation)
        assert simulation.state.is_convergent

    def test_large_step_not_converged(self):
        diode = _loaded_diode(0.65)
        simulation = _stand_in([0.0, 0.70])
        assert not diode.is_convergent(simulation)
        assert not simulation.state.is_convergent


# =============================================================================
# Bipolar transistor
# =============================================================================


def _common_emitter(polarity='npn'):
    model = BipolarModel("QM", polarity)
    if polarity == 'npn':
        return Circuit(
            model,
            VoltageSource("VCC", "vcc", "0", 5.0),
            Resistor("RB", "vcc", "b", 1e6),
            Resistor("RC", "vcc", "c", 1e3),
            BipolarTransistor("Q1", "c", "b", "0", "QM"),
        )
    return Circuit(
        model,
        VoltageSource("VCC", "vcc", "0", 5.0),
        Resistor("RB", "b", "0", 1e6),
        Resistor("RC", "c", "0", 1e3),
        BipolarTransistor("Q1", "c", "b", "vcc", "QM"),
    )


class TestBipolar:
    def test_forward_active_npn(self):
        exports = [
            RealVoltageExport("b"),
            RealVoltageExport("c"),
            RealPropertyExport("Q1", "cc"),
            RealPropertyExport("Q1", "cb"),
        ]
        result = OP("op").run(_common_emitter(), exports)
        values = result.values
        assert 0.65 < values["v(b)"] < 0.85
        assert values["Q1.cc"] / values["Q1.cb"] == pytest.approx(100.0, rel=1e-4)
        assert values["v(c)"] == pytest.approx(5.0 - 1e3 * values["Q1.cc"], rel=1e-3)
        assert 4.0 < values["v(c)"] < 5.0

    def test_pnp_mirrors_npn(self):
        npn = OP("op").run(_common_emitter('npn'), [RealVoltageExport("c")])
        pnp = OP("op").run(_common_emitter('pnp'), [RealVoltageExport("c")])
        assert pnp.values["v(c)"] == pytest.approx(5.0 - npn.values["v(c)"], rel=1e-3)

    def test_terminal_resistances_create_internal_nodes(self):
        circuit = _common_emitter()
        model = circuit["QM"]
        model.set_parameter("rc", 10.0).set_parameter("rb", 100.0).set_parameter("re", 1.0)
        result = OP("op").run(
            circuit, [RealVoltageExport("Q1/col"), RealVoltageExport("Q1/base"), RealVoltageExport("Q1/emit")]
        )
        assert result.values["v(Q1/emit)"] > 0.0
        assert result.values["v(Q1/base)"] > result.values["v(Q1/emit)"]

    def test_small_signal_gain(self):
        circuit = _common_emitter()
        circuit["VCC"].set_parameter("acmag", 1.0)
        circuit.remove("RC")
        circuit.add(
            VoltageSource("VC", "vc", "0", 5.0),
            Resistor("RC", "vc", "c", 1e3),
        )
        op = OP("op").run(circuit, [RealPropertyExport("Q1", "cc")])
        gm = op.values["Q1.cc"] / VT
        rpi = 100.0 / gm
        expected = -gm * 1e3 * rpi / (1e6 + rpi)

        result = AC("ac", [1.0]).run(circuit, [ComplexVoltageExport("c")])
        gain = result.values["v(c)"][0]
        assert gain.real == pytest.approx(expected, rel=1e-2)
        assert abs(gain.imag) < 1e-9

    def test_prediction_uses_each_junction_own_change(self):
        behavior = BipolarBiasingBehavior("Q1")
        behavior.vbe, behavior.vbc = 0.7, -4.0
        behavior.cc, behavior.cb = 1e-3, 1e-5
        behavior.gm, behavior.go, behavior.gmu, behavior.gpi = 0.04, 1e-5, 1e-12, 4e-4

        cchat, cbhat = behavior.predicted_currents(0.7, -4.0)
        assert (cchat, cbhat) == (1e-3, 1e-5)

        # Only the base-collector voltage moves
        cchat, cbhat = behavior.predicted_currents(0.7, -3.9)
        assert cchat == pytest.approx(1e-3 - (1e-5 + 1e-12) * 0.1)
        assert cbhat == pytest.approx(1e-5 + 1e-12 * 0.1)

    @staticmethod
    def _loaded_transistor(gm=0.04, go=1e-5, gmu=1e-12, gpi=4e-4):
        behavior = BipolarBiasingBehavior("Q1")
        behavior.model = SimpleNamespace(parameters=SimpleNamespace(polarity=1))
        behavior.emitter_prime, behavior.base_prime, behavior.collector_prime = 0, 1, 2
        behavior.vbe, behavior.vbc = 0.7, -4.0
        behavior.cc, behavior.cb = 1e-3, 1e-5
        behavior.gm, behavior.go, behavior.gmu, behavior.gpi = gm, go, gmu, gpi
        return behavior

    @pytest.mark.parametrize("step, converged", [(1e-5, True), (1e-4, False)])
    def test_collector_current_tolerance(self, step, converged):
        # The collector is held, so cc moves by gm * step against a tolerance of about 1e-6
        behavior = self._loaded_transistor()
        simulation = _stand_in([0.0, 0.7 + step, 4.7])
        assert behavior.is_convergent(simulation) is converged
        assert simulation.state.is_convergent is converged

    @pytest.mark.parametrize("step, converged", [(1e-7, True), (1e-5, False)])
    def test_base_current_tolerance(self, step, converged):
        # Only the base current responds to a change of vbe
        behavior = self._loaded_transistor(gm=0.0, go=0.0, gmu=0.0, gpi=1e-2)
        simulation = _stand_in([0.0, 0.7 + step, 4.7 + step])
        assert behavior.is_convergent(simulation) is converged
        assert simulation.state.is_convergent is converged

    def test_invalid_polarity(self):
        with pytest.raises(ConfigurationError):
            BipolarModel("QM", "nmos")


# =============================================================================
# Switches
# =============================================================================


def _voltage_switch(control, threshold=1.0, hysteresis=0.0, on=False):
    model = VoltageSwitchModel("SM").set_parameter("vt", threshold).set_parameter("vh", hysteresis)
    return Circuit(
        model,
        VoltageSource("VC", "c", "0", control),
        VoltageSource("V1", "in", "0", 1.0),
        VoltageSwitch("S1", "in", "out", "c", "0", "SM").set_parameter("on", on),
        Resistor("RL", "out", "0", 1e3),
    )


class TestSwitches:
    def test_voltage_switch_on(self):
        result = OP("op").run(_voltage_switch(2.0), [RealVoltageExport("out")])
        assert result.values["v(out)"] == pytest.approx(1e3 / 1001.0)

    def test_voltage_switch_off(self):
        result = OP("op").run(_voltage_switch(0.0), [RealVoltageExport("out")])
        assert result.values["v(out)"] == pytest.approx(0.0, abs=1e-8)

    @pytest.mark.parametrize("initially_on", [False, True])
    def test_hysteresis_band_keeps_state(self, initially_on):
        circuit = _voltage_switch(1.2, threshold=1.0, hysteresis=0.5, on=initially_on)
        result = OP("op").run(circuit, [RealPropertyExport("S1", "on")])
        assert result.values["S1.on"] == float(initially_on)

    def test_current_switch(self):
        circuit = Circuit(
            CurrentSwitchModel("WM").set_parameter("it", 1e-3),
            CurrentSource("I1", "m", "0", 2e-3),
            VoltageSource("V0", "m", "0", 0.0),
            VoltageSource("V1", "in", "0", 1.0),
            CurrentSwitch("W1", "in", "out", "V0", "WM"),
            Resistor("RL", "out", "0", 1e3),
        )
        result = OP("op").run(circuit, [RealVoltageExport("out")])
        assert result.values["v(out)"] == pytest.approx(1e3 / 1001.0)

    def test_current_switch_needs_branch(self):
        circuit = Circuit(
            CurrentSwitchModel("WM"),
            VoltageSource("V1", "in", "0", 1.0),
            Resistor("R0", "in", "0", 1e3),
            CurrentSwitch("W1", "in", "out", "R0", "WM"),
            Resistor("RL", "out", "0", 1e3),
        )
        with pytest.raises(ConfigurationError):
            OP("op").run(circuit)


# =============================================================================
# Waveforms
# =============================================================================


class TestWaveforms:
    def test_pulse_values(self):
        pulse = Pulse(0.0, 1.0, delay=1.0, rise_time=1.0, fall_time=2.0, pulse_width=1.0, period=10.0)
        assert pulse.value(0.5) == 0.0
        assert pulse.value(1.5) == pytest.approx(0.5)
        assert pulse.value(2.5) == 1.0
        assert pulse.value(4.0) == pytest.approx(0.5)
        assert pulse.value(6.0) == 0.0
        # Second period
        assert pulse.value(11.5) == pytest.approx(0.5)

    def test_pulse_breakpoints(self):
        pulse = Pulse(0.0, 1.0, delay=1.0, rise_time=1.0, fall_time=2.0, pulse_width=1.0, period=10.0)
        assert pulse.next_breakpoint(0.0) == 1.0
        assert pulse.next_breakpoint(1.0) == 2.0
        assert pulse.next_breakpoint(2.0) == 3.0
        assert pulse.next_breakpoint(3.0) == 5.0
        assert pulse.next_breakpoint(5.0) == pytest.approx(11.0)

    def test_single_pulse_has_no_more_corners(self):
        pulse = Pulse(0.0, 1.0, rise_time=1e-9)
        assert pulse.next_breakpoint(1e-9) is None

    def test_invalid_pulse(self):
        with pytest.raises(ConfigurationError):
            Pulse(0.0, 1.0, rise_time=0.0)
        with pytest.raises(ConfigurationError):
            Pulse(0.0, 1.0, rise_time=1.0, fall_time=1.0, pulse_width=1.0, period=2.0)

    def test_sine(self):
        sine = Sine(1.0, 2.0, 1e3)
        assert sine.value(0.0) == pytest.approx(1.0)
        assert sine.value(0.25e-3) == pytest.approx(3.0)
        assert sine.next_breakpoint(0.0) is None

    def test_pwl(self):
        pwl = Pwl([(0.0, 0.0), (1.0, 2.0), (3.0, 2.0)])
        assert pwl.value(0.5) == pytest.approx(1.0)
        assert pwl.value(10.0) == 2.0
        assert pwl.next_breakpoint(0.0) == 1.0
        assert pwl.next_breakpoint(3.0) is None
        with pytest.raises(ConfigurationError):
            Pwl([(1.0, 0.0), (0.5, 1.0)])


# =============================================================================
# Circuit and setup errors
# =============================================================================


class Unregistered(Component):
    pass


class TestSetupErrors:
    def test_pin_count_mismatch(self):
        circuit = Circuit(
            VoltageSource("V1", "a", "0", 1.0),
            Resistor("R1", "a", "0", 1e3).connect("a", "b", "0"),
        )
        with pytest.raises(ConfigurationError, match="pin count"):
            OP("op").run(circuit)

    def test_missing_controlling_source(self):
        circuit = Circuit(
            VoltageSource("V1", "a", "0", 1.0),
            Resistor("R1", "a", "0", 1e3),
            CurrentControlledCurrentSource("F1", "0", "a", "VX", 2.0),
        )
        with pytest.raises(ConfigurationError):
            OP("op").run(circuit)

    def test_controlling_entity_without_branch(self):
        circuit = Circuit(
            VoltageSource("V1", "a", "0", 1.0),
            Resistor("R1", "a", "0", 1e3),
            CurrentControlledCurrentSource("F1", "0", "a", "R1", 2.0),
        )
        with pytest.raises(ConfigurationError):
            OP("op").run(circuit)

    def test_missing_model(self):
        circuit = Circuit(
            VoltageSource("V1", "a", "0", 1.0),
            BipolarTransistor("Q1", "a", "a", "0", "NOPE"),
        )
        with pytest.raises(ConfigurationError):
            OP("op").run(circuit)

    def test_unregistered_entity(self):
        with pytest.raises(ConfigurationError):
            OP("op").run(Circuit(Unregistered("X1", "a", "0")))

    def test_default_registry_is_frozen(self):
        with pytest.raises(ConfigurationError):
            DEFAULT_REGISTRY.register(Unregistered, [ResistorBiasingBehavior])

    def test_duplicate_names(self):
        with pytest.raises(ConfigurationError):
            Circuit(Resistor("R1", "a", "0", 1.0), Resistor("R1", "b", "0", 1.0))

    def test_unknown_parameter(self):
        with pytest.raises(ConfigurationError):
            Resistor("R1", "a", "0", 1.0).set_parameter("bogus", 1.0)

    def test_resistance_required(self):
        with pytest.raises(ConfigurationError):
            OP("op").run(Circuit(Resistor("R1", "a", "0")))

"""Tests for the small-signal AC analysis and frequency sweeps"""

import math

import numpy as np
import pytest

from circuitsim import (
    AC,
    Capacitor,
    Circuit,
    ComplexCurrentExport,
    ComplexVoltageExport,
    DecadeSweep,
    Diode,
    DiodeModel,
    Inductor,
    LinearSweep,
    ListSweep,
    OctaveSweep,
    Resistor,
    VoltageSource,
)
from circuitsim.errors import ConfigurationError


class TestSweeps:
    """Frequency point generation"""

    def test_linear(self):
        np.testing.assert_allclose(np.asarray(LinearSweep(0.0, 1.0, 5)), [0, 0.25, 0.5, 0.75, 1.0])

    def test_decade(self):
        points = np.asarray(DecadeSweep(1.0, 1e3, 10))
        assert len(points) == 31
        assert points[0] == pytest.approx(1.0)
        assert points[10] == pytest.approx(10.0)
        assert points[-1] == pytest.approx(1e3)

    def test_octave(self):
        points = np.asarray(OctaveSweep(1.0, 8.0, 1))
        np.testing.assert_allclose(points, [1.0, 2.0, 4.0, 8.0])

    def test_list(self):
        assert list(ListSweep([3.0, 1.0, 2.0])) == [3.0, 1.0, 2.0]

    @pytest.mark.parametrize("start,stop", [(0.0, 10.0), (10.0, 1.0), (-1.0, 10.0)])
    def test_invalid_logarithmic(self, start, stop):
        with pytest.raises(ConfigurationError):
            DecadeSweep(start, stop, 10)


class TestAC:
    """Small-signal analysis"""

    def test_ccvs(self, ccvs_circuit):
        ccvs_circuit["I1"].set_parameter("acmag", 0.9)
        frequencies = DecadeSweep(1.0, 1e6, 5)
        result = AC("ac", frequencies).run(ccvs_circuit, [ComplexVoltageExport("out")])
        values = result.values["v(out)"]
        assert len(values) == len(result.frequencies) == 31
        np.testing.assert_allclose(values, np.full(len(values), 10.8 + 0j), rtol=1e-12)

    def test_rc_lowpass(self):
        r, c = 1e3, 1e-6
        corner = 1.0 / (2 * math.pi * r * c)
        circuit = Circuit(
            VoltageSource("V1", "in", "0", 0.0).set_parameter("acmag", 1.0),
            Resistor("R1", "in", "out", r),
            Capacitor("C1", "out", "0", c),
        )
        result = AC("ac", [corner / 100, corner, corner * 100]).run(
            circuit, [ComplexVoltageExport("out")]
        )
        out = result.values["v(out)"]
        expected = 1.0 / (1.0 + 1j * np.array([0.01, 1.0, 100.0]))
        np.testing.assert_allclose(out, expected, rtol=1e-9)
        assert np.angle(out[1], deg=True) == pytest.approx(-45.0)

    def test_rl_branch_currents(self):
        circuit = Circuit(
            VoltageSource("V1", "in", "0", 0.0).set_parameter("acmag", 1.0),
            Resistor("R1", "in", "a", 1e3),
            Inductor("L1", "a", "0", 1e-3),
        )
        frequency = 1e5
        result = AC("ac", [frequency]).run(
            circuit, [ComplexCurrentExport("V1"), ComplexCurrentExport("L1")]
        )
        impedance = 1e3 + 2j * math.pi * frequency * 1e-3
        assert result.values["i(L1)"][0] == pytest.approx(1.0 / impedance)
        # Branch current flows into the source's positive terminal
        assert result.values["i(V1)"][0] == pytest.approx(-1.0 / impedance)

    def test_source_phase(self):
        circuit = Circuit(
            VoltageSource("V1", "in", "0", 0.0)
            .set_parameter("acmag", 2.0)
            .set_parameter("acphase", 90.0),
            Resistor("R1", "in", "0", 1e3),
        )
        result = AC("ac", [1.0]).run(circuit, [ComplexVoltageExport("in")])
        assert result.values["v(in)"][0] == pytest.approx(2j, abs=1e-12)

    def test_diode_small_signal(self):
        circuit = Circuit(
            DiodeModel("DM"),
            VoltageSource("V1", "in", "0", 5.0).set_parameter("acmag", 1.0),
            Resistor("R1", "in", "a", 1e3),
            Diode("D1", "a", "0", "DM"),
        )
        result = AC("ac", [1.0]).run(circuit, [ComplexVoltageExport("a")])
        gain = result.values["v(a)"][0]
        # Diode small-signal resistance is far below 1 kOhm in forward bias
        assert 0.0 < gain.real < 0.05
        assert abs(gain.imag) < 1e-9
        assert result.operating_point is not None

    def test_no_frequencies(self, divider):
        with pytest.raises(ConfigurationError):
            AC("ac").run(divider)

"""Tests for running independent simulations concurrently"""

import pytest

from circuitsim import (
    OP,
    BaseConfiguration,
    ConfigurationError,
    DecadeSweep,
    RealVoltageExport,
    Resistor,
    run_parallel,
)
from circuitsim.analysis.ac import AC
from circuitsim.exports import ComplexVoltageExport


class TestRunParallel:
    def test_results_in_input_order(self, divider):
        divider["R1"].set_parameter("tc1", 1e-2)
        temperatures = [290.15, 300.15, 310.15, 320.15]
        results = run_parallel(
            divider,
            lambda temperature: OP("op", BaseConfiguration(temperature=temperature)),
            temperatures,
            exports=lambda: [RealVoltageExport("out")],
            max_workers=4,
        )
        assert len(results) == len(temperatures)
        for temperature, result in zip(temperatures, results):
            r1 = 1e3 * (1.0 + 1e-2 * (temperature - 300.15))
            assert result.values["v(out)"] == pytest.approx(10.0 * 1e3 / (r1 + 1e3))

    def test_failed_job_keeps_its_slot(self, divider):
        def factory(source):
            return OP("op") if source is None else AC("ac", source)

        results = run_parallel(divider, factory, [None, "not-a-sweep", DecadeSweep(1.0, 10.0, 1)])
        assert results[0].values == {}
        assert isinstance(results[1], Exception)
        assert results[2].frequencies.tolist() == pytest.approx([1.0, 10.0])

    def test_configuration_error_reported(self, divider):
        circuit_configs = [BaseConfiguration(), BaseConfiguration(reltol=-1.0)]
        results = run_parallel(
            divider,
            lambda config: OP("op", config),
            circuit_configs,
            exports=lambda: [RealVoltageExport("out")],
        )
        assert results[0].values["v(out)"] == pytest.approx(5.0)
        assert isinstance(results[1], ConfigurationError)

    def test_shared_circuit_is_not_modified(self, divider):
        before = [(entity.name, entity.nodes) for entity in divider]
        run_parallel(
            divider,
            lambda _: AC("ac", [1.0, 2.0]),
            range(8),
            exports=lambda: [ComplexVoltageExport("out")],
        )
        assert [(entity.name, entity.nodes) for entity in divider] == before
        assert isinstance(divider["R1"], Resistor)

"""Exports: values read out of a running simulation

An export is created without a simulation, bound to one during setup and
then sampled every time the analysis produces a point.

Example:
    >>> result = OP("op").run(circuit, [RealVoltageExport("out")])
    >>> result.values["v(out)"]
"""

from typing import Optional

from circuitsim.analysis.behaviors import BiasingBehavior, FrequencyBehavior
from circuitsim.errors import ConfigurationError


class Export:
    """Base class of all exports"""

    def __init__(self, name: str):
        self.name = name
        self._simulation = None

    def bind(self, simulation) -> None:
        self._simulation = simulation

    @property
    def value(self):
        raise NotImplementedError


class RealVoltageExport(Export):
    """Node voltage, optionally relative to a reference node"""

    def __init__(self, node: str, reference: Optional[str] = None, name: Optional[str] = None):
        if name is None:
            name = f"v({node})" if reference is None else f"v({node},{reference})"
        super().__init__(name)
        self.node = node
        self.reference = reference

    def bind(self, simulation) -> None:
        super().bind(simulation)
        self._index = simulation.variables[self.node].index
        self._ref = 0 if self.reference is None else simulation.variables[self.reference].index

    @property
    def value(self) -> float:
        solution = self._simulation.state.solution
        return float(solution[self._index] - solution[self._ref])


class ComplexVoltageExport(RealVoltageExport):
    """Small-signal node voltage phasor"""

    @property
    def value(self) -> complex:
        solution = self._simulation.complex_state.solution
        return complex(solution[self._index] - solution[self._ref])


class RealCurrentExport(Export):
    """Branch current of a voltage source, inductor or voltage-output source"""

    def __init__(self, source: str, name: Optional[str] = None):
        super().__init__(name or f"i({source})")
        self.source = source

    def _branch(self, simulation, behavior_type) -> int:
        behavior = simulation.behaviors.get(self.source, behavior_type)
        branch = getattr(behavior, 'branch', None)
        if branch is None:
            raise ConfigurationError(f"'{self.source}' has no branch current")
        return branch

    def bind(self, simulation) -> None:
        super().bind(simulation)
        self._index = self._branch(simulation, BiasingBehavior)

    @property
    def value(self) -> float:
        return float(self._simulation.state.solution[self._index])


class ComplexCurrentExport(RealCurrentExport):
    """Small-signal branch current phasor"""

    def bind(self, simulation) -> None:
        Export.bind(self, simulation)
        self._index = self._branch(simulation, FrequencyBehavior)

    @property
    def value(self) -> complex:
        return complex(self._simulation.complex_state.solution[self._index])


class RealPropertyExport(Export):
    """Any numeric attribute exposed by one of an entity's behaviors"""

    def __init__(self, entity: str, attribute: str, name: Optional[str] = None):
        super().__init__(name or f"{entity}.{attribute}")
        self.entity = entity
        self.attribute = attribute

    def bind(self, simulation) -> None:
        super().bind(simulation)
        for behavior in simulation.behaviors.for_entity(self.entity):
            if hasattr(behavior, self.attribute):
                self._behavior = behavior
                return
        raise ConfigurationError(f"'{self.entity}' has no property '{self.attribute}'")

    @property
    def value(self) -> float:
        return float(getattr(self._behavior, self.attribute))

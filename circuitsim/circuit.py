"""Circuit description: named entities and their connections

A circuit is an ordered collection of entities (devices and models). The
order is significant: variables and behaviors are created in this order,
which makes every run on the same circuit reproducible.

The circuit and its parameter sets are only read by simulations, so a
single circuit can be shared by simulations running in parallel.
"""

from typing import Dict, Iterator, Optional, Tuple

from circuitsim.errors import ConfigurationError


class Entity:
    """Something that can be simulated (a device or a model)

    Subclasses set ``parameters_class`` to a dataclass holding their
    parameters, and ``aliases`` to map SPICE-style parameter names to its
    field names.
    """

    parameters_class = None
    aliases: Dict[str, str] = {}
    nodes: Tuple[str, ...] = ()

    def __init__(self, name: str):
        if not name:
            raise ConfigurationError("Entity name cannot be empty")
        self.name = name
        self.parameters = self.parameters_class() if self.parameters_class else None

    def _field(self, name: str) -> str:
        field_name = self.aliases.get(name.lower(), name)
        if self.parameters is None or not hasattr(self.parameters, field_name):
            raise ConfigurationError(f"{self.name}: unknown parameter '{name}'")
        return field_name

    def set_parameter(self, name: str, value) -> "Entity":
        setattr(self.parameters, self._field(name), value)
        return self

    def get_parameter(self, name: str):
        return getattr(self.parameters, self._field(name))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Component(Entity):
    """Entity connected to circuit nodes"""

    pin_count = 2

    def __init__(self, name: str, *nodes: str):
        super().__init__(name)
        self.nodes = tuple(nodes)
        self.model: Optional[str] = None

    def connect(self, *nodes: str) -> "Component":
        """Rewire the component. The pin count is checked during setup."""
        self.nodes = tuple(nodes)
        return self


class Model(Entity):
    """Shared parameter set referenced by components"""


class Circuit:
    """Ordered, name-unique collection of entities

    Example:
        >>> circuit = Circuit(
        ...     VoltageSource("V1", "in", "0", 1.0),
        ...     Resistor("R1", "in", "0", 1e3),
        ... )
    """

    def __init__(self, *entities: Entity):
        self._entities: Dict[str, Entity] = {}
        self.add(*entities)

    def add(self, *entities: Entity) -> "Circuit":
        for entity in entities:
            if entity.name in self._entities:
                raise ConfigurationError(f"Duplicate entity name '{entity.name}'")
            self._entities[entity.name] = entity
        return self

    def remove(self, name: str) -> Entity:
        try:
            return self._entities.pop(name)
        except KeyError:
            raise ConfigurationError(f"Could not find entity '{name}'") from None

    def get(self, name: str) -> Optional[Entity]:
        return self._entities.get(name)

    def __getitem__(self, name: str) -> Entity:
        entity = self.get(name)
        if entity is None:
            raise ConfigurationError(f"Could not find entity '{name}'")
        return entity

    def __contains__(self, name: str) -> bool:
        return name in self._entities

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def __len__(self) -> int:
        return len(self._entities)

"""Behavior contracts and the entity -> behavior registry

A behavior is the piece of a device that takes part in one phase of an
analysis. Each phase is a capability class below; a behavior class mixes
in every capability it implements and a simulation instantiates only the
behaviors whose capabilities it needs.

Behaviors communicate with each other only through the simulation state
and through explicit dependencies requested from the
:class:`SetupDataProvider` during setup.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Type

from circuitsim.errors import ConfigurationError

if TYPE_CHECKING:
    from circuitsim.analysis.simulation import Simulation
    from circuitsim.analysis.solver import EquationStore
    from circuitsim.analysis.transient.integration import IntegrationMethod
    from circuitsim.analysis.variables import VariableSet
    from circuitsim.circuit import Entity


class Behavior:
    """Base class of all behaviors"""

    def __init__(self, name: str):
        self.name = name

    def setup(self, simulation: "Simulation", provider: "SetupDataProvider") -> None:
        """Read parameters and resolve dependencies."""

    def unsetup(self, simulation: "Simulation") -> None:
        """Release anything acquired in setup."""


class ConnectedBehavior(Behavior):
    """Behavior bound to circuit nodes"""

    pin_count = 2

    def connect(self, *pins: int) -> None:
        if len(pins) != self.pin_count:
            raise ConfigurationError(
                f"{self.name}: pin count mismatch, {self.pin_count} expected, {len(pins)} given"
            )
        self.pins = tuple(pins)


class TemperatureBehavior(Behavior):
    """Computes temperature-dependent parameters once per analysis"""

    def temperature(self, simulation: "Simulation") -> None:
        raise NotImplementedError


class BiasingBehavior(Behavior):
    """Contributes to the real (DC and transient) system"""

    def allocate(self, variables: "VariableSet", store: "EquationStore") -> None:
        """Create private variables and reserve matrix/RHS slots."""

    def load(self, simulation: "Simulation") -> None:
        raise NotImplementedError

    def is_convergent(self, simulation: "Simulation") -> bool:
        return True


class TimeBehavior(Behavior):
    """Contributes charge/flux dynamics during transient analysis"""

    def allocate_transient(self, variables: "VariableSet", store: "EquationStore") -> None:
        """Reserve the slots used by :meth:`load_transient`."""

    def create_states(self, method: "IntegrationMethod") -> None:
        """Request integration state slots from the method."""

    def initialize_states(self, simulation: "Simulation") -> None:
        """Seed the integration states from the operating point."""

    def load_transient(self, simulation: "Simulation") -> None:
        raise NotImplementedError


class AcceptBehavior(Behavior):
    """Notified whenever a transient timepoint is accepted"""

    def accept(self, simulation: "Simulation") -> None:
        raise NotImplementedError


class FrequencyBehavior(Behavior):
    """Contributes to the complex small-signal system"""

    def allocate_frequency(self, variables: "VariableSet", store: "EquationStore") -> None:
        """Reserve slots in the complex store."""

    def initialize_parameters(self, simulation: "Simulation") -> None:
        """Linearize around the operating point."""

    def load_frequency(self, simulation: "Simulation") -> None:
        raise NotImplementedError


class BehaviorRegistry:
    """Explicit entity type -> behavior classes table

    Built once, frozen, then passed to simulations by reference. Use
    :meth:`copy` to derive an extended registry.
    """

    def __init__(self):
        self._table: Dict[type, List[Type[Behavior]]] = {}
        self._frozen = False

    def register(self, entity_type: type, behaviors: Sequence[Type[Behavior]]) -> None:
        if self._frozen:
            raise ConfigurationError("Behavior registry is frozen")
        self._table[entity_type] = list(behaviors)

    def freeze(self) -> "BehaviorRegistry":
        self._frozen = True
        return self

    def copy(self) -> "BehaviorRegistry":
        registry = BehaviorRegistry()
        registry._table = {k: list(v) for k, v in self._table.items()}
        return registry

    def behaviors_for(self, entity: "Entity") -> List[Type[Behavior]]:
        for klass in type(entity).__mro__:
            if klass in self._table:
                return self._table[klass]
        raise ConfigurationError(
            f"No behaviors registered for {type(entity).__name__} '{entity.name}'"
        )


class BehaviorPool:
    """Behaviors created by one simulation, in creation order

    Entities are set up lazily so that a behavior can depend on the
    behaviors of an entity that appears later in the circuit.
    """

    def __init__(self, simulation: "Simulation", circuit, registry: BehaviorRegistry,
                 behavior_types: Tuple[type, ...]):
        self.simulation = simulation
        self.circuit = circuit
        self.registry = registry
        self.behavior_types = behavior_types
        self.ordered: List[Behavior] = []
        self._by_entity: Dict[str, List[Behavior]] = {}
        self._pending: set = set()

    def create_all(self) -> List[Behavior]:
        for entity in self.circuit:
            self.ensure(entity.name)
        return self.ordered

    def ensure(self, name: str) -> List[Behavior]:
        behaviors = self._by_entity.get(name)
        if behaviors is not None:
            return behaviors
        if name in self._pending:
            raise ConfigurationError(f"Circular dependency involving '{name}'")
        entity = self.circuit.get(name)
        if entity is None:
            raise ConfigurationError(f"Could not find entity '{name}'")

        self._pending.add(name)
        # Nodes exist even if the entity takes no part in this analysis
        pins = [self.simulation.variables.map_node(n).index for n in entity.nodes]
        behaviors = []
        provider = SetupDataProvider(entity, self, behaviors)
        for klass in self.registry.behaviors_for(entity):
            if not issubclass(klass, self.behavior_types):
                continue
            behavior = klass(entity.name)
            behavior.setup(self.simulation, provider)
            if isinstance(behavior, ConnectedBehavior):
                behavior.connect(*pins)
            behaviors.append(behavior)
        self._pending.discard(name)
        self._by_entity[name] = behaviors
        self.ordered.extend(behaviors)
        return behaviors

    def get(self, name: str, behavior_type: type) -> Behavior:
        for behavior in self.ensure(name):
            if isinstance(behavior, behavior_type):
                return behavior
        raise ConfigurationError(
            f"Entity '{name}' has no {behavior_type.__name__} behavior"
        )

    def of_type(self, behavior_type: type) -> List[Behavior]:
        return [b for b in self.ordered if isinstance(b, behavior_type)]

    def for_entity(self, name: str) -> List[Behavior]:
        return self._by_entity.get(name, [])


class SetupDataProvider:
    """What a behavior may see while it is being set up

    Gives access to the entity's own parameters, its model's parameters,
    previously created behaviors of the same entity and behaviors of other
    entities named as dependencies.
    """

    def __init__(self, entity: "Entity", pool: BehaviorPool, created: List[Behavior]):
        self.entity = entity
        self._pool = pool
        self._created = created

    @property
    def parameters(self):
        return self.entity.parameters

    @property
    def model_parameters(self):
        model = self.model_entity()
        return model.parameters

    def model_entity(self) -> "Entity":
        model_name = getattr(self.entity, 'model', None)
        if model_name is None:
            raise ConfigurationError(f"'{self.entity.name}' has no model")
        model = self._pool.circuit.get(model_name)
        if model is None:
            raise ConfigurationError(
                f"Could not find model '{model_name}' for '{self.entity.name}'"
            )
        return model

    def get_behavior(self, behavior_type: type, name: Optional[str] = None) -> Behavior:
        """Get a behavior of this entity or, with ``name``, of another entity."""
        if name is None:
            for behavior in self._created:
                if isinstance(behavior, behavior_type):
                    return behavior
            raise ConfigurationError(
                f"'{self.entity.name}' has no {behavior_type.__name__} behavior"
            )
        return self._pool.get(name, behavior_type)

    def get_model_behavior(self, behavior_type: type) -> Behavior:
        return self._pool.get(self.model_entity().name, behavior_type)


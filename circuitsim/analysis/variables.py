"""Variable registry for circuitsim

Maps node names and branch-current names to contiguous indices in the
solution vector. Index 0 is reserved for ground, which never appears as an
unknown in the linear system.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from circuitsim.errors import ConfigurationError


class VariableKind(Enum):
    """What a solution entry represents (selects its absolute tolerance)"""
    VOLTAGE = 'voltage'
    CURRENT = 'current'


@dataclass(frozen=True)
class Variable:
    """A named unknown of the MNA system"""
    name: str
    index: int
    kind: VariableKind = VariableKind.VOLTAGE


# Names that all resolve to the ground node, compared case-insensitively
GROUND_NAMES = ('0', 'gnd')


def is_ground(name: str) -> bool:
    return name.lower() in GROUND_NAMES


class VariableSet:
    """Registry of circuit unknowns

    Nodes are created on first reference. Branch currents and internal
    nodes are created explicitly by the behaviors that own them, using
    names derived from the owning entity (see :meth:`combine`).

    Example:
        >>> variables = VariableSet()
        >>> variables.map_node('in').index
        1
        >>> variables.map_node('gnd') is variables.ground
        True
    """

    def __init__(self):
        self.ground = Variable('0', 0, VariableKind.VOLTAGE)
        self._variables: List[Variable] = [self.ground]
        self._by_name: Dict[str, Variable] = {'0': self.ground}

    @staticmethod
    def combine(owner: str, suffix: str) -> str:
        """Build the name of a variable private to an entity."""
        return f"{owner}/{suffix}"

    def map_node(self, name: str, kind: VariableKind = VariableKind.VOLTAGE) -> Variable:
        """Return the variable for a node name, creating it if needed."""
        if is_ground(name):
            return self.ground
        variable = self._by_name.get(name)
        if variable is None:
            variable = self._add(name, kind)
        return variable

    def create(self, name: str, kind: VariableKind = VariableKind.VOLTAGE) -> Variable:
        """Create a new variable; the name must not be in use."""
        if is_ground(name) or name in self._by_name:
            raise ConfigurationError(f"Variable '{name}' is already defined")
        return self._add(name, kind)

    def _add(self, name: str, kind: VariableKind) -> Variable:
        variable = Variable(name, len(self._variables), kind)
        self._variables.append(variable)
        self._by_name[name] = variable
        return variable

    def get(self, name: str) -> Optional[Variable]:
        if is_ground(name):
            return self.ground
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> Variable:
        variable = self.get(name)
        if variable is None:
            raise ConfigurationError(f"Unknown node or variable '{name}'")
        return variable

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    @property
    def count(self) -> int:
        """Number of variables including ground"""
        return len(self._variables)

    def names(self) -> List[str]:
        return [v.name for v in self._variables]

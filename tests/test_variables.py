"""Tests for the variable registry"""

import pytest

from circuitsim.analysis.variables import VariableKind, VariableSet
from circuitsim.errors import ConfigurationError


class TestVariableSet:
    """Node and branch variable allocation"""

    def test_ground_aliases(self):
        variables = VariableSet()
        for name in ('0', 'gnd', 'GND', 'Gnd', 'gNd'):
            assert variables.map_node(name).index == 0
            assert variables.map_node(name) is variables.ground
        assert variables.count == 1

    def test_ground_alias_cannot_be_created(self):
        variables = VariableSet()
        with pytest.raises(ConfigurationError):
            variables.create('Gnd')
        assert variables.get('GnD') is variables.ground

    def test_indices_are_contiguous(self):
        variables = VariableSet()
        a = variables.map_node('a')
        b = variables.map_node('b')
        assert (a.index, b.index) == (1, 2)
        # Mapping again returns the same variable
        assert variables.map_node('a') is a
        assert variables.count == 3
        assert [v.index for v in variables] == [0, 1, 2]

    def test_create_branch(self):
        variables = VariableSet()
        variables.map_node('in')
        name = VariableSet.combine('V1', 'branch')
        branch = variables.create(name, VariableKind.CURRENT)
        assert name == 'V1/branch'
        assert branch.index == 2
        assert branch.kind is VariableKind.CURRENT
        assert variables['V1/branch'] is branch

    def test_create_duplicate_fails(self):
        variables = VariableSet()
        variables.map_node('a')
        with pytest.raises(ConfigurationError):
            variables.create('a')
        with pytest.raises(ConfigurationError):
            variables.create('gnd')

    def test_unknown_variable(self):
        variables = VariableSet()
        assert variables.get('missing') is None
        assert 'missing' not in variables
        with pytest.raises(ConfigurationError):
            variables['missing']

    def test_variables_are_immutable(self):
        variables = VariableSet()
        a = variables.map_node('a')
        with pytest.raises(AttributeError):
            a.index = 5

"""Shared building blocks for device behaviors

Slot groups bundle the equation store handles that a device stamp touches,
so the same stamp code serves the real store (DC/transient) and the
complex store (AC).
"""

from circuitsim.analysis.behaviors import ConnectedBehavior
from circuitsim.analysis.solver import EquationStore


class TwoTerminalBehavior(ConnectedBehavior):
    """Behavior connected between a positive and a negative node"""

    pin_count = 2

    def connect(self, *pins: int) -> None:
        super().connect(*pins)
        self.pos, self.neg = pins


class FourTerminalBehavior(ConnectedBehavior):
    """Output port (pos, neg) controlled by a voltage port (cpos, cneg)"""

    pin_count = 4

    def connect(self, *pins: int) -> None:
        super().connect(*pins)
        self.pos, self.neg, self.cpos, self.cneg = pins


class ConductanceSlots:
    """The four matrix elements of a conductance between two nodes"""

    def __init__(self, store: EquationStore, pos: int, neg: int):
        self.store = store
        self.pos_pos = store.matrix_slot(pos, pos)
        self.neg_neg = store.matrix_slot(neg, neg)
        self.pos_neg = store.matrix_slot(pos, neg)
        self.neg_pos = store.matrix_slot(neg, pos)

    def add(self, g) -> None:
        store = self.store
        store.add_matrix(self.pos_pos, g)
        store.add_matrix(self.neg_neg, g)
        store.add_matrix(self.pos_neg, -g)
        store.add_matrix(self.neg_pos, -g)


class CurrentSlots:
    """Right-hand side entries of a current injected into pos (out of neg)"""

    def __init__(self, store: EquationStore, pos: int, neg: int):
        self.store = store
        self.pos = store.rhs_slot(pos)
        self.neg = store.rhs_slot(neg)

    def add(self, current) -> None:
        self.store.add_rhs(self.pos, current)
        self.store.add_rhs(self.neg, -current)


class BranchSlots:
    """Incidence of a branch current between two nodes

    Stamps the KCL terms (branch current leaves pos, enters neg) and the
    voltage terms v(pos) - v(neg) of the branch equation.
    """

    def __init__(self, store: EquationStore, pos: int, neg: int, branch: int):
        self.store = store
        self.branch = branch
        self.pos_branch = store.matrix_slot(pos, branch)
        self.neg_branch = store.matrix_slot(neg, branch)
        self.branch_pos = store.matrix_slot(branch, pos)
        self.branch_neg = store.matrix_slot(branch, neg)
        self.rhs = store.rhs_slot(branch)

    def add(self) -> None:
        store = self.store
        store.add_matrix(self.pos_branch, 1.0)
        store.add_matrix(self.neg_branch, -1.0)
        store.add_matrix(self.branch_pos, 1.0)
        store.add_matrix(self.branch_neg, -1.0)

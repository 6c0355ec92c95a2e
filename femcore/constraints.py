# femcore/constraints.py
"""
Boundary conditions.

A Constraint is an id plus one of four variants:

    NodalConstraint      fix or prescribe individual nodal DOFs   (enforced)
    RigidLink            slave nodes follow a master node          (recognized only)
    EqualDisplacement    nodes share one DOF value                 (recognized only)
    LinearConstraint     Σ c_i·u_i = rhs                           (recognized only)

Only NodalConstraint is enforced by the penalty method; the other variants
are validated and logged as not enforced.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple, Union

from .errors import ValidationError
from .model import Dof


@dataclass(frozen=True)
class NodalConstraint:
    node_id: int
    constraints: Tuple[Tuple[Dof, float], ...]


@dataclass(frozen=True)
class RigidLink:
    master_node: int
    slave_nodes: Tuple[int, ...]
    linked_dofs: Tuple[Dof, ...]


@dataclass(frozen=True)
class EqualDisplacement:
    nodes: Tuple[int, ...]
    dof: Dof


@dataclass(frozen=True)
class ConstraintTerm:
    node_id: int
    dof: Dof
    coefficient: float


@dataclass(frozen=True)
class LinearConstraint:
    terms: Tuple[ConstraintTerm, ...]
    rhs: float = 0.0


ConstraintType = Union[NodalConstraint, RigidLink, EqualDisplacement, LinearConstraint]


def _nodal(id: int, node_id: int, dofs: Sequence[Dof], value: float = 0.0) -> "Constraint":
    return Constraint(id, NodalConstraint(node_id, tuple((Dof(d), value) for d in dofs)))


@dataclass(frozen=True)
class Constraint:
    """
    Examples:
    ---------
    >>> Constraint.fixed_support(1, node_id=0)
    >>> Constraint.roller_support_y(2, node_id=4)      # only uy fixed
    >>> Constraint.prescribed_displacement(3, 2, Dof.UX, 0.001)
    """
    id: int
    constraint_type: ConstraintType

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def nodal(cls, id: int, node_id: int, constraints: Sequence[Tuple[Dof, float]]) -> "Constraint":
        return cls(id, NodalConstraint(node_id, tuple((Dof(d), v) for d, v in constraints)))

    @classmethod
    def fixed_support(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, Dof.all())

    @classmethod
    def pinned_support(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, Dof.translational())

    @classmethod
    def roller_support_x(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UX])

    @classmethod
    def roller_support_y(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UY])

    @classmethod
    def roller_support_z(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UZ])

    @classmethod
    def prescribed_displacement(cls, id: int, node_id: int, dof: Dof, value: float) -> "Constraint":
        return _nodal(id, node_id, [dof], value)

    # Symmetry about a plane normal to the named axis: no translation along
    # the axis, no rotation about the two in-plane axes.
    @classmethod
    def symmetry_x(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UX, Dof.RY, Dof.RZ])

    @classmethod
    def symmetry_y(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UY, Dof.RX, Dof.RZ])

    @classmethod
    def symmetry_z(cls, id: int, node_id: int) -> "Constraint":
        return _nodal(id, node_id, [Dof.UZ, Dof.RX, Dof.RY])

    @classmethod
    def rigid_link(cls, id: int, master_node: int, slave_nodes: Sequence[int],
                   linked_dofs: Sequence[Dof] = tuple(Dof)) -> "Constraint":
        return cls(id, RigidLink(master_node, tuple(slave_nodes), tuple(linked_dofs)))

    @classmethod
    def equal_displacement(cls, id: int, nodes: Sequence[int], dof: Dof) -> "Constraint":
        return cls(id, EqualDisplacement(tuple(nodes), Dof(dof)))

    @classmethod
    def linear_constraint(cls, id: int, terms: Sequence[ConstraintTerm],
                          rhs: float = 0.0) -> "Constraint":
        return cls(id, LinearConstraint(tuple(terms), rhs))

    # ------------------------------------------------------------------
    # References / validation
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return type(self.constraint_type).__name__

    @property
    def is_nodal(self) -> bool:
        return isinstance(self.constraint_type, NodalConstraint)

    def referenced_nodes(self) -> List[int]:
        ct = self.constraint_type
        if isinstance(ct, NodalConstraint):
            return [ct.node_id]
        if isinstance(ct, RigidLink):
            return [ct.master_node, *ct.slave_nodes]
        if isinstance(ct, EqualDisplacement):
            return list(ct.nodes)
        return [t.node_id for t in ct.terms]

    def validate(self) -> None:
        ct = self.constraint_type
        if isinstance(ct, NodalConstraint):
            if not ct.constraints:
                raise ValidationError(f"Constraint {self.id}: no DOFs constrained")
            for dof, value in ct.constraints:
                if not math.isfinite(value):
                    raise ValidationError(
                        f"Constraint {self.id}: value for {Dof(dof).name} is not finite"
                    )
        elif isinstance(ct, RigidLink):
            if not ct.slave_nodes:
                raise ValidationError(f"Constraint {self.id}: rigid link has no slave nodes")
            if ct.master_node in ct.slave_nodes:
                raise ValidationError(f"Constraint {self.id}: master node is also a slave")
        elif isinstance(ct, EqualDisplacement):
            if len(ct.nodes) < 2:
                raise ValidationError(
                    f"Constraint {self.id}: equal displacement needs at least two nodes"
                )
        elif isinstance(ct, LinearConstraint):
            if not ct.terms:
                raise ValidationError(f"Constraint {self.id}: linear constraint has no terms")
            if not all(math.isfinite(t.coefficient) for t in ct.terms) or not math.isfinite(ct.rhs):
                raise ValidationError(f"Constraint {self.id}: non-finite coefficient or rhs")
        else:
            raise ValidationError(f"Constraint {self.id}: unknown type {type(ct).__name__}")


class SupportType(Enum):
    FIXED = "fixed"
    PINNED = "pinned"
    ROLLER_X = "roller_x"
    ROLLER_Y = "roller_y"
    ROLLER_Z = "roller_z"
    FREE = "free"
    GUIDED = "guided"

    def constrained_dofs(self) -> List[Dof]:
        return list(_SUPPORT_DOFS[self])

    def create_constraint(self, id: int, node_id: int) -> Constraint:
        dofs = self.constrained_dofs()
        if not dofs:
            raise ValidationError(f"{self.name} support constrains nothing")
        return _nodal(id, node_id, dofs)


_SUPPORT_DOFS = {
    SupportType.FIXED: tuple(Dof),
    SupportType.PINNED: (Dof.UX, Dof.UY, Dof.UZ),
    SupportType.ROLLER_X: (Dof.UX,),
    SupportType.ROLLER_Y: (Dof.UY,),
    SupportType.ROLLER_Z: (Dof.UZ,),
    SupportType.FREE: (),
    # slides along x; everything else held
    SupportType.GUIDED: (Dof.UY, Dof.UZ, Dof.RX, Dof.RY, Dof.RZ),
}

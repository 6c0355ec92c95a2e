# femcore/kernel/boundary.py
"""
BOUNDARY CONDITIONS: Penalty Enforcement and the Singularity Safety Net
=======================================================================

Constraints are enforced with the penalty method: for every constrained
DOF d with prescribed value v,

    K[d, d] += penalty
    F[d]    += penalty · v

so the solved u[d] ≈ v with an error of order K[d, d]/penalty. Enforcing a
constraint never changes the size or numbering of the system.

After that, apply_automatic_constraints pins every DOF whose row and column
in K are numerically zero (DOFs no element stiffens, e.g. rotations of a
3D truss node in the 6-DOF numbering). Without it K would be singular.
The pinned indices are returned so callers can report them.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..constraints import NodalConstraint
from ..errors import ValidationError
from ..model import Dof, Model
from ..settings import PENALTY_FACTOR, ZERO_TOLERANCE
from .dof import DOFManager

logger = logging.getLogger(__name__)


def collect_nodal_constraints(model: Model,
                              dof: DOFManager) -> Tuple[List[int], List[float], int]:
    """
    Global DOF indices and values from node-level constraints and
    NodalConstraint entries.

    A DOF that does not exist in the numbering scheme, or that no element
    stiffens, is skipped (debug log). Constraint variants other than
    NodalConstraint are not enforced (warning log).

    Returns:
        dofs: Constrained global indices, in model order
        values: Prescribed values, aligned with dofs
        skipped: Number of constrained DOFs left out
    """
    entries: List[Tuple[int, Dof, float]] = []
    for node in model.nodes.values():
        for c in node.constraints:
            entries.append((node.id, Dof(c.dof), c.value))

    for constraint in model.constraints:
        ct = constraint.constraint_type
        if not isinstance(ct, NodalConstraint):
            logger.warning("Constraint %d: %s constraints are not enforced",
                           constraint.id, constraint.kind)
            continue
        for d, value in ct.constraints:
            entries.append((ct.node_id, Dof(d), value))

    dofs: List[int] = []
    values: List[float] = []
    skipped = 0
    for node_id, d, value in entries:
        if not dof.is_dof_applicable(d):
            logger.debug("Node %d %s: no such DOF in this model, constraint skipped",
                         node_id, d.name)
            skipped += 1
            continue
        index = dof.global_index(node_id, d)
        if not dof.is_dof_active(index):
            logger.debug("Node %d %s: DOF %d is inactive, constraint skipped",
                         node_id, d.name, index)
            skipped += 1
            continue
        dofs.append(index)
        values.append(value)

    logger.info("Constraints: %d DOFs constrained, %d skipped", len(dofs), skipped)
    return dofs, values, skipped


def apply_penalty_constraints(
    K: np.ndarray,
    F: np.ndarray,
    dofs: Sequence[int],
    values: Sequence[float],
    penalty: float = PENALTY_FACTOR,
) -> None:
    """
    Enforce u[d] = v by the penalty method (in-place).

    Raises:
        ValidationError: Length mismatch or DOF index out of range
    """
    if len(dofs) != len(values):
        raise ValidationError(
            f"{len(dofs)} constrained DOFs but {len(values)} prescribed values"
        )
    n = K.shape[0]
    for d, v in zip(dofs, values):
        if not 0 <= d < n:
            raise ValidationError(f"Constrained DOF {d} out of range (system size {n})")
        K[d, d] += penalty
        F[d] += penalty * v


def find_unconnected_dofs(K: np.ndarray, tol: float = ZERO_TOLERANCE) -> List[int]:
    """Indices whose row and column in K are all within `tol` of zero."""
    zero_rows = np.all(np.abs(K) <= tol, axis=1)
    zero_cols = np.all(np.abs(K) <= tol, axis=0)
    return [int(i) for i in np.flatnonzero(zero_rows & zero_cols)]


def apply_automatic_constraints(
    K: np.ndarray,
    F: np.ndarray,
    tol: float = ZERO_TOLERANCE,
    penalty: float = PENALTY_FACTOR,
) -> List[int]:
    """
    Pin every DOF whose row and column in K are all within `tol` of zero
    (in-place: K[i, i] = penalty, F[i] = 0).

    Returns:
        Indices of the pinned DOFs
    """
    pinned = find_unconnected_dofs(K, tol)

    for i in pinned:
        K[i, i] = penalty
        F[i] = 0.0

    if pinned:
        logger.warning("Automatically constrained %d unconnected DOFs: %s",
                       len(pinned), pinned if len(pinned) <= 20 else f"{pinned[:20]}...")
    return pinned

# femcore/kernel/assemble.py
"""
ASSEMBLY: Global Matrix and Load Vector Assembly
================================================

PURPOSE:
--------
This module scatter-adds element contributions into global matrices and
builds the global load vector.

Assembly doesn't care about element TYPE. It needs:
- the total number of DOFs
- for each element: its DOF map and its matrix (in global axes)

Whether the element is a 2D truss (4×4), a 2D beam (6×6) or a 3D frame
(12×12), the scatter logic is identical.

PARALLEL ASSEMBLY:
------------------
Above `parallel_threshold` elements, element matrices are formed on a
thread pool. Each worker computes its element matrix on its own and then
takes one lock around the whole global array for the scatter-add. The
result does not depend on element order or on the thread schedule beyond
floating-point summation order.

USAGE:
------
    dof = DOFManager.for_model(model)
    K = assemble_system_matrix(model, dof, "stiffness")
    M = assemble_system_matrix(model, dof, "mass")
    F = assemble_load_vector(model, dof)
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..elements import element_formulation
from ..errors import MatrixError
from ..loads import LoadCombination, NodalForce
from ..model import Dof, Element, Model
from ..settings import PARALLEL_ASSEMBLY_THRESHOLD
from .dof import DOFManager

logger = logging.getLogger(__name__)

Contribution = Tuple[Sequence[int], np.ndarray]


def _scatter(K: np.ndarray, dof_map: Sequence[int], ke: np.ndarray) -> None:
    n_element_dofs = len(dof_map)
    if ke.shape != (n_element_dofs, n_element_dofs):
        raise MatrixError(
            f"Element matrix shape {ke.shape} doesn't match dof_map length {n_element_dofs}"
        )
    idx = np.asarray(dof_map, dtype=int)
    np.add.at(K, (idx[:, None], idx[None, :]), ke)


def assemble_global_K(
    ndof: int,
    contributions: Iterable[Contribution]
) -> np.ndarray:
    """
    Assemble a global matrix from precomputed element contributions.

    ALGORITHM:
    ----------
    K = zeros(ndof × ndof)
    for each element:
        for each (local_i, local_j) in element ke:
            K[dof_map[local_i], dof_map[local_j]] += ke[local_i, local_j]

    Parameters:
    -----------
    ndof : int
        Total number of DOFs in the system
    contributions : iterable of (dof_map, ke)
        - dof_map: global DOF indices of the element
        - ke: element matrix in global axes, shape (len(dof_map), len(dof_map))

    Returns:
    --------
    np.ndarray
        Global matrix, shape (ndof, ndof)
    """
    K = np.zeros((ndof, ndof), dtype=float)
    for dof_map, ke in contributions:
        _scatter(K, dof_map, ke)
    return K


def assemble_global_F(
    ndof: int,
    contributions: Iterable[Tuple[Sequence[int], np.ndarray]]
) -> np.ndarray:
    """
    Assemble a global load vector from element load vectors.

    Same scatter-add logic as assemble_global_K, one dimension down.
    """
    F = np.zeros(ndof, dtype=float)
    for dof_map, fe in contributions:
        if fe.shape != (len(dof_map),):
            raise MatrixError(
                f"Element load shape {fe.shape} doesn't match dof_map length {len(dof_map)}"
            )
        np.add.at(F, np.asarray(dof_map, dtype=int), fe)
    return F


def add_nodal_load(
    F: np.ndarray,
    dof: DOFManager,
    node_id: int,
    nodal_dof: Dof,
    magnitude: float
) -> None:
    """
    Add a point load to the global load vector (in-place).

    >>> F = np.zeros(12)   # 4 nodes, compact 3 DOF/node
    >>> add_nodal_load(F, DOFManager(3, compact=True, n_nodes=4), 1, Dof.UX, 1000.0)
    >>> # Now F[3] = 1000 (horizontal force at node 1)
    """
    F[dof.global_index(node_id, nodal_dof)] += magnitude


# ----------------------------------------------------------------------
# Model-level assembly
# ----------------------------------------------------------------------

def element_contribution(model: Model, element: Element, dof: DOFManager,
                         kind: str = "stiffness") -> Contribution:
    """(dof_map, matrix) for one element; kind is 'stiffness' or 'mass'."""
    formulation = element_formulation(element.element_type)
    nodes = model.element_nodes(element)
    material = model.get_material(element.material_id)
    if kind == "stiffness":
        ke = formulation.global_stiffness_matrix(element, material, nodes)
    elif kind == "mass":
        ke = formulation.mass_matrix(element, material, nodes)
    else:
        raise ValueError(f"Unknown matrix kind {kind!r}")
    return dof.element_dof_map(element.nodes, formulation.node_dofs), ke


def element_contributions(model: Model, dof: DOFManager,
                          kind: str = "stiffness") -> List[Contribution]:
    return [element_contribution(model, e, dof, kind) for e in model.elements.values()]


def assemble_system_matrix(
    model: Model,
    dof: DOFManager,
    kind: str = "stiffness",
    parallel_threshold: int = PARALLEL_ASSEMBLY_THRESHOLD,
    max_workers: Optional[int] = None,
) -> np.ndarray:
    """
    Global stiffness or mass matrix for a model.

    Sequential up to `parallel_threshold` elements, threaded above it.
    Any element error (zero length, missing property, unsupported family)
    propagates and no matrix is returned.
    """
    start = time.perf_counter()
    elements = list(model.elements.values())
    ndof = dof.ndof()
    K = np.zeros((ndof, ndof), dtype=float)

    if len(elements) <= parallel_threshold:
        for element in elements:
            dof_map, ke = element_contribution(model, element, dof, kind)
            _scatter(K, dof_map, ke)
        mode = "sequential"
    else:
        lock = threading.Lock()

        def _work(element: Element) -> None:
            dof_map, ke = element_contribution(model, element, dof, kind)
            with lock:
                _scatter(K, dof_map, ke)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # list() re-raises the first worker exception
            list(executor.map(_work, elements))
        mode = "parallel"

    logger.info(
        "Assembled %s matrix (%d DOFs, %d elements, %s) in %.3fs",
        kind, ndof, len(elements), mode, time.perf_counter() - start,
    )
    return K


def assemble_load_vector(
    model: Model,
    dof: DOFManager,
    combination: Optional[LoadCombination] = None,
) -> np.ndarray:
    """
    Global load vector from the model's nodal forces.

    Each load is scaled by its own factor and, under a combination, by the
    factor of its load case; loads whose case is not in the combination are
    left out. Loads in a load case the model has switched off are left out
    too. Non-nodal loads and forces on DOFs that do not exist or that no
    element stiffens are logged and skipped.
    """
    F = np.zeros(dof.ndof(), dtype=float)
    applied = 0

    for load in model.loads:
        if not model.is_load_active(load):
            logger.debug("Load %d: load case %s is inactive", load.id, load.load_case)
            continue
        extra = 1.0
        if combination is not None:
            case_factor = combination.factor_for(load.load_case)
            if case_factor is None:
                logger.debug("Load %d (case %s) not in combination %s",
                             load.id, load.load_case, combination.name)
                continue
            extra = case_factor

        lt = load.factored(extra)
        if not isinstance(lt, NodalForce):
            logger.warning("Load %d: %s loads are not applied", load.id, load.kind)
            continue
        if not dof.is_dof_applicable(lt.dof):
            logger.warning("Load %d: %s does not exist in this model; skipped",
                           load.id, lt.dof.name)
            continue

        index = dof.global_index(lt.node_id, lt.dof)
        if not dof.is_dof_active(index):
            logger.warning("Load %d: node %d %s is not connected to any element; skipped",
                           load.id, lt.node_id, lt.dof.name)
            continue

        F[index] += lt.magnitude
        applied += 1

    logger.info("Load vector: %d of %d loads applied", applied, len(model.loads))
    return F


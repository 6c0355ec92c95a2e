# femcore/post.py
"""Element end forces and nodal displacement tables from a solved displacement vector."""

from typing import Dict

import numpy as np

from .elements import element_formulation
from .kernel.dof import DOFManager
from .kernel.linalg import compute_element_forces
from .model import Element, ElementType, Model
from .results import ElementForces


def element_end_forces_local(
    model: Model,
    element: Element,
    d_global: np.ndarray,
    dof: DOFManager,
) -> np.ndarray:
    """
    Compute element end forces in LOCAL coordinates from global displacements.

    The process:
    1. Extract the element's global displacements
    2. Transform to local coordinates (u_local = T · u_global)
    3. Compute forces using f = k_local · u_local

    Returns:
    --------
    np.ndarray
        [f_i, f_j], the forces the nodes exert on the element, one entry
        per element DOF (e.g. [Ni, Vi, Mi, Nj, Vj, Mj] for a 2D beam).
    """
    formulation = element_formulation(element.element_type)
    nodes = model.element_nodes(element)
    material = model.get_material(element.material_id)

    dof_map = dof.element_dof_map(element.nodes, formulation.node_dofs)
    d_elem_global = d_global[np.asarray(dof_map, dtype=int)]

    T = formulation.transformation_matrix(nodes, element)
    d_local = T @ d_elem_global

    k_local = formulation.local_stiffness_matrix(element, material, nodes)
    return compute_element_forces(k_local, d_local)


def element_forces(
    model: Model,
    element: Element,
    d_global: np.ndarray,
    dof: DOFManager,
) -> ElementForces:
    """
    Internal forces of an element, read at end i. Axial force is taken at
    end j so that tension is positive.
    """
    f = element_end_forces_local(model, element, d_global, dof)
    n = len(f) // 2
    et = element.element_type

    if et in (ElementType.TRUSS_2D, ElementType.TRUSS_3D):
        return ElementForces(axial=float(f[n]), end_forces=f)
    if et in (ElementType.BEAM_2D, ElementType.FRAME_2D):
        return ElementForces(axial=float(f[3]), shear_y=float(f[1]),
                             moment_z=float(f[2]), end_forces=f)
    return ElementForces(
        axial=float(f[6]),
        shear_y=float(f[1]),
        shear_z=float(f[2]),
        moment_x=float(f[3]),
        moment_y=float(f[4]),
        moment_z=float(f[5]),
        end_forces=f,
    )


def recover_element_forces(
    model: Model,
    d_global: np.ndarray,
    dof: DOFManager,
) -> Dict[int, ElementForces]:
    return {eid: element_forces(model, e, d_global, dof) for eid, e in model.elements.items()}


def compute_nodal_displacements(
    model: Model,
    d_global: np.ndarray,
    dof: DOFManager,
) -> Dict[int, Dict[str, float]]:
    """
    Nodal displacements by name.

    Returns:
    --------
    Dict[int, Dict[str, float]]
        node_id → {'ux', 'uy', ... (the DOFs of the numbering scheme), 'magnitude'}
        where magnitude is the norm of the translations.
    """
    result = {}
    for node_id in model.nodes:
        entry = {}
        for d in dof.layout:
            entry[d.name.lower()] = float(d_global[dof.global_index(node_id, d)])
        translations = [entry[d.name.lower()] for d in dof.layout if not d.is_rotational]
        entry["magnitude"] = float(np.linalg.norm(translations))
        result[node_id] = entry
    return result

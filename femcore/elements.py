# femcore/elements.py
"""
ELEMENT FORMULATIONS: Stiffness, Transformation and Mass Matrices
=================================================================

PURPOSE:
--------
Each element family gets one ElementFormulation subclass that knows how to
build, for a single element:

    local_stiffness_matrix(element, material, nodes)   K_local (local axes)
    transformation_matrix(nodes)                       T, with u_local = T · u_global
    global_stiffness_matrix(element, material, nodes)  Tᵀ · K_local · T
    mass_matrix(element, material, nodes)              M in global axes

`node_dofs` lists, per node, which nodal DOFs the element's matrices refer
to and in what order. The DOF manager uses it to build scatter maps.

FAMILIES:
---------
    TRUSS_2D            2 nodes × (ux, uy)                 axial only
    TRUSS_3D            2 nodes × (ux, uy, uz)             axial only
    BEAM_2D, FRAME_2D   2 nodes × (ux, uy, rz)             Euler–Bernoulli
    BEAM_3D, FRAME_3D   2 nodes × (ux..rz)                 axial + torsion + 2 bending planes
    PLATE, SHELL, SOLID                                    UnsupportedError

LOCAL AXES (3D):
----------------
    x = unit vector from node i to node j
    y = x × Z_global, normalized (x × Y_global if the member is vertical)
    z = x × y
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidMaterialError, UnsupportedError, ValidationError
from .materials import Material
from .model import Dof, Element, ElementType, Node


MIN_ELEMENT_LENGTH = 1e-12
VERTICAL_TOLERANCE = 1e-6
PLANAR_TOLERANCE = 1e-9     # |dz| / L above this is out of plane for a 2D element


def element_geometry(nodes: Sequence[Node], element: Optional[Element] = None) -> Tuple[float, np.ndarray]:
    """
    Length and unit direction vector (i → j) of a line element.

    Raises:
        ValidationError: If the element has (numerically) zero length
    """
    ni, nj = nodes[0], nodes[1]
    delta = np.array([nj.x - ni.x, nj.y - ni.y, nj.z - ni.z], dtype=float)
    L = float(np.linalg.norm(delta))
    if L < MIN_ELEMENT_LENGTH:
        label = f"Element {element.id}" if element is not None else "Element"
        raise ValidationError(f"{label} has zero length (L={L:.3e})")
    return L, delta / L


def local_axes(direction: np.ndarray) -> np.ndarray:
    """
    3×3 rotation matrix whose rows are the local x, y, z axes.
    """
    x = np.asarray(direction, dtype=float)
    y = np.cross(x, [0.0, 0.0, 1.0])
    if np.linalg.norm(y) < VERTICAL_TOLERANCE:
        y = np.cross(x, [0.0, 1.0, 0.0])
    y = y / np.linalg.norm(y)
    z = np.cross(x, y)
    return np.vstack([x, y, z])


def _require_property(element: Element, name: str) -> float:
    value = getattr(element.properties, name)
    if value is None:
        raise InvalidMaterialError(
            f"Element {element.id} ({element.element_type.value}) needs section property '{name}'",
            property_name=name,
        )
    if value <= 0:
        raise InvalidMaterialError(
            f"Element {element.id}: section property '{name}' must be positive, got {value}",
            property_name=name,
        )
    return value


def _require_material(element: Element, material: Material, name: str) -> float:
    if not material.is_linear_elastic:
        raise UnsupportedError(
            f"Element {element.id}: material {material.id} is {material.material_type.value}; "
            f"only linear elastic materials are supported"
        )
    value = getattr(material.properties, name)
    if value is None:
        raise InvalidMaterialError(
            f"Material {material.id} ({material.name}) used by element {element.id} has no {name}",
            property_name=name,
        )
    return value


class ElementFormulation:
    """Base class. Subclasses set `dofs` and implement the matrix builders."""

    dofs: Tuple[Dof, ...] = ()
    n_nodes: int = 2
    planar: bool = False

    def geometry(self, nodes: Sequence[Node],
                 element: Optional[Element] = None) -> Tuple[float, np.ndarray]:
        L, e = element_geometry(nodes, element)
        if self.planar and abs(e[2]) > PLANAR_TOLERANCE:
            label = f"Element {element.id}" if element is not None else "Element"
            raise ValidationError(
                f"{label} is a 2D element but its nodes differ in z (dz={L * e[2]:.3e})"
            )
        return L, e

    @property
    def node_dofs(self) -> List[Dof]:
        return list(self.dofs)

    @property
    def size(self) -> int:
        return self.n_nodes * len(self.dofs)

    def local_stiffness_matrix(self, element: Element, material: Material,
                               nodes: Sequence[Node]) -> np.ndarray:
        raise NotImplementedError

    def transformation_matrix(self, nodes: Sequence[Node],
                              element: Optional[Element] = None) -> np.ndarray:
        raise NotImplementedError

    def mass_matrix(self, element: Element, material: Material,
                    nodes: Sequence[Node]) -> np.ndarray:
        raise NotImplementedError

    def global_stiffness_matrix(self, element: Element, material: Material,
                                nodes: Sequence[Node]) -> np.ndarray:
        k_local = self.local_stiffness_matrix(element, material, nodes)
        T = self.transformation_matrix(nodes, element)
        return T.T @ k_local @ T


# ----------------------------------------------------------------------
# Trusses
# ----------------------------------------------------------------------

class _TrussFormulation(ElementFormulation):
    """
    Axial bar. K_local has EA/L coupling on the two local-x DOFs and zeros
    elsewhere; the mass matrix is consistent, ρAL/6·[[2, 1], [1, 2]] per
    translational direction (invariant under rotation, so built directly
    in global axes).
    """

    def local_stiffness_matrix(self, element, material, nodes):
        E = _require_material(element, material, "young_modulus")
        A = _require_property(element, "area")
        L, _ = self.geometry(nodes, element)
        n = len(self.dofs)
        k = np.zeros((2 * n, 2 * n), dtype=float)
        EA_L = E * A / L
        k[np.ix_([0, n], [0, n])] = EA_L * np.array([[1.0, -1.0], [-1.0, 1.0]])
        return k

    def mass_matrix(self, element, material, nodes):
        rho = _require_material(element, material, "density")
        A = _require_property(element, "area")
        L, _ = self.geometry(nodes, element)
        m = rho * A * L
        n = len(self.dofs)
        M = np.zeros((2 * n, 2 * n), dtype=float)
        for d in range(n):
            M[np.ix_([d, n + d], [d, n + d])] = m / 6.0 * np.array([[2.0, 1.0], [1.0, 2.0]])
        return M


class Truss2DFormulation(_TrussFormulation):
    dofs = (Dof.UX, Dof.UY)
    planar = True

    def transformation_matrix(self, nodes, element=None):
        _, e = self.geometry(nodes, element)
        c, s = e[0], e[1]
        R = np.array([[c, s], [-s, c]], dtype=float)
        T = np.zeros((4, 4), dtype=float)
        T[:2, :2] = R
        T[2:, 2:] = R
        return T


class Truss3DFormulation(_TrussFormulation):
    dofs = (Dof.UX, Dof.UY, Dof.UZ)

    def transformation_matrix(self, nodes, element=None):
        _, e = self.geometry(nodes, element)
        R = local_axes(e)
        T = np.zeros((6, 6), dtype=float)
        T[:3, :3] = R
        T[3:, 3:] = R
        return T


# ----------------------------------------------------------------------
# 2D beam / frame
# ----------------------------------------------------------------------

class Beam2DFormulation(ElementFormulation):
    """
    Euler–Bernoulli beam-column in the xy plane.
    DOF order: [uix, uiy, rzi, ujx, ujy, rzj]
    """
    dofs = (Dof.UX, Dof.UY, Dof.RZ)
    planar = True

    def local_stiffness_matrix(self, element, material, nodes):
        E = _require_material(element, material, "young_modulus")
        A = _require_property(element, "area")
        I = _require_property(element, "inertia_z")
        L, _ = self.geometry(nodes, element)

        EA_L = E * A / L
        EI = E * I
        L2 = L * L
        L3 = L2 * L

        k = np.array([
            [ EA_L,       0.0,       0.0,  -EA_L,       0.0,       0.0],
            [  0.0,  12*EI/L3,   6*EI/L2,    0.0, -12*EI/L3,   6*EI/L2],
            [  0.0,   6*EI/L2,    4*EI/L,    0.0,  -6*EI/L2,    2*EI/L],
            [-EA_L,       0.0,       0.0,   EA_L,       0.0,       0.0],
            [  0.0, -12*EI/L3,  -6*EI/L2,    0.0,  12*EI/L3,  -6*EI/L2],
            [  0.0,   6*EI/L2,    2*EI/L,    0.0,  -6*EI/L2,    4*EI/L],
        ], dtype=float)
        return k

    def transformation_matrix(self, nodes, element=None):
        _, e = self.geometry(nodes, element)
        c, s = e[0], e[1]
        T = np.array([
            [ c,  s, 0,  0, 0, 0],
            [-s,  c, 0,  0, 0, 0],
            [ 0,  0, 1,  0, 0, 0],
            [ 0,  0, 0,  c, s, 0],
            [ 0,  0, 0, -s, c, 0],
            [ 0,  0, 0,  0, 0, 1],
        ], dtype=float)
        return T

    def mass_matrix(self, element, material, nodes):
        """Consistent mass, formed in local axes and rotated to global."""
        rho = _require_material(element, material, "density")
        A = _require_property(element, "area")
        L, _ = self.geometry(nodes, element)
        m = rho * A * L

        M = np.zeros((6, 6), dtype=float)
        M[np.ix_([0, 3], [0, 3])] = m / 6.0 * np.array([[2.0, 1.0], [1.0, 2.0]])
        M[np.ix_([1, 2, 4, 5], [1, 2, 4, 5])] = m / 420.0 * np.array([
            [ 156.0,   22*L,   54.0,  -13*L],
            [  22*L, 4*L*L,   13*L, -3*L*L],
            [  54.0,   13*L,  156.0,  -22*L],
            [ -13*L, -3*L*L,  -22*L,  4*L*L],
        ])
        T = self.transformation_matrix(nodes, element)
        return T.T @ M @ T


# ----------------------------------------------------------------------
# 3D frame
# ----------------------------------------------------------------------

class Frame3DFormulation(ElementFormulation):
    """
    12-DOF space frame: axial (EA/L), torsion (GJ/L), bending about local z
    (inertia_z, deflection along local y) and about local y (inertia_y,
    deflection along local z).
    DOF order per node: [ux, uy, uz, rx, ry, rz]
    """
    dofs = tuple(Dof)

    def local_stiffness_matrix(self, element, material, nodes):
        E = _require_material(element, material, "young_modulus")
        nu = _require_material(element, material, "poisson_ratio")
        A = _require_property(element, "area")
        Iy = _require_property(element, "inertia_y")
        Iz = _require_property(element, "inertia_z")
        J = _require_property(element, "torsional_constant")
        L, _ = self.geometry(nodes, element)
        G = E / (2.0 * (1.0 + nu))

        L2 = L * L
        L3 = L2 * L
        k = np.zeros((12, 12), dtype=float)

        def put(i, j, value):
            k[i, j] = value
            k[j, i] = value

        # axial
        put(0, 0, E * A / L); put(6, 6, E * A / L); put(0, 6, -E * A / L)
        # torsion
        put(3, 3, G * J / L); put(9, 9, G * J / L); put(3, 9, -G * J / L)

        # bending in the local xy plane (v, θz)
        a, b, c, d = 12*E*Iz/L3, 6*E*Iz/L2, 4*E*Iz/L, 2*E*Iz/L
        put(1, 1, a);   put(1, 5, b);   put(1, 7, -a);  put(1, 11, b)
        put(5, 5, c);   put(5, 7, -b);  put(5, 11, d)
        put(7, 7, a);   put(7, 11, -b)
        put(11, 11, c)

        # bending in the local xz plane (w, θy)
        a, b, c, d = 12*E*Iy/L3, 6*E*Iy/L2, 4*E*Iy/L, 2*E*Iy/L
        put(2, 2, a);   put(2, 4, -b);  put(2, 8, -a);  put(2, 10, -b)
        put(4, 4, c);   put(4, 8, b);   put(4, 10, d)
        put(8, 8, a);   put(8, 10, b)
        put(10, 10, c)

        return k

    def transformation_matrix(self, nodes, element=None):
        _, e = self.geometry(nodes, element)
        R = local_axes(e)
        T = np.zeros((12, 12), dtype=float)
        for block in range(4):
            s = slice(3 * block, 3 * block + 3)
            T[s, s] = R
        return T

    def mass_matrix(self, element, material, nodes):
        """Lumped: half the mass per node on translations, mL²/12 on rotations."""
        rho = _require_material(element, material, "density")
        A = _require_property(element, "area")
        L, _ = self.geometry(nodes, element)
        m = rho * A * L

        diag = np.array([m / 2.0] * 3 + [m * L * L / 12.0] * 3)
        return np.diag(np.concatenate([diag, diag]))


# ----------------------------------------------------------------------
# Placeholders
# ----------------------------------------------------------------------

class UnsupportedFormulation(ElementFormulation):
    """Plate, shell and solid elements: recognized but not implemented."""

    def __init__(self, element_type: ElementType):
        self.element_type = element_type
        self.dofs = tuple(Dof)[:element_type.dofs_per_node]
        self.n_nodes = element_type.expected_nodes

    def _refuse(self, *args, **kwargs):
        raise UnsupportedError(f"{self.element_type.value} elements are not implemented")

    local_stiffness_matrix = _refuse
    transformation_matrix = _refuse
    mass_matrix = _refuse
    global_stiffness_matrix = _refuse


_FORMULATIONS: Dict[ElementType, ElementFormulation] = {
    ElementType.TRUSS_2D: Truss2DFormulation(),
    ElementType.TRUSS_3D: Truss3DFormulation(),
    ElementType.BEAM_2D: Beam2DFormulation(),
    ElementType.FRAME_2D: Beam2DFormulation(),
    ElementType.BEAM_3D: Frame3DFormulation(),
    ElementType.FRAME_3D: Frame3DFormulation(),
    ElementType.PLATE: UnsupportedFormulation(ElementType.PLATE),
    ElementType.SHELL: UnsupportedFormulation(ElementType.SHELL),
    ElementType.SOLID: UnsupportedFormulation(ElementType.SOLID),
}


def element_formulation(element_type: ElementType) -> ElementFormulation:
    """Formulation for an element family. Every ElementType has an entry."""
    return _FORMULATIONS[element_type]


def compute_stiffness_matrix(element: Element, material: Material,
                             nodes: Sequence[Node]) -> np.ndarray:
    """Element stiffness matrix in global axes."""
    return element_formulation(element.element_type).global_stiffness_matrix(
        element, material, nodes
    )


def compute_mass_matrix(element: Element, material: Material,
                        nodes: Sequence[Node]) -> np.ndarray:
    """Element mass matrix in global axes."""
    return element_formulation(element.element_type).mass_matrix(element, material, nodes)

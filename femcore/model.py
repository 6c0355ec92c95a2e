# femcore/model.py
"""
MODEL DEFINITIONS: Nodes, Elements and the Structural Model Container
=====================================================================

PURPOSE:
--------
This module defines the data structures every analysis starts from:

    Dof                 one of the six nodal degrees of freedom
    Node                a point in space, optionally carrying constraints
    ElementType         the element families the engine knows about
    ElementProperties   cross-section / thickness data for an element
    Element             connectivity + material + properties
    Model               the container tying nodes, elements, materials,
                        loads and constraints together

Materials, loads and constraints live in their own modules
(materials.py, loads.py, constraints.py).

INVARIANTS:
-----------
- Node coordinates are finite.
- An element references as many nodes as its family expects, without repeats.
- Everything an element, load or constraint references exists in the model.
  Model.add_* checks this before insertion and Model.validate() re-checks
  the whole model before an analysis.
"""

import copy
import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .errors import InvalidReferenceError, ValidationError
from .materials import Material
from .settings import AnalysisSettings

if TYPE_CHECKING:
    from .constraints import Constraint
    from .loads import Load, LoadCase


class Dof(IntEnum):
    """
    Nodal degrees of freedom.

    The integer value is the DOF offset in the 6-DOF-per-node numbering
    scheme: ux=0, uy=1, uz=2, rx=3, ry=4, rz=5.
    """
    UX = 0
    UY = 1
    UZ = 2
    RX = 3
    RY = 4
    RZ = 5

    @classmethod
    def all(cls) -> List["Dof"]:
        return list(cls)

    @classmethod
    def translational(cls) -> List["Dof"]:
        return [cls.UX, cls.UY, cls.UZ]

    @classmethod
    def rotational(cls) -> List["Dof"]:
        return [cls.RX, cls.RY, cls.RZ]

    @property
    def is_rotational(self) -> bool:
        return self >= Dof.RX


@dataclass(frozen=True)
class DofConstraint:
    """A fixation (value 0) or prescribed displacement carried by a node."""
    dof: Dof
    value: float = 0.0

    @classmethod
    def fixed(cls, dof: Dof) -> "DofConstraint":
        return cls(dof, 0.0)

    @classmethod
    def prescribed(cls, dof: Dof, value: float) -> "DofConstraint":
        return cls(dof, value)


@dataclass(frozen=True)
class Node:
    """
    A node (joint) in 3D space.

    Parameters:
    -----------
    id : int
        Non-negative identifier. The DOF manager derives global DOF
        indices from it, so sparse ids leave unused rows in K.
    x, y, z : float
        Coordinates in the global system. 2D models use z = 0.
    constraints : tuple of DofConstraint
        Optional per-DOF fixations or prescribed values. These are
        enforced exactly like a NodalConstraint on the same node.

    Examples:
    ---------
    >>> Node(0, 0.0, 0.0)
    >>> Node(1, 1.0, 0.0, 0.0, constraints=(DofConstraint.fixed(Dof.UX),))
    """
    id: int
    x: float
    y: float
    z: float = 0.0
    constraints: Tuple[DofConstraint, ...] = ()

    @property
    def coords(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def distance_to(self, other: "Node") -> float:
        return math.sqrt(
            (other.x - self.x) ** 2 + (other.y - self.y) ** 2 + (other.z - self.z) ** 2
        )

    def validate(self) -> None:
        if self.id < 0:
            raise ValidationError(f"Node id must be non-negative, got {self.id}")
        for name, value in zip("xyz", self.coords):
            if not math.isfinite(value):
                raise ValidationError(f"Node {self.id}: coordinate {name} is not finite ({value})")
        for c in self.constraints:
            if not math.isfinite(c.value):
                raise ValidationError(
                    f"Node {self.id}: constraint on {c.dof.name} has non-finite value"
                )


class ElementType(Enum):
    """Element families. Plate, shell and solid are recognized but not implemented."""
    TRUSS_2D = "truss_2d"
    TRUSS_3D = "truss_3d"
    BEAM_2D = "beam_2d"
    BEAM_3D = "beam_3d"
    FRAME_2D = "frame_2d"
    FRAME_3D = "frame_3d"
    PLATE = "plate"
    SHELL = "shell"
    SOLID = "solid"

    @property
    def dofs_per_node(self) -> int:
        return _DOFS_PER_NODE[self]

    @property
    def expected_nodes(self) -> int:
        if self in (ElementType.PLATE, ElementType.SHELL):
            return 3
        if self is ElementType.SOLID:
            return 4
        return 2

    @property
    def is_2d(self) -> bool:
        return self in (ElementType.TRUSS_2D, ElementType.BEAM_2D, ElementType.FRAME_2D)


_DOFS_PER_NODE = {
    ElementType.TRUSS_2D: 2,
    ElementType.TRUSS_3D: 3,
    ElementType.BEAM_2D: 3,
    ElementType.BEAM_3D: 6,
    ElementType.FRAME_2D: 3,
    ElementType.FRAME_3D: 6,
    ElementType.PLATE: 3,
    ElementType.SHELL: 6,
    ElementType.SOLID: 3,
}


@dataclass(frozen=True)
class ElementProperties:
    """
    Section data for an element. Every field is optional; each element
    family checks for the ones it needs when its matrices are formed.

    inertia_y / inertia_z are second moments of area about the local
    y / z axes. 2D beams bend about local z and use inertia_z.
    """
    area: Optional[float] = None
    inertia_y: Optional[float] = None
    inertia_z: Optional[float] = None
    torsional_constant: Optional[float] = None
    thickness: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @classmethod
    def truss(cls, area: float) -> "ElementProperties":
        return cls(area=area)

    @classmethod
    def beam(cls, area: float, inertia_y: float, inertia_z: float,
             torsional_constant: float) -> "ElementProperties":
        return cls(area=area, inertia_y=inertia_y, inertia_z=inertia_z,
                   torsional_constant=torsional_constant)

    @classmethod
    def beam_2d(cls, area: float, inertia: float) -> "ElementProperties":
        return cls(area=area, inertia_z=inertia)

    @classmethod
    def plate(cls, thickness: float) -> "ElementProperties":
        return cls(thickness=thickness)

    def validate(self) -> None:
        for name, value in self.__dict__.items():
            if value is not None and not math.isfinite(value):
                raise ValidationError(f"Element property {name} is not finite ({value})")


@dataclass(frozen=True)
class Element:
    """
    A finite element: an ordered tuple of node ids plus material and section.

    For line elements the node order defines the local x axis (i → j).
    """
    id: int
    element_type: ElementType
    nodes: Tuple[int, ...]
    material_id: int
    properties: ElementProperties = field(default_factory=ElementProperties)

    def validate(self) -> None:
        expected = self.element_type.expected_nodes
        if len(self.nodes) != expected:
            raise ValidationError(
                f"Element {self.id} ({self.element_type.value}) needs {expected} nodes, "
                f"got {len(self.nodes)}"
            )
        if len(set(self.nodes)) != len(self.nodes):
            raise ValidationError(f"Element {self.id} references the same node twice: {self.nodes}")
        self.properties.validate()


@dataclass
class Model:
    """
    The structural model: everything an analysis needs.

    Nodes, elements and materials are keyed by id; loads and constraints
    are ordered lists. Use the add_* methods rather than touching the
    containers directly, they validate and reject duplicates and dangling
    references.

    A model handed to a solver is treated as read-only. Parametric studies
    and batch runs work on `copy()`.
    """
    name: str = "model"
    nodes: Dict[int, Node] = field(default_factory=dict)
    elements: Dict[int, Element] = field(default_factory=dict)
    materials: Dict[int, Material] = field(default_factory=dict)
    loads: List["Load"] = field(default_factory=list)
    constraints: List["Constraint"] = field(default_factory=list)
    load_cases: Dict[str, "LoadCase"] = field(default_factory=dict)
    analysis_settings: AnalysisSettings = field(default_factory=AnalysisSettings)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        node.validate()
        if node.id in self.nodes:
            raise ValidationError(f"Duplicate node id {node.id}")
        self.nodes[node.id] = node
        return node

    def add_material(self, material: Material) -> Material:
        material.validate()
        if material.id in self.materials:
            raise ValidationError(f"Duplicate material id {material.id}")
        self.materials[material.id] = material
        return material

    def add_element(self, element: Element) -> Element:
        element.validate()
        if element.id in self.elements:
            raise ValidationError(f"Duplicate element id {element.id}")
        self._check_element_refs(element)
        self.elements[element.id] = element
        return element

    def add_load(self, load: "Load") -> "Load":
        load.validate()
        if any(existing.id == load.id for existing in self.loads):
            raise ValidationError(f"Duplicate load id {load.id}")
        self._check_load_refs(load)
        self.loads.append(load)
        return load

    def add_load_case(self, load_case: "LoadCase") -> "LoadCase":
        if load_case.name in self.load_cases:
            raise ValidationError(f"Duplicate load case {load_case.name!r}")
        self.load_cases[load_case.name] = load_case
        return load_case

    def is_load_active(self, load: "Load") -> bool:
        """
        False when the load belongs to a registered load case that is switched
        off, either by its `load_case` name or by id in a case's `load_ids`.
        """
        for case in self.load_cases.values():
            if not case.active and (case.name == load.load_case or load.id in case.load_ids):
                return False
        return True

    def add_constraint(self, constraint: "Constraint") -> "Constraint":
        constraint.validate()
        if any(existing.id == constraint.id for existing in self.constraints):
            raise ValidationError(f"Duplicate constraint id {constraint.id}")
        self._check_constraint_refs(constraint)
        self.constraints.append(constraint)
        return constraint

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_node(self, node_id: int) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise InvalidReferenceError("Node", node_id) from None

    def get_element(self, element_id: int) -> Element:
        try:
            return self.elements[element_id]
        except KeyError:
            raise InvalidReferenceError("Element", element_id) from None

    def get_material(self, material_id: int) -> Material:
        try:
            return self.materials[material_id]
        except KeyError:
            raise InvalidReferenceError("Material", material_id) from None

    def element_nodes(self, element: Element) -> List[Node]:
        return [self.get_node(nid) for nid in element.nodes]

    def total_dofs(self) -> int:
        """
        Size of the global system the solvers build: (max node id + 1) times
        the DOFs per node of the numbering scheme the element families select.
        """
        if not self.elements:
            return 0
        from .kernel.dof import DOFManager
        return DOFManager.for_model(self).ndof()

    def copy(self) -> "Model":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the whole model. Raises ValidationError or InvalidReferenceError
        on the first problem found.
        """
        if not self.nodes:
            raise ValidationError("Model has no nodes")
        if not self.elements:
            raise ValidationError("Model has no elements")

        for node in self.nodes.values():
            node.validate()
        for material in self.materials.values():
            material.validate()
        for element in self.elements.values():
            element.validate()
            self._check_element_refs(element)
        for load in self.loads:
            load.validate()
            self._check_load_refs(load)
        for constraint in self.constraints:
            constraint.validate()
            self._check_constraint_refs(constraint)
        self.analysis_settings.validate()

    def _check_element_refs(self, element: Element) -> None:
        for nid in element.nodes:
            if nid not in self.nodes:
                raise InvalidReferenceError("Node", nid)
        if element.material_id not in self.materials:
            raise InvalidReferenceError("Material", element.material_id)

    def _check_load_refs(self, load: "Load") -> None:
        for nid in load.referenced_nodes():
            if nid not in self.nodes:
                raise InvalidReferenceError("Node", nid)
        for eid in load.referenced_elements():
            if eid not in self.elements:
                raise InvalidReferenceError("Element", eid)

    def _check_constraint_refs(self, constraint: "Constraint") -> None:
        for nid in constraint.referenced_nodes():
            if nid not in self.nodes:
                raise InvalidReferenceError("Node", nid)

# femcore/kernel/dof.py
"""
DOF MANAGER: Global Degree of Freedom Numbering
===============================================

PURPOSE:
--------
This module maps (node_id, Dof) to global DOF indices. One DOFManager is
built per model and shared by everything that touches a global vector or
matrix: stiffness and mass assembly, the load vector, constraint
enforcement, and result lookup. Using one numbering for all of them is what
keeps K, M, F and the constrained DOF list consistent.

NUMBERING SCHEMES:
------------------
    Compact (every element is a 2D family, ≤ 3 DOF/node):
        index = node_id × dof_per_node + offset
        offsets: ux → 0, uy → 1, rz → 2   (rz only when dof_per_node = 3)

        2D truss only:      2 DOF/node (ux, uy)
        2D beams/frames:    3 DOF/node (ux, uy, rz)

    Full (anything else):
        index = node_id × 6 + Dof value
        ux, uy, uz, rx, ry, rz → 0..5

The system size is (max node id + 1) × dof_per_node, so node ids act as
row blocks. A DOF that no element touches is "inactive": its row and
column in K are zero.

USAGE:
------
    dof = DOFManager.for_model(model)
    i = dof.global_index(node_id=2, dof=Dof.UY)
    dof_map = dof.element_dof_map(element.nodes, formulation.node_dofs)
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Set

from ..elements import element_formulation
from ..errors import ValidationError
from ..model import Dof

if TYPE_CHECKING:
    from ..model import Model


COMPACT_LAYOUT = (Dof.UX, Dof.UY, Dof.RZ)
FULL_DOF_PER_NODE = 6


@dataclass
class DOFManager:
    """
    Manages degree-of-freedom indexing for a model.

    Attributes:
    -----------
    dof_per_node : int
        2 or 3 in the compact scheme, 6 in the full scheme
    compact : bool
        True for the compact 2D scheme
    n_nodes : int
        Number of node slots (max node id + 1)
    active : set of int
        Global indices touched by at least one element

    Examples:
    ---------
    >>> dof = DOFManager(dof_per_node=3, compact=True, n_nodes=4)
    >>> dof.global_index(1, Dof.RZ)
    5
    >>> dof.ndof()
    12
    >>> DOFManager(dof_per_node=6, n_nodes=2).global_index(1, Dof.UZ)
    8
    """
    dof_per_node: int
    compact: bool = False
    n_nodes: int = 0
    active: Set[int] = field(default_factory=set)

    def __post_init__(self):
        if self.compact:
            if not 1 <= self.dof_per_node <= len(COMPACT_LAYOUT):
                raise ValidationError(
                    f"Compact numbering supports at most 3 DOF/node, got {self.dof_per_node}"
                )
            layout = COMPACT_LAYOUT[:self.dof_per_node]
        else:
            if self.dof_per_node != FULL_DOF_PER_NODE:
                raise ValidationError(
                    f"Full numbering uses 6 DOF/node, got {self.dof_per_node}"
                )
            layout = tuple(Dof)
        self._offsets: Dict[Dof, int] = {d: i for i, d in enumerate(layout)}

    @classmethod
    def for_model(cls, model: "Model") -> "DOFManager":
        """
        Choose the numbering scheme for a model and record its active DOFs.
        """
        types = [e.element_type for e in model.elements.values()]
        n_nodes = max(model.nodes) + 1 if model.nodes else 0
        max_dpn = max((t.dofs_per_node for t in types), default=0)

        if types and all(t.is_2d for t in types) and max_dpn <= len(COMPACT_LAYOUT):
            manager = cls(dof_per_node=max_dpn, compact=True, n_nodes=n_nodes)
        else:
            manager = cls(dof_per_node=FULL_DOF_PER_NODE, n_nodes=n_nodes)

        for element in model.elements.values():
            formulation = element_formulation(element.element_type)
            manager.active.update(manager.element_dof_map(element.nodes, formulation.node_dofs))
        return manager

    @property
    def layout(self) -> List[Dof]:
        """The Dofs that exist in this scheme, in offset order."""
        return list(self._offsets)

    def idx(self, node_id: int, local_dof: int) -> int:
        """
        Global index from a node id and a raw offset (0 to dof_per_node-1).
        """
        return self.dof_per_node * node_id + local_dof

    def ndof(self, n_nodes: Optional[int] = None) -> int:
        """Total number of DOFs (size of K)."""
        if n_nodes is None:
            n_nodes = self.n_nodes
        return self.dof_per_node * n_nodes

    def is_dof_applicable(self, dof: Dof) -> bool:
        """Whether a Dof exists in this numbering scheme (uz does not in 2D)."""
        return Dof(dof) in self._offsets

    def global_index(self, node_id: int, dof: Dof) -> int:
        """
        Global index for a node's Dof.

        Raises:
            ValidationError: If the Dof does not exist in this scheme
        """
        try:
            offset = self._offsets[Dof(dof)]
        except KeyError:
            raise ValidationError(
                f"{Dof(dof).name} has no index in a {self.dof_per_node}-DOF/node model"
            ) from None
        return self.idx(node_id, offset)

    def node_dofs(self, node_id: int) -> List[int]:
        """
        All global indices of one node, in offset order.

        >>> DOFManager(dof_per_node=3, compact=True).node_dofs(2)
        [6, 7, 8]
        """
        base = self.dof_per_node * node_id
        return list(range(base, base + self.dof_per_node))

    def element_dof_map(self, node_ids: Sequence[int],
                        dofs: Optional[Iterable[Dof]] = None) -> List[int]:
        """
        Scatter map for an element.

        Parameters:
        -----------
        node_ids : sequence of int
            Element connectivity, in element order
        dofs : iterable of Dof, optional
            The element's per-node DOFs in matrix order (see
            ElementFormulation.node_dofs). Defaults to every DOF of the scheme.

        Returns:
        --------
        List[int]
            Flattened global indices: node by node, DOF by DOF

        Examples:
        ---------
        >>> dof = DOFManager(dof_per_node=6, n_nodes=3)
        >>> dof.element_dof_map([0, 2], [Dof.UX, Dof.UY, Dof.UZ])
        [0, 1, 2, 12, 13, 14]
        """
        dofs = list(dofs) if dofs is not None else self.layout
        result = []
        for node_id in node_ids:
            result.extend(self.global_index(node_id, d) for d in dofs)
        return result

    def is_dof_active(self, index: int) -> bool:
        return index in self.active

    def active_dofs(self) -> List[int]:
        return sorted(self.active)

    def inactive_dofs(self) -> List[int]:
        return [i for i in range(self.ndof()) if i not in self.active]

# femcore/results.py
"""Analysis results containers."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np

from .errors import ValidationError
from .model import Dof
from .settings import AnalysisType

if TYPE_CHECKING:
    from .kernel.dof import DOFManager


@dataclass
class ConvergenceInfo:
    iterations: int = 1
    residual_norm: float = 0.0
    converged: bool = True
    tolerance: float = 1e-6


@dataclass
class ElementForces:
    """
    Internal forces of one element, in its local axes, at end i.

    Sign convention: axial > 0 is tension. For trusses only `axial` is set.
    `end_forces` holds the full local end-force vector [f_i, f_j].
    """
    axial: Optional[float] = None
    shear_y: Optional[float] = None
    shear_z: Optional[float] = None
    moment_x: Optional[float] = None
    moment_y: Optional[float] = None
    moment_z: Optional[float] = None
    end_forces: Optional[np.ndarray] = None


@dataclass
class AnalysisResults:
    """
    Everything an analysis produces.

    For static runs `displacements` and `reactions` are full global vectors
    numbered by `dof_manager`. For modal runs `displacements` carries the
    natural frequencies in Hz (one per mode) and the same values are also in
    `frequencies`, with mode shapes (ndof × n_modes) in `mode_shapes`.
    """
    analysis_type: AnalysisType
    displacements: np.ndarray
    reactions: np.ndarray
    element_forces: Dict[int, ElementForces] = field(default_factory=dict)
    strain_energy: float = 0.0
    convergence_info: Optional[ConvergenceInfo] = None
    frequencies: Optional[np.ndarray] = None
    mode_shapes: Optional[np.ndarray] = None
    auto_constrained_dofs: List[int] = field(default_factory=list)
    skipped_constraints: int = 0
    dof_manager: Optional["DOFManager"] = None

    def max_displacement(self) -> float:
        if self.displacements.size == 0:
            return 0.0
        return float(np.max(np.abs(self.displacements)))

    def max_reaction(self) -> float:
        if self.reactions.size == 0:
            return 0.0
        return float(np.max(np.abs(self.reactions)))

    def displacement_at_dof(self, index: int) -> float:
        self._require_nodal_vectors("displacement")
        return float(self.displacements[index])

    def reaction_at_dof(self, index: int) -> float:
        self._require_nodal_vectors("reaction")
        return float(self.reactions[index])

    def node_displacement(self, node_id: int, dof: Dof) -> float:
        """Displacement of one nodal DOF (static results only)."""
        return self.displacement_at_dof(self._index(node_id, dof))

    def node_reaction(self, node_id: int, dof: Dof) -> float:
        return self.reaction_at_dof(self._index(node_id, dof))

    def node_mode_shape(self, node_id: int, dof: Dof, mode: int = 0) -> float:
        """Amplitude of one nodal DOF in a mass-normalized mode shape."""
        if self.mode_shapes is None:
            raise ValidationError(f"{self.analysis_type.value} results carry no mode shapes")
        return float(self.mode_shapes[self._index(node_id, dof), mode])

    def _require_nodal_vectors(self, what: str) -> None:
        # modal displacements hold frequencies, not a DOF-numbered vector
        if self.analysis_type is AnalysisType.MODAL:
            raise ValidationError(
                f"Modal results have no nodal {what}s; use mode_shapes or node_mode_shape()"
            )

    def _index(self, node_id: int, dof: Dof) -> int:
        if self.dof_manager is None:
            raise ValueError("Results carry no DOF numbering")
        return self.dof_manager.global_index(node_id, dof)

    def summary(self) -> Dict[str, Any]:
        out = {
            "analysis_type": self.analysis_type.value,
            "max_displacement": self.max_displacement(),
            "max_reaction": self.max_reaction(),
            "strain_energy": self.strain_energy,
            "n_auto_constrained": len(self.auto_constrained_dofs),
        }
        if self.frequencies is not None and len(self.frequencies):
            out["fundamental_frequency"] = float(self.frequencies[0])
        if self.convergence_info is not None:
            out["residual_norm"] = self.convergence_info.residual_norm
        return out

# femcore/solvers.py
"""
SOLVERS: Static, Modal and Time-History Analyses
================================================

Each solver runs one analysis end to end:

    validate → assemble K (+M) → assemble loads → enforce constraints
             → check conditioning → solve → derive quantities → package

Any failure raises a typed error from femcore.errors; a solver never
returns partial results.

STATIC:
-------
    K·u = F with penalty constraints. Reactions and strain energy are
    computed from the assembled (pre-penalty) K and F:

        R = K·u − F        U = ½·uᵀ·K·u

MODAL:
------
    K·φ = ω²·M·φ on the free DOFs, K and M numbered by one DOFManager.

TIME HISTORY:
-------------
    Validation only; integration is not implemented.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .errors import InvalidMaterialError, UnsupportedError, ValidationError
from .kernel.assemble import assemble_load_vector, assemble_system_matrix
from .kernel.boundary import (
    apply_automatic_constraints,
    apply_penalty_constraints,
    collect_nodal_constraints,
    find_unconnected_dofs,
)
from .kernel.dof import DOFManager
from .kernel.linalg import (
    condition_number,
    residual_norm,
    solve_iterative,
    solve_linear_system,
    strain_energy,
)
from .kernel.modal import natural_frequencies
from .loads import LoadCombination, Seismic
from .model import Model
from .post import recover_element_forces
from .results import AnalysisResults, ConvergenceInfo
from .settings import (
    DEFAULT_DAMPING_RATIO,
    DEFAULT_EIGEN_MODES,
    DENSE_SOLVE_LIMIT,
    AnalysisSettings,
    AnalysisType,
    SolverType,
)

logger = logging.getLogger(__name__)


@dataclass
class AssembledSystem:
    """
    Global system of a static analysis, before and after constraints.

    K and F are as assembled; K_constrained and F_constrained carry the
    penalty terms and automatic constraints and are what gets solved.
    """
    dof: DOFManager
    K: np.ndarray
    F: np.ndarray
    K_constrained: np.ndarray
    F_constrained: np.ndarray
    constrained_dofs: List[int] = field(default_factory=list)
    constrained_values: List[float] = field(default_factory=list)
    auto_constrained_dofs: List[int] = field(default_factory=list)
    skipped_constraints: int = 0


def has_nodal_constraints(model: Model) -> bool:
    if any(node.constraints for node in model.nodes.values()):
        return True
    return any(c.is_nodal for c in model.constraints)


def check_densities(model: Model) -> None:
    """Every material used by an element must carry a density."""
    used = {e.material_id for e in model.elements.values()}
    for material_id in sorted(used):
        material = model.get_material(material_id)
        if material.properties.density is None:
            raise InvalidMaterialError(
                f"Material {material.id} ({material.name}) needs a density for dynamic analysis",
                property_name="density",
            )


class Solver:
    """Base class: holds settings, defines validate() and solve()."""

    analysis_type: AnalysisType

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings

    def settings_for(self, model: Model) -> AnalysisSettings:
        """Explicit settings if given, otherwise the model's own."""
        return self.settings if self.settings is not None else model.analysis_settings

    def validate(self, model: Model) -> None:
        self.settings_for(model).validate()
        model.validate()

    def solve(self, model: Model) -> AnalysisResults:
        raise NotImplementedError


class StaticSolver(Solver):
    """
    Linear static analysis.

    Args:
        settings: Analysis settings (defaults to the model's at solve time
            when not given)
        combination: Optional load combination to assemble the loads under
    """
    analysis_type = AnalysisType.STATIC

    def __init__(self, settings: Optional[AnalysisSettings] = None,
                 combination: Optional[LoadCombination] = None):
        super().__init__(settings)
        self.combination = combination

    def validate(self, model: Model) -> None:
        super().validate(model)
        if not has_nodal_constraints(model):
            raise ValidationError(
                "Static analysis needs at least one nodal constraint; the structure is free to move"
            )
        if not model.loads:
            logger.warning("Model %s has no loads; displacements will be zero", model.name)

    def assemble_system(self, model: Model) -> AssembledSystem:
        settings = self.settings_for(model)
        dof = DOFManager.for_model(model)
        K = assemble_system_matrix(
            model, dof, "stiffness",
            parallel_threshold=settings.parallel_threshold,
            max_workers=settings.max_workers,
        )
        F = assemble_load_vector(model, dof, self.combination)

        dofs, values, skipped = collect_nodal_constraints(model, dof)
        K_c = K.copy()
        F_c = F.copy()
        apply_penalty_constraints(K_c, F_c, dofs, values)
        auto = apply_automatic_constraints(K_c, F_c)

        return AssembledSystem(
            dof=dof,
            K=K,
            F=F,
            K_constrained=K_c,
            F_constrained=F_c,
            constrained_dofs=dofs,
            constrained_values=values,
            auto_constrained_dofs=auto,
            skipped_constraints=skipped,
        )

    def _solve_system(self, settings: AnalysisSettings, A: np.ndarray, b: np.ndarray):
        solver_type = settings.solver_type
        if solver_type is SolverType.SPARSE:
            logger.warning("Sparse solver not available; using the direct solver")
            solver_type = SolverType.DIRECT

        if solver_type is SolverType.ITERATIVE:
            return solve_iterative(A, b)
        return solve_linear_system(A, b), 1

    def solve(self, model: Model) -> AnalysisResults:
        start = time.perf_counter()
        self.validate(model)
        settings = self.settings_for(model)
        system = self.assemble_system(model)

        cond = condition_number(system.K_constrained)
        if cond > settings.cond_limit:
            logger.warning(
                "Constrained stiffness matrix is ill-conditioned (cond=%.2e > %.0e); check supports",
                cond, settings.cond_limit,
            )

        u, iterations = self._solve_system(settings, system.K_constrained, system.F_constrained)

        residual = residual_norm(system.K_constrained, u, system.F_constrained)
        scale = max(1.0, float(np.linalg.norm(system.F_constrained)))
        converged = residual <= settings.tolerance * scale
        if not converged:
            logger.warning("Static residual %.3e exceeds tolerance %.1e·%.3e",
                           residual, settings.tolerance, scale)

        reactions = system.K @ u - system.F
        results = AnalysisResults(
            analysis_type=AnalysisType.STATIC,
            displacements=u,
            reactions=reactions,
            element_forces=recover_element_forces(model, u, system.dof),
            strain_energy=strain_energy(system.K, u),
            convergence_info=ConvergenceInfo(
                iterations=iterations,
                residual_norm=residual,
                converged=converged,
                tolerance=settings.tolerance,
            ),
            auto_constrained_dofs=system.auto_constrained_dofs,
            skipped_constraints=system.skipped_constraints,
            dof_manager=system.dof,
        )
        logger.info("Static analysis of %s: %d DOFs, max |u|=%.4e, %.3fs",
                    model.name, len(u), results.max_displacement(), time.perf_counter() - start)
        return results


class ModalSolver(Solver):
    """
    Natural frequencies and mode shapes.

    Args:
        num_modes: Number of modes to extract
        settings: Analysis settings
    """
    analysis_type = AnalysisType.MODAL
    dense_eigen_limit = DENSE_SOLVE_LIMIT

    def __init__(self, num_modes: int = DEFAULT_EIGEN_MODES,
                 settings: Optional[AnalysisSettings] = None):
        super().__init__(settings)
        if num_modes <= 0:
            raise ValidationError(f"num_modes must be positive, got {num_modes}")
        self.num_modes = num_modes

    def validate(self, model: Model) -> None:
        super().validate(model)
        check_densities(model)

    def solve(self, model: Model) -> AnalysisResults:
        start = time.perf_counter()
        self.validate(model)
        settings = self.settings_for(model)

        dof = DOFManager.for_model(model)
        K = assemble_system_matrix(model, dof, "stiffness",
                                   parallel_threshold=settings.parallel_threshold,
                                   max_workers=settings.max_workers)
        M = assemble_system_matrix(model, dof, "mass",
                                   parallel_threshold=settings.parallel_threshold,
                                   max_workers=settings.max_workers)

        constrained, _, skipped = collect_nodal_constraints(model, dof)
        unconnected = find_unconnected_dofs(K)
        if unconnected:
            logger.warning("Removing %d unconnected DOFs from the eigenproblem", len(unconnected))
        fixed = sorted(set(constrained) | set(unconnected))

        freqs, shapes, free = natural_frequencies(
            K, M, fixed, self.num_modes, dense_limit=self.dense_eigen_limit
        )
        mode_shapes = np.zeros((dof.ndof(), shapes.shape[1]))
        mode_shapes[free, :] = shapes

        logger.info("Modal analysis of %s: %d modes, f1=%.4g Hz, %.3fs",
                    model.name, len(freqs), freqs[0] if len(freqs) else float("nan"),
                    time.perf_counter() - start)

        return AnalysisResults(
            analysis_type=AnalysisType.MODAL,
            displacements=freqs.copy(),
            reactions=np.zeros(0),
            convergence_info=ConvergenceInfo(tolerance=settings.tolerance),
            frequencies=freqs,
            mode_shapes=mode_shapes,
            auto_constrained_dofs=unconnected,
            skipped_constraints=skipped,
            dof_manager=dof,
        )


class TimeHistorySolver(Solver):
    """
    Time-history analysis. Inputs are validated; integration itself is
    not implemented and solve() raises UnsupportedError.
    """
    analysis_type = AnalysisType.TIME_HISTORY

    def __init__(self, time_step: float, duration: float,
                 damping_ratio: float = DEFAULT_DAMPING_RATIO,
                 settings: Optional[AnalysisSettings] = None):
        super().__init__(settings)
        self.time_step = time_step
        self.duration = duration
        self.damping_ratio = damping_ratio

    def validate(self, model: Model) -> None:
        super().validate(model)
        if not self.time_step > 0:
            raise ValidationError(f"time_step must be positive, got {self.time_step}")
        if not self.duration > 0:
            raise ValidationError(f"duration must be positive, got {self.duration}")
        if self.damping_ratio < 0:
            raise ValidationError(f"damping_ratio must be non-negative, got {self.damping_ratio}")
        check_densities(model)
        if not any(isinstance(load.load_type, Seismic) for load in model.loads):
            logger.warning("Time-history analysis of %s has no seismic load", model.name)

    def solve(self, model: Model) -> AnalysisResults:
        self.validate(model)
        raise UnsupportedError("Time-history integration is not implemented")

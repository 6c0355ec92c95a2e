# femcore/settings.py
"""Analysis settings and the numerical defaults shared across the engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ValidationError


# Numerical defaults
PENALTY_FACTOR = 1e12               # added to K[d, d] for each constrained DOF
ZERO_TOLERANCE = 1e-12              # |K_ij| below this counts as zero
DENSE_SOLVE_LIMIT = 1000            # unknowns; above this the iterative path is used
PARALLEL_ASSEMBLY_THRESHOLD = 100   # elements; above this assembly is threaded
CG_TOLERANCE = 1e-10                # relative to ||b||
CG_MAX_ITERATIONS = 1000
COND_WARNING_LIMIT = 1e12

DEFAULT_EIGEN_MODES = 10
DEFAULT_TIME_STEP = 0.01
DEFAULT_DURATION = 1.0
DEFAULT_DAMPING_RATIO = 0.05


class SolverType(Enum):
    DIRECT = "direct"
    ITERATIVE = "iterative"
    SPARSE = "sparse"


class AnalysisType(Enum):
    STATIC = "static"
    MODAL = "modal"
    TIME_HISTORY = "time_history"
    BUCKLING = "buckling"
    NONLINEAR_STATIC = "nonlinear_static"


@dataclass
class AnalysisSettings:
    """
    Knobs for a single analysis run.

    Attributes:
        tolerance: Convergence tolerance for iterative procedures
        max_iterations: Iteration budget for iterative procedures
        solver_type: Linear solver family (SPARSE falls back to DIRECT)
        eigen_modes: Number of modes for modal analysis (default 10)
        time_step: Time step for time-history analysis (default 0.01 s)
        duration: Duration for time-history analysis (default 1.0 s)
        parallel_threshold: Element count above which assembly is threaded
        max_workers: Thread count for parallel assembly (None = executor default)
        cond_limit: Condition number above which a warning is logged
    """
    tolerance: float = 1e-6
    max_iterations: int = 100
    solver_type: SolverType = SolverType.DIRECT
    eigen_modes: Optional[int] = None
    time_step: Optional[float] = None
    duration: Optional[float] = None
    parallel_threshold: int = PARALLEL_ASSEMBLY_THRESHOLD
    max_workers: Optional[int] = None
    cond_limit: float = COND_WARNING_LIMIT

    def validate(self) -> None:
        if not self.tolerance > 0:
            raise ValidationError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations <= 0:
            raise ValidationError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.parallel_threshold < 0:
            raise ValidationError(
                f"parallel_threshold must be non-negative, got {self.parallel_threshold}"
            )
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValidationError(f"max_workers must be positive, got {self.max_workers}")
        if self.eigen_modes is not None and self.eigen_modes <= 0:
            raise ValidationError(f"eigen_modes must be positive, got {self.eigen_modes}")
        if self.time_step is not None and not self.time_step > 0:
            raise ValidationError(f"time_step must be positive, got {self.time_step}")
        if self.duration is not None and not self.duration > 0:
            raise ValidationError(f"duration must be positive, got {self.duration}")
        if not self.cond_limit > 0:
            raise ValidationError(f"cond_limit must be positive, got {self.cond_limit}")

# femcore/analysis.py
"""
ANALYSIS ORCHESTRATION: Runner, Facade, Parametric Studies
==========================================================

    AnalysisRunner        picks the solver for an AnalysisType and runs it
    Analysis              model-bound facade over the runner
    ModelSummary          counts and families of a model
    ParametricAnalysis    repeat a static analysis over a parameter sweep
    golden_section_search / minimize_displacement
                          1-D minimization over a model parameter

Batch and parametric runs work on deep copies, so the caller's model is
never touched by an analysis.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import FEMError, InvalidReferenceError, UnsupportedError, ValidationError
from .loads import LoadCombination
from .materials import Material
from .model import Model, Node
from .results import AnalysisResults
from .settings import (
    DEFAULT_DURATION,
    DEFAULT_EIGEN_MODES,
    DEFAULT_TIME_STEP,
    AnalysisType,
)
from .solvers import ModalSolver, StaticSolver, TimeHistorySolver

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    """Result of one analysis in a batch: either results or the error raised."""
    analysis_type: AnalysisType
    results: Optional[AnalysisResults] = None
    error: Optional[FEMError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AnalysisRunner:
    """Dispatch an AnalysisType to its solver, using the model's settings."""

    @staticmethod
    def run_analysis(model: Model, analysis_type: AnalysisType) -> AnalysisResults:
        settings = model.analysis_settings
        logger.info("Running %s analysis on %s", analysis_type.value, model.name)

        if analysis_type is AnalysisType.STATIC:
            return StaticSolver().solve(model)
        if analysis_type is AnalysisType.MODAL:
            num_modes = settings.eigen_modes or DEFAULT_EIGEN_MODES
            return ModalSolver(num_modes).solve(model)
        if analysis_type is AnalysisType.TIME_HISTORY:
            time_step = settings.time_step or DEFAULT_TIME_STEP
            duration = settings.duration or DEFAULT_DURATION
            return TimeHistorySolver(time_step, duration).solve(model)
        raise UnsupportedError(f"{analysis_type.value} analysis is not implemented")

    @staticmethod
    def run_multiple_analyses(model: Model, analyses: Sequence[AnalysisType],
                              fail_fast: bool = True) -> List[AnalysisOutcome]:
        """
        Run several analyses in order on one snapshot of the model.

        With fail_fast the first error propagates; otherwise each failure is
        recorded on its outcome and the batch continues.
        """
        snapshot = model.copy()
        outcomes = []
        for analysis_type in analyses:
            try:
                results = AnalysisRunner.run_analysis(snapshot, analysis_type)
            except FEMError as e:
                if fail_fast:
                    raise
                logger.warning("%s analysis failed: %s", analysis_type.value, e)
                outcomes.append(AnalysisOutcome(analysis_type, error=e))
                continue
            outcomes.append(AnalysisOutcome(analysis_type, results=results))
        return outcomes


@dataclass
class ModelSummary:
    num_nodes: int
    num_elements: int
    num_materials: int
    num_loads: int
    num_constraints: int
    total_dofs: int
    element_types: List[str] = field(default_factory=list)
    material_types: List[str] = field(default_factory=list)

    @classmethod
    def from_model(cls, model: Model) -> "ModelSummary":
        return cls(
            num_nodes=len(model.nodes),
            num_elements=len(model.elements),
            num_materials=len(model.materials),
            num_loads=len(model.loads),
            num_constraints=len(model.constraints),
            total_dofs=model.total_dofs(),
            element_types=sorted({e.element_type.value for e in model.elements.values()}),
            material_types=sorted({m.material_type.value for m in model.materials.values()}),
        )

    def format(self) -> str:
        return "\n".join([
            "Model Summary:",
            f"  Nodes: {self.num_nodes}",
            f"  Elements: {self.num_elements}",
            f"  Materials: {self.num_materials}",
            f"  Loads: {self.num_loads}",
            f"  Constraints: {self.num_constraints}",
            f"  Total DOFs: {self.total_dofs}",
            f"  Element types: {', '.join(self.element_types)}",
            f"  Material types: {', '.join(self.material_types)}",
        ])


class Analysis:
    """
    Facade binding a model to the solvers.

    >>> analysis = Analysis(model)
    >>> static = analysis.static_analysis()
    >>> modal = analysis.modal_analysis(num_modes=5)
    """

    def __init__(self, model: Model):
        self.model = model

    def static_analysis(self, combination: Optional[LoadCombination] = None) -> AnalysisResults:
        return StaticSolver(combination=combination).solve(self.model)

    def modal_analysis(self, num_modes: int = DEFAULT_EIGEN_MODES) -> AnalysisResults:
        return ModalSolver(num_modes).solve(self.model)

    def time_history_analysis(self, time_step: float, duration: float) -> AnalysisResults:
        return TimeHistorySolver(time_step, duration).solve(self.model)

    def run(self, analysis_type: AnalysisType) -> AnalysisResults:
        return AnalysisRunner.run_analysis(self.model, analysis_type)

    def run_multiple(self, analyses: Sequence[AnalysisType],
                     fail_fast: bool = True) -> List[AnalysisOutcome]:
        return AnalysisRunner.run_multiple_analyses(self.model, analyses, fail_fast)

    def model_summary(self) -> ModelSummary:
        return ModelSummary.from_model(self.model)

    def validate(self) -> None:
        self.model.validate()


class ParametricAnalysis:
    """
    Static analyses over a sweep of one parameter. Every run gets its own
    deep copy of the base model.
    """

    def __init__(self, base_model: Model):
        self.base_model = base_model

    def vary_material_property(
        self,
        material_id: int,
        modifier: Callable[[Material, float], Material],
        values: Sequence[float],
    ) -> List[AnalysisResults]:
        """
        Args:
            material_id: Material to modify
            modifier: (material, value) -> modified material
            values: Parameter values to sweep
        """
        if material_id not in self.base_model.materials:
            raise InvalidReferenceError("Material", material_id)
        results = []
        for value in values:
            model = self.base_model.copy()
            model.materials[material_id] = modifier(model.materials[material_id], value)
            results.append(Analysis(model).static_analysis())
        return results

    def vary_node_coordinate(
        self,
        node_id: int,
        modifier: Callable[[Node, float], Node],
        values: Sequence[float],
    ) -> List[AnalysisResults]:
        """
        Args:
            node_id: Node to move
            modifier: (node, value) -> modified node, e.g.
                ``lambda n, v: dataclasses.replace(n, y=v)``
            values: Parameter values to sweep
        """
        if node_id not in self.base_model.nodes:
            raise InvalidReferenceError("Node", node_id)
        results = []
        for value in values:
            model = self.base_model.copy()
            model.nodes[node_id] = modifier(model.nodes[node_id], value)
            results.append(Analysis(model).static_analysis())
        return results


GOLDEN_RATIO = (1.0 + math.sqrt(5.0)) / 2.0


def golden_section_search(
    objective: Callable[[float], float],
    a: float,
    b: float,
    tolerance: float = 1e-6,
) -> float:
    """
    Minimize a unimodal function on [a, b] by golden-section search.

    Returns:
        Midpoint of the final bracket (width ≤ tolerance)
    """
    if not tolerance > 0:
        raise ValidationError(f"tolerance must be positive, got {tolerance}")
    if not a < b:
        raise ValidationError(f"Invalid bracket [{a}, {b}]")

    resphi = 2.0 - GOLDEN_RATIO
    x1 = a + resphi * (b - a)
    x2 = a + (1.0 - resphi) * (b - a)
    f1 = objective(x1)
    f2 = objective(x2)

    while abs(b - a) > tolerance:
        if f1 > f2:
            a = x1
            x1, f1 = x2, f2
            x2 = a + (1.0 - resphi) * (b - a)
            f2 = objective(x2)
        else:
            b = x2
            x2, f2 = x1, f1
            x1 = a + resphi * (b - a)
            f1 = objective(x1)

    return (a + b) / 2.0


def minimize_displacement(
    base_model: Model,
    parameter_range: Tuple[float, float],
    modifier: Callable[[Model, float], None],
    tolerance: float = 1e-6,
) -> float:
    """
    Parameter value in `parameter_range` that minimizes the maximum static
    displacement. `modifier(model, value)` edits a copy of the base model.
    """
    def objective(value: float) -> float:
        model = base_model.copy()
        modifier(model, value)
        return Analysis(model).static_analysis().max_displacement()

    return golden_section_search(objective, parameter_range[0], parameter_range[1], tolerance)

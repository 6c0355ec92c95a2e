# femcore - Finite Element Structural Analysis Engine
"""
FEMCORE: Linear Finite Element Analysis of Trusses and Frames
=============================================================

This package provides:
- A structural model (nodes, elements, materials, loads, constraints)
- Truss, 2D beam and 3D frame element formulations
- Global assembly with penalty boundary conditions
- Static and modal solvers (time-history validation only)

ARCHITECTURE:
-------------
    model.py        Nodes, elements, the Model container
    materials.py    Materials, presets, constitutive matrices
    loads.py        Loads, load cases, load combinations
    constraints.py  Boundary conditions and support types
    settings.py     AnalysisSettings and numerical defaults
    elements.py     Element stiffness / mass formulations
    kernel/         DOF numbering, assembly, constraints, linear algebra, modal
    post.py         Element force recovery
    solvers.py      Static, modal and time-history solvers
    analysis.py     Runner, facade, parametric studies
    results.py      AnalysisResults and friends
    errors.py       Exception hierarchy

Library code logs through the standard logging module under the
"femcore" logger and never configures handlers.
"""

import logging

from .analysis import Analysis, AnalysisOutcome, AnalysisRunner, ModelSummary, ParametricAnalysis
from .constraints import Constraint, ConstraintTerm, SupportType
from .errors import (
    ConvergenceError,
    FEMError,
    InvalidMaterialError,
    InvalidReferenceError,
    MatrixError,
    SingularMatrixError,
    UnsupportedError,
    ValidationError,
)
from .kernel import DOFManager
from .loads import Load, LoadCase, LoadCombination
from .materials import Material, MaterialProperties, MaterialType
from .model import Dof, DofConstraint, Element, ElementProperties, ElementType, Model, Node
from .results import AnalysisResults, ConvergenceInfo, ElementForces
from .settings import AnalysisSettings, AnalysisType, SolverType
from .solvers import ModalSolver, StaticSolver, TimeHistorySolver

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

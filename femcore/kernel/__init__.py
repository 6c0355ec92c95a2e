# femcore/kernel - Numbering, assembly, constraints and linear algebra
"""
KERNEL: THE ELEMENT-AGNOSTIC FOUNDATION
=======================================

Assembly, constraint enforcement and solving don't care what an element is.
They just need:
- A way to map (node_id, Dof) → global DOF index
- Element matrices (any size) with their DOF maps
- Constrained DOF lists
- Load vectors

The element formulations live in femcore.elements; everything in this
package works on global arrays.
"""

from .dof import DOFManager
from .assemble import assemble_global_K, assemble_load_vector, assemble_system_matrix
from .boundary import apply_automatic_constraints, apply_penalty_constraints
from .linalg import eigensolve_subset, eigensolve_symmetric, solve_linear_system

__all__ = [
    'DOFManager',
    'assemble_global_K',
    'assemble_load_vector',
    'assemble_system_matrix',
    'apply_automatic_constraints',
    'apply_penalty_constraints',
    'eigensolve_subset',
    'eigensolve_symmetric',
    'solve_linear_system',
]

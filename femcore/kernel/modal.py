# femcore/kernel/modal.py
"""Modal analysis kernel: reduced generalized eigenproblem and modal mass measures."""

import logging
from typing import Sequence, Tuple

import numpy as np
from scipy.linalg import LinAlgError, eigh

from ..errors import MatrixError, ValidationError
from ..model import Dof
from ..settings import DENSE_SOLVE_LIMIT
from .dof import DOFManager
from .linalg import eigensolve_subset, extract_submatrix

logger = logging.getLogger(__name__)


def free_dofs(ndof: int, fixed_dofs: Sequence[int]) -> np.ndarray:
    fixed = set(int(d) for d in fixed_dofs)
    return np.array([i for i in range(ndof) if i not in fixed], dtype=int)


def natural_frequencies(
    K: np.ndarray,
    M: np.ndarray,
    fixed_dofs: Sequence[int],
    n_modes: int = 5,
    dense_limit: int = DENSE_SOLVE_LIMIT,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute natural frequencies and mode shapes.

    Solves the generalized eigenvalue problem K·φ = ω²·M·φ on the free DOFs
    (fixed DOFs are removed by partitioning). Below `dense_limit` free DOFs
    scipy's eigh extracts the lowest modes; above it, shifted inverse
    iteration does.

    Args:
        K: Global stiffness matrix (without penalty terms)
        M: Global mass matrix, same numbering as K
        fixed_dofs: Constrained DOF indices
        n_modes: Number of modes to return

    Returns:
        frequencies_hz: Natural frequencies in Hz, sorted ascending
        mode_shapes: Mode shape matrix (n_free x n_modes), M-normalized
        free: Free DOF indices (rows of mode_shapes)

    Raises:
        ValidationError: No free DOFs, or non-positive mass on a free DOF
        MatrixError: The eigen solution failed
    """
    ndof = K.shape[0]
    if M.shape != K.shape:
        raise MatrixError(f"Mass matrix shape {M.shape} does not match stiffness {K.shape}")

    free = free_dofs(ndof, fixed_dofs)
    if len(free) == 0:
        raise ValidationError("No free DOFs - cannot compute modes")

    Kff = extract_submatrix(K, free)
    Mff = extract_submatrix(M, free)

    M_diag = np.diag(Mff)
    if np.any(M_diag <= 0):
        bad = free[M_diag <= 0]
        raise ValidationError(f"Mass matrix has non-positive diagonal entries at DOFs {bad.tolist()}")

    n_free = len(free)
    n_actual = min(n_modes, n_free)

    if n_free < dense_limit:
        try:
            eigenvalues, eigenvectors = eigh(Kff, Mff, subset_by_index=[0, n_actual - 1])
        except LinAlgError as e:
            raise MatrixError(f"Eigenvalue solve failed: {e}") from e
    else:
        logger.info("Using inverse iteration for %d modes of a %d-DOF system", n_actual, n_free)
        eigenvalues, eigenvectors = eigensolve_subset(Kff, n_actual, B=Mff)

    # ω² = eigenvalue, f = ω / (2π)
    omega = np.sqrt(np.maximum(eigenvalues, 0.0))
    frequencies_hz = omega / (2.0 * np.pi)

    return frequencies_hz, eigenvectors, free


def _influence_vector(dof: DOFManager, free: np.ndarray, direction: Dof) -> np.ndarray:
    """1 on every free DOF that moves along `direction`, 0 elsewhere."""
    offset = dof.global_index(0, direction)
    return np.array([1.0 if i % dof.dof_per_node == offset else 0.0 for i in free])


def modal_participation_factors(
    mode_shapes: np.ndarray,
    M: np.ndarray,
    free: np.ndarray,
    dof: DOFManager,
    direction: Dof = Dof.UY,
) -> np.ndarray:
    """
    Participation factor Γ = φᵀ·M·r / φᵀ·M·φ of each mode for a uniform
    ground acceleration along `direction`.
    """
    Mff = extract_submatrix(M, free)
    r = _influence_vector(dof, free, direction)

    participation = np.zeros(mode_shapes.shape[1])
    for mode in range(mode_shapes.shape[1]):
        phi = mode_shapes[:, mode]
        m_star = phi @ Mff @ phi
        if m_star > 0:
            participation[mode] = (phi @ Mff @ r) / m_star
    return participation


def effective_modal_mass(
    mode_shapes: np.ndarray,
    M: np.ndarray,
    free: np.ndarray,
    dof: DOFManager,
    direction: Dof = Dof.UY,
) -> np.ndarray:
    """
    Effective mass (φᵀ·M·r)² / φᵀ·M·φ of each mode. Summed over all modes it
    equals the free mass along `direction`.
    """
    Mff = extract_submatrix(M, free)
    r = _influence_vector(dof, free, direction)

    eff_mass = np.zeros(mode_shapes.shape[1])
    for mode in range(mode_shapes.shape[1]):
        phi = mode_shapes[:, mode]
        m_star = phi @ Mff @ phi
        if m_star > 0:
            eff_mass[mode] = (phi @ Mff @ r) ** 2 / m_star
    return eff_mass

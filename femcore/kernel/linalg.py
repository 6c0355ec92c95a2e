# femcore/kernel/linalg.py
"""
LINEAR ALGEBRA KERNEL: Dense Solvers, Eigen Solvers and Matrix Utilities
========================================================================

PURPOSE:
--------
Everything the solvers need from linear algebra, on dense numpy arrays:

    solve_linear_system   picks Cholesky, LU or an iterative method
    solve_cholesky        symmetric positive definite systems
    solve_lu              general square systems (pivot check)
    solve_qr              least-squares-stable alternative
    solve_iterative       CG for SPD systems, LU otherwise
    eigensolve_symmetric  all eigenpairs of (A, B) via scipy.linalg.eigh
    eigensolve_subset     lowest n eigenpairs by shifted inverse iteration

SOLVER SELECTION (solve_linear_system):
---------------------------------------
    symmetric and positive diagonal  →  Cholesky (LU if Cholesky fails)
    otherwise, n < DENSE_SOLVE_LIMIT →  LU
    otherwise                        →  solve_iterative

"Positive diagonal" is only a necessary condition for positive
definiteness; a failed Cholesky factorization is the real test, which is
why the LU fallback exists.
"""

import logging
import warnings
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import (
    LinAlgError,
    LinAlgWarning,
    cho_factor,
    cho_solve,
    eigh,
    lu_factor,
    lu_solve,
    qr,
    solve_triangular,
    svdvals,
)
from scipy.sparse.linalg import cg

from ..errors import ConvergenceError, MatrixError, SingularMatrixError
from ..settings import CG_MAX_ITERATIONS, CG_TOLERANCE, DENSE_SOLVE_LIMIT

logger = logging.getLogger(__name__)

SYMMETRY_TOLERANCE = 1e-12
SINGULAR_VALUE_FLOOR = 1e-14


# ----------------------------------------------------------------------
# Checks and utilities
# ----------------------------------------------------------------------

def _check_system(A: np.ndarray, b: np.ndarray) -> None:
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise MatrixError(f"Matrix must be square, got shape {A.shape}")
    if b.shape != (A.shape[0],):
        raise MatrixError(f"Right-hand side shape {b.shape} does not match matrix {A.shape}")


def is_symmetric(A: np.ndarray, tol: float = SYMMETRY_TOLERANCE) -> bool:
    """
    Symmetry check relative to the largest entry, so penalty-scaled
    matrices are judged by the same standard as unscaled ones.
    """
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        return False
    if A.size == 0:
        return True
    scale = max(1.0, float(np.max(np.abs(A))))
    return float(np.max(np.abs(A - A.T))) <= tol * scale


def is_positive_definite(A: np.ndarray) -> bool:
    """
    Coarse check: every diagonal entry is positive. Necessary, not
    sufficient; callers that rely on it must handle a failed Cholesky.
    """
    return bool(np.all(np.diag(A) > 0.0))


def condition_number(A: np.ndarray) -> float:
    """2-norm condition number from singular values; inf when σ_min < 1e-14."""
    if A.size == 0:
        return 1.0
    s = svdvals(A)
    if s.min() < SINGULAR_VALUE_FLOOR:
        return float("inf")
    return float(s.max() / s.min())


def frobenius_norm(A: np.ndarray) -> float:
    return float(np.linalg.norm(A, "fro"))


def residual_norm(A: np.ndarray, x: np.ndarray, b: np.ndarray) -> float:
    """||A·x − b||₂"""
    return float(np.linalg.norm(A @ x - b))


def extract_submatrix(A: np.ndarray, rows: Sequence[int],
                      cols: Optional[Sequence[int]] = None) -> np.ndarray:
    if cols is None:
        cols = rows
    return A[np.ix_(np.asarray(rows, dtype=int), np.asarray(cols, dtype=int))]


def extract_subvector(v: np.ndarray, indices: Sequence[int]) -> np.ndarray:
    return v[np.asarray(indices, dtype=int)]


def expand_solution(x_reduced: np.ndarray, indices: Sequence[int], size: int) -> np.ndarray:
    """Scatter a reduced solution back to a full vector (zeros elsewhere)."""
    x = np.zeros(size, dtype=float)
    x[np.asarray(indices, dtype=int)] = x_reduced
    return x


def strain_energy(K: np.ndarray, u: np.ndarray) -> float:
    """U = ½·uᵀ·K·u"""
    return 0.5 * float(u @ K @ u)


def compute_element_forces(k: np.ndarray, u_e: np.ndarray) -> np.ndarray:
    """Element end forces f = k·u_e (both in the same axes)."""
    return k @ u_e


# ----------------------------------------------------------------------
# Direct solvers
# ----------------------------------------------------------------------

def solve_cholesky(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Raises:
        MatrixError: If A is not positive definite
    """
    _check_system(A, b)
    try:
        factor = cho_factor(A, lower=True, check_finite=False)
    except LinAlgError as e:
        raise MatrixError(f"Cholesky factorization failed: {e}") from e
    return cho_solve(factor, b, check_finite=False)


def solve_lu(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    LU with partial pivoting.

    Raises:
        SingularMatrixError: If a pivot is zero relative to the largest one
    """
    _check_system(A, b)
    with warnings.catch_warnings():
        # scipy warns on exactly singular input; the pivot check reports it
        warnings.simplefilter("ignore", LinAlgWarning)
        lu, piv = lu_factor(A, check_finite=False)

    pivots = np.abs(np.diag(lu))
    if pivots.size and pivots.min() <= np.finfo(float).eps * max(pivots.max(), 1.0):
        raise SingularMatrixError(
            f"Matrix is singular (smallest pivot {pivots.min():.3e})"
        )
    return lu_solve((lu, piv), b, check_finite=False)


def solve_qr(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    _check_system(A, b)
    Q, R = qr(A)
    if np.any(np.abs(np.diag(R)) < SINGULAR_VALUE_FLOOR * max(1.0, np.abs(R).max())):
        raise SingularMatrixError("Matrix is singular (zero diagonal in R)")
    return solve_triangular(R, Q.T @ b)


def solve_linear_system(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Solve A·x = b, choosing the method from the structure of A.

    Returns:
        x: Solution vector

    Raises:
        MatrixError: Shape problems
        SingularMatrixError: Singular matrix (LU path)
        ConvergenceError: Iterative path did not converge
    """
    _check_system(A, b)
    n = A.shape[0]

    if is_symmetric(A) and is_positive_definite(A):
        try:
            return solve_cholesky(A, b)
        except MatrixError:
            logger.warning(
                "Cholesky failed on a matrix with positive diagonal (n=%d); falling back to LU", n
            )
            return solve_lu(A, b)

    if n < DENSE_SOLVE_LIMIT:
        return solve_lu(A, b)

    x, _ = solve_iterative(A, b)
    return x


# ----------------------------------------------------------------------
# Iterative solvers
# ----------------------------------------------------------------------

def conjugate_gradient(A: np.ndarray, b: np.ndarray, tol: float = CG_TOLERANCE,
                       max_iter: int = CG_MAX_ITERATIONS,
                       x0: Optional[np.ndarray] = None) -> Tuple[np.ndarray, int]:
    """
    Conjugate gradient for symmetric positive definite A.

    Args:
        tol: Tolerance relative to ||b||
        max_iter: Iteration budget

    Returns:
        x: Solution vector
        iterations: Iterations used

    Raises:
        ConvergenceError: If the budget is exhausted
    """
    _check_system(A, b)
    if not np.any(b):
        return np.zeros_like(b, dtype=float), 0

    count = [0]

    def _count(_xk):
        count[0] += 1

    x, info = cg(A, b, x0=x0, rtol=tol, atol=0.0, maxiter=max_iter, callback=_count)
    if info > 0:
        raise ConvergenceError(
            f"Conjugate gradient did not converge in {max_iter} iterations "
            f"(residual {residual_norm(A, x, b):.3e}, tolerance {tol:.1e}·||b||)"
        )
    if info < 0:
        raise MatrixError(f"Conjugate gradient failed (info={info})")
    return x, count[0]


def solve_iterative(A: np.ndarray, b: np.ndarray, tol: float = CG_TOLERANCE,
                    max_iter: int = CG_MAX_ITERATIONS) -> Tuple[np.ndarray, int]:
    """
    CG when A looks symmetric positive definite, LU otherwise.

    Returns:
        x: Solution vector
        iterations: CG iterations, or 1 for the LU path
    """
    _check_system(A, b)
    if is_symmetric(A) and is_positive_definite(A):
        return conjugate_gradient(A, b, tol=tol, max_iter=max_iter)
    logger.info("Matrix is not symmetric positive definite; using LU instead of CG")
    return solve_lu(A, b), 1


# ----------------------------------------------------------------------
# Eigen solvers
# ----------------------------------------------------------------------

def eigensolve_symmetric(A: np.ndarray,
                         B: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    All eigenpairs of A·φ = λ·B·φ (B = I if omitted), ascending.

    Eigenvectors are B-normalized (φᵀ·B·φ = 1).

    Raises:
        MatrixError: If A (or B) is not symmetric
    """
    if not is_symmetric(A):
        raise MatrixError("Eigen solver requires a symmetric matrix")
    if B is not None and (B.shape != A.shape or not is_symmetric(B)):
        raise MatrixError("Mass matrix must be symmetric and match the stiffness matrix")
    try:
        return eigh(A, B)
    except LinAlgError as e:
        raise MatrixError(f"Eigenvalue solution failed: {e}") from e


def eigensolve_subset(A: np.ndarray, n_modes: int, tol: float = 1e-10,
                      max_iter: int = 1000, B: Optional[np.ndarray] = None,
                      shift_offset: float = 1e-6) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lowest `n_modes` eigenpairs of A·φ = λ·B·φ by shifted inverse iteration.

    Each mode is found with the shift σ = λ_prev + shift_offset·max(1, |λ_prev|)
    (σ = 0 for the first mode) while B-orthogonalizing every iterate against
    the modes already found. Convergence is judged on the Rayleigh quotient.

    Returns:
        eigenvalues: (n_modes,) ascending
        eigenvectors: (n, n_modes), B-normalized

    Raises:
        ConvergenceError: If a mode does not converge within max_iter
    """
    n = A.shape[0]
    if B is None:
        B = np.eye(n)
    if A.shape != (n, n) or B.shape != (n, n):
        raise MatrixError(f"Shape mismatch: A {A.shape}, B {B.shape}")
    n_modes = min(n_modes, n)

    rng = np.random.default_rng(0)
    values = []
    vectors = []
    sigma = 0.0

    for mode in range(n_modes):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", LinAlgWarning)
            factor = lu_factor(A - sigma * B, check_finite=False)

        x = rng.standard_normal(n)
        lam_old = np.inf
        for iteration in range(max_iter):
            y = lu_solve(factor, B @ x, check_finite=False)
            for v in vectors:
                y -= (v @ B @ y) * v
            norm = np.sqrt(abs(y @ B @ y))
            if norm == 0.0:
                raise ConvergenceError(f"Inverse iteration collapsed on mode {mode + 1}")
            x = y / norm
            lam = float(x @ A @ x)
            if abs(lam - lam_old) <= tol * max(1.0, abs(lam)):
                break
            lam_old = lam
        else:
            raise ConvergenceError(
                f"Mode {mode + 1} did not converge in {max_iter} inverse iterations"
            )

        logger.debug("Mode %d: λ=%.6e after %d iterations", mode + 1, lam, iteration + 1)
        values.append(lam)
        vectors.append(x)
        sigma = lam + shift_offset * max(1.0, abs(lam))

    order = np.argsort(values)
    vals = np.array(values)[order]
    vecs = np.column_stack(vectors)[:, order] if vectors else np.zeros((n, 0))
    return vals, vecs

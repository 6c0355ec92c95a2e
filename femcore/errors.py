# femcore/errors.py
"""
ERRORS: Exception Taxonomy for the Analysis Engine
==================================================

Every failure the engine reports derives from FEMError, so callers can catch
the whole family in one place. Each class also subclasses the closest builtin
exception, so existing `except ValueError` / `except RuntimeError` code keeps
working.

    FEMError
    ├── InvalidReferenceError   (LookupError)   unknown node/element/material id
    ├── ValidationError         (ValueError)    malformed model data
    │   └── InvalidMaterialError                missing or bad material/property
    ├── UnsupportedError        (NotImplementedError)
    ├── MatrixError             (ArithmeticError)
    │   └── SingularMatrixError
    └── ConvergenceError        (RuntimeError)
"""

from typing import Optional


class FEMError(Exception):
    """Base class for all analysis-engine errors."""
    pass


class InvalidReferenceError(FEMError, LookupError):
    """Raised when an id points at a node, element or material that does not exist."""

    def __init__(self, kind: str, ref_id: int):
        self.kind = kind
        self.ref_id = ref_id
        super().__init__(f"{kind} {ref_id} not found")

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message
        return self.args[0]


class ValidationError(FEMError, ValueError):
    """Raised when model data fails validation."""
    pass


class InvalidMaterialError(ValidationError):
    """Raised when a material (or a section property) is missing or invalid."""

    def __init__(self, message: str, property_name: Optional[str] = None):
        self.property_name = property_name
        super().__init__(message)


class UnsupportedError(FEMError, NotImplementedError):
    """Raised for element families and analysis types that are not implemented."""
    pass


class MatrixError(FEMError, ArithmeticError):
    """Raised for malformed matrices (shape mismatch, non-square, not symmetric)."""
    pass


class SingularMatrixError(MatrixError):
    """Raised when a factorization hits a zero pivot."""
    pass


class ConvergenceError(FEMError, RuntimeError):
    """Raised when an iterative method exhausts its iteration budget."""
    pass

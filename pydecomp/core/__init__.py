"""
Core infrastructure for pydecomp.

Key components:
    protocols: Capability protocols composed by each factorization
    structure: Structure tags and known-structure matrices
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Tolerances, timing, factorization kernels
"""

from pydecomp.core.protocols import (
    Backend,
    Determinant,
    LeastSquares,
    LinearSolver,
    LinearSpace,
    RankReveal,
    SingularFactorization,
    Updatable,
)
from pydecomp.core.result import Result
from pydecomp.core.structure import StructuredMatrix
from pydecomp.core.exceptions import (
    PyDecompError,
    ValidationError,
    DimensionError,
    StructureError,
    NumericalError,
    SingularMatrixError,
    NotPositiveDefiniteError,
    ConvergenceError,
)

__all__ = [
    # Protocols
    "Backend",
    "Determinant",
    "LeastSquares",
    "LinearSolver",
    "LinearSpace",
    "RankReveal",
    "SingularFactorization",
    "Updatable",
    # Result
    "Result",
    # Structure
    "StructuredMatrix",
    # Exceptions
    "PyDecompError",
    "ValidationError",
    "DimensionError",
    "StructureError",
    "NumericalError",
    "SingularMatrixError",
    "NotPositiveDefiniteError",
    "ConvergenceError",
]

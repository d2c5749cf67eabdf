"""
Exception hierarchy for pydecomp.

All exceptions inherit from PyDecompError to allow catching any
library-specific error. Factorizations raise these at the point of
detection and never retry or recover internally.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - "No exact solution" is a None result, not an exception
"""


class PyDecompError(Exception):
    """Base exception for all pydecomp errors."""
    pass


class ValidationError(PyDecompError):
    """
    Input validation failed.
    
    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Operand dimensions are incorrect or inconsistent.
    
    Raised when a right-hand side has a different row count than the
    coefficient matrix, or when an operation needs a square matrix.
    
    Attributes:
        shapes: Shapes of the operands involved, if available
    """
    
    def __init__(self, message: str, shapes: tuple[tuple[int, ...], ...] | None = None):
        super().__init__(message)
        self.shapes = shapes


class StructureError(ValidationError):
    """
    Input lacks a structural property the operation requires.
    
    Raised when e.g. Cholesky receives a matrix that is neither diagonal
    nor symmetric, or when a factorization mode does not offer the
    requested operation.
    
    Attributes:
        required: Structure tag or capability that was required
        matrix_name: Name/description of the problematic matrix
    """
    
    def __init__(
        self,
        message: str,
        required: str | None = None,
        matrix_name: str | None = None
    ):
        super().__init__(message)
        self.required = required
        self.matrix_name = matrix_name


class NumericalError(PyDecompError):
    """
    Numerical computation failed.
    
    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.
    
    Attributes:
        matrix_name: Name/description of the problematic matrix
        condition_number: Estimated condition number, if available
        rank: Numerical rank, if computed
        expected_rank: Expected rank (typically min(rows, cols))
    """
    
    def __init__(
        self, 
        message: str,
        matrix_name: str | None = None,
        condition_number: float | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.condition_number = condition_number
        self.rank = rank
        self.expected_rank = expected_rank


class NotPositiveDefiniteError(NumericalError):
    """
    Matrix is not positive definite.
    
    Raised by the Cholesky factorization when a pivot is negative.
    
    Attributes:
        matrix_name: Name/description of the problematic matrix
        pivot_index: Row of the offending pivot, if known
        pivot_value: Value of the offending pivot, if known
    """
    
    def __init__(
        self, 
        message: str,
        matrix_name: str | None = None,
        pivot_index: int | None = None,
        pivot_value: float | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.pivot_index = pivot_index
        self.pivot_value = pivot_value


class ConvergenceError(PyDecompError):
    """
    Iterative algorithm failed to converge.
    
    The SVD sweep does not raise this by default (hitting the sweep cap
    is reported as a warning); it is raised by callers that ask for a
    strictly converged factorization.
    
    Attributes:
        iterations: Number of sweeps completed
        final_change: Largest remaining off-diagonal magnitude
        reason: Why convergence failed (e.g., 'max_sweeps')
        threshold: The convergence threshold that was not met
    """
    
    def __init__(
        self, 
        message: str, 
        iterations: int, 
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold

"""
Solver dispatch for least squares.

This module provides the solve() function (public API) and backend selection.
"""

from typing import Literal
import warnings
from numpy.typing import ArrayLike

from pydecomp.core.exceptions import NotPositiveDefiniteError, SingularMatrixError
from pydecomp.core.structure import STRUCTURE_SYMMETRIC, StructuredMatrix
from pydecomp.core.validation import check_ulps
from pydecomp.core.compute.tolerances import DEFAULT_ULPS
from pydecomp.lstsq.design import LeastSquaresDesign
from pydecomp.lstsq.solution import LeastSquaresSolution
from pydecomp.lstsq.backends.cpu import CPUCholeskyBackend, CPUSVDBackend


# Type alias for backend selection
MethodChoice = Literal['auto', 'svd', 'cholesky']


def solve(
    A: ArrayLike | StructuredMatrix | LeastSquaresDesign,
    b: ArrayLike | None = None,
    *,
    method: MethodChoice = 'auto',
    ulps: int = DEFAULT_ULPS,
) -> LeastSquaresSolution:
    """
    Solve a linear system in the least-squares sense.
    
    Solves:
        min_x ||A x - b||
    
    returning the minimum-norm minimizer for rank-deficient A.
    
    Args:
        A: Coefficient matrix (m x n), or a prebuilt LeastSquaresDesign
        b: Right-hand side (m,) or (m, k). Required unless A is a design.
        method: Backend to use:
            - 'auto': Cholesky for symmetric A, falling back to SVD if A
              turns out not to be positive definite; SVD otherwise
            - 'svd': Zero-shift SVD (any shape, any rank)
            - 'cholesky': Cholesky (symmetric positive definite only)
        ulps: Error margin in representable steps
    
    Returns:
        LeastSquaresSolution with x, residuals, rank and diagnostics
    
    Raises:
        ValidationError: If inputs are invalid
        DimensionError: If A and b have inconsistent row counts
        StructureError: If method='cholesky' and A is not symmetric
        NotPositiveDefiniteError: If method='cholesky' and A is not PD
    
    Example:
        >>> import numpy as np
        >>> from pydecomp.lstsq import solve
        >>> 
        >>> A = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        >>> result = solve(A, A @ [2.0, -1.0])
        >>> print(result.x)
        >>> print(result.summary())
    """
    ulps = check_ulps(ulps)
    
    # === Construct Design ===
    # This is the boundary - validate here, trust everywhere else
    if isinstance(A, LeastSquaresDesign):
        design = A
    else:
        if b is None:
            raise ValueError("b required when A is not a LeastSquaresDesign")
        design = LeastSquaresDesign.from_arrays(A, b)
    
    # === Select Backend and Solve ===
    if method == 'auto':
        return _solve_auto(design, ulps)
    
    backend = _get_backend(method, ulps)
    result = backend.solve(design)
    return LeastSquaresSolution(_result=result, _design=design)


def _solve_auto(design: LeastSquaresDesign, ulps: int) -> LeastSquaresSolution:
    """Cholesky when A is symmetric, SVD otherwise or when Cholesky fails."""
    if design.matrix.is_(STRUCTURE_SYMMETRIC, ulps):
        try:
            result = CPUCholeskyBackend(ulps).solve(design)
            return LeastSquaresSolution(_result=result, _design=design)
        except (NotPositiveDefiniteError, SingularMatrixError) as e:
            warnings.warn(
                f"Cholesky not applicable ({e}); falling back to SVD",
                RuntimeWarning,
                stacklevel=3,
            )
    
    result = CPUSVDBackend(ulps).solve(design)
    return LeastSquaresSolution(_result=result, _design=design)


def _get_backend(choice: MethodChoice, ulps: int):
    """
    Instantiate the backend for an explicit method.
    
    Raises:
        ValueError: If unknown method specified
    """
    if choice == 'svd':
        return CPUSVDBackend(ulps)
    
    elif choice == 'cholesky':
        return CPUCholeskyBackend(ulps)
    
    else:
        raise ValueError(f"Unknown method: {choice!r}")

"""
Least-squares solving.

Public API:
    solve(A, b, ...) -> LeastSquaresSolution

The solve() function is the only entry point. It handles:
    - Input validation
    - Design construction
    - Backend selection (SVD or Cholesky)
    - Result wrapping

Example:
    >>> from pydecomp.lstsq import solve
    >>> result = solve(A, b)
    >>> print(result.x)
    >>> print(result.summary())
"""

from pydecomp.lstsq.design import LeastSquaresDesign
from pydecomp.lstsq.solution import LeastSquaresSolution, LeastSquaresParams
from pydecomp.lstsq.solvers import solve

__all__ = [
    "solve",
    "LeastSquaresDesign",
    "LeastSquaresSolution",
    "LeastSquaresParams",
]

"""
Cholesky factorization and solver.

Factors a symmetric positive definite matrix as ``M = Uᵗ U`` with U upper
triangular, then solves ``M x = b`` by one forward and one backward
triangular substitution. Diagonal matrices take a fast path (element-wise
square roots).

Outcomes are kept distinct:
    - negative pivot            -> NotPositiveDefiniteError
    - zero pivot, zero row      -> factorization succeeds, determinant 0
                                   (positive semidefinite, singular)
    - neither diagonal nor symmetric -> StructureError, before elimination
"""

from __future__ import annotations

from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.linalg import LinAlgError, solve_triangular

from pydecomp.core.exceptions import (
    NotPositiveDefiniteError,
    SingularMatrixError,
    StructureError,
)
from pydecomp.core.structure import (
    STRUCTURE_DIAGONAL,
    STRUCTURE_SQUARE,
    STRUCTURE_SYMMETRIC,
    STRUCTURE_UPPER_TRIANGULAR,
    StructuredMatrix,
    as_array,
    known_structure,
    read_only,
)
from pydecomp.core.validation import check_matrix, check_rhs, check_ulps
from pydecomp.core.compute.tolerances import DEFAULT_ULPS, is_zero, magnitude


class Cholesky:
    """
    Lazy Cholesky solver ``M = Uᵗ U``.

    State: unfactored until decompose() (called implicitly by every
    accessor), factored until request_update().

    Satisfies the Updatable, Determinant and LinearSolver protocols.

    Args:
        matrix: Symmetric (or diagonal) coefficient matrix (n x n)
        ulps: Error margin in representable steps
    """

    def __init__(self, matrix: ArrayLike | StructuredMatrix, ulps: int = DEFAULT_ULPS):
        self._ulps = check_ulps(ulps)
        self._known = known_structure(matrix)
        self._mat = check_matrix(as_array(matrix), 'matrix').copy()
        self._c: NDArray[np.floating[Any]] | None = None
        self._u: StructuredMatrix | None = None
        self._inv: StructuredMatrix | None = None
        self._det: float | None = None

    @property
    def shape(self) -> tuple[int, int]:
        return self._mat.shape

    def needs_update(self) -> bool:
        return self._c is None

    def request_update(self) -> None:
        self._c = self._u = self._inv = None
        self._det = None

    def decompose(self) -> None:
        """
        Factorize the coefficient matrix.

        Raises:
            StructureError: If the matrix is not square, or neither
                diagonal nor symmetric within tolerance
            NotPositiveDefiniteError: If a pivot is negative
        """
        source = StructuredMatrix(self._mat, self._known)
        if not source.is_(STRUCTURE_SQUARE):
            rows, cols = self._mat.shape
            raise StructureError(
                f"Cholesky requires a square matrix, got {rows} x {cols}",
                required=STRUCTURE_SQUARE,
                matrix_name='matrix',
            )

        if source.is_(STRUCTURE_DIAGONAL, self._ulps):
            self._c, self._det = self._diagonal()
        elif source.is_(STRUCTURE_SYMMETRIC, self._ulps):
            self._c, self._det = self._eliminate()
        else:
            raise StructureError(
                "Cholesky requires a symmetric matrix",
                required=STRUCTURE_SYMMETRIC,
                matrix_name='matrix',
            )

    def _ensure(self) -> None:
        if self.needs_update():
            self.decompose()

    def _diagonal(self) -> tuple[NDArray[np.floating[Any]], float]:
        d = np.diag(self._mat).copy()
        negative = np.flatnonzero(d < 0)
        if negative.size > 0:
            k = int(negative[0])
            raise NotPositiveDefiniteError(
                f"Matrix is not positive definite: diagonal entry {k} is {d[k]:.6g}",
                matrix_name='matrix',
                pivot_index=k,
                pivot_value=float(d[k]),
            )
        return np.diag(np.sqrt(d)), float(np.prod(d))

    def _eliminate(self) -> tuple[NDArray[np.floating[Any]], float]:
        c = self._mat.copy()
        n = c.shape[0]
        scale = magnitude(c)
        det = 1.0

        for k in range(n):
            pivot = c[k, k]

            if is_zero(pivot, self._ulps, scale):
                # Semidefinite only if nothing remains to eliminate
                if not np.all([is_zero(x, self._ulps, scale) for x in c[k, k + 1:]]):
                    raise NotPositiveDefiniteError(
                        f"Matrix is not positive definite: pivot {k} vanishes "
                        f"with nonzero entries to its right",
                        matrix_name='matrix',
                        pivot_index=k,
                        pivot_value=float(pivot),
                    )
                c[k, k:] = 0.0
                det = 0.0
                continue

            if pivot < 0:
                raise NotPositiveDefiniteError(
                    f"Matrix is not positive definite: pivot {k} is {pivot:.6g}",
                    matrix_name='matrix',
                    pivot_index=k,
                    pivot_value=float(pivot),
                )

            det *= pivot
            row = c[k, k + 1:]
            c[k + 1:, k + 1:] -= np.triu(np.outer(row / pivot, row))
            c[k, k:] /= np.sqrt(pivot)

        return np.triu(c), float(det)

    def u(self) -> StructuredMatrix:
        """Upper triangular factor with ``M = Uᵗ U``."""
        self._ensure()
        if self._u is None:
            self._u = StructuredMatrix._proven(read_only(self._c.copy()), STRUCTURE_UPPER_TRIANGULAR)
        return self._u

    def determinant(self) -> float:
        """Product of the pivots; 0.0 for a singular semidefinite matrix."""
        self._ensure()
        return self._det

    def is_invertible(self) -> bool:
        """Whether every diagonal entry of U is nonzero."""
        self._ensure()
        return bool(np.all(np.diag(self._c) != 0.0))

    def solve(self, b: ArrayLike) -> NDArray[np.floating[Any]]:
        """
        Solve ``M x = b`` via ``Uᵗ y = b`` then ``U x = y``.

        Args:
            b: Right-hand side, vector (n,) or matrix (n, k)

        Raises:
            DimensionError: If b does not have n rows
            SingularMatrixError: If the matrix is semidefinite but singular
        """
        b_arr = check_rhs(as_array(b), self._mat.shape[0])
        self._ensure()

        try:
            y = solve_triangular(self._c, b_arr, trans='T', lower=False)
            return solve_triangular(self._c, y, lower=False)
        except LinAlgError as e:
            raise SingularMatrixError(
                f"Cannot solve with a singular Cholesky factor: {e}",
                matrix_name='matrix',
                expected_rank=self._mat.shape[0],
            ) from e

    def inverse(self) -> StructuredMatrix:
        """
        Inverse of the coefficient matrix, cached.

        Raises:
            SingularMatrixError: If the matrix is singular
        """
        if self._inv is None:
            inv = self.solve(np.eye(self._mat.shape[0]))
            inv = (inv + inv.T) / 2.0
            self._inv = StructuredMatrix._proven(read_only(inv), STRUCTURE_SYMMETRIC)
        return self._inv

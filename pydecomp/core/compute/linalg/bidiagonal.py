"""
Householder bidiagonalization (Golub–Kahan).

Reduces any matrix to upper-bidiagonal form ``M = U B Vᵗ`` by alternating
column and row Householder reflections. U and V accumulate the
reflections; every reflection has determinant -1, so the determinant of
a square M is the sign of the reflection count times the product of the
diagonal of B.

Matrices that are already upper bidiagonal within tolerance skip the
reflections entirely (U = V = I).
"""

from __future__ import annotations

from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pydecomp.core.structure import (
    STRUCTURE_ORTHOGONAL,
    STRUCTURE_UPPER_BIDIAGONAL,
    STRUCTURE_UPPER_TRIANGULAR,
    StructuredMatrix,
    as_array,
    known_structure,
    read_only,
)
from pydecomp.core.validation import check_matrix, check_square, check_ulps
from pydecomp.core.compute.tolerances import DEFAULT_ULPS, is_zero, magnitude
from pydecomp.core.compute.linalg.reflectors import (
    householder,
    norm2,
    reflect_columns,
    reflect_rows,
)


class HouseholderBidiagonal:
    """
    Lazy bidiagonal factorization ``M = U B Vᵗ``.
    
    The coefficient matrix is copied on construction and never mutated.
    Factorization happens on first access and is cached until
    request_update().
    
    Satisfies the Updatable and Determinant protocols.
    
    Args:
        matrix: Coefficient matrix (m x n), ndarray or StructuredMatrix
        ulps: Error margin in representable steps
    """
    
    def __init__(self, matrix: ArrayLike | StructuredMatrix, ulps: int = DEFAULT_ULPS):
        self._ulps = check_ulps(ulps)
        self._known = known_structure(matrix)
        self._mat = check_matrix(as_array(matrix), 'matrix').copy()
        self._c: NDArray[np.floating[Any]] | None = None
        self._u: NDArray[np.floating[Any]] | None = None
        self._v: NDArray[np.floating[Any]] | None = None
        self._b: StructuredMatrix | None = None
        self._det: float | None = None
        self._reflections = 0
    
    @property
    def shape(self) -> tuple[int, int]:
        return self._mat.shape
    
    def needs_update(self) -> bool:
        return self._c is None
    
    def request_update(self) -> None:
        self._c = self._u = self._v = self._b = None
        self._det = None
        self._reflections = 0
    
    @property
    def reflections(self) -> int:
        """Number of non-skipped Householder reflections."""
        self._ensure()
        return self._reflections
    
    def _ensure(self) -> None:
        if self.needs_update():
            self._decompose()
    
    def _decompose(self) -> None:
        rows, cols = self._mat.shape
        source = StructuredMatrix(self._mat, self._known)
        
        if source.is_(STRUCTURE_UPPER_BIDIAGONAL, self._ulps):
            self._c = self._mat.copy()
            self._u = np.eye(rows)
            self._v = np.eye(cols)
            self._reflections = 0
        else:
            self._householder()
        for cached in (self._c, self._u, self._v):
            read_only(cached)

        if rows == cols:
            sign = -1.0 if self._reflections % 2 else 1.0
            # Out-of-range determinants saturate to ±inf or 0
            with np.errstate(over='ignore', under='ignore'):
                self._det = sign * float(np.prod(np.diag(self._c)))
    
    def _householder(self) -> None:
        c = self._mat.copy()
        rows, cols = c.shape
        u = np.eye(rows)
        v = np.eye(cols)
        scale = magnitude(c)
        reflections = 0
        
        for k in range(min(rows, cols)):
            # Column reflection: zero C[k+1:, k]
            if k < rows - 1:
                x = c[k:, k]
                if not is_zero(norm2(x), self._ulps, scale):
                    w, beta, _ = householder(x)
                    reflect_rows(c, w, beta, k)
                    reflect_columns(u, w, beta, k)
                    c[k + 1:, k] = 0.0
                    reflections += 1
            
            # Row reflection: zero C[k, k+2:]
            if k < cols - 2:
                x = c[k, k + 1:]
                if not is_zero(norm2(x), self._ulps, scale):
                    w, beta, _ = householder(x)
                    reflect_columns(c, w, beta, k + 1)
                    reflect_columns(v, w, beta, k + 1)
                    c[k, k + 2:] = 0.0
                    reflections += 1
        
        self._c = c
        self._u = u
        self._v = v
        self._reflections = reflections
    
    def b(self) -> StructuredMatrix:
        """Upper bidiagonal B (m x n); only the two bands are copied from the work matrix."""
        self._ensure()
        if self._b is None:
            rows, cols = self._c.shape
            b = np.zeros((rows, cols))
            n = min(rows, cols)
            idx = np.arange(n)
            b[idx, idx] = self._c[idx, idx]
            sup = np.arange(min(n, cols - 1))
            b[sup, sup + 1] = self._c[sup, sup + 1]
            self._b = StructuredMatrix._proven(
                read_only(b), STRUCTURE_UPPER_BIDIAGONAL, STRUCTURE_UPPER_TRIANGULAR
            )
        return self._b
    
    def u(self) -> StructuredMatrix:
        """Left orthogonal factor U (m x m)."""
        self._ensure()
        return StructuredMatrix._proven(self._u, STRUCTURE_ORTHOGONAL)
    
    def v(self) -> StructuredMatrix:
        """Right orthogonal factor V (n x n)."""
        self._ensure()
        return StructuredMatrix._proven(self._v, STRUCTURE_ORTHOGONAL)
    
    def determinant(self) -> float:
        """
        Determinant of the coefficient matrix.
        
        Raises:
            DimensionError: If the matrix is not square
        """
        self._ensure()
        self._require_square('Computing the determinant')
        if not self.is_invertible():
            return 0.0
        return self._det
    
    def is_invertible(self) -> bool:
        """
        Whether every diagonal entry of B is distinguishable from zero.
        
        Raises:
            DimensionError: If the matrix is not square
        """
        self._ensure()
        self._require_square('Invertibility')
        scale = magnitude(self._mat)
        return not any(is_zero(d, self._ulps, scale) for d in np.diag(self._c))
    
    def _require_square(self, what: str) -> None:
        check_square(self._mat, what)

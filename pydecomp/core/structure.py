"""
Structural tags and known-structure matrices.

This module is the SINGLE SOURCE OF TRUTH for structure strings.
Import from here, never use raw strings.

A structure tag names a property a matrix satisfies (diagonal, symmetric,
orthogonal, ...). Tags are used in two ways:

- as a cache: a StructuredMatrix carries the tags its constructor proved,
  so consumers can skip an O(n²) scan;
- as a precondition: factorizations check the structure they need and
  raise StructureError when it is missing.

Tags are advisory metadata only; they never change numeric content.
They are attached only by constructors that can prove them (identity(),
zeros(), infer(), and factorizations via _proven()), never by callers.

Usage:
    from pydecomp.core.structure import STRUCTURE_DIAGONAL, StructuredMatrix
    
    M = StructuredMatrix.infer(A)
    if M.is_(STRUCTURE_DIAGONAL):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pydecomp.core.compute.tolerances import DEFAULT_ULPS, is_zero, magnitude


STRUCTURE_IDENTITY = 'identity'
STRUCTURE_DIAGONAL = 'diagonal'
STRUCTURE_UPPER_TRIANGULAR = 'upper_triangular'
STRUCTURE_UPPER_BIDIAGONAL = 'upper_bidiagonal'
STRUCTURE_ORTHOGONAL = 'orthogonal'
STRUCTURE_SYMMETRIC = 'symmetric'
STRUCTURE_SQUARE = 'square'
STRUCTURE_TALL = 'tall'

ALL_STRUCTURES = frozenset({
    STRUCTURE_IDENTITY,
    STRUCTURE_DIAGONAL,
    STRUCTURE_UPPER_TRIANGULAR,
    STRUCTURE_UPPER_BIDIAGONAL,
    STRUCTURE_ORTHOGONAL,
    STRUCTURE_SYMMETRIC,
    STRUCTURE_SQUARE,
    STRUCTURE_TALL,
})

# Tags that only make sense for square matrices
_SQUARE_ONLY = frozenset({
    STRUCTURE_IDENTITY,
    STRUCTURE_ORTHOGONAL,
    STRUCTURE_SYMMETRIC,
    STRUCTURE_SQUARE,
})


# === Predicates ===

def _negligible(entries: NDArray, ulps: int, reference: float) -> bool:
    if entries.size == 0:
        return True
    return is_zero(float(np.max(np.abs(entries))), ulps, reference)


def is_square(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    return array.shape[0] == array.shape[1]


def is_tall(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    """Rows >= columns."""
    return array.shape[0] >= array.shape[1]


def is_diagonal(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    return _negligible(_off_band(array, 0, 0), ulps, magnitude(array))


def is_upper_triangular(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    return _negligible(np.tril(array, -1), ulps, magnitude(array))


def is_upper_bidiagonal(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    return _negligible(_off_band(array, 0, 1), ulps, magnitude(array))


def is_symmetric(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    if not is_square(array):
        return False
    return _negligible(array - array.T, ulps, magnitude(array))


def is_identity(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    if not is_square(array):
        return False
    return _negligible(array - np.eye(array.shape[0]), ulps, 1.0)


def is_orthogonal(array: NDArray, ulps: int = DEFAULT_ULPS) -> bool:
    """
    Square with orthonormal columns.
    
    Rounding in a product of n rotations grows with n, so the margin
    is scaled by the dimension.
    """
    if not is_square(array):
        return False
    n = array.shape[0]
    gram = array.T @ array
    return _negligible(gram - np.eye(n), ulps * max(n, 1), 1.0)


def _off_band(array: NDArray, lower: int, upper: int) -> NDArray:
    """Entries outside the band [-lower, +upper] around the main diagonal."""
    rows, cols = array.shape
    i, j = np.indices((rows, cols))
    mask = (j - i > upper) | (i - j > lower)
    return array[mask]


_PREDICATES: dict[str, Callable[[NDArray, int], bool]] = {
    STRUCTURE_IDENTITY: is_identity,
    STRUCTURE_DIAGONAL: is_diagonal,
    STRUCTURE_UPPER_TRIANGULAR: is_upper_triangular,
    STRUCTURE_UPPER_BIDIAGONAL: is_upper_bidiagonal,
    STRUCTURE_ORTHOGONAL: is_orthogonal,
    STRUCTURE_SYMMETRIC: is_symmetric,
    STRUCTURE_SQUARE: is_square,
    STRUCTURE_TALL: is_tall,
}


def check_structure(array: NDArray, structure: str, ulps: int = DEFAULT_ULPS) -> bool:
    """
    Scan an array for a structural property.
    
    Args:
        array: 2D array to scan
        structure: One of ALL_STRUCTURES
        ulps: Error margin in representable steps
        
    Returns:
        True if the array satisfies the structure within the margin
        
    Raises:
        ValueError: If structure is not a known tag
    """
    try:
        predicate = _PREDICATES[structure]
    except KeyError:
        raise ValueError(f"Unknown structure: {structure!r}") from None
    return predicate(array, ulps)


# === Known-structure matrix ===

@dataclass(frozen=True, eq=False)
class StructuredMatrix:
    """
    A dense float64 matrix together with the structure it is known to have.
    
    Construct via the classmethods; the known set is filled only with
    tags that were proven at construction time.
    
    Attributes:
        array: The 2D float64 storage
        known: Structure tags proven for this matrix
    """
    array: NDArray[np.floating[Any]]
    known: frozenset[str] = frozenset()
    
    @classmethod
    def identity(cls, n: int) -> StructuredMatrix:
        """n x n identity matrix."""
        return cls(np.eye(n), frozenset({
            STRUCTURE_IDENTITY,
            STRUCTURE_DIAGONAL,
            STRUCTURE_UPPER_TRIANGULAR,
            STRUCTURE_UPPER_BIDIAGONAL,
            STRUCTURE_ORTHOGONAL,
            STRUCTURE_SYMMETRIC,
            STRUCTURE_SQUARE,
            STRUCTURE_TALL,
        }))
    
    @classmethod
    def zeros(cls, rows: int, cols: int) -> StructuredMatrix:
        """rows x cols zero matrix."""
        array = np.zeros((rows, cols))
        known = {STRUCTURE_DIAGONAL, STRUCTURE_UPPER_TRIANGULAR, STRUCTURE_UPPER_BIDIAGONAL}
        if rows == cols:
            known |= {STRUCTURE_SYMMETRIC, STRUCTURE_SQUARE}
        if rows >= cols:
            known.add(STRUCTURE_TALL)
        return cls(array, frozenset(known))
    
    @classmethod
    def infer(cls, array: ArrayLike, ulps: int = DEFAULT_ULPS) -> StructuredMatrix:
        """
        Scan an array once and record every structure it satisfies.
        
        The array is copied; later changes to the source do not affect
        the returned matrix.
        """
        data = np.array(array, dtype=np.float64)
        known = frozenset(s for s, predicate in _PREDICATES.items() if predicate(data, ulps))
        return cls(data, known)
    
    @classmethod
    def _proven(cls, array: NDArray, *structures: str) -> StructuredMatrix:
        """Attach structures a factorization has just established by construction."""
        known = set(structures)
        rows, cols = array.shape
        if rows == cols:
            known.add(STRUCTURE_SQUARE)
        else:
            known -= _SQUARE_ONLY
        if rows >= cols:
            known.add(STRUCTURE_TALL)
        return cls(array, frozenset(known))
    
    def is_(self, structure: str, ulps: int = DEFAULT_ULPS) -> bool:
        """
        Whether this matrix satisfies a structure.
        
        A known tag is trusted after a cheap shape check; anything else
        falls back to a full scan.
        """
        if structure in self.known:
            if structure not in _SQUARE_ONLY or self.rows == self.columns:
                return True
        return check_structure(self.array, structure, ulps)
    
    # === Array interop ===
    
    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self.array
        return self.array.astype(dtype)
    
    def __matmul__(self, other: Any) -> NDArray:
        return self.array @ as_array(other)
    
    def __rmatmul__(self, other: Any) -> NDArray:
        return as_array(other) @ self.array
    
    @property
    def shape(self) -> tuple[int, int]:
        return self.array.shape
    
    @property
    def rows(self) -> int:
        return self.array.shape[0]
    
    @property
    def columns(self) -> int:
        return self.array.shape[1]
    
    @property
    def T(self) -> NDArray:
        return self.array.T
    
    def copy(self) -> StructuredMatrix:
        return StructuredMatrix(self.array.copy(), self.known)
    
    def row(self, i: int) -> NDArray:
        return self.array[i, :].copy()
    
    def column(self, j: int) -> NDArray:
        return self.array[:, j].copy()
    
    def diagonal(self) -> NDArray:
        return np.diag(self.array).copy()


def as_array(matrix: Any) -> NDArray:
    """Storage of a StructuredMatrix, or np.asarray of anything else."""
    if isinstance(matrix, StructuredMatrix):
        return matrix.array
    return np.asarray(matrix)


def known_structure(matrix: Any) -> frozenset[str]:
    """Tags known for a matrix without scanning (empty for plain arrays)."""
    if isinstance(matrix, StructuredMatrix):
        return matrix.known
    return frozenset()


def has_structure(matrix: Any, structure: str, ulps: int = DEFAULT_ULPS) -> bool:
    """Structure check for either a StructuredMatrix or a plain array."""
    if isinstance(matrix, StructuredMatrix):
        return matrix.is_(structure, ulps)
    return check_structure(np.asarray(matrix), structure, ulps)


def read_only(array: NDArray) -> NDArray:
    """Mark a cached array non-writeable in place and return it."""
    array.setflags(write=False)
    return array

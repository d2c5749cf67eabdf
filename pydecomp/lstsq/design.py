"""
Least-squares design.

A design holds a validated coefficient matrix A and right-hand side b
for the problem ``min_x ||A x - b||``. Validation happens once, here;
backends trust a design.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pydecomp.core.structure import StructuredMatrix, as_array, known_structure
from pydecomp.core.validation import check_matrix, check_rhs


@dataclass(frozen=True)
class LeastSquaresDesign:
    """
    Coefficient matrix and right-hand side of a linear system.
    
    Immutable after construction. Both arrays are private copies.
    
    Construction:
        LeastSquaresDesign.from_arrays(A, b)
    """
    _A: NDArray[np.floating[Any]]
    _b: NDArray[np.floating[Any]]
    _known: frozenset[str]
    
    @classmethod
    def from_arrays(cls, A: ArrayLike | StructuredMatrix, b: ArrayLike) -> LeastSquaresDesign:
        """
        Build a design from a coefficient matrix and right-hand side.
        
        Args:
            A: Coefficient matrix (m x n); a StructuredMatrix keeps its
               known structure
            b: Right-hand side, vector (m,) or matrix (m, k)
        
        Raises:
            ValidationError: If either input is non-numeric or non-finite
            DimensionError: If A is not 2D or b does not have m rows
        """
        A_arr = check_matrix(as_array(A), 'A').copy()
        b_arr = check_rhs(as_array(b), A_arr.shape[0], 'b').copy()
        return cls(_A=A_arr, _b=b_arr, _known=known_structure(A))
    
    # === Properties ===
    
    @property
    def A(self) -> NDArray[np.floating[Any]]:
        """Coefficient matrix (m x n)."""
        return self._A
    
    @property
    def b(self) -> NDArray[np.floating[Any]]:
        """Right-hand side (m,) or (m, k)."""
        return self._b
    
    @property
    def matrix(self) -> StructuredMatrix:
        """Coefficient matrix together with the structure known for it."""
        return StructuredMatrix(self._A, self._known)
    
    @property
    def m(self) -> int:
        """Number of equations."""
        return self._A.shape[0]
    
    @property
    def n(self) -> int:
        """Number of unknowns."""
        return self._A.shape[1]
    
    @property
    def metadata(self) -> dict[str, Any]:
        return {
            'm': self.m,
            'n': self.n,
            'rhs_columns': 1 if self._b.ndim == 1 else self._b.shape[1],
            'known_structure': sorted(self._known),
        }

"""
Householder reflections and Givens rotations.

Both transformations are applied in place to the affected rows/columns
rather than formed as full matrices. Every function here mutates its
array arguments.

Conventions:
    - A Householder reflection is ``H = I - beta * v vᵗ`` acting on the
      trailing block starting at an offset; det(H) = -1.
    - A Givens rotation is ``G = [[c, -s], [s, c]]`` acting on two adjacent
      indices; det(G) = +1.
"""

from typing import Any
import numpy as np
from numpy.typing import NDArray


def norm2(x: NDArray[np.floating[Any]]) -> float:
    """Euclidean (Frobenius) norm, scaled by the largest entry so it neither overflows nor underflows."""
    peak = float(np.max(np.abs(x))) if x.size else 0.0
    if peak == 0.0:
        return 0.0
    return peak * float(np.linalg.norm(x / peak))


def householder(x: NDArray[np.floating[Any]]) -> tuple[NDArray[np.floating[Any]], float, float]:
    """
    Householder vector that maps x onto a multiple of the first unit vector.
    
    The sign of the target is chosen opposite to x[0] so that v[0] never
    suffers cancellation. v is normalized to ``v[0] = 1``, so every entry
    of v lies in [-1, 1] and beta in [1, 2] whatever the magnitude of x.
    
    Args:
        x: Vector to reflect (length >= 1), not modified
        
    Returns:
        (v, beta, alpha) with ``(I - beta v vᵗ) x = alpha e₀``.
        beta is 0.0 for a zero vector (identity transform).
    """
    norm = norm2(x)
    if norm == 0.0:
        return np.zeros_like(x, dtype=np.float64), 0.0, 0.0
    
    alpha = -norm if x[0] >= 0 else norm
    v = x.astype(np.float64, copy=True)
    v[0] -= alpha
    v /= v[0]
    beta = 2.0 / float(v @ v)
    return v, beta, alpha


def reflect_rows(
    A: NDArray[np.floating[Any]],
    v: NDArray[np.floating[Any]],
    beta: float,
    offset: int,
) -> None:
    """Left-apply ``H`` to rows ``offset:`` of A: ``A[offset:] ← H A[offset:]``."""
    block = A[offset:, :]
    block -= np.outer(v, beta * (v @ block))


def reflect_columns(
    A: NDArray[np.floating[Any]],
    v: NDArray[np.floating[Any]],
    beta: float,
    offset: int,
) -> None:
    """Right-apply ``H`` to columns ``offset:`` of A: ``A[:, offset:] ← A[:, offset:] H``."""
    block = A[:, offset:]
    block -= np.outer(beta * (block @ v), v)


def givens(a: float, b: float) -> tuple[float, float, float]:
    """
    Rotation that zeroes the second entry of ``(a, b)``.
    
    Returns:
        (c, s, r) with ``[a, b] @ [[c, -s], [s, c]] = [r, 0]`` and
        ``[[c, s], [-s, c]] @ [a, b]ᵗ = [r, 0]ᵗ``.
    """
    if b == 0.0:
        return 1.0, 0.0, a
    r = float(np.hypot(a, b))
    return a / r, b / r, r


def rotate_columns(A: NDArray[np.floating[Any]], i: int, j: int, c: float, s: float) -> None:
    """Right-apply G to columns i, j: ``A[:, [i, j]] ← A[:, [i, j]] G``."""
    ai = A[:, i].copy()
    aj = A[:, j]
    A[:, i] = c * ai + s * aj
    A[:, j] = c * aj - s * ai


def rotate_rows(A: NDArray[np.floating[Any]], i: int, j: int, c: float, s: float) -> None:
    """Left-apply Gᵗ to rows i, j: ``A[[i, j], :] ← Gᵗ A[[i, j], :]``."""
    ai = A[i, :].copy()
    aj = A[j, :]
    A[i, :] = c * ai + s * aj
    A[j, :] = c * aj - s * ai

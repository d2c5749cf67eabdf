"""
Linear algebra kernels for pydecomp.

All kernels follow these conventions:
    - Inputs are validated at construction and copied; callers' arrays are
      never mutated
    - Factorizations are lazy: computed on first access, cached until
      request_update()
    - Factors are returned as StructuredMatrix carrying proven structure
    - Errors are raised immediately with clear messages

Submodules:
    reflectors: Householder reflections and Givens rotations
    bidiagonal: Householder bidiagonalization
    svd: Zero-shift SVD, rank, least squares, subspaces
    cholesky: Cholesky factorization and solver
"""

from pydecomp.core.compute.linalg.bidiagonal import HouseholderBidiagonal
from pydecomp.core.compute.linalg.cholesky import Cholesky
from pydecomp.core.compute.linalg.svd import (
    SVD,
    RankRevealingSVD,
    SVDMode,
    SVDParams,
    svd_factor,
)

__all__ = [
    # Bidiagonalization
    "HouseholderBidiagonal",
    # SVD
    "SVD",
    "RankRevealingSVD",
    "SVDMode",
    "SVDParams",
    "svd_factor",
    # Cholesky
    "Cholesky",
]

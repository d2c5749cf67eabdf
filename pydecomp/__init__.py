"""
pydecomp: dense matrix factorizations for Python.

Singular value decomposition by Householder bidiagonalization and
zero-shift Givens sweeps, with numerical rank, pseudoinverse, least
squares and the fundamental subspaces; plus a Cholesky exact solver.

Submodules:
    core: Exceptions, validation, structure tags, factorization kernels
    lstsq: Least-squares solving with backend selection
"""

__version__ = "0.1.0"

from pydecomp.core.compute.linalg import (
    SVD,
    Cholesky,
    HouseholderBidiagonal,
    RankRevealingSVD,
    svd_factor,
)
from pydecomp.core.structure import StructuredMatrix
from pydecomp import lstsq

__all__ = [
    "__version__",
    "SVD",
    "RankRevealingSVD",
    "svd_factor",
    "Cholesky",
    "HouseholderBidiagonal",
    "StructuredMatrix",
    "lstsq",
]

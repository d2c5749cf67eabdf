"""
Shared compute infrastructure for pydecomp.

Submodules:
    tolerances: ULP tolerances and tolerance tiers
    timing: Execution timing utilities
    linalg: Factorization kernels (bidiagonal, SVD, Cholesky)
"""

from pydecomp.core.compute.timing import Timer, timed
from pydecomp.core.compute.tolerances import (
    DEFAULT_ULPS,
    MAX_SWEEPS,
    ToleranceTier,
    is_zero,
    next_eps,
)

__all__ = [
    # Timing
    "Timer",
    "timed",
    # Tolerances
    "DEFAULT_ULPS",
    "MAX_SWEEPS",
    "ToleranceTier",
    "is_zero",
    "next_eps",
]

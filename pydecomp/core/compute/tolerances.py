"""
Floating-point tolerances for factorizations and validation.

Two kinds of tolerance live here:

- ULP tolerances: "is this value zero within N representable steps of a
  reference magnitude". Every factorization takes an ``ulps`` error margin
  and decides structure, convergence and rank with these helpers.
- Tolerance tiers: rtol/atol pairs describing how closely results are
  expected to match a reference (used by the test suite and by solution
  residual checks).
"""

from dataclasses import dataclass

import numpy as np

# Default error margin, in representable steps, for every factorization.
DEFAULT_ULPS = 3

# Safety valve for the bidiagonal SVD sweep.
MAX_SWEEPS = 1000


def next_eps(value: float) -> float:
    """
    Distance from ``|value|`` to the next representable float64.
    
    Infinite or NaN inputs propagate as NaN, as in ``np.spacing``.
    """
    return float(np.spacing(abs(float(value))))


def is_zero(value: float, ulps: int, reference: float = 1.0) -> bool:
    """
    Check whether ``value`` is zero within ``ulps`` steps of ``reference``.
    
    The test is ``|value| <= ulps * next_eps(reference)``. With the default
    unit reference this is an absolute test against ``ulps`` machine
    epsilons; passing the magnitude of the surrounding data makes it a
    relative one.
    
    Args:
        value: Value to test
        ulps: Number of representable steps allowed
        reference: Magnitude the steps are measured at
        
    Returns:
        True if the value is negligible at that magnitude
    """
    if reference == 0.0:
        reference = 1.0
    return abs(value) <= ulps * next_eps(reference)


def magnitude(array: np.ndarray) -> float:
    """Largest absolute entry of an array, or 1.0 for an empty/zero array."""
    if array.size == 0:
        return 1.0
    peak = float(np.max(np.abs(array)))
    return peak if peak > 0.0 else 1.0


@dataclass(frozen=True)
class ToleranceTier:
    """Tolerance specification for numerical comparison."""
    rtol: float
    atol: float
    name: str
    description: str


# Well-conditioned float64 factorizations
CPU_FP64 = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='cpu_fp64',
    description='CPU double precision, well-conditioned input',
)

# Ill-conditioned problems (cond > 1e4)
CPU_FP64_ILL_CONDITIONED = ToleranceTier(
    rtol=1e-4,
    atol=1e-6,
    name='cpu_fp64_ill_conditioned',
    description='CPU double precision, ill-conditioned (cond > 1e4)',
)

# Condition number above which results use the relaxed tier.
ILL_CONDITIONED_THRESHOLD = 1e4


def select_tolerance(condition_number: float) -> ToleranceTier:
    """Select the tolerance tier for a problem with the given condition number."""
    if not np.isfinite(condition_number) or condition_number > ILL_CONDITIONED_THRESHOLD:
        return CPU_FP64_ILL_CONDITIONED
    return CPU_FP64

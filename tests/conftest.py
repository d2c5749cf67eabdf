"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


def _orthogonal(rng, n):
    """Random n x n orthogonal matrix."""
    q, r = np.linalg.qr(rng.standard_normal((n, n)))
    return q * np.sign(np.diag(r))


def with_singular_values(rng, m, n, singular_values):
    """m x n matrix with the given singular values and random singular vectors."""
    k = len(singular_values)
    U = _orthogonal(rng, m)[:, :k]
    V = _orthogonal(rng, n)[:, :k]
    return U @ np.diag(singular_values) @ V.T


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def spectrum():
    """Factory for matrices with chosen singular values: spectrum(rng, m, n, sv)."""
    return with_singular_values


@pytest.fixture
def tall_matrix(rng):
    """8 x 4 matrix with well-separated singular values (8, 4, 2, 1)."""
    return with_singular_values(rng, 8, 4, [8.0, 4.0, 2.0, 1.0])


@pytest.fixture
def wide_matrix(rng):
    """3 x 5 matrix with singular values (5, 3, 1)."""
    return with_singular_values(rng, 3, 5, [5.0, 3.0, 1.0])


@pytest.fixture
def square_matrix():
    """Nonsymmetric, invertible 3 x 3 matrix."""
    return np.array([
        [4.0, 1.0, 2.0],
        [0.0, 3.0, 1.0],
        [1.0, 0.0, 2.0],
    ])


@pytest.fixture
def rank_deficient():
    """3 x 3 matrix of rank 2: the third row is the sum of the first two."""
    return np.array([
        [1.0, 2.0, 3.0],
        [4.0, 5.0, 6.0],
        [5.0, 7.0, 9.0],
    ])


@pytest.fixture
def spd_matrix():
    """Symmetric positive definite 2 x 2 matrix with determinant 8."""
    return np.array([
        [4.0, 2.0],
        [2.0, 3.0],
    ])

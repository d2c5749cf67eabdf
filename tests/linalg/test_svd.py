"""
Tests for the zero-shift SVD engine.

Covers both consumer modes: SVD (factors, rank, least squares) and
RankRevealingSVD (additionally subspaces and exact solves).
"""

import types

import numpy as np
import pytest

from pydecomp.core.exceptions import ConvergenceError, DimensionError, ValidationError
from pydecomp.core.protocols import (
    Determinant,
    LeastSquares,
    LinearSolver,
    LinearSpace,
    RankReveal,
    SingularFactorization,
    Updatable,
)
from pydecomp.core.structure import STRUCTURE_DIAGONAL, STRUCTURE_ORTHOGONAL, StructuredMatrix
from pydecomp.core.compute.tolerances import MAX_SWEEPS
from pydecomp.core.compute.linalg.svd import SVD, RankRevealingSVD, SVDParams, svd_factor


def reconstruct(f):
    return f.u().array @ f.e().array @ f.v().array.T


# ═══════════════════════════════════════════════════════════════════════
# Factorization
# ═══════════════════════════════════════════════════════════════════════


class TestFactorization:
    """U E Vᵗ reproduces M with orthogonal U, V and sorted singular values."""

    def test_tall_reconstruction(self, tall_matrix):
        f = svd_factor(tall_matrix)
        np.testing.assert_allclose(reconstruct(f), tall_matrix, atol=1e-12)

    def test_wide_reconstruction(self, wide_matrix):
        f = svd_factor(wide_matrix)
        assert f.u().shape == (3, 3)
        assert f.v().shape == (5, 5)
        assert f.e().shape == (3, 5)
        np.testing.assert_allclose(reconstruct(f), wide_matrix, atol=1e-12)

    def test_square_reconstruction(self, square_matrix):
        np.testing.assert_allclose(reconstruct(svd_factor(square_matrix)), square_matrix, atol=1e-12)

    def test_orthogonal_factors(self, tall_matrix):
        f = svd_factor(tall_matrix)
        U, V = f.u().array, f.v().array
        np.testing.assert_allclose(U.T @ U, np.eye(8), atol=1e-13)
        np.testing.assert_allclose(V.T @ V, np.eye(4), atol=1e-13)
        assert STRUCTURE_ORTHOGONAL in f.u().known
        assert STRUCTURE_DIAGONAL in f.e().known

    def test_known_singular_values(self, tall_matrix):
        sv = svd_factor(tall_matrix).singular_values()
        np.testing.assert_allclose(sv, [8.0, 4.0, 2.0, 1.0], rtol=1e-12)

    def test_matches_numpy(self, square_matrix):
        M = square_matrix
        np.testing.assert_allclose(
            svd_factor(M).singular_values(),
            np.linalg.svd(M, compute_uv=False),
            rtol=1e-10,
        )

    def test_non_negative_non_increasing(self, square_matrix, rank_deficient, wide_matrix):
        for M in (square_matrix, rank_deficient, wide_matrix):
            sv = svd_factor(M).singular_values()
            assert np.all(sv >= 0)
            assert np.all(np.diff(sv) <= 0)

    def test_sorting_permutes_factors(self):
        # Already diagonal, ascending: no sweeps, only the sort
        M = np.diag([1.0, -3.0, 2.0])
        f = svd_factor(M)
        assert f.sweeps == 0
        np.testing.assert_array_equal(f.singular_values(), [3.0, 2.0, 1.0])
        np.testing.assert_allclose(reconstruct(f), M, atol=1e-14)

    def test_column_vector(self):
        M = np.array([[3.0], [4.0]])
        f = svd_factor(M)
        np.testing.assert_allclose(f.singular_values(), [5.0])
        np.testing.assert_allclose(reconstruct(f), M, atol=1e-14)

    def test_zero_matrix(self):
        f = svd_factor(np.zeros((3, 2)))
        np.testing.assert_array_equal(f.singular_values(), [0.0, 0.0])
        assert f.rank() == 0
        assert f.condition() == float('inf')

    def test_input_copied(self, square_matrix):
        M = square_matrix.copy()
        f = svd_factor(M)
        M[0, 0] = 1000.0
        np.testing.assert_allclose(reconstruct(f), square_matrix, atol=1e-12)

    def test_input_not_mutated(self, tall_matrix):
        original = tall_matrix.copy()
        svd_factor(tall_matrix).singular_values()
        np.testing.assert_array_equal(tall_matrix, original)

    def test_structured_input(self):
        f = svd_factor(StructuredMatrix.identity(3))
        np.testing.assert_array_equal(f.singular_values(), [1.0, 1.0, 1.0])
        assert f.sweeps == 0


class TestDerivedQuantities:

    def test_condition_and_norm(self, tall_matrix):
        f = svd_factor(tall_matrix)
        assert f.condition() == pytest.approx(8.0, rel=1e-12)
        assert f.norm() == pytest.approx(8.0, rel=1e-12)

    def test_nearest_orthogonal_of_orthogonal_is_itself(self, rng):
        Q, _ = np.linalg.qr(rng.standard_normal((4, 4)))
        np.testing.assert_allclose(svd_factor(Q).nearest_orthogonal().array, Q, atol=1e-13)

    def test_nearest_orthogonal(self, square_matrix):
        O = svd_factor(square_matrix).nearest_orthogonal().array
        np.testing.assert_allclose(O.T @ O, np.eye(3), atol=1e-13)
        # Polar factor: Oᵗ M is symmetric positive definite
        P = O.T @ square_matrix
        np.testing.assert_allclose(P, P.T, atol=1e-12)
        assert np.all(np.linalg.eigvalsh((P + P.T) / 2) > 0)

    def test_nearest_orthogonal_tall_has_orthonormal_columns(self, tall_matrix):
        O = svd_factor(tall_matrix).nearest_orthogonal().array
        assert O.shape == (8, 4)
        np.testing.assert_allclose(O.T @ O, np.eye(4), atol=1e-13)


class TestScaleInvariance:
    """Results scale with the input down to tiny and up to huge magnitudes."""

    @pytest.mark.parametrize("scale", [1e-200, 1e-150, 1e150, 1e200])
    def test_square(self, square_matrix, scale):
        expected = svd_factor(square_matrix).singular_values()
        f = svd_factor(square_matrix * scale)
        np.testing.assert_allclose(f.singular_values() / scale, expected, rtol=1e-12)
        np.testing.assert_allclose(reconstruct(f) / scale, square_matrix, atol=1e-12)
        assert f.converged
        assert f.rank() == 3

    @pytest.mark.parametrize("scale", [1e-150, 1e150])
    def test_tall(self, tall_matrix, scale):
        f = svd_factor(tall_matrix * scale)
        np.testing.assert_allclose(f.singular_values() / scale, [8.0, 4.0, 2.0, 1.0], rtol=1e-12)
        np.testing.assert_allclose(reconstruct(f) / scale, tall_matrix, atol=1e-12)
        assert f.converged

    @pytest.mark.parametrize("scale", [1e-150, 1e150])
    def test_rank_and_solve(self, rank_deficient, scale):
        f = svd_factor(rank_deficient * scale)
        assert f.rank() == 2
        b = rank_deficient @ np.array([1.0, 2.0, 3.0]) * scale
        assert f.can_solve(b)
        np.testing.assert_allclose(rank_deficient @ f.solve(b), b / scale, atol=1e-10)
        assert not f.can_solve(b + np.array([1.0, 1.0, -1.0]) * scale)


# ═══════════════════════════════════════════════════════════════════════
# Convergence
# ═══════════════════════════════════════════════════════════════════════


class TestConvergence:

    @pytest.mark.parametrize("shape", [(6, 6), (12, 8), (20, 6)])
    def test_random_well_conditioned_converges(self, rng, spectrum, shape):
        # Geometric spacing keeps adjacent ratios at 10^(-1/(n-1)) <= 0.72
        m, n = shape
        sv = np.geomspace(10.0, 1.0, n)
        for _ in range(5):
            f = svd_factor(spectrum(rng, m, n, sv))
            assert f.converged
            assert 0 < f.sweeps < MAX_SWEEPS // 4
            assert f.condition() == pytest.approx(10.0, rel=1e-10)
            np.testing.assert_allclose(f.singular_values(), sv, rtol=1e-10)

    def test_clustered_spectrum_reports_degraded_result(self, rng, spectrum):
        sv = np.linspace(1.02, 1.0, 8)
        f = svd_factor(spectrum(rng, 12, 8, sv))
        with pytest.warns(RuntimeWarning, match="sweep stopped"):
            s = f.singular_values()
        assert not f.converged
        assert f.sweeps == MAX_SWEEPS

        result = f.diagnostics()
        assert result.info['converged'] is False
        assert result.params.converged is False
        assert result.params.sweeps == MAX_SWEEPS
        assert result.has_warning("largest remaining superdiagonal")

        # Best effort: sorted, inside the cluster, orthogonal factors
        assert np.all(np.diff(s) <= 0)
        np.testing.assert_allclose(s, sv, atol=0.025)
        U, V = f.u().array, f.v().array
        np.testing.assert_allclose(U.T @ U, np.eye(12), atol=1e-12)
        np.testing.assert_allclose(V.T @ V, np.eye(8), atol=1e-12)

    def test_cap_warns(self):
        f = svd_factor(np.array([[1.0, 1.0], [0.0, 1.0]]), max_sweeps=0)
        with pytest.warns(RuntimeWarning, match="sweep stopped"):
            f.singular_values()
        assert not f.converged
        assert f.sweeps == 0
        assert f.diagnostics().has_warning("sweep stopped")

    def test_cap_strict_raises(self):
        f = svd_factor(np.array([[1.0, 1.0], [0.0, 1.0]]), max_sweeps=0, strict=True)
        with pytest.raises(ConvergenceError) as exc_info:
            f.singular_values()
        assert exc_info.value.reason == 'max_sweeps'
        assert exc_info.value.iterations == 0
        assert exc_info.value.final_change == 1.0
        assert f.needs_update()

    def test_invalid_max_sweeps(self):
        with pytest.raises(ValidationError):
            svd_factor(np.eye(2), max_sweeps=-1)

    def test_diagnostics(self, tall_matrix):
        f = svd_factor(tall_matrix)
        result = f.diagnostics()
        assert isinstance(result.params, SVDParams)
        assert result.backend_name == 'cpu_svd'
        assert result.info['method'] == 'demmel_kahan_zero_shift'
        assert result.info['converged'] is True
        assert result.info['sweeps'] == f.sweeps
        assert result.info['transposed'] is False
        assert result.params.rank == 4
        assert result.warnings == ()
        assert {'total_seconds', 'bidiagonalize', 'sweeps', 'normalize'} <= set(result.timing)

    def test_diagnostics_wide_transposed(self, wide_matrix):
        assert svd_factor(wide_matrix).diagnostics().info['transposed'] is True


# ═══════════════════════════════════════════════════════════════════════
# Rank, least squares, pseudoinverse, determinant
# ═══════════════════════════════════════════════════════════════════════


class TestRank:

    def test_full_rank(self, tall_matrix, wide_matrix):
        assert svd_factor(tall_matrix).rank() == 4
        assert svd_factor(wide_matrix).rank() == 3

    def test_rank_deficient(self, rank_deficient):
        assert svd_factor(rank_deficient).rank() == 2

    def test_rank_deficient_tall(self):
        A = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0], [2.0, -1.0], [0.0, 3.0], [1.0, 2.0]])
        M = np.column_stack([A, A @ [1.0, -2.0]])
        assert svd_factor(M).rank() == 2


class TestLeastSquares:

    def test_overdetermined_recovers_solution(self, tall_matrix):
        x0 = np.array([1.0, -2.0, 0.5, 3.0])
        x = svd_factor(tall_matrix, mode='lstsq').approx(tall_matrix @ x0)
        np.testing.assert_allclose(x, x0, atol=1e-12)

    def test_inconsistent_residual_orthogonal(self, tall_matrix, rng):
        b = rng.standard_normal(8)
        x = svd_factor(tall_matrix).approx(b)
        np.testing.assert_allclose(tall_matrix.T @ (tall_matrix @ x - b), 0.0, atol=1e-12)

    def test_minimum_norm_for_rank_deficient(self, rank_deficient):
        f = svd_factor(rank_deficient)
        b = np.array([1.0, 0.0, 2.0])
        x = f.approx(b)
        np.testing.assert_allclose(rank_deficient.T @ (rank_deficient @ x - b), 0.0, atol=1e-12)
        np.testing.assert_allclose(f.null_space().T @ x, 0.0, atol=1e-12)

    def test_matrix_rhs(self, tall_matrix):
        X0 = np.arange(8.0).reshape(4, 2)
        X = svd_factor(tall_matrix).approx(tall_matrix @ X0)
        assert X.shape == (4, 2)
        np.testing.assert_allclose(X, X0, atol=1e-12)

    def test_wide_minimum_norm(self, wide_matrix):
        b = np.array([1.0, 2.0, 3.0])
        x = svd_factor(wide_matrix).approx(b)
        np.testing.assert_allclose(wide_matrix @ x, b, atol=1e-12)
        np.testing.assert_allclose(x, np.linalg.pinv(wide_matrix) @ b, atol=1e-12)

    def test_zero_matrix_gives_zero(self):
        x = svd_factor(np.zeros((3, 2))).approx([1.0, 2.0, 3.0])
        np.testing.assert_array_equal(x, [0.0, 0.0])

    def test_wrong_rows(self, tall_matrix):
        with pytest.raises(DimensionError):
            svd_factor(tall_matrix).approx(np.ones(5))


class TestPseudoinverse:

    def test_moore_penrose_conditions(self, rank_deficient):
        M = rank_deficient
        P = svd_factor(M).pseudoinverse()
        np.testing.assert_allclose(M @ P @ M, M, atol=1e-11)
        np.testing.assert_allclose(P @ M @ P, P, atol=1e-11)
        np.testing.assert_allclose((M @ P).T, M @ P, atol=1e-11)
        np.testing.assert_allclose((P @ M).T, P @ M, atol=1e-11)

    def test_shape(self, tall_matrix):
        assert svd_factor(tall_matrix).pseudoinverse().shape == (4, 8)

    def test_left_inverse_full_column_rank(self, tall_matrix):
        P = svd_factor(tall_matrix).pseudoinverse()
        np.testing.assert_allclose(P @ tall_matrix, np.eye(4), atol=1e-12)

    def test_cached(self, tall_matrix):
        f = svd_factor(tall_matrix)
        assert f.pseudoinverse() is f.pseudoinverse()


class TestDeterminant:

    def test_matches_numpy(self, square_matrix):
        f = svd_factor(square_matrix)
        assert f.is_invertible()
        assert f.determinant() == pytest.approx(np.linalg.det(square_matrix), rel=1e-12)

    def test_singular_is_zero(self, rank_deficient):
        f = svd_factor(rank_deficient)
        assert not f.is_invertible()
        assert f.determinant() == 0.0

    def test_non_square_raises(self, tall_matrix):
        f = svd_factor(tall_matrix)
        with pytest.raises(DimensionError, match="square"):
            f.determinant()
        with pytest.raises(DimensionError):
            f.is_invertible()

    def test_non_square_message_names_operation(self, tall_matrix):
        message = "Computing the determinant: requires a square matrix, got 8 x 4"
        with pytest.raises(DimensionError, match=message):
            svd_factor(tall_matrix).determinant()


# ═══════════════════════════════════════════════════════════════════════
# Rank-revealing mode: subspaces and exact solves
# ═══════════════════════════════════════════════════════════════════════


class TestSubspaces:

    def test_dimensions(self, rank_deficient):
        f = svd_factor(rank_deficient)
        assert f.column_space().shape == (3, 2)
        assert f.row_space().shape == (3, 2)
        assert f.null_space().shape == (3, 1)
        assert f.null_transpose().shape == (3, 1)

    def test_null_space_annihilates(self, rank_deficient):
        f = svd_factor(rank_deficient)
        np.testing.assert_allclose(rank_deficient @ f.null_space(), 0.0, atol=1e-12)
        np.testing.assert_allclose(f.null_transpose().T @ rank_deficient, 0.0, atol=1e-12)

    def test_left_null_vector(self, rank_deficient):
        # Third row is the sum of the first two
        n = svd_factor(rank_deficient).null_transpose()[:, 0]
        expected = np.array([1.0, 1.0, -1.0]) / np.sqrt(3.0)
        assert abs(n @ expected) == pytest.approx(1.0, abs=1e-12)

    def test_wide_null_space(self, wide_matrix):
        f = svd_factor(wide_matrix)
        N = f.null_space()
        assert N.shape == (5, 2)
        np.testing.assert_allclose(wide_matrix @ N, 0.0, atol=1e-12)
        assert f.null_transpose().shape == (3, 0)

    def test_spaces_are_read_only_copies(self, rank_deficient):
        f = svd_factor(rank_deficient)
        N = f.null_space()
        with pytest.raises(ValueError):
            N[0, 0] = 99.0
        assert not np.shares_memory(N, f.v().array)
        assert not np.shares_memory(f.column_space(), f.u().array)

    def test_memoized(self, rank_deficient):
        f = svd_factor(rank_deficient)
        assert f.column_space() is f.column_space()


class TestExactSolve:

    def test_can_solve_in_range(self, rank_deficient):
        f = svd_factor(rank_deficient)
        b = rank_deficient @ np.array([1.0, 2.0, 3.0])
        assert f.can_solve(b)
        x = f.solve(b)
        np.testing.assert_allclose(rank_deficient @ x, b, atol=1e-12)

    def test_cannot_solve_out_of_range(self, rank_deficient):
        f = svd_factor(rank_deficient)
        b = rank_deficient @ np.array([1.0, 2.0, 3.0]) + np.array([1.0, 1.0, -1.0])
        assert not f.can_solve(b)
        assert f.solve(b) is None

    def test_zero_rhs_always_solvable(self, rank_deficient):
        assert svd_factor(rank_deficient).can_solve(np.zeros(3))

    def test_full_row_rank_always_solvable(self, wide_matrix):
        assert svd_factor(wide_matrix).can_solve(np.array([5.0, -1.0, 2.0]))

    def test_matrix_rhs(self, rank_deficient):
        f = svd_factor(rank_deficient)
        B = rank_deficient @ np.arange(6.0).reshape(3, 2)
        assert f.can_solve(B)
        B[0, 1] += 1.0
        assert not f.can_solve(B)

    def test_null_dominated_solution_accepted(self, rng):
        # b = M x where x is mostly in the kernel of M, so b is short
        # relative to the products that formed it
        c = rng.standard_normal(8)
        M = np.outer([1.0, -2.0], c)
        f = svd_factor(M)
        assert f.rank() == 1
        for _ in range(200):
            t = rng.standard_normal(8)
            kernel = t - (t @ c) / (c @ c) * c
            x = c / np.linalg.norm(c) + 3.0 * kernel / np.linalg.norm(kernel)
            assert f.can_solve(M @ x)

    def test_null_dominated_matrix_rhs(self, rank_deficient):
        kernel = np.array([1.0, -2.0, 1.0])
        X = np.column_stack([0.1 * np.ones(3) + 3.0 * kernel, 0.7 * kernel + 0.01])
        assert svd_factor(rank_deficient).can_solve(rank_deficient @ X)

    def test_overdetermined_consistent(self, tall_matrix):
        x0 = np.array([1.0, 0.0, -1.0, 2.0])
        x = svd_factor(tall_matrix).solve(tall_matrix @ x0)
        np.testing.assert_allclose(x, x0, atol=1e-12)

    def test_inverse(self, square_matrix):
        inv = svd_factor(square_matrix).inverse()
        np.testing.assert_allclose(inv @ square_matrix, np.eye(3), atol=1e-12)

    def test_inverse_singular_is_none(self, rank_deficient):
        assert svd_factor(rank_deficient).inverse() is None


# ═══════════════════════════════════════════════════════════════════════
# Modes, protocols, lifecycle
# ═══════════════════════════════════════════════════════════════════════


class TestModes:

    def test_factory_modes(self, square_matrix):
        assert type(svd_factor(square_matrix, mode='lstsq')) is SVD
        assert type(svd_factor(square_matrix, mode='rank')) is RankRevealingSVD
        assert type(svd_factor(square_matrix)) is RankRevealingSVD

    def test_unknown_mode(self, square_matrix):
        with pytest.raises(ValueError, match="Unknown SVD mode"):
            svd_factor(square_matrix, mode='full')

    def test_lstsq_mode_capabilities(self, square_matrix):
        f = svd_factor(square_matrix, mode='lstsq')
        assert isinstance(f, Updatable)
        assert isinstance(f, Determinant)
        assert isinstance(f, LeastSquares)
        assert isinstance(f, RankReveal)
        assert isinstance(f, SingularFactorization)
        assert not isinstance(f, LinearSpace)
        assert not isinstance(f, LinearSolver)
        assert not hasattr(f, 'null_space')

    def test_rank_mode_capabilities(self, square_matrix):
        f = svd_factor(square_matrix, mode='rank')
        assert isinstance(f, LinearSpace)
        assert isinstance(f, LinearSolver)
        assert isinstance(f, LeastSquares)

    def test_invalid_ulps(self, square_matrix):
        with pytest.raises(ValidationError):
            svd_factor(square_matrix, ulps=-1)

    def test_submodule_importable_alongside_factory(self):
        import pydecomp.core.compute.linalg.svd as module
        assert isinstance(module, types.ModuleType)
        assert module.svd_factor is svd_factor


class TestLifecycle:

    def test_lazy(self, square_matrix):
        f = svd_factor(square_matrix)
        assert f.needs_update()
        f.singular_values()
        assert not f.needs_update()

    def test_request_update_clears_caches(self, rank_deficient):
        f = svd_factor(rank_deficient)
        first = f.singular_values().copy()
        space = f.null_space()
        f.request_update()
        assert f.needs_update()
        np.testing.assert_allclose(f.singular_values(), first)
        assert f.null_space() is not space

    def test_cached_arrays_read_only(self, rank_deficient):
        f = svd_factor(rank_deficient)
        rank = f.rank()
        cached = (
            f.u().array, f.v().array, f.e().array, f.singular_values(), f.pseudoinverse(),
            f.column_space(), f.row_space(), f.null_space(), f.null_transpose(),
        )
        for array in cached:
            with pytest.raises(ValueError):
                array[0] = 0.0
        b = rank_deficient @ np.array([1.0, 2.0, 3.0])
        assert f.rank() == rank
        assert f.can_solve(b)

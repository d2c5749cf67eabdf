"""
Singular value decomposition by zero-shift bidiagonal sweeps.

The pipeline is:
    1. Householder bidiagonalization of the tall orientation of M
    2. Demmel–Kahan zero-shift downward sweeps of paired right/left Givens
       rotations until the bidiagonal is diagonal within tolerance
    3. Sign normalization and descending sort of the singular values
    4. Rank, pseudoinverse and least squares by substitution through U, Σ, V

One engine serves both consumer modes:
    SVD               factors, rank, least squares, pseudoinverse, determinant
    RankRevealingSVD  additionally the four fundamental subspaces and exact
                      solves decided by orthogonality to the left null space

References:
    Demmel, J. & Kahan, W. (1990). Accurate singular values of bidiagonal
    matrices. SIAM J. Sci. Stat. Comput. 11(5), 873-912.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
import warnings
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pydecomp.core.exceptions import ConvergenceError
from pydecomp.core.result import Result
from pydecomp.core.structure import (
    STRUCTURE_DIAGONAL,
    STRUCTURE_ORTHOGONAL,
    STRUCTURE_UPPER_BIDIAGONAL,
    STRUCTURE_UPPER_TRIANGULAR,
    StructuredMatrix,
    as_array,
    is_diagonal,
    known_structure,
    read_only,
)
from pydecomp.core.validation import check_matrix, check_rhs, check_square, check_ulps
from pydecomp.core.compute.timing import Timer
from pydecomp.core.compute.tolerances import DEFAULT_ULPS, MAX_SWEEPS, is_zero, next_eps
from pydecomp.core.compute.linalg.bidiagonal import HouseholderBidiagonal
from pydecomp.core.compute.linalg.reflectors import givens, norm2, rotate_columns, rotate_rows


SVDMode = Literal['lstsq', 'rank']


@dataclass(frozen=True)
class SVDParams:
    """
    Payload of SVD diagnostics.

    Attributes:
        singular_values: Non-negative, non-increasing (min(m, n),)
        rank: Numerical rank
        condition_number: σmax / σmin (inf when σmin is zero)
        sweeps: Number of Givens sweeps performed
        converged: False if the sweep cap stopped the iteration
    """
    singular_values: NDArray[np.floating[Any]]
    rank: int
    condition_number: float
    sweeps: int
    converged: bool


class SVD:
    """
    Lazy singular value decomposition ``M = U E Vᵗ``.

    U (m x m) and V (n x n) are orthogonal, E (m x n) holds the singular
    values on its diagonal in non-increasing order. The coefficient
    matrix is copied on construction; the factorization runs on first
    access and is cached until request_update().

    Satisfies the Updatable, Determinant, LeastSquares, RankReveal and
    SingularFactorization protocols.

    Args:
        matrix: Coefficient matrix (m x n), ndarray or StructuredMatrix
        ulps: Error margin in representable steps
        max_sweeps: Cap on diagonalization sweeps
        strict: If True, hitting the sweep cap raises ConvergenceError
            instead of warning

    Factors, singular values and every other cached array are handed out
    read-only. Not thread-safe: cached quantities are filled on first
    request.

    Convergence:
        Each zero-shift sweep shrinks the superdiagonal entry between σᵢ
        and σᵢ₊₁ by roughly (σᵢ₊₁ / σᵢ)², so the sweep count grows like
        ``1 / (1 - ratio)`` for the closest adjacent pair rather than with
        the condition number. Spectra whose adjacent ratios stay below
        about 0.9 (e.g. geometrically spaced, or a few well separated
        values) converge in well under a hundred sweeps. Clustered
        spectra, which are typical of random matrices beyond roughly
        10 x 10 even when well conditioned, can need thousands and stop
        at ``max_sweeps`` with ``converged`` False; the singular values
        are then accurate only to about the remaining superdiagonal.
    """

    def __init__(
        self,
        matrix: ArrayLike | StructuredMatrix,
        ulps: int = DEFAULT_ULPS,
        *,
        max_sweeps: int = MAX_SWEEPS,
        strict: bool = False,
    ):
        self._ulps = check_ulps(ulps)
        self._max_sweeps = check_ulps(max_sweeps, 'max_sweeps')
        self._strict = strict
        self._known = known_structure(matrix)
        self._mat = check_matrix(as_array(matrix), 'matrix').copy()
        self._clear()

    def _clear(self) -> None:
        self._c: NDArray[np.floating[Any]] | None = None
        self._u: NDArray[np.floating[Any]] | None = None
        self._v: NDArray[np.floating[Any]] | None = None
        self._e: StructuredMatrix | None = None
        self._sv: NDArray[np.floating[Any]] | None = None
        self._det: float | None = None
        self._rank: int | None = None
        self._inv: NDArray[np.floating[Any]] | None = None
        self._sweeps = 0
        self._converged = True
        self._reflections = 0
        self._timing: dict[str, float] | None = None
        self._warnings: tuple[str, ...] = ()

    # === Lifecycle ===

    @property
    def shape(self) -> tuple[int, int]:
        return self._mat.shape

    @property
    def tall(self) -> bool:
        """Rows >= columns; non-tall matrices are factorized through their transpose."""
        rows, cols = self._mat.shape
        return rows >= cols

    def needs_update(self) -> bool:
        return self._c is None

    def request_update(self) -> None:
        self._clear()

    def _ensure(self) -> None:
        if self.needs_update():
            self._decompose()

    # === Decomposition ===

    def _decompose(self) -> None:
        timer = Timer()
        timer.start()
        rows, cols = self._mat.shape

        with timer.section('bidiagonalize'):
            if self.tall:
                target = StructuredMatrix(self._mat, self._known)
            else:
                target = StructuredMatrix(self._mat.T.copy())
            bidiagonal = HouseholderBidiagonal(target, self._ulps)
            c = bidiagonal.b().array.copy()
            u = bidiagonal.u().array.copy()
            v = bidiagonal.v().array.copy()
            det = bidiagonal.determinant() if rows == cols else None

        with timer.section('sweeps'):
            sweeps, converged = self._diagonalize(c, u, v)
            residual = float(np.max(np.abs(np.diag(c, 1)))) if c.shape[1] > 1 else 0.0

        with timer.section('normalize'):
            self._normalize(c, u, v)

        timer.stop()

        self._c, self._u, self._v = read_only(c), read_only(u), read_only(v)
        self._det = det
        self._sweeps = sweeps
        self._converged = converged
        self._reflections = bidiagonal.reflections
        self._timing = timer.result()

        if not converged:
            message = (
                f"SVD sweep stopped at the cap of {self._max_sweeps} sweeps; "
                f"largest remaining superdiagonal entry is {residual:.3e}"
            )
            if self._strict:
                self._clear()
                raise ConvergenceError(
                    message,
                    iterations=sweeps,
                    final_change=residual,
                    reason='max_sweeps',
                )
            self._warnings = (message,)
            warnings.warn(message, RuntimeWarning, stacklevel=4)

    def _diagonalize(
        self,
        c: NDArray[np.floating[Any]],
        u: NDArray[np.floating[Any]],
        v: NDArray[np.floating[Any]],
    ) -> tuple[int, bool]:
        """Sweep until C is diagonal; returns (sweeps, converged)."""
        sweeps = 0
        while not is_diagonal(c, self._ulps):
            if sweeps >= self._max_sweeps:
                return sweeps, False
            self._sweep(c, u, v)
            sweeps += 1
        return sweeps, True

    def _sweep(
        self,
        c: NDArray[np.floating[Any]],
        u: NDArray[np.floating[Any]],
        v: NDArray[np.floating[Any]],
    ) -> None:
        """
        One zero-shift downward sweep, in place.

        Per column i, top to bottom: a right rotation on columns (i, i+1)
        eliminates C[i, i+1], then a left rotation on rows (i, i+1)
        eliminates the C[i+1, i] it created. The right rotation also
        annihilates the bulge C[i-1, i+1] left by the previous left
        rotation, because rows i-1 and i are parallel in those columns.
        """
        size = c.shape[1]
        r_err = l_err = 0.0

        for i in range(size - 1):
            # Right elimination
            r_val = c[i, i + 1]
            if i == 0:
                r_err = abs(c[i, i])
            else:
                r_err = _shrink(abs(c[i, i]), r_err, abs(r_val))

            if not self._negligible(r_val, r_err):
                cs, sn, _ = givens(c[i, i], r_val)
                rotate_columns(c, i, i + 1, cs, sn)
                rotate_columns(v, i, i + 1, cs, sn)
            c[i, i + 1] = 0.0
            if i > 0:
                c[i - 1, i + 1] = 0.0

            # Left elimination
            l_val = c[i + 1, i]
            if i == 0:
                l_err = abs(c[i, i])
            else:
                l_err = _shrink(abs(c[i, i]), l_err, abs(l_val))

            if not self._negligible(l_val, l_err):
                cs, sn, _ = givens(c[i, i], l_val)
                rotate_rows(c, i, i + 1, cs, sn)
                rotate_columns(u, i, i + 1, cs, sn)
            c[i + 1, i] = 0.0

    def _negligible(self, value: float, err: float) -> bool:
        """Relative convergence test ``value / err ≈ 0``."""
        if value == 0.0:
            return True
        if err == 0.0:
            return False
        return is_zero(value / err, self._ulps)

    def _normalize(
        self,
        c: NDArray[np.floating[Any]],
        u: NDArray[np.floating[Any]],
        v: NDArray[np.floating[Any]],
    ) -> None:
        """Make the diagonal non-negative, then sort it in non-increasing order."""
        size = c.shape[1]
        for i in range(size):
            if c[i, i] < 0:
                c[:, i] *= -1.0
                v[:, i] *= -1.0

        order = np.argsort(-np.diag(c), kind='stable')
        rows = np.concatenate([order, np.arange(size, c.shape[0])])
        c[:, :] = c[np.ix_(rows, order)]
        u[:, :] = u[:, rows]
        v[:, :] = v[:, order]

    # === Factors ===

    def u(self) -> StructuredMatrix:
        """Left orthogonal factor (m x m) of the original, non-transposed matrix."""
        self._ensure()
        u = self._u if self.tall else self._v
        return StructuredMatrix._proven(u, STRUCTURE_ORTHOGONAL)

    def v(self) -> StructuredMatrix:
        """Right orthogonal factor (n x n) of the original, non-transposed matrix."""
        self._ensure()
        v = self._v if self.tall else self._u
        return StructuredMatrix._proven(v, STRUCTURE_ORTHOGONAL)

    def e(self) -> StructuredMatrix:
        """Singular values on the diagonal of an m x n matrix, zero elsewhere."""
        self._ensure()
        if self._e is None:
            sv = self.singular_values()
            e = np.zeros(self._mat.shape)
            idx = np.arange(sv.size)
            e[idx, idx] = sv
            self._e = StructuredMatrix._proven(
                read_only(e), STRUCTURE_DIAGONAL, STRUCTURE_UPPER_TRIANGULAR, STRUCTURE_UPPER_BIDIAGONAL
            )
        return self._e

    def singular_values(self) -> NDArray[np.floating[Any]]:
        """Singular values, non-negative and non-increasing (min(m, n),)."""
        self._ensure()
        if self._sv is None:
            self._sv = read_only(np.abs(np.diag(self._c)))
        return self._sv

    @property
    def sweeps(self) -> int:
        """Number of diagonalization sweeps performed."""
        self._ensure()
        return self._sweeps

    @property
    def converged(self) -> bool:
        """False if the sweep cap stopped the iteration before C was diagonal."""
        self._ensure()
        return self._converged

    def condition(self) -> float:
        """2-norm condition number σmax / σmin (inf when σmin is zero)."""
        sv = self.singular_values()
        if sv[-1] == 0.0:
            return float('inf')
        return float(sv[0] / sv[-1])

    def norm(self) -> float:
        """Spectral norm σmax."""
        return float(self.singular_values()[0])

    def nearest_orthogonal(self) -> StructuredMatrix:
        """
        Closest matrix with orthonormal columns (or rows): ``U_k V_kᵗ``.

        For square input this is the orthogonal polar factor.
        """
        self._ensure()
        k = min(self._mat.shape)
        o = self.u().array[:, :k] @ self.v().array[:, :k].T
        return StructuredMatrix._proven(o, STRUCTURE_ORTHOGONAL)

    # === Rank and least squares ===

    def rank(self) -> int:
        """
        Numerical rank.

        Counts leading singular values above
        ``max(m, n) * ulps * spacing(σmax)``; since the spectrum is
        sorted, counting stops at the first negligible value.
        """
        self._ensure()
        if self._rank is None:
            sv = self.singular_values()
            rows, cols = self._mat.shape
            threshold = max(rows, cols) * self._ulps * next_eps(sv[0])
            rank = 0
            for s in sv:
                if s <= threshold:
                    break
                rank += 1
            self._rank = rank
        return self._rank

    def approx(self, b: ArrayLike) -> NDArray[np.floating[Any]]:
        """
        Least-squares approximation ``x = V Σ⁺ Uᵗ b``.

        Only the first rank() singular values are inverted, which yields the
        minimum-norm solution for rank-deficient systems.

        Args:
            b: Right-hand side, vector (m,) or matrix (m, k)

        Returns:
            x of shape (n,) or (n, k)

        Raises:
            DimensionError: If b does not have m rows
        """
        rows = self._mat.shape[0]
        b_arr = check_rhs(as_array(b), rows)
        self._ensure()

        r = self.rank()
        s = self.singular_values()[:r]
        u_r = self.u().array[:, :r]
        v_r = self.v().array[:, :r]

        y = u_r.T @ b_arr
        if b_arr.ndim == 1:
            y = y / s
        else:
            y = y / s[:, np.newaxis]
        return v_r @ y

    def pseudoinverse(self) -> NDArray[np.floating[Any]]:
        """Moore–Penrose pseudoinverse (n x m), cached."""
        if self._inv is None:
            self._inv = read_only(self.approx(np.eye(self._mat.shape[0])))
        return self._inv

    # === Determinant ===

    def determinant(self) -> float:
        """
        Determinant of a square coefficient matrix; 0.0 when rank-deficient.

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
        Whether a square coefficient matrix has full rank.

        Raises:
            DimensionError: If the matrix is not square
        """
        self._ensure()
        self._require_square('Invertibility')
        return self.rank() == self._mat.shape[1]

    def _require_square(self, what: str) -> None:
        check_square(self._mat, what)

    # === Diagnostics ===

    def diagnostics(self) -> Result[SVDParams]:
        """Result envelope with the spectrum, convergence info and timing."""
        self._ensure()
        params = SVDParams(
            singular_values=self.singular_values(),
            rank=self.rank(),
            condition_number=self.condition(),
            sweeps=self._sweeps,
            converged=self._converged,
        )
        info: dict[str, Any] = {
            'method': 'demmel_kahan_zero_shift',
            'sweeps': self._sweeps,
            'max_sweeps': self._max_sweeps,
            'converged': self._converged,
            'reflections': self._reflections,
            'transposed': not self.tall,
            'ulps': self._ulps,
        }
        return Result(
            params=params,
            info=info,
            timing=self._timing,
            backend_name='cpu_svd',
            warnings=self._warnings,
        )


class RankRevealingSVD(SVD):
    """
    SVD that also exposes the fundamental subspaces and exact solves.

    Additionally satisfies the LinearSpace and LinearSolver protocols.
    Every space is a fresh copy of selected columns of U or V, memoized
    until request_update().
    """

    def _clear(self) -> None:
        super()._clear()
        self._col_space: NDArray[np.floating[Any]] | None = None
        self._row_space: NDArray[np.floating[Any]] | None = None
        self._nul_space: NDArray[np.floating[Any]] | None = None
        self._nul_trans: NDArray[np.floating[Any]] | None = None

    def column_space(self) -> NDArray[np.floating[Any]]:
        """Orthonormal basis of the range of M: the first rank() columns of U."""
        if self._col_space is None:
            self._col_space = read_only(self.u().array[:, :self.rank()].copy())
        return self._col_space

    def row_space(self) -> NDArray[np.floating[Any]]:
        """Orthonormal basis of the range of Mᵗ: the first rank() columns of V."""
        if self._row_space is None:
            self._row_space = read_only(self.v().array[:, :self.rank()].copy())
        return self._row_space

    def null_space(self) -> NDArray[np.floating[Any]]:
        """Orthonormal basis of the kernel of M: the trailing n - rank() columns of V."""
        if self._nul_space is None:
            self._nul_space = read_only(self.v().array[:, self.rank():].copy())
        return self._nul_space

    def null_transpose(self) -> NDArray[np.floating[Any]]:
        """Orthonormal basis of the kernel of Mᵗ: the trailing m - rank() columns of U."""
        if self._nul_trans is None:
            self._nul_trans = read_only(self.u().array[:, self.rank():].copy())
        return self._nul_trans

    def can_solve(self, b: ArrayLike) -> bool:
        """
        Whether ``M x = b`` has an exact solution.

        b is compatible iff it is orthogonal to the kernel of Mᵗ, tested
        as ``||bᵗ N|| ≈ 0``. The margin is scaled by the dimensions of b
        and N and by the column count, since a b formed as ``M x``
        carries the rounding of n-term products. The reference is the
        larger of ``||b||`` times σmax / σrank, the amplification of
        rounding in the computed null space, and ``σmax ||x⁺||`` for the
        least-squares solution x⁺, the size of the products that form b.

        Raises:
            DimensionError: If b does not have m rows
        """
        b_arr = check_rhs(as_array(b), self._mat.shape[0])
        t = self.null_transpose()
        if t.shape[1] == 0:
            return True

        b_2d = b_arr.reshape(b_arr.shape[0], -1)
        reference = norm2(b_2d)
        if reference == 0.0:
            return True
        r = self.rank()
        if r > 0:
            sv = self.singular_values()
            reference = max(
                reference * float(sv[0] / sv[r - 1]),
                float(sv[0]) * norm2(self.approx(b_arr)),
            )
        steps = max(b_2d.shape) * max(t.shape) * self._mat.shape[1] * self._ulps
        return is_zero(norm2(b_2d.T @ t), steps, reference)

    def solve(self, b: ArrayLike) -> NDArray[np.floating[Any]] | None:
        """Exact solution of ``M x = b``, or None when none exists."""
        if self.can_solve(b):
            return self.approx(b)
        return None

    def inverse(self) -> NDArray[np.floating[Any]] | None:
        """
        Inverse of a square, full-rank matrix; None when singular.

        Raises:
            DimensionError: If the matrix is not square
        """
        if self.is_invertible():
            return self.pseudoinverse()
        return None


def svd_factor(
    matrix: ArrayLike | StructuredMatrix,
    ulps: int = DEFAULT_ULPS,
    *,
    mode: SVDMode = 'rank',
    max_sweeps: int = MAX_SWEEPS,
    strict: bool = False,
) -> SVD:
    """
    Build a lazy SVD of a matrix.

    Args:
        matrix: Coefficient matrix (m x n)
        ulps: Error margin in representable steps
        mode: 'lstsq' for factors, rank and least squares only;
              'rank' to also expose subspaces and exact solves
        max_sweeps: Cap on diagonalization sweeps
        strict: Raise ConvergenceError instead of warning at the cap

    Returns:
        SVD or RankRevealingSVD

    Raises:
        ValueError: If mode is unknown
    """
    if mode == 'rank':
        return RankRevealingSVD(matrix, ulps, max_sweeps=max_sweeps, strict=strict)
    elif mode == 'lstsq':
        return SVD(matrix, ulps, max_sweeps=max_sweeps, strict=strict)
    else:
        raise ValueError(f"Unknown SVD mode: {mode!r}")


def _shrink(diagonal: float, err: float, off: float) -> float:
    """Demmel–Kahan running error bound ``|d| * err / (err + |e|)``."""
    total = err + off
    if total == 0.0:
        return 0.0
    return diagonal * (err / total)

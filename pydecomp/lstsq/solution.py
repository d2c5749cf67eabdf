"""
Least-squares solution types.

Contains the parameter payload and user-facing solution wrapper.
"""

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray

from pydecomp.core.result import Result
from pydecomp.core.compute.tolerances import select_tolerance

if TYPE_CHECKING:
    from pydecomp.lstsq.design import LeastSquaresDesign


@dataclass(frozen=True)
class LeastSquaresParams:
    """
    Parameter payload for a least-squares solve.
    
    This is the immutable data computed by backends. singular_values and
    condition_number are None for backends that do not compute them.
    """
    x: NDArray[np.floating[Any]]
    residuals: NDArray[np.floating[Any]]
    rss: float
    rank: int
    exact: bool
    singular_values: NDArray[np.floating[Any]] | None = None
    condition_number: float | None = None
    determinant: float | None = None


@dataclass
class LeastSquaresSolution:
    """
    User-facing least-squares results.
    
    Wraps the backend Result and provides convenient accessors.
    """
    _result: Result[LeastSquaresParams]
    _design: 'LeastSquaresDesign'
    
    @property
    def x(self) -> NDArray[np.floating[Any]]:
        """Solution (minimum-norm for rank-deficient systems)."""
        return self._result.params.x
    
    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        """b - A x."""
        return self._result.params.residuals
    
    @property
    def rss(self) -> float:
        """Residual sum of squares."""
        return self._result.params.rss
    
    @property
    def rank(self) -> int:
        return self._result.params.rank
    
    @property
    def exact(self) -> bool:
        """Whether the system has an exact solution (b in the range of A)."""
        return self._result.params.exact
    
    @property
    def singular_values(self) -> NDArray[np.floating[Any]] | None:
        return self._result.params.singular_values
    
    @property
    def condition_number(self) -> float | None:
        return self._result.params.condition_number
    
    @property
    def determinant(self) -> float | None:
        return self._result.params.determinant
    
    @property
    def rank_deficient(self) -> bool:
        return self.rank < min(self._design.m, self._design.n)
    
    @property
    def info(self) -> dict[str, Any]:
        return self._result.info
    
    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing
    
    @property
    def backend_name(self) -> str:
        return self._result.backend_name
    
    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings
    
    def residuals_within_tolerance(self) -> bool:
        """
        Whether ``A x`` reproduces b up to the tolerance tier for this problem.
        
        Only meaningful for exact systems; inconsistent systems keep a
        nonzero residual by definition.
        """
        condition = self.condition_number if self.condition_number is not None else 1.0
        tier = select_tolerance(condition)
        fitted = self._design.A @ self.x
        return bool(np.allclose(fitted, self._design.b, rtol=tier.rtol, atol=tier.atol))
    
    def summary(self) -> str:
        """Plain-text summary of the solve."""
        lines = [
            f"Least squares ({self.backend_name})",
            f"  system:     {self._design.m} x {self._design.n}",
            f"  rank:       {self.rank}" + (" (deficient)" if self.rank_deficient else ""),
            f"  exact:      {self.exact}",
            f"  rss:        {self.rss:.6g}",
        ]
        if self.condition_number is not None:
            lines.append(f"  condition:  {self.condition_number:.6g}")
        if self.determinant is not None:
            lines.append(f"  det:        {self.determinant:.6g}")
        if self.timing is not None:
            lines.append(f"  time:       {self.timing['total_seconds']:.6f}s")
        for w in self.warnings:
            lines.append(f"  warning:    {w}")
        return "\n".join(lines)
    
    def __repr__(self) -> str:
        return (
            f"LeastSquaresSolution(m={self._design.m}, n={self._design.n}, "
            f"rank={self.rank}, exact={self.exact}, backend={self.backend_name!r})"
        )

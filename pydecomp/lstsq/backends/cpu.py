"""
CPU backends for least squares.

CPUSVDBackend is the general-purpose reference: it handles any shape and
rank and reports whether the system is consistent. CPUCholeskyBackend is
the fast exact solver for symmetric positive definite systems.
"""

from typing import Any
import numpy as np

from pydecomp.core.result import Result
from pydecomp.core.compute.timing import Timer
from pydecomp.core.compute.tolerances import DEFAULT_ULPS
from pydecomp.core.compute.linalg.cholesky import Cholesky
from pydecomp.core.compute.linalg.svd import RankRevealingSVD
from pydecomp.lstsq.design import LeastSquaresDesign
from pydecomp.lstsq.solution import LeastSquaresParams


class CPUSVDBackend:
    """
    CPU backend using the zero-shift SVD.
    
    Implements the Backend protocol for LeastSquaresDesign -> LeastSquaresParams.
    
    Algorithm:
        1. Factorize A = U E Vᵗ
        2. x = V E⁺ Uᵗ b (minimum-norm least squares)
        3. exact iff b is orthogonal to the kernel of Aᵗ
    """
    
    def __init__(self, ulps: int = DEFAULT_ULPS):
        self._ulps = ulps
    
    @property
    def name(self) -> str:
        return 'cpu_svd'
    
    def solve(self, design: LeastSquaresDesign) -> Result[LeastSquaresParams]:
        timer = Timer()
        timer.start()
        
        factorization = RankRevealingSVD(design.matrix, self._ulps)
        
        with timer.section('factorize'):
            diagnostics = factorization.diagnostics()
        
        with timer.section('solve'):
            x = factorization.approx(design.b)
            exact = factorization.can_solve(design.b)
        
        with timer.section('residuals'):
            residuals = design.b - design.A @ x
            rss = float(np.sum(residuals ** 2))
        
        determinant = factorization.determinant() if design.m == design.n else None
        
        timer.stop()
        
        params = LeastSquaresParams(
            x=x,
            residuals=residuals,
            rss=rss,
            rank=factorization.rank(),
            exact=exact,
            singular_values=factorization.singular_values(),
            condition_number=factorization.condition(),
            determinant=determinant,
        )
        
        info: dict[str, Any] = dict(diagnostics.info)
        info['rank'] = params.rank
        
        timing = timer.result()
        timing.update({f'svd_{k}': v for k, v in (diagnostics.timing or {}).items()})
        
        return Result(
            params=params,
            info=info,
            timing=timing,
            backend_name=self.name,
            warnings=diagnostics.warnings,
        )


class CPUCholeskyBackend:
    """
    CPU backend using the Cholesky factorization A = UᵗU.
    
    Implements the Backend protocol for LeastSquaresDesign -> LeastSquaresParams.
    Requires a symmetric positive definite A; the solution is exact.
    
    Raises (from solve):
        StructureError: If A is not symmetric
        NotPositiveDefiniteError: If A is not positive definite
        SingularMatrixError: If A is semidefinite but singular
    """
    
    def __init__(self, ulps: int = DEFAULT_ULPS):
        self._ulps = ulps
    
    @property
    def name(self) -> str:
        return 'cpu_cholesky'
    
    def solve(self, design: LeastSquaresDesign) -> Result[LeastSquaresParams]:
        timer = Timer()
        timer.start()
        
        factorization = Cholesky(design.matrix, self._ulps)
        
        with timer.section('factorize'):
            factorization.decompose()
        
        with timer.section('solve'):
            x = factorization.solve(design.b)
        
        with timer.section('residuals'):
            residuals = design.b - design.A @ x
            rss = float(np.sum(residuals ** 2))
        
        timer.stop()
        
        params = LeastSquaresParams(
            x=x,
            residuals=residuals,
            rss=rss,
            rank=design.n,
            exact=True,
            determinant=factorization.determinant(),
        )
        
        info: dict[str, Any] = {
            'method': 'cholesky',
            'rank': design.n,
            'ulps': self._ulps,
        }
        
        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=(),
        )

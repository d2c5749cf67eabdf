"""
Capability protocols for pydecomp.

Each protocol is a small structural interface describing one thing a
factorization can do. Concrete factorizations compose only the ones they
honestly support: Cholesky is a Determinant and a LinearSolver; the SVD
engine in rank mode is also LeastSquares, RankReveal, LinearSpace and a
SingularFactorization.

We use Protocol (structural typing) rather than ABC (nominal typing), so
isinstance() checks work against any object with the right methods.
"""

from typing import Protocol, TypeVar, Any, runtime_checkable

import numpy as np
from numpy.typing import NDArray

P = TypeVar('P')  # Parameter payload type
D = TypeVar('D')  # Design type


@runtime_checkable
class Updatable(Protocol):
    """Lazy factorization: computed on first use, cached until invalidated."""
    
    def needs_update(self) -> bool:
        """True while no factorization is cached."""
        ...
    
    def request_update(self) -> None:
        """Drop every cached quantity; the next access refactorizes."""
        ...


@runtime_checkable
class Determinant(Protocol):
    """Square factorizations that expose determinant and invertibility."""
    
    def determinant(self) -> float:
        ...
    
    def is_invertible(self) -> bool:
        ...


@runtime_checkable
class LinearSolver(Protocol):
    """Exact solves ``M x = b``."""
    
    def solve(self, b: Any) -> NDArray[np.floating[Any]] | None:
        ...
    
    def inverse(self) -> NDArray[np.floating[Any]] | None:
        ...


@runtime_checkable
class LeastSquares(Protocol):
    """Least-squares approximations ``argmin ||M x - b||``."""
    
    def approx(self, b: Any) -> NDArray[np.floating[Any]]:
        ...
    
    def pseudoinverse(self) -> NDArray[np.floating[Any]]:
        ...


@runtime_checkable
class RankReveal(Protocol):
    """Numerical rank."""
    
    def rank(self) -> int:
        ...


@runtime_checkable
class LinearSpace(Protocol):
    """The four fundamental subspaces of a matrix."""
    
    def column_space(self) -> NDArray[np.floating[Any]]:
        ...
    
    def row_space(self) -> NDArray[np.floating[Any]]:
        ...
    
    def null_space(self) -> NDArray[np.floating[Any]]:
        ...
    
    def null_transpose(self) -> NDArray[np.floating[Any]]:
        ...


@runtime_checkable
class SingularFactorization(Protocol):
    """``M = U E Vᵗ`` with U, V orthogonal and E non-negative diagonal."""
    
    def u(self) -> Any:
        ...
    
    def e(self) -> Any:
        ...
    
    def v(self) -> Any:
        ...
    
    def singular_values(self) -> NDArray[np.floating[Any]]:
        ...
    
    def condition(self) -> float:
        ...


@runtime_checkable
class Backend(Protocol[D, P]):
    """
    Protocol for computational backends.
    
    Each backend takes a validated design and produces a Result envelope.
    Backends are stateless; all configuration is passed via the design
    or at construction time.
    
    Type Parameters:
        D: The design type this backend accepts
        P: The parameter payload type this backend produces
    """
    
    @property
    def name(self) -> str:
        """
        Backend identifier.
        
        Convention: '{device}_{algorithm}', e.g. 'cpu_svd', 'cpu_cholesky'.
        """
        ...
    
    def solve(self, design: D) -> 'Result[P]':
        """
        Execute the computation.
        
        Raises:
            NumericalError: If numerical issues prevent a solution
            ValidationError: If design is invalid for this backend
        """
        ...

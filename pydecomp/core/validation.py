"""
Input validation utilities for pydecomp.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except conversion to float64)
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from pydecomp.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a float64 numpy array.
    
    Accepts any array-like and converts to numpy array. Rejects inputs
    that result in object dtype (indicating mixed types or non-numeric data)
    and complex data.
    
    Args:
        array: Input to validate
        name: Parameter name for error messages
        
    Returns:
        numpy.ndarray with float64 dtype
        
    Raises:
        ValidationError: If input cannot be converted to a real numeric array
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e
    
    if result.dtype == object:
        raise ValidationError(
            f"{name}: converted to object dtype, indicating mixed types or non-numeric data"
        )

    if np.issubdtype(result.dtype, np.complexfloating):
        raise ValidationError(f"{name}: complex dtype {result.dtype}, expected real data")

    if not np.issubdtype(result.dtype, np.number):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    return result.astype(np.float64, copy=False)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains no NaN or Inf values.
    
    Raises:
        ValidationError: If array contains non-finite values
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_ndim(array: NDArray[np.floating[Any]], ndim: int, name: str) -> None:
    """
    Verify array has exactly the specified number of dimensions.
    
    Raises:
        DimensionError: If array has wrong number of dimensions
    """
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got {array.ndim}D with shape {array.shape}",
            shapes=(array.shape,),
        )


def check_1d(array: NDArray[np.floating[Any]], name: str) -> None:
    check_ndim(array, 1, name)


def check_2d(array: NDArray[np.floating[Any]], name: str) -> None:
    check_ndim(array, 2, name)


def check_nonempty(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array has no zero-length dimension.
    
    Raises:
        DimensionError: If any dimension is zero
    """
    if array.size == 0:
        raise DimensionError(f"{name}: empty array with shape {array.shape}", shapes=(array.shape,))


def check_square(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify a 2D array is square.
    
    Raises:
        DimensionError: If rows != columns
    """
    rows, cols = array.shape
    if rows != cols:
        raise DimensionError(
            f"{name}: requires a square matrix, got {rows} x {cols}",
            shapes=(array.shape,),
        )


def check_rhs(
    b: ArrayLike,
    rows: int,
    name: str = 'b',
) -> NDArray[np.floating[Any]]:
    """
    Validate a right-hand side against a coefficient matrix row count.
    
    Args:
        b: Vector (rows,) or matrix (rows, k)
        rows: Row count of the coefficient matrix
        name: Parameter name for error messages
        
    Returns:
        b as a float64 array of unchanged dimensionality
        
    Raises:
        DimensionError: If b is not 1D/2D or has the wrong row count
    """
    b_arr = check_array(b, name)
    if b_arr.ndim not in (1, 2):
        raise DimensionError(
            f"{name}: expected 1D or 2D array, got {b_arr.ndim}D with shape {b_arr.shape}",
            shapes=(b_arr.shape,),
        )
    if b_arr.shape[0] != rows:
        raise DimensionError(
            f"{name}: has {b_arr.shape[0]} rows, coefficient matrix has {rows}",
            shapes=(b_arr.shape,),
        )
    check_finite(b_arr, name)
    return b_arr


def check_ulps(ulps: int, name: str = 'ulps') -> int:
    """
    Verify an error margin is a non-negative integer.
    
    Raises:
        ValidationError: If ulps is not an int >= 0
    """
    if isinstance(ulps, bool) or not isinstance(ulps, (int, np.integer)):
        raise ValidationError(f"{name}: expected int, got {type(ulps).__name__}")
    if ulps < 0:
        raise ValidationError(f"{name}: must be non-negative, got {ulps}")
    return int(ulps)


def check_matrix(matrix: ArrayLike, name: str) -> NDArray[np.floating[Any]]:
    """
    Full boundary check for a coefficient matrix: 2D, non-empty, finite.
    
    A 1D input is not promoted; callers must be explicit about shape.
    """
    arr = check_array(matrix, name)
    check_2d(arr, name)
    check_nonempty(arr, name)
    check_finite(arr, name)
    return arr

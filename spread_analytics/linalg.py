"""
Dense Linear Algebra Helpers
============================

Small matrix/vector operations underpinning the OLS regression and the
Kalman filter. Everything operates on numpy arrays; the helpers exist so
that singularity is detected the same way everywhere and reported as
SingularMatrixError instead of silently producing inf/NaN.

Singularity test:
    A square matrix A is treated as singular when any diagonal entry is
    non-positive (for the Gram matrices used here) or when

        det( D^{-1/2} A D^{-1/2} ) < eps,     D = diag(A)

    The diagonally scaled matrix has unit diagonal, so the test does not
    depend on the units of the regressors (prices in the hundreds versus
    first differences in the hundredths).
"""

import numpy as np
from typing import Tuple

from spread_analytics.exceptions import SingularMatrixError

SINGULAR_EPS = 1e-10


def transpose(A: np.ndarray) -> np.ndarray:
    return np.asarray(A, dtype=np.float64).T


def matmul(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """Matrix product with a dimension check that names the shapes."""
    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.shape[-1] != B.shape[0]:
        raise ValueError(
            f"Matrix dimensions mismatch for multiplication: "
            f"{A.shape} @ {B.shape}"
        )
    return A @ B


def is_singular(A: np.ndarray, eps: float = SINGULAR_EPS) -> bool:
    """Scale-free singularity test for a symmetric Gram matrix."""
    A = np.asarray(A, dtype=np.float64)
    if not np.all(np.isfinite(A)):
        return True
    d = np.diag(A)
    if np.any(d <= 0):
        return True
    scale = 1.0 / np.sqrt(d)
    scaled = A * np.outer(scale, scale)
    return abs(np.linalg.det(scaled)) < eps


def inverse_2x2(A: np.ndarray, eps: float = SINGULAR_EPS) -> np.ndarray:
    """Closed-form inverse of a 2x2 matrix."""
    A = np.asarray(A, dtype=np.float64)
    a, b = A[0, 0], A[0, 1]
    c, d = A[1, 0], A[1, 1]
    det = a * d - b * c
    norm = abs(a * d) + abs(b * c)
    if norm == 0 or not np.isfinite(det) or abs(det) < eps * norm:
        raise SingularMatrixError("2x2 matrix is singular, cannot invert.")
    return np.array([[d, -b], [-c, a]]) / det


def invert(A: np.ndarray, eps: float = SINGULAR_EPS) -> np.ndarray:
    """
    Invert a symmetric positive (semi-)definite matrix.

    Raises
    ------
    SingularMatrixError
        If the matrix fails the scale-free singularity test.
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1] or A.shape[0] == 0:
        raise ValueError("Matrix must be square and non-empty.")
    if is_singular(A, eps):
        raise SingularMatrixError(
            f"{A.shape[0]}x{A.shape[0]} matrix is singular or ill-conditioned."
        )
    if A.shape == (2, 2):
        return inverse_2x2(A, eps)
    try:
        return np.linalg.inv(A)
    except np.linalg.LinAlgError as exc:
        raise SingularMatrixError(str(exc)) from exc


def normal_equations(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (X'X, X'y)."""
    Xt = transpose(X)
    return matmul(Xt, X), matmul(Xt, np.asarray(y, dtype=np.float64))


def solve_least_squares(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve (X'X) b = X'y.

    Returns
    -------
    (coefficients, (X'X)^{-1})
    """
    XtX, Xty = normal_equations(X, y)
    XtX_inv = invert(XtX)
    return XtX_inv @ Xty, XtX_inv

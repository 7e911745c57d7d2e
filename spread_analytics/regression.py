"""
Ordinary Least Squares Regression
=================================

General multiple linear regression used both as the standalone hedge-ratio
estimator and inside the ADF lag search.

    y = X b + e,      b_hat = (X'X)^{-1} X'y

    SSR        = sum (y_i - x_i' b_hat)^2
    sigma^2    = SSR / (nobs - nparams)
    SE(b_j)    = sqrt(sigma^2 * [(X'X)^{-1}]_jj)

The design rows are passed in ready-made: callers that want an intercept
include the leading 1.0 themselves.
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence, Tuple

from spread_analytics.exceptions import InsufficientObservationsError
from spread_analytics.linalg import solve_least_squares


@dataclass(frozen=True)
class RegressionResult:
    """Immutable output of one OLS fit (intercept first when present)."""
    coefficients: np.ndarray
    std_errors: np.ndarray
    ssr: float
    nobs: int
    nparams: int

    @property
    def df_resid(self) -> int:
        return self.nobs - self.nparams

    @property
    def sigma2(self) -> float:
        """Residual variance SSR / (nobs - nparams); inf without dof."""
        return self.ssr / self.df_resid if self.df_resid > 0 else np.inf

    def predict(self, x_rows) -> np.ndarray:
        return np.asarray(x_rows, dtype=np.float64) @ self.coefficients


class OLSRegression:
    """
    OLS via the normal equations.

    Matches textbook OLS to well below 1e-6 relative error on
    well-conditioned designs; ill-conditioned designs are rejected as
    singular rather than solved approximately.
    """

    def fit(self, y: Sequence[float], x_rows) -> RegressionResult:
        """
        Fit y on the given design rows.

        Parameters
        ----------
        y : sequence of float
            Response, length nobs.
        x_rows : array-like
            (nobs x nparams) design matrix.

        Returns
        -------
        RegressionResult

        Raises
        ------
        InsufficientObservationsError
            nobs < nparams.
        SingularMatrixError
            X'X is numerically singular.
        """
        y = np.asarray(y, dtype=np.float64)
        X = np.asarray(x_rows, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        nobs, nparams = X.shape
        if len(y) != nobs:
            raise ValueError(
                f"y has {len(y)} observations but design has {nobs} rows"
            )
        if nobs < nparams:
            raise InsufficientObservationsError(
                f"{nobs} observations for {nparams} parameters"
            )

        coef, XtX_inv = solve_least_squares(X, y)
        resid = y - X @ coef
        ssr = float(resid @ resid)

        if nobs > nparams:
            mse = ssr / (nobs - nparams)
            diag = np.diag(XtX_inv)
            with np.errstate(invalid="ignore"):
                std_errors = np.where(diag >= 0, np.sqrt(mse * np.abs(diag)), np.inf)
        else:
            # exact fit, no residual degrees of freedom
            std_errors = np.full(nparams, np.inf)

        return RegressionResult(
            coefficients=coef,
            std_errors=std_errors,
            ssr=ssr,
            nobs=nobs,
            nparams=nparams,
        )


def hedge_ratio(prices_a, prices_b) -> Tuple[float, float]:
    """
    Static hedge ratio from the regression A = alpha + beta * B.

    Returns
    -------
    (alpha, beta)
    """
    a = np.asarray(prices_a, dtype=np.float64)
    b = np.asarray(prices_b, dtype=np.float64)
    X = np.column_stack([np.ones(len(b)), b])
    res = OLSRegression().fit(a, X)
    return float(res.coefficients[0]), float(res.coefficients[1])

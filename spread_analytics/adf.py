"""
Augmented Dickey-Fuller Test
============================

Unit-root test on a single series with automatic lag-order selection.

For each candidate lag order L the auxiliary regression is

    dy_t = c + gamma * y_{t-1} + sum_{j=1..L} phi_j dy_{t-j} [+ delta * t] + e_t

fitted by OLS. The candidate with the smallest

    AIC = nobs * ln(SSR / nobs) + 2 * nparams

is kept and its t-ratio on gamma is the test statistic. H0: gamma = 0
(unit root); a statistic below the 5% critical value rejects H0 and the
series is reported as stationary.

P-values and critical values come from MacKinnon's response-surface
regressions (statsmodels.tsa.adfvalues), the same tables adfuller() uses.
A coarse interpolation table is kept for reproducing older results.

References:
    Dickey & Fuller (1979), Said & Dickey (1984), MacKinnon (1994, 2010)
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from statsmodels.tsa.adfvalues import mackinnoncrit, mackinnonp

from spread_analytics.config import (
    ADF_LAG_SEARCHES, ADF_PVALUE_METHODS, ADF_REGRESSIONS, ADFConfig,
)
from spread_analytics.exceptions import (
    InsufficientDataError, InvalidParameterError, SingularMatrixError,
)
from spread_analytics.regression import OLSRegression

logger = logging.getLogger(__name__)

MIN_ADF_POINTS = 5
LEGACY_MAX_LAG = 1
_SSR_FLOOR = 1e-300

# (statistic, p-value) pairs for the legacy interpolation
LEGACY_PVALUE_TABLE = (
    (-4.0, 0.01),
    (-3.5, 0.025),
    (-3.0, 0.05),
    (-2.5, 0.10),
    (-2.0, 0.20),
    (-1.5, 0.50),
    (-1.0, 0.75),
    (0.0, 0.99),
)
LEGACY_CRITICAL_VALUES = {"1%": -3.43, "5%": -2.86, "10%": -2.57}


def table_p_value(test_statistic: float) -> float:
    """Piecewise-linear p-value from LEGACY_PVALUE_TABLE, clamped at the ends."""
    xs, ys = zip(*LEGACY_PVALUE_TABLE)
    return float(np.interp(test_statistic, xs, ys))


@dataclass(frozen=True)
class AdfOutcome:
    """Result of one ADF run."""
    test_statistic: float
    optimal_lags: int
    aic_value: float
    p_value: float
    critical_values: Dict[str, float]
    is_stationary: bool
    nobs: int = 0
    regression: str = "c"
    lag_aics: Dict[int, float] = field(default_factory=dict)

    @classmethod
    def neutral(cls, regression: str = "c") -> "AdfOutcome":
        """Placeholder when the test cannot be run: no evidence of stationarity."""
        return cls(
            test_statistic=0.0,
            optimal_lags=0,
            aic_value=0.0,
            p_value=1.0,
            critical_values={"1%": 0.0, "5%": 0.0, "10%": 0.0},
            is_stationary=False,
            nobs=0,
            regression=regression,
        )

    def get_summary(self) -> str:
        sig = "***" if self.p_value < 0.01 else \
              "**" if self.p_value < 0.05 else \
              "*" if self.p_value < 0.10 else ""
        lines = [
            "=" * 60,
            "AUGMENTED DICKEY-FULLER TEST",
            "=" * 60,
            f"ADF statistic:      {self.test_statistic:.4f} {sig}",
            f"p-value:            {self.p_value:.6f}",
            f"Lags used (AIC):    {self.optimal_lags}",
            f"AIC:                {self.aic_value:.4f}",
            f"Observations:       {self.nobs}",
            f"Deterministic:      {self.regression}",
            f"Stationary (5%):    {self.is_stationary}",
            "-" * 60,
            "Critical values:",
        ]
        for k, v in self.critical_values.items():
            lines.append(f"  {k}: {v:.4f}")
        lines.append("=" * 60)
        return "\n".join(lines)


class ADFTest:
    """
    Augmented Dickey-Fuller test with AIC lag selection.

    Parameters
    ----------
    regression : str
        Deterministic terms: "n" (none), "c" (constant, default) or
        "ct" (constant and linear trend).
    max_lags : int
        Upper bound on the lag order (default 12). The effective bound is
        min(max_lags, (n - 3) // 2).
    lag_search : str
        "full" searches 0..bound; "legacy" searches only 0..1.
    pvalue_method : str
        "mackinnon" (response surfaces, default) or "table" (coarse
        interpolation with fixed critical values).
    """

    def __init__(self, regression: str = "c", max_lags: int = 12,
                 lag_search: str = "full", pvalue_method: str = "mackinnon"):
        if regression not in ADF_REGRESSIONS:
            raise InvalidParameterError(
                f"regression must be one of {ADF_REGRESSIONS}, got {regression!r}"
            )
        if lag_search not in ADF_LAG_SEARCHES:
            raise InvalidParameterError(f"Unknown lag_search {lag_search!r}")
        if pvalue_method not in ADF_PVALUE_METHODS:
            raise InvalidParameterError(f"Unknown pvalue_method {pvalue_method!r}")
        if max_lags < 0:
            raise InvalidParameterError("max_lags must be >= 0")
        self.regression = regression
        self.max_lags = max_lags
        self.lag_search = lag_search
        self.pvalue_method = pvalue_method

    @classmethod
    def from_config(cls, config: ADFConfig) -> "ADFTest":
        return cls(
            regression=config.regression,
            max_lags=config.max_lags,
            lag_search=config.lag_search,
            pvalue_method=config.pvalue_method,
        )

    def lag_range(self, n: int) -> range:
        """Candidate lag orders for a clean series of length n."""
        upper = max(0, min(self.max_lags, (n - 3) // 2))
        if self.lag_search == "legacy":
            upper = min(upper, LEGACY_MAX_LAG)
        return range(0, upper + 1)

    @property
    def level_index(self) -> int:
        """Column of y_{t-1} in the design."""
        return 0 if self.regression == "n" else 1

    def build_design(self, y: np.ndarray, lags: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Auxiliary regression for one lag order.

        Returns
        -------
        (response, design)
            response is dy_t for t = lags+1..n-1; design rows are
            [1, y_{t-1}, dy_{t-1}, ..., dy_{t-lags}] with the constant
            dropped for "n" and a trend column appended for "ct".
        """
        dy = np.diff(y)
        nobs = len(dy) - lags
        if nobs < 1:
            raise InsufficientDataError(
                f"{len(y)} points leave no observations at {lags} lags"
            )
        response = dy[lags:]
        columns: List[np.ndarray] = []
        if self.regression != "n":
            columns.append(np.ones(nobs))
        columns.append(y[lags:-1])
        for j in range(1, lags + 1):
            columns.append(dy[lags - j:len(dy) - j])
        if self.regression == "ct":
            columns.append(np.arange(1, nobs + 1, dtype=np.float64))
        return response, np.column_stack(columns)

    def _t_ratio(self, fit) -> float:
        se = fit.std_errors[self.level_index]
        if np.isfinite(se) and se > 0:
            return float(fit.coefficients[self.level_index] / se)
        return 0.0

    def statistic(self, series, lags: int) -> float:
        """t-ratio on y_{t-1} for a fixed lag order, without the AIC search."""
        y = np.asarray(series, dtype=np.float64)
        y = y[np.isfinite(y)]
        response, X = self.build_design(y, lags)
        if X.shape[0] <= X.shape[1]:
            raise InsufficientDataError(
                f"{len(y)} points are too few for an ADF regression with {lags} lags"
            )
        return self._t_ratio(OLSRegression().fit(response, X))

    def _critical_values(self, nobs: int) -> Dict[str, float]:
        if self.pvalue_method == "table":
            return dict(LEGACY_CRITICAL_VALUES)
        crit = mackinnoncrit(N=1, regression=self.regression, nobs=nobs)
        return {"1%": float(crit[0]), "5%": float(crit[1]), "10%": float(crit[2])}

    def _p_value(self, stat: float) -> float:
        if self.pvalue_method == "table":
            return table_p_value(stat)
        return float(mackinnonp(stat, regression=self.regression, N=1))

    def run(self, series) -> AdfOutcome:
        """
        Run the test.

        Parameters
        ----------
        series : array-like
            Observations; non-finite values are dropped first.

        Returns
        -------
        AdfOutcome

        Raises
        ------
        InsufficientDataError
            Fewer than 5 finite observations.
        SingularMatrixError
            No lag order produced a usable regression.
        """
        y = np.asarray(series, dtype=np.float64)
        y = y[np.isfinite(y)]
        n = len(y)
        if n < MIN_ADF_POINTS:
            raise InsufficientDataError(
                f"ADF needs at least {MIN_ADF_POINTS} finite points, got {n}"
            )

        ols = OLSRegression()
        best = None
        lag_aics = {}
        for lags in self.lag_range(n):
            response, X = self.build_design(y, lags)
            nobs, nparams = X.shape
            if nobs <= nparams:
                continue
            try:
                fit = ols.fit(response, X)
            except SingularMatrixError:
                logger.debug("ADF lag %d skipped: singular design", lags)
                continue
            aic = nobs * np.log(max(fit.ssr, _SSR_FLOOR) / nobs) + 2 * nparams
            lag_aics[lags] = float(aic)
            if best is None or aic < best[1]:
                best = (lags, aic, fit)

        if best is None:
            raise SingularMatrixError(
                f"No usable ADF regression for n={n} (lags {self.lag_range(n)})"
            )

        lags, aic, fit = best
        stat = self._t_ratio(fit)

        crit = self._critical_values(fit.nobs)
        logger.debug("ADF: n=%d lags=%d stat=%.4f aic=%.4f", n, lags, stat, aic)
        return AdfOutcome(
            test_statistic=stat,
            optimal_lags=lags,
            aic_value=float(aic),
            p_value=self._p_value(stat),
            critical_values=crit,
            is_stationary=bool(stat < crit["5%"]),
            nobs=fit.nobs,
            regression=self.regression,
            lag_aics=lag_aics,
        )

    def run_or_neutral(self, series, label: Optional[str] = None) -> AdfOutcome:
        """run(), substituting AdfOutcome.neutral() when the test cannot be computed."""
        try:
            return self.run(series)
        except (InsufficientDataError, SingularMatrixError) as exc:
            logger.warning("ADF%s unavailable, using neutral result: %s",
                           f" [{label}]" if label else "", exc)
            return AdfOutcome.neutral(self.regression)

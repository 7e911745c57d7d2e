"""
Unit Tests for the Augmented Dickey-Fuller Engine
=================================================

The fixed-lag statistic, p-value and critical values are cross-checked
against statsmodels.tsa.stattools.adfuller.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from statsmodels.tsa.stattools import adfuller

from spread_analytics.adf import (
    LEGACY_CRITICAL_VALUES, ADFTest, AdfOutcome, table_p_value,
)
from spread_analytics.config import ADFConfig
from spread_analytics.data_generator import generate_ar1, generate_random_walk
from spread_analytics.exceptions import (
    InsufficientDataError, InvalidParameterError, SingularMatrixError,
)


# ---------------------------------------------------------------------------
# Stationarity verdicts
# ---------------------------------------------------------------------------
class TestVerdicts:
    def test_random_walk_not_stationary(self, random_walk):
        res = ADFTest().run(random_walk)
        assert res.p_value > 0.01
        assert res.test_statistic > res.critical_values["1%"]

    def test_random_walks_rarely_rejected(self):
        rejected = sum(
            ADFTest().run(generate_random_walk(500, seed=s)).is_stationary
            for s in range(20)
        )
        assert rejected <= 5

    def test_ar1_stationary(self, ar1_series):
        res = ADFTest().run(ar1_series)
        assert res.is_stationary
        assert res.p_value < 0.01

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_ar1_stationary_across_seeds(self, seed):
        assert ADFTest().run(generate_ar1(500, phi=0.5, seed=seed)).is_stationary

    def test_legacy_search_same_verdicts(self, random_walk, ar1_series):
        legacy = ADFTest(lag_search="legacy")
        assert legacy.run(ar1_series).is_stationary
        assert legacy.run(random_walk).optimal_lags <= 1


# ---------------------------------------------------------------------------
# Agreement with statsmodels
# ---------------------------------------------------------------------------
class TestAgainstStatsmodels:
    @pytest.mark.parametrize("regression", ["n", "c", "ct"])
    @pytest.mark.parametrize("lags", [0, 1, 4])
    def test_fixed_lag_statistic(self, ar1_series, regression, lags):
        ours = ADFTest(regression=regression).statistic(ar1_series, lags)
        ref = adfuller(ar1_series, maxlag=lags, autolag=None, regression=regression)
        assert ours == pytest.approx(ref[0], rel=1e-6)

    def test_zero_lag_run_matches(self, random_walk):
        res = ADFTest(max_lags=0).run(random_walk)
        stat, pvalue, usedlag, nobs, crit = adfuller(
            random_walk, maxlag=0, autolag=None, regression="c"
        )
        assert res.optimal_lags == usedlag == 0
        assert res.nobs == nobs
        assert res.test_statistic == pytest.approx(stat, rel=1e-6)
        assert res.p_value == pytest.approx(pvalue, rel=1e-6)
        for key in ("1%", "5%", "10%"):
            assert res.critical_values[key] == pytest.approx(crit[key], rel=1e-9)


# ---------------------------------------------------------------------------
# Lag search and AIC
# ---------------------------------------------------------------------------
class TestLagSearch:
    def test_full_range(self):
        assert ADFTest().lag_range(500) == range(0, 13)
        assert ADFTest().lag_range(10) == range(0, 4)
        assert ADFTest().lag_range(5) == range(0, 2)

    def test_legacy_range(self):
        assert ADFTest(lag_search="legacy").lag_range(500) == range(0, 2)

    def test_max_lags_bound(self):
        assert ADFTest(max_lags=3).lag_range(500) == range(0, 4)

    def test_optimal_lag_minimises_aic(self, random_walk):
        res = ADFTest().run(random_walk)
        assert res.optimal_lags == min(res.lag_aics, key=res.lag_aics.get)
        assert res.aic_value == pytest.approx(res.lag_aics[res.optimal_lags])
        assert set(res.lag_aics) <= set(range(13))

    def test_design_shape(self):
        y = np.arange(20.0) ** 1.5
        response, X = ADFTest().build_design(y, 3)
        assert X.shape == (16, 5)
        assert len(response) == 16
        np.testing.assert_array_equal(X[:, 0], 1.0)
        np.testing.assert_array_equal(X[:, 1], y[3:-1])
        np.testing.assert_array_equal(X[:, 2], np.diff(y)[2:-1])

    def test_trend_column_appended(self):
        y = np.cumsum(np.random.RandomState(0).normal(size=30))
        _, X = ADFTest(regression="ct").build_design(y, 2)
        np.testing.assert_array_equal(X[:, -1], np.arange(1, 28))
        _, Xn = ADFTest(regression="n").build_design(y, 2)
        assert Xn.shape[1] == 3


# ---------------------------------------------------------------------------
# Failure modes and neutral fallback
# ---------------------------------------------------------------------------
class TestFailureModes:
    def test_too_few_points(self):
        with pytest.raises(InsufficientDataError):
            ADFTest().run([1.0, 2.0, 1.5, 2.5])

    def test_non_finite_dropped(self, ar1_series):
        dirty = ar1_series.copy()
        dirty[[10, 200]] = np.nan
        dirty[300] = np.inf
        clean = dirty[np.isfinite(dirty)]
        assert ADFTest().run(dirty).test_statistic == \
            pytest.approx(ADFTest().run(clean).test_statistic)

    def test_nan_padding_counts_as_missing(self):
        with pytest.raises(InsufficientDataError):
            ADFTest().run([np.nan] * 20 + [1.0, 2.0, 3.0])

    def test_constant_series_singular(self):
        with pytest.raises(SingularMatrixError):
            ADFTest().run(np.full(50, 2.0))

    def test_run_or_neutral(self):
        res = ADFTest().run_or_neutral(np.full(50, 2.0))
        assert res == AdfOutcome.neutral()
        assert res.test_statistic == 0.0
        assert res.p_value == 1.0
        assert res.critical_values == {"1%": 0.0, "5%": 0.0, "10%": 0.0}
        assert not res.is_stationary

    def test_run_or_neutral_logs(self, caplog):
        with caplog.at_level("WARNING", logger="spread_analytics.adf"):
            ADFTest().run_or_neutral([1.0, 2.0])
        assert "neutral" in caplog.text

    def test_invalid_options(self):
        with pytest.raises(InvalidParameterError):
            ADFTest(regression="ctt")
        with pytest.raises(InvalidParameterError):
            ADFTest(lag_search="bic")
        with pytest.raises(InvalidParameterError):
            ADFTest(max_lags=-1)


# ---------------------------------------------------------------------------
# Legacy p-value table
# ---------------------------------------------------------------------------
class TestPValueTable:
    def test_knots(self):
        assert table_p_value(-3.0) == pytest.approx(0.05)
        assert table_p_value(-1.5) == pytest.approx(0.50)

    def test_interpolation(self):
        assert table_p_value(-3.25) == pytest.approx(0.0375)
        assert table_p_value(-0.5) == pytest.approx(0.87)

    def test_clamped(self):
        assert table_p_value(-10.0) == 0.01
        assert table_p_value(3.0) == 0.99

    def test_table_method(self, ar1_series):
        res = ADFTest(pvalue_method="table").run(ar1_series)
        assert res.critical_values == LEGACY_CRITICAL_VALUES
        assert res.p_value == 0.01

    def test_from_config(self):
        test = ADFTest.from_config(ADFConfig(regression="ct", max_lags=4))
        assert test.regression == "ct"
        assert test.max_lags == 4

    def test_summary(self, ar1_series):
        text = ADFTest().run(ar1_series).get_summary()
        assert "AUGMENTED DICKEY-FULLER TEST" in text
        assert "5%" in text

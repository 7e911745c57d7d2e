"""
Unit Tests for Spread Models and the Kalman Filter
==================================================

Covers: ratio, rolling OLS, Kalman and Euclidean (double z-score) models,
warm-up bookkeeping and model dispatch.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spread_analytics.config import (
    AnalysisConfig, EuclideanParams, KalmanParams, ModelType, OLSParams,
    RatioParams,
)
from spread_analytics.exceptions import InsufficientDataError, InvalidParameterError
from spread_analytics.kalman_filter import KalmanHedgeRatio
from spread_analytics.spread_models import (
    EuclideanModel, KalmanModel, OLSModel, RatioModel, build_model,
)


@pytest.fixture(scope="module")
def walks():
    rng = np.random.RandomState(99)
    a = 100.0 + np.cumsum(rng.normal(0, 1.0, 300))
    b = 80.0 + np.cumsum(rng.normal(0, 1.0, 300))
    return a, b


# ---------------------------------------------------------------------------
# Ratio
# ---------------------------------------------------------------------------
class TestRatioModel:
    def test_identical_legs(self, walks):
        a, _ = walks
        out = RatioModel(RatioParams(lookback_window=30)).compute(a, a)
        assert np.all(out.spread == 1.0)
        assert np.allclose(out.zscores, 0.0)
        assert out.warmup == 0

    def test_zscore_window(self, walks):
        a, b = walks
        out = RatioModel(RatioParams(lookback_window=30)).compute(a, b)
        ratios = a / b
        w = ratios[70:100]
        assert out.zscores[99] == pytest.approx(
            (ratios[99] - w.mean()) / w.std(ddof=1), rel=1e-9)
        assert np.all(out.zscores[:29] == 0.0)

    def test_stats_series_is_full_ratio(self, walks):
        a, b = walks
        out = RatioModel(RatioParams()).compute(a, b)
        np.testing.assert_array_equal(out.stats_series(), a / b)

    def test_zero_price_rejected(self, walks):
        a, b = walks
        b = b.copy()
        b[10] = 0.0
        with pytest.raises(InvalidParameterError):
            RatioModel(RatioParams()).compute(a, b)

    def test_too_short(self):
        with pytest.raises(InsufficientDataError):
            RatioModel(RatioParams(lookback_window=60)).compute(np.ones(30), np.ones(30))


# ---------------------------------------------------------------------------
# Rolling OLS
# ---------------------------------------------------------------------------
class TestOLSModel:
    def test_exact_linear_relation(self, walks):
        _, b = walks
        a = 3.0 + 2.0 * b
        out = OLSModel(OLSParams(lookback_window=40)).compute(a, b)
        np.testing.assert_allclose(out.hedge_ratios[39:], 2.0, atol=1e-6)
        np.testing.assert_allclose(out.alphas[39:], 3.0, atol=1e-4)
        np.testing.assert_allclose(out.spread[39:], 0.0, atol=1e-6)
        assert out.warmup == 39
        assert len(out.stats_series()) == len(a) - 39

    def test_first_window_degenerate(self, walks):
        a, b = walks
        out = OLSModel(OLSParams()).compute(a, b)
        assert out.hedge_ratios[0] == 1.0
        assert out.alphas[0] == 0.0
        assert out.spread[0] == pytest.approx(a[0] - b[0])

    def test_flat_b_falls_back_to_unit_hedge(self, walks):
        a, _ = walks
        b = np.full(len(a), 50.0)
        out = OLSModel(OLSParams()).compute(a, b)
        assert np.all(out.hedge_ratios == 1.0)
        assert np.all(out.alphas == 0.0)

    def test_partial_windows_use_available_points(self, walks):
        a, b = walks
        out = OLSModel(OLSParams(lookback_window=60)).compute(a, b)
        coef = np.polyfit(b[:10], a[:10], 1)
        assert out.hedge_ratios[9] == pytest.approx(coef[0], rel=1e-6)
        assert out.alphas[9] == pytest.approx(coef[1], rel=1e-6)

    def test_whole_sample_mode(self, linear_pair):
        a, b = linear_pair
        out = OLSModel(OLSParams(rolling=False)).compute(a.values, b.values)
        assert np.ptp(out.hedge_ratios) == 0.0
        assert out.hedge_ratios[0] == pytest.approx(1.5, abs=0.05)
        assert out.warmup == 0

    def test_zscore_uses_zscore_lookback(self, walks):
        a, b = walks
        out = OLSModel(OLSParams(lookback_window=60, zscore_lookback=20)).compute(a, b)
        assert np.all(out.zscores[:19] == 0.0)
        assert out.zscores[19] != 0.0


# ---------------------------------------------------------------------------
# Kalman filter
# ---------------------------------------------------------------------------
class TestKalmanFilter:
    def test_deterministic(self, linear_pair):
        a, b = linear_pair
        kf = KalmanHedgeRatio(initial_lookback=60)
        r1 = kf.filter(a.values, b.values)
        r2 = KalmanHedgeRatio(initial_lookback=60).filter(a.values, b.values)
        for key in ("alphas", "hedge_ratios", "spreads"):
            assert np.array_equal(r1[key], r2[key])

    def test_initial_block_uses_ols(self, linear_pair):
        a, b = linear_pair
        res = KalmanHedgeRatio(initial_lookback=60).filter(a.values, b.values)
        assert np.all(res["hedge_ratios"][:60] == res["initial_hedge_ratio"])
        assert np.all(res["alphas"][:60] == res["initial_alpha"])
        coef = np.polyfit(b.values[:60], a.values[:60], 1)
        assert res["initial_hedge_ratio"] == pytest.approx(coef[0], rel=1e-6)

    def test_tracks_true_hedge_ratio(self, linear_pair):
        a, b = linear_pair
        res = KalmanHedgeRatio().filter(a.values, b.values)
        assert abs(res["final_hedge_ratio"] - 1.5) < 0.1
        assert np.all(np.isfinite(res["spreads"]))

    def test_measurement_noise_estimate_and_override(self, linear_pair):
        a, b = linear_pair
        est = KalmanHedgeRatio(measurement_noise=0.0).filter(a.values, b.values)
        assert est["measurement_noise"] > 0
        fixed = KalmanHedgeRatio(measurement_noise=0.25).filter(a.values, b.values)
        assert fixed["measurement_noise"] == 0.25

    def test_noise_floor(self, walks):
        _, b = walks
        a = 3.0 + 2.0 * b
        res = KalmanHedgeRatio().filter(a, b)
        assert res["measurement_noise"] >= 1e-8
        assert np.all(np.isfinite(res["hedge_ratios"]))

    def test_flat_initial_block(self, walks):
        a, _ = walks
        b = np.concatenate([np.full(60, 50.0), 50.0 + np.arange(240) * 0.1])
        res = KalmanHedgeRatio(initial_lookback=60).filter(a, b)
        assert res["initial_hedge_ratio"] == 1.0
        assert np.all(np.isfinite(res["hedge_ratios"]))

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError):
            KalmanHedgeRatio(initial_lookback=60).filter(np.ones(30), np.ones(30))

    def test_model_warmup(self, linear_pair):
        a, b = linear_pair
        out = KalmanModel(KalmanParams(initial_lookback=50)).compute(a.values, b.values)
        assert out.warmup == 49
        assert len(out.stats_series()) == len(a) - 49
        assert out.extras["measurement_noise"] > 0

    def test_innovations_and_gains_exposed(self, linear_pair):
        a, b = linear_pair
        out = KalmanModel(KalmanParams(initial_lookback=50)).compute(a.values, b.values)
        ref = KalmanHedgeRatio(initial_lookback=50).filter(a.values, b.values)
        np.testing.assert_array_equal(out.innovations, ref["innovations"])
        assert out.kalman_gains.shape == (len(a), 2)
        assert np.all(out.kalman_gains[:50] == 0.0)
        assert np.all(out.kalman_gains[50:, 1] != 0.0)


# ---------------------------------------------------------------------------
# Euclidean / double z-score
# ---------------------------------------------------------------------------
class TestEuclideanModel:
    def test_double_warmup(self, walks):
        a, b = walks
        out = EuclideanModel(EuclideanParams(lookback_window=60)).compute(a, b)
        assert np.all(out.zscores[:118] == 0.0)
        assert out.zscores[118] != 0.0
        assert out.warmup == 118
        assert len(out.stats_series()) == len(a) - 118

    def test_leg_zscores(self, walks):
        a, b = walks
        out = EuclideanModel(EuclideanParams(lookback_window=60)).compute(a, b)
        assert np.all(out.zscores_a[:59] == 0.0)
        w = a[:60]
        assert out.zscores_a[59] == pytest.approx((a[59] - w.mean()) / w.std(ddof=1))
        np.testing.assert_allclose(out.spread, out.zscores_a - out.zscores_b)

    def test_second_pass_window(self, walks):
        a, b = walks
        out = EuclideanModel(EuclideanParams(lookback_window=20)).compute(a, b)
        raw = out.spread
        w = raw[19:39]
        assert out.zscores[38] == pytest.approx((raw[38] - w.mean()) / w.std(ddof=1))

    def test_distances(self, walks):
        a, b = walks
        out = EuclideanModel(EuclideanParams()).compute(a, b)
        assert out.distances[0] == 0.0
        np.testing.assert_allclose(out.distances, np.abs(a / a[0] - b / b[0]))
        assert out.level_series() is out.distances

    def test_zero_first_price_rejected(self, walks):
        a, b = walks
        a = a.copy()
        a[0] = 0.0
        with pytest.raises(InvalidParameterError):
            EuclideanModel(EuclideanParams()).compute(a, b)

    def test_too_short(self, walks):
        a, b = walks
        with pytest.raises(InsufficientDataError):
            EuclideanModel(EuclideanParams(lookback_window=60)).compute(a[:118], b[:118])


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
class TestBuildModel:
    @pytest.mark.parametrize("name,cls", [
        ("ratio", RatioModel), ("ols", OLSModel),
        ("kalman", KalmanModel), ("euclidean", EuclideanModel),
    ])
    def test_dispatch(self, name, cls):
        model = build_model(name, AnalysisConfig())
        assert isinstance(model, cls)
        assert model.model_type == ModelType(name)

    def test_every_model_type_registered(self):
        for mtype in ModelType:
            assert build_model(mtype, AnalysisConfig()).model_type == mtype

    def test_unknown_model(self):
        with pytest.raises(InvalidParameterError):
            build_model("distance", AnalysisConfig())

    def test_length_mismatch(self, walks):
        a, b = walks
        with pytest.raises(ValueError):
            RatioModel(RatioParams()).compute(a, b[:-1])

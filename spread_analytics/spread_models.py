"""
Spread Construction Models
==========================

Four ways to turn two aligned price series into a single mean-reverting
candidate series plus its rolling z-score.

    Ratio       S_t = A_t / B_t
    OLS         S_t = A_t - (alpha_t + beta_t B_t),  (alpha_t, beta_t) from a
                trailing-window regression of A on B
    Kalman      S_t = A_t - (alpha_t + beta_t B_t),  (alpha_t, beta_t) from a
                2-state Kalman filter
    Euclidean   S_t = zA_t - zB_t (Gemini model), traded on the rolling
                z-score of S over its own valid region

Warm-up
-------
Each output carries `warmup`, the number of leading points that downstream
statistics (ADF, half-life, Hurst, descriptive statistics) discard:

    Ratio       0
    OLS         lookback_window - 1      (rolling mode; 0 for whole-sample)
    Kalman      initial_lookback - 1
    Euclidean   2 * lookback_window - 2

For the Euclidean model the first 2w-2 z-scores are exactly 0.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from spread_analytics.config import (
    AnalysisConfig, EuclideanParams, KalmanParams, ModelType, OLSParams,
    RatioParams,
)
from spread_analytics.exceptions import InsufficientDataError, InvalidParameterError
from spread_analytics.kalman_filter import KalmanHedgeRatio
from spread_analytics.regression import hedge_ratio
from spread_analytics.rolling import rolling_zscore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpreadOutput:
    """
    Result of one spread model run. Arrays all have the input length.

    Attributes
    ----------
    model_type : ModelType
    spread : np.ndarray
        Ratio, hedged spread or Gemini raw spread (zA - zB).
    zscores : np.ndarray
        Rolling z-score of the spread (0 during warm-up).
    warmup : int
        Leading points excluded from statistics.
    window : int
        The model's main window, used for rolling half-life.
    alphas, hedge_ratios : np.ndarray or None
        Regression / filter estimates (OLS and Kalman).
    zscores_a, zscores_b : np.ndarray or None
        Per-leg z-scores (Euclidean).
    distances : np.ndarray or None
        |A/A0 - B/B0| normalized-price distance (Euclidean).
    innovations, kalman_gains : np.ndarray or None
        One-step prediction errors and (n x 2) gains (Kalman); zero over
        the initial OLS block.
    extras : dict
        Model-specific scalars (e.g. Kalman R, initial estimates).
    """
    model_type: ModelType
    spread: np.ndarray
    zscores: np.ndarray
    warmup: int
    window: int
    alphas: Optional[np.ndarray] = None
    hedge_ratios: Optional[np.ndarray] = None
    zscores_a: Optional[np.ndarray] = None
    zscores_b: Optional[np.ndarray] = None
    distances: Optional[np.ndarray] = None
    innovations: Optional[np.ndarray] = None
    kalman_gains: Optional[np.ndarray] = None
    extras: Dict = field(default_factory=dict)

    def stats_series(self) -> np.ndarray:
        """
        Series used by ADF and the diagnostics, warm-up removed.

        Euclidean uses its double z-score; the other models their spread.
        """
        if self.model_type == ModelType.EUCLIDEAN:
            return self.zscores[self.warmup:]
        return self.spread[self.warmup:]

    def level_series(self) -> np.ndarray:
        """Full-length series for rolling bands and rolling half-life."""
        if self.model_type == ModelType.EUCLIDEAN:
            return self.distances
        return self.spread


class SpreadModel(ABC):
    """Base class: compute(prices_a, prices_b) -> SpreadOutput."""

    model_type: ModelType = None

    @abstractmethod
    def min_length(self) -> int:
        """Shortest input the model accepts."""

    @abstractmethod
    def _compute(self, a: np.ndarray, b: np.ndarray) -> SpreadOutput:
        pass

    def compute(self, prices_a, prices_b) -> SpreadOutput:
        a = np.asarray(prices_a, dtype=np.float64)
        b = np.asarray(prices_b, dtype=np.float64)
        if len(a) != len(b):
            raise ValueError(f"Series lengths differ: {len(a)} vs {len(b)}")
        need = max(self.min_length(), 5)
        if len(a) < need:
            raise InsufficientDataError(
                f"{self.model_type.value} model needs at least {need} points, "
                f"got {len(a)}"
            )
        return self._compute(a, b)


class RatioModel(SpreadModel):
    """Price ratio A/B, z-scored over `lookback_window`."""

    model_type = ModelType.RATIO

    def __init__(self, params: RatioParams):
        self.params = params

    def min_length(self) -> int:
        return self.params.lookback_window

    def _compute(self, a, b):
        if np.any(b == 0):
            raise InvalidParameterError("Ratio model requires non-zero prices for B")
        ratios = a / b
        w = self.params.lookback_window
        return SpreadOutput(
            model_type=self.model_type,
            spread=ratios,
            zscores=rolling_zscore(ratios, w, ddof=1),
            warmup=0,
            window=w,
        )


class OLSModel(SpreadModel):
    """
    Hedged spread with a rolling (or whole-sample) OLS hedge ratio.

    In rolling mode, index i regresses A on B over
    [max(0, i - lookback + 1), i]; the early windows are partial. A
    degenerate window (no variation in B) yields beta = 1, alpha = 0.
    """

    model_type = ModelType.OLS

    def __init__(self, params: OLSParams):
        self.params = params

    def min_length(self) -> int:
        return max(self.params.lookback_window, self.params.zscore_lookback)

    @staticmethod
    def _window_fit(a_w: np.ndarray, b_w: np.ndarray):
        count = len(a_w)
        sum_a, sum_b = a_w.sum(), b_w.sum()
        sum_ab = (a_w * b_w).sum()
        sum_b2 = (b_w * b_w).sum()
        denom = count * sum_b2 - sum_b * sum_b
        # relative tolerance: flat B windows cancel only to rounding error
        if count == 0 or abs(denom) <= 1e-12 * count * sum_b2:
            return 0.0, 1.0
        beta = (count * sum_ab - sum_a * sum_b) / denom
        alpha = sum_a / count - beta * (sum_b / count)
        return alpha, beta

    def _compute(self, a, b):
        n = len(a)
        w = self.params.lookback_window
        if self.params.rolling:
            alphas = np.empty(n)
            betas = np.empty(n)
            for i in range(n):
                start = max(0, i - w + 1)
                alphas[i], betas[i] = self._window_fit(a[start:i + 1], b[start:i + 1])
            warmup = w - 1
        else:
            alpha, beta = hedge_ratio(a, b)
            alphas = np.full(n, alpha)
            betas = np.full(n, beta)
            warmup = 0

        spreads = a - (alphas + betas * b)
        return SpreadOutput(
            model_type=self.model_type,
            spread=spreads,
            zscores=rolling_zscore(spreads, self.params.zscore_lookback, ddof=1),
            warmup=warmup,
            window=w,
            alphas=alphas,
            hedge_ratios=betas,
        )


class KalmanModel(SpreadModel):
    """Hedged spread with a Kalman-filtered (alpha, beta)."""

    model_type = ModelType.KALMAN

    def __init__(self, params: KalmanParams):
        self.params = params

    def min_length(self) -> int:
        return max(self.params.initial_lookback, self.params.zscore_lookback)

    def _compute(self, a, b):
        p = self.params
        kf = KalmanHedgeRatio(
            process_noise=p.process_noise,
            measurement_noise=p.measurement_noise,
            initial_lookback=p.initial_lookback,
            initial_covariance=p.initial_covariance,
        )
        res = kf.filter(a, b)
        spreads = res["spreads"]
        return SpreadOutput(
            model_type=self.model_type,
            spread=spreads,
            zscores=rolling_zscore(spreads, p.zscore_lookback, ddof=1),
            warmup=p.initial_lookback - 1,
            window=p.initial_lookback,
            alphas=res["alphas"],
            hedge_ratios=res["hedge_ratios"],
            innovations=res["innovations"],
            kalman_gains=res["kalman_gains"],
            extras={
                "measurement_noise": res["measurement_noise"],
                "initial_alpha": res["initial_alpha"],
                "initial_hedge_ratio": res["initial_hedge_ratio"],
                "final_alpha": res["final_alpha"],
                "final_hedge_ratio": res["final_hedge_ratio"],
            },
        )


class EuclideanModel(SpreadModel):
    """
    Gemini double z-score model.

    Step 1: zA, zB = rolling sample z-scores of each leg (window w).
    Step 2: raw spread = zA - zB, valid from index w-1.
    Step 3: rolling z-score of raw[w-1:] with the same window, placed
            back at offset w-1; the first valid value lands at 2w-2.
    """

    model_type = ModelType.EUCLIDEAN

    def __init__(self, params: EuclideanParams):
        self.params = params

    def min_length(self) -> int:
        return 2 * self.params.lookback_window - 1

    def _compute(self, a, b):
        if a[0] == 0 or b[0] == 0:
            raise InvalidParameterError(
                "Euclidean model requires non-zero first prices to normalize"
            )
        w = self.params.lookback_window
        n = len(a)
        z_a = rolling_zscore(a, w, ddof=1)
        z_b = rolling_zscore(b, w, ddof=1)
        raw = z_a - z_b

        zscores = np.zeros(n)
        zscores[w - 1:] = rolling_zscore(raw[w - 1:], w, ddof=1)

        distances = np.abs(a / a[0] - b / b[0])
        return SpreadOutput(
            model_type=self.model_type,
            spread=raw,
            zscores=zscores,
            warmup=2 * w - 2,
            window=w,
            zscores_a=z_a,
            zscores_b=z_b,
            distances=distances,
        )


_MODELS = {
    ModelType.RATIO: lambda cfg: RatioModel(cfg.ratio),
    ModelType.OLS: lambda cfg: OLSModel(cfg.ols),
    ModelType.KALMAN: lambda cfg: KalmanModel(cfg.kalman),
    ModelType.EUCLIDEAN: lambda cfg: EuclideanModel(cfg.euclidean),
}


def build_model(model_type, config: AnalysisConfig) -> SpreadModel:
    """Instantiate the spread model for `model_type` from `config`."""
    return _MODELS[ModelType.parse(model_type)](config)

"""
Pair Analysis Pipeline
======================

Runs one full analysis of a price pair:

    1. Align the two price series on their common dates
    2. Build the spread for the selected model
    3. Rolling z-score of the spread
    4. ADF stationarity test on the warm-up-free series
    5. Half-life, Hurst exponent, practical trade-cycle half-life
    6. Descriptive statistics, correlation, rolling bands and half-life

and returns one frozen AnalysisResult. PairAnalyzer holds only its
configuration, so a single instance can serve many calls.

Author: Jose Orlando Bobadilla Fuentes, CQF, MSc AI
"""

import dataclasses
import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from spread_analytics.adf import ADFTest, AdfOutcome
from spread_analytics.config import AnalysisConfig, ModelType
from spread_analytics.diagnostics import (
    HalfLifeResult, TradeCycleStats, correlation, descriptive_statistics,
    half_life, hurst_exponent, practical_trade_half_life,
)
from spread_analytics.exceptions import InsufficientDataError
from spread_analytics.rolling import rolling_bands, rolling_half_life
from spread_analytics.spread_models import SpreadOutput, build_model
from spread_analytics.utils import finite_array, finite_or, timeit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """One daily close. `date` is an ISO yyyy-mm-dd string."""
    date: str
    close: float


@dataclass(frozen=True)
class AlignedSeries:
    dates: pd.Index
    prices_a: np.ndarray
    prices_b: np.ndarray

    def __len__(self):
        return len(self.prices_a)


def _to_series(prices, name: str) -> Optional[pd.Series]:
    """PricePoint list or pd.Series -> date-indexed Series; None for plain arrays."""
    if isinstance(prices, pd.Series):
        s = prices.astype(np.float64)
    elif len(prices) and isinstance(prices[0], PricePoint):
        s = pd.Series([p.close for p in prices],
                      index=[p.date for p in prices], dtype=np.float64)
    else:
        return None
    if s.index.has_duplicates:
        logger.warning("%s: %d duplicate dates, keeping the last close",
                       name, int(s.index.duplicated().sum()))
        s = s[~s.index.duplicated(keep="last")]
    return s.rename(name)


def align_series(prices_a, prices_b) -> AlignedSeries:
    """
    Intersect two price series on date and drop non-finite rows.

    Parameters
    ----------
    prices_a, prices_b : sequence of PricePoint, pd.Series or array-like
        Both arguments must be of the same kind. Plain arrays are taken as
        already aligned and must have equal length.

    Returns
    -------
    AlignedSeries
        Ascending dates; rows where either close is NaN/inf removed.
    """
    sa = _to_series(prices_a, "a")
    sb = _to_series(prices_b, "b")
    if (sa is None) != (sb is None):
        raise TypeError("prices_a and prices_b must both be dated or both be arrays")

    if sa is None:
        a = np.asarray(prices_a, dtype=np.float64)
        b = np.asarray(prices_b, dtype=np.float64)
        if len(a) != len(b):
            raise ValueError(f"Series lengths differ: {len(a)} vs {len(b)}")
        df = pd.DataFrame({"a": a, "b": b})
    else:
        df = pd.concat([sa, sb], axis=1, join="inner").sort_index()

    n_before = len(df)
    df = df.replace([np.inf, -np.inf], np.nan).dropna()
    if len(df) < n_before:
        logger.warning("Dropped %d rows with non-finite prices", n_before - len(df))

    return AlignedSeries(
        dates=df.index,
        prices_a=df["a"].to_numpy(),
        prices_b=df["b"].to_numpy(),
    )


@dataclass(frozen=True)
class AnalysisResult:
    """Everything computed for one pair under one model."""
    model_type: ModelType
    dates: pd.Index
    prices_a: np.ndarray
    prices_b: np.ndarray
    output: SpreadOutput
    adf: AdfOutcome
    half_life: HalfLifeResult
    hurst_exponent: float
    trade_cycles: TradeCycleStats
    statistics: Dict[str, float]
    bands: Dict[str, np.ndarray]
    rolling_half_life: np.ndarray
    parameters: Dict = field(default_factory=dict)

    @property
    def spread(self) -> np.ndarray:
        return self.output.spread

    @property
    def zscores(self) -> np.ndarray:
        return self.output.zscores

    @property
    def hedge_ratios(self) -> Optional[np.ndarray]:
        return self.output.hedge_ratios

    def to_frame(self) -> pd.DataFrame:
        """Per-date table: prices, model columns, z-score, bands, half-life."""
        out = self.output
        cols = {"price_a": self.prices_a, "price_b": self.prices_b}
        if self.model_type == ModelType.RATIO:
            cols["ratio"] = out.spread
        elif self.model_type == ModelType.EUCLIDEAN:
            cols["normalized_a"] = self.prices_a / self.prices_a[0]
            cols["normalized_b"] = self.prices_b / self.prices_b[0]
            cols["distance"] = out.distances
            cols["zscore_a"] = out.zscores_a
            cols["zscore_b"] = out.zscores_b
            cols["raw_spread"] = out.spread
        else:
            cols["alpha"] = out.alphas
            cols["hedge_ratio"] = out.hedge_ratios
            cols["spread"] = out.spread
            if out.innovations is not None:
                cols["innovation"] = out.innovations
                cols["gain_alpha"] = out.kalman_gains[:, 0]
                cols["gain_beta"] = out.kalman_gains[:, 1]
        cols["zscore"] = out.zscores
        cols["half_life"] = self.rolling_half_life
        cols.update(self.bands)
        df = pd.DataFrame(cols, index=self.dates)
        df.index.name = "date"
        return df

    def get_summary(self) -> str:
        """Return formatted analysis summary."""
        s = self.statistics
        hl = self.half_life
        tc = self.trade_cycles
        lines = [
            "=" * 60,
            f"PAIR ANALYSIS: {self.model_type.value.upper()} MODEL",
            "=" * 60,
            f"Observations:       {len(self.prices_a)}",
            f"Warm-up excluded:   {self.output.warmup}",
            f"Correlation:        {s['correlation']:.4f}",
            f"Mean:               {s['mean']:.6f}",
            f"Std dev:            {s['std']:.6f}",
            f"Z-score range:      [{s['min_zscore']:.3f}, {s['max_zscore']:.3f}]",
            "-" * 60,
            f"ADF statistic:      {self.adf.test_statistic:.4f}",
            f"ADF p-value:        {self.adf.p_value:.6f}",
            f"ADF lags (AIC):     {self.adf.optimal_lags}",
            f"Stationary (5%):    {self.adf.is_stationary}",
            "-" * 60,
            f"Half-life:          {hl.half_life:.2f} days"
            + ("" if hl.is_valid else " (no mean reversion)"),
            f"Hurst exponent:     {self.hurst_exponent:.4f}",
            f"Trade cycle:        {tc.trade_cycle_length:.2f} days "
            f"(median {tc.median_cycle_length:.1f}, n={tc.sample_size})",
            f"Cycle success rate: {tc.success_rate:.1%} of {tc.entries} entries",
            "=" * 60,
        ]
        return "\n".join(lines)


def _sanitize_output(output: SpreadOutput) -> SpreadOutput:
    changes = {}
    for f in dataclasses.fields(output):
        value = getattr(output, f.name)
        if isinstance(value, np.ndarray) and not np.all(np.isfinite(value)):
            logger.warning("Replacing %d non-finite values in %s",
                           int((~np.isfinite(value)).sum()), f.name)
            changes[f.name] = finite_array(value)
    changes["extras"] = {k: finite_or(v) for k, v in output.extras.items()}
    return dataclasses.replace(output, **changes)


def _sanitize_adf(adf: AdfOutcome) -> AdfOutcome:
    if np.isfinite([adf.test_statistic, adf.aic_value, adf.p_value,
                    *adf.critical_values.values()]).all():
        return adf
    logger.warning("Non-finite ADF output replaced with defaults")
    return dataclasses.replace(
        adf,
        test_statistic=finite_or(adf.test_statistic),
        aic_value=finite_or(adf.aic_value),
        p_value=finite_or(adf.p_value, 1.0),
        critical_values={k: finite_or(v) for k, v in adf.critical_values.items()},
    )


class PairAnalyzer:
    """
    Caller-owned analysis handle.

    Parameters
    ----------
    config : AnalysisConfig or None
        Model parameters and thresholds; defaults when None.

    Example
    -------
    >>> analyzer = PairAnalyzer(AnalysisConfig.from_params(model_type="kalman"))
    >>> result = analyzer.analyze(prices_a, prices_b)
    >>> print(result.get_summary())
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = (config if config is not None else AnalysisConfig()).validate()

    def _band_window(self, model_type: ModelType) -> int:
        """Window of the mean +/- std bands; Kalman shares the OLS window."""
        cfg = self.config
        return {
            ModelType.RATIO: cfg.ratio.lookback_window,
            ModelType.OLS: cfg.ols.lookback_window,
            ModelType.KALMAN: cfg.ols.lookback_window,
            ModelType.EUCLIDEAN: cfg.euclidean.lookback_window,
        }[model_type]

    @timeit
    def analyze(self, prices_a, prices_b,
                model_type=None) -> AnalysisResult:
        """
        Analyze one pair.

        Parameters
        ----------
        prices_a, prices_b : sequence of PricePoint, pd.Series or array-like
            Daily closes of the two legs.
        model_type : ModelType, str or None
            Overrides config.model_type when given.

        Returns
        -------
        AnalysisResult

        Raises
        ------
        InsufficientDataError
            Too few aligned points for the model's windows.
        InvalidParameterError
            Unknown model type or out-of-range configuration.
        """
        cfg = self.config.validate()
        mtype = ModelType.parse(model_type if model_type is not None else cfg.model_type)

        aligned = align_series(prices_a, prices_b)
        model = build_model(mtype, cfg)
        need = max(model.min_length(), 5)
        if len(aligned) < need:
            raise InsufficientDataError(
                f"{mtype.value} analysis needs {need} aligned points, got {len(aligned)}"
            )
        logger.info("Analyzing %d aligned points with the %s model", len(aligned), mtype.value)

        output = model.compute(aligned.prices_a, aligned.prices_b)
        stats_series = output.stats_series()

        adf = ADFTest.from_config(cfg.adf).run_or_neutral(stats_series, label=mtype.value)
        hl = half_life(stats_series)
        hurst = hurst_exponent(stats_series)
        cycles = practical_trade_half_life(
            output.zscores, cfg.thresholds.entry, cfg.thresholds.exit
        )

        statistics = descriptive_statistics(stats_series, output.zscores[output.warmup:])
        statistics["correlation"] = correlation(aligned.prices_a, aligned.prices_b)

        level = output.level_series()
        bands = rolling_bands(level, self._band_window(mtype))
        rolling_hl = rolling_half_life(level, output.window)

        result = AnalysisResult(
            model_type=mtype,
            dates=aligned.dates,
            prices_a=aligned.prices_a,
            prices_b=aligned.prices_b,
            output=_sanitize_output(output),
            adf=_sanitize_adf(adf),
            half_life=HalfLifeResult(
                half_life=finite_or(hl.half_life),
                theta=finite_or(hl.theta),
                is_valid=hl.is_valid,
            ),
            hurst_exponent=finite_or(hurst, 0.5),
            trade_cycles=cycles,
            statistics={k: finite_or(v) for k, v in statistics.items()},
            bands={k: finite_array(v) for k, v in bands.items()},
            rolling_half_life=finite_array(rolling_hl),
            parameters=dataclasses.asdict(cfg),
        )
        logger.info("%s: ADF=%.3f (p=%.3f) half-life=%.2f hurst=%.3f",
                    mtype.value, result.adf.test_statistic, result.adf.p_value,
                    result.half_life.half_life, result.hurst_exponent)
        return result

    def analyze_all(self, prices_a, prices_b,
                    model_types: Optional[Sequence] = None) -> Dict[ModelType, AnalysisResult]:
        """
        Run several models on the same pair.

        Models that fail with InsufficientDataError are logged and left out
        of the returned dict.
        """
        results = {}
        for mtype in (model_types or list(ModelType)):
            mtype = ModelType.parse(mtype)
            try:
                results[mtype] = self.analyze(prices_a, prices_b, model_type=mtype)
            except InsufficientDataError as exc:
                logger.warning("Skipping %s model: %s", mtype.value, exc)
        return results

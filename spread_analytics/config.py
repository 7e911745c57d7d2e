"""
config.py
---------
Centralised configuration for the spread analytics engine.

One dataclass per concern, aggregated by AnalysisConfig. A few defaults can
be overridden through environment variables so that the host application can
switch behaviour without code changes.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from spread_analytics.exceptions import InvalidParameterError


class ModelType(str, Enum):
    """Closed set of spread-construction models."""
    RATIO = "ratio"
    OLS = "ols"
    KALMAN = "kalman"
    EUCLIDEAN = "euclidean"

    @classmethod
    def parse(cls, value) -> "ModelType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidParameterError(
                f"Unknown model type {value!r}; expected one of "
                f"{[m.value for m in cls]}"
            ) from None


@dataclass
class RatioParams:
    """Price-ratio model: spread = A / B."""
    lookback_window: int = 60


@dataclass
class OLSParams:
    """Rolling OLS hedge-ratio model."""
    lookback_window: int = 60     # regression window
    zscore_lookback: int = 30     # z-score window on the spread
    rolling: bool = True          # False: one whole-sample hedge ratio


@dataclass
class KalmanParams:
    """Two-state (alpha, beta) Kalman filter model."""
    process_noise:      float = 1e-4
    measurement_noise:  float = 0.0      # <= 0: estimate from initial OLS
    initial_lookback:   int   = 60
    zscore_lookback:    int   = 30
    initial_covariance: float = 1000.0   # P0 = diag(c, c)


@dataclass
class EuclideanParams:
    """Gemini double z-score model; one window for both passes."""
    lookback_window: int = 60


@dataclass
class ThresholdConfig:
    """Z-score thresholds for the practical trade-cycle half-life."""
    entry: float = 2.0
    exit:  float = 0.5


@dataclass
class ADFConfig:
    """Augmented Dickey-Fuller test settings."""
    regression:     str = "c"          # n | c | ct
    max_lags:       int = 12
    lag_search:     str = os.getenv("SPREAD_ADF_LAG_SEARCH", "full")  # full | legacy
    pvalue_method:  str = "mackinnon"  # mackinnon | table


@dataclass
class BacktestConfig:
    """Z-score backtest: position sizing and exit rules."""
    capital_per_trade: float = 100_000.0
    stop_loss_pct:     float = -10.0    # trade ROI in percent
    target_profit_pct: float = 10.0
    time_stop:         int   = 15       # bars held
    risk_free_rate:    float = float(os.getenv("SPREAD_RISK_FREE_RATE", "0.02"))
    sizing:            str   = "auto"   # auto | hedged | value_neutral | spread


ADF_REGRESSIONS = ("n", "c", "ct")
ADF_LAG_SEARCHES = ("full", "legacy")
ADF_PVALUE_METHODS = ("mackinnon", "table")
SIZING_METHODS = ("auto", "hedged", "value_neutral", "spread")


@dataclass
class AnalysisConfig:
    """Master configuration aggregating all sub-configs."""
    ratio:      RatioParams     = field(default_factory=RatioParams)
    ols:        OLSParams       = field(default_factory=OLSParams)
    kalman:     KalmanParams    = field(default_factory=KalmanParams)
    euclidean:  EuclideanParams = field(default_factory=EuclideanParams)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    adf:        ADFConfig       = field(default_factory=ADFConfig)
    backtest:   BacktestConfig  = field(default_factory=BacktestConfig)

    model_type: ModelType = ModelType.RATIO
    log_level:  str       = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def from_params(cls, **params) -> "AnalysisConfig":
        """
        Build a config from the host application's flat parameter struct.

        Recognised keys: model_type, ratio_lookback_window,
        ols_lookback_window, kalman_process_noise, kalman_measurement_noise,
        kalman_initial_lookback, euclidean_lookback_window, zscore_lookback,
        entry_threshold, exit_threshold, capital_per_trade, stop_loss_pct,
        target_profit_pct, time_stop, risk_free_rate, sizing. Unknown keys raise
        InvalidParameterError.
        """
        cfg = cls()
        setters = {
            "ratio_lookback_window":     (cfg.ratio, "lookback_window", int),
            "ols_lookback_window":       (cfg.ols, "lookback_window", int),
            "kalman_process_noise":      (cfg.kalman, "process_noise", float),
            "kalman_measurement_noise":  (cfg.kalman, "measurement_noise", float),
            "kalman_initial_lookback":   (cfg.kalman, "initial_lookback", int),
            "euclidean_lookback_window": (cfg.euclidean, "lookback_window", int),
            "entry_threshold":           (cfg.thresholds, "entry", float),
            "exit_threshold":            (cfg.thresholds, "exit", float),
            "capital_per_trade":         (cfg.backtest, "capital_per_trade", float),
            "stop_loss_pct":             (cfg.backtest, "stop_loss_pct", float),
            "target_profit_pct":         (cfg.backtest, "target_profit_pct", float),
            "time_stop":                 (cfg.backtest, "time_stop", int),
            "risk_free_rate":            (cfg.backtest, "risk_free_rate", float),
            "sizing":                    (cfg.backtest, "sizing", str),
        }
        for key, value in params.items():
            if key == "model_type":
                cfg.model_type = ModelType.parse(value)
            elif key == "zscore_lookback":
                # shared by the OLS and Kalman models
                cfg.ols.zscore_lookback = int(value)
                cfg.kalman.zscore_lookback = int(value)
            elif key in setters:
                target, attr, cast = setters[key]
                setattr(target, attr, cast(value))
            else:
                raise InvalidParameterError(f"Unknown parameter {key!r}")
        return cfg

    def validate(self) -> "AnalysisConfig":
        """Raise InvalidParameterError on the first out-of-range value."""
        windows = {
            "ratio.lookback_window": self.ratio.lookback_window,
            "ols.lookback_window": self.ols.lookback_window,
            "ols.zscore_lookback": self.ols.zscore_lookback,
            "kalman.initial_lookback": self.kalman.initial_lookback,
            "kalman.zscore_lookback": self.kalman.zscore_lookback,
            "euclidean.lookback_window": self.euclidean.lookback_window,
        }
        for name, value in windows.items():
            if value < 1:
                raise InvalidParameterError(f"{name} must be >= 1, got {value}")
        if self.kalman.initial_lookback < 3:
            raise InvalidParameterError(
                "kalman.initial_lookback must be >= 3 to fit the initial OLS"
            )
        if self.kalman.process_noise < 0:
            raise InvalidParameterError("kalman.process_noise must be >= 0")
        if self.kalman.measurement_noise < 0:
            raise InvalidParameterError("kalman.measurement_noise must be >= 0")
        if self.kalman.initial_covariance <= 0:
            raise InvalidParameterError("kalman.initial_covariance must be > 0")
        if self.thresholds.entry <= 0 or self.thresholds.exit < 0:
            raise InvalidParameterError("thresholds must be positive")
        if self.thresholds.exit > self.thresholds.entry:
            raise InvalidParameterError(
                f"exit threshold {self.thresholds.exit} exceeds entry "
                f"threshold {self.thresholds.entry}"
            )
        if self.adf.regression not in ADF_REGRESSIONS:
            raise InvalidParameterError(f"adf.regression {self.adf.regression!r}")
        if self.adf.lag_search not in ADF_LAG_SEARCHES:
            raise InvalidParameterError(f"adf.lag_search {self.adf.lag_search!r}")
        if self.adf.pvalue_method not in ADF_PVALUE_METHODS:
            raise InvalidParameterError(
                f"adf.pvalue_method {self.adf.pvalue_method!r}"
            )
        if self.adf.max_lags < 0:
            raise InvalidParameterError("adf.max_lags must be >= 0")
        validate_backtest(self.backtest)
        self.model_type = ModelType.parse(self.model_type)
        return self


def validate_backtest(bt: BacktestConfig) -> BacktestConfig:
    """Raise InvalidParameterError for an unusable backtest setup."""
    if bt.capital_per_trade <= 0:
        raise InvalidParameterError("backtest.capital_per_trade must be > 0")
    if bt.stop_loss_pct >= 0:
        raise InvalidParameterError("backtest.stop_loss_pct must be negative")
    if bt.target_profit_pct <= 0:
        raise InvalidParameterError("backtest.target_profit_pct must be positive")
    if bt.time_stop < 1:
        raise InvalidParameterError("backtest.time_stop must be >= 1")
    if bt.sizing not in SIZING_METHODS:
        raise InvalidParameterError(f"backtest.sizing {bt.sizing!r}")
    return bt

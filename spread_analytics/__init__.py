"""
Pair Spread Analytics
=====================

Statistical engine for pair-trading analysis: spread construction, rolling
z-scores, Augmented Dickey-Fuller stationarity testing and mean-reversion
diagnostics for two aligned daily price series.

Modules:
    config          - Dataclass configuration and ModelType enum
    exceptions      - Error taxonomy
    linalg          - Small dense linear algebra with singularity checks
    rolling         - Rolling mean / std / z-score, bands, rolling half-life
    regression      - OLS multiple regression and static hedge ratio
    kalman_filter   - 2-state Kalman filter for a time-varying hedge ratio
    spread_models   - Ratio, rolling OLS, Kalman and Euclidean spreads
    adf             - ADF test with AIC lag selection
    diagnostics     - Half-life, Hurst exponent, trade-cycle statistics
    analyzer        - End-to-end PairAnalyzer and AnalysisResult
    backtesting     - Z-score spread backtest and trade metrics
    data_generator  - Seeded synthetic price pairs and processes

Author: Jose Orlando Bobadilla Fuentes, CQF, MSc AI
"""

from spread_analytics.config import AnalysisConfig, ModelType
from spread_analytics.exceptions import (
    AnalysisError, InsufficientDataError, InsufficientObservationsError,
    InvalidParameterError, SingularMatrixError,
)
from spread_analytics.regression import OLSRegression, RegressionResult, hedge_ratio
from spread_analytics.rolling import rolling_zscore
from spread_analytics.kalman_filter import KalmanHedgeRatio
from spread_analytics.spread_models import SpreadOutput, build_model
from spread_analytics.adf import ADFTest, AdfOutcome
from spread_analytics.diagnostics import (
    half_life, hurst_exponent, practical_trade_half_life,
)
from spread_analytics.analyzer import (
    AnalysisResult, PairAnalyzer, PricePoint, align_series,
)
from spread_analytics.backtesting import SpreadBacktester

__version__ = "1.0.0"
__author__ = "Jose Orlando Bobadilla Fuentes"

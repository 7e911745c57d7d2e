"""
Mean-Reversion Diagnostics
==========================

Scalar summaries of how a spread behaves once it has been built.

Half-life (discretised Ornstein-Uhlenbeck):
    dy_t = c + b * y_{t-1} + e_t,     theta = -b,     HL = ln(2) / theta

Hurst exponent (rescaled range):
    E[R(n)/S(n)] ~ C * n^H
    H < 0.5: mean-reverting, H = 0.5: random walk, H > 0.5: trending

Practical trade-cycle half-life:
    The empirical number of steps a z-score takes to travel from the entry
    threshold back inside the exit band, averaged over completed cycles.

References:
    Uhlenbeck & Ornstein (1930), Hurst (1951), Mandelbrot & Wallis (1969),
    Chan (2013) Algorithmic Trading, Chapter 2
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, List

from scipy import stats as sp_stats

from spread_analytics.exceptions import InsufficientObservationsError, SingularMatrixError
from spread_analytics.regression import OLSRegression

logger = logging.getLogger(__name__)

MIN_HALF_LIFE_POINTS = 20
MIN_HURST_POINTS = 100
RELIABLE_MIN_CYCLES = 5
RELIABLE_MIN_SUCCESS = 0.7


@dataclass(frozen=True)
class HalfLifeResult:
    half_life: float
    theta: float
    is_valid: bool


def half_life(series) -> HalfLifeResult:
    """
    Half-life of mean reversion from the regression of dy_t on [1, y_{t-1}].

    Parameters
    ----------
    series : array-like
        Spread (or z-score) series with warm-up already removed.

    Returns
    -------
    HalfLifeResult
        half_life = ln(2)/theta when theta > 0, otherwise 0 and
        is_valid=False. Series shorter than 20 points are never valid.
    """
    y = np.asarray(series, dtype=np.float64)
    y = y[np.isfinite(y)]
    if len(y) < MIN_HALF_LIFE_POINTS:
        return HalfLifeResult(half_life=0.0, theta=0.0, is_valid=False)

    dy = np.diff(y)
    X = np.column_stack([np.ones(len(dy)), y[:-1]])
    try:
        fit = OLSRegression().fit(dy, X)
    except (SingularMatrixError, InsufficientObservationsError) as exc:
        logger.debug("Half-life regression failed: %s", exc)
        return HalfLifeResult(half_life=0.0, theta=0.0, is_valid=False)

    theta = -float(fit.coefficients[1])
    if not np.isfinite(theta) or theta <= 0:
        return HalfLifeResult(half_life=0.0, theta=theta if np.isfinite(theta) else 0.0,
                              is_valid=False)
    return HalfLifeResult(half_life=float(np.log(2) / theta), theta=theta, is_valid=True)


def hurst_exponent(series) -> float:
    """
    Estimate the Hurst exponent via the rescaled range (R/S) method.

    Block sizes 10, 20, ..., min(100, n // 2); non-overlapping blocks start
    every `lag` points. The exponent is the slope of log(mean R/S) against
    log(block size). Returns 0.5 for fewer than 100 points or when fewer
    than two block sizes give a usable R/S.
    """
    x = np.asarray(series, dtype=np.float64)
    x = x[np.isfinite(x)]
    n = len(x)
    if n < MIN_HURST_POINTS:
        return 0.5

    tau = []
    rs = []
    for lag in range(10, min(100, n // 2) + 1, 10):
        ratios = []
        for start in range(0, n - lag, lag):
            block = x[start:start + lag]
            devs = block - block.mean()
            cum_devs = devs.cumsum()
            R = cum_devs.max() - cum_devs.min()
            S = block.std()
            if S > 0:
                ratios.append(R / S)
        if ratios:
            tau.append(lag)
            rs.append(np.mean(ratios))

    rs = np.asarray(rs)
    keep = rs > 0
    if keep.sum() < 2:
        return 0.5
    coef = np.polyfit(np.log(np.asarray(tau)[keep]), np.log(rs[keep]), 1)
    return float(coef[0]) if np.isfinite(coef[0]) else 0.5


@dataclass(frozen=True)
class TradeCycleStats:
    """Entry-to-exit statistics of a z-score series."""
    trade_cycle_length: float
    median_cycle_length: float
    success_rate: float
    sample_size: int
    entries: int
    is_valid: bool
    is_reliable: bool

    @classmethod
    def empty(cls) -> "TradeCycleStats":
        return cls(0.0, 0.0, 0.0, 0, 0, False, False)


def trade_cycles(zscores, entry_threshold: float = 2.0,
                 exit_threshold: float = 0.5) -> Dict:
    """
    Scan a z-score series for completed trade cycles.

    A trade opens when |z| >= entry_threshold and no trade is open. It
    closes at the first later step where z <= exit_threshold (after a
    positive entry) or z >= -exit_threshold (after a negative entry).

    Returns
    -------
    dict
        durations (list of exit - entry steps), entries (int),
        open_trade (bool).
    """
    z = np.asarray(zscores, dtype=np.float64)
    durations: List[int] = []
    entries = 0
    in_trade = False
    entry_idx = 0
    direction = 0

    for i, value in enumerate(z):
        if not np.isfinite(value):
            continue
        if in_trade:
            if ((direction > 0 and value <= exit_threshold)
                    or (direction < 0 and value >= -exit_threshold)):
                durations.append(i - entry_idx)
                in_trade = False
        elif abs(value) >= entry_threshold:
            in_trade = True
            entries += 1
            entry_idx = i
            direction = 1 if value > 0 else -1

    return {"durations": durations, "entries": entries, "open_trade": in_trade}


def practical_trade_half_life(zscores, entry_threshold: float = 2.0,
                              exit_threshold: float = 0.5) -> TradeCycleStats:
    """
    Average number of steps for the z-score to revert from entry to exit.

    Parameters
    ----------
    zscores : array-like
        Rolling z-score series.
    entry_threshold : float
        |z| level that opens a cycle (default 2.0).
    exit_threshold : float
        Band the z-score must re-enter to close it (default 0.5).

    Returns
    -------
    TradeCycleStats
        success_rate = completed cycles / entries. is_valid when at least
        one entry was observed; is_reliable additionally needs 5 completed
        cycles and a success rate above 0.7.
    """
    scan = trade_cycles(zscores, entry_threshold, exit_threshold)
    durations, entries = scan["durations"], scan["entries"]
    if entries == 0:
        return TradeCycleStats.empty()

    cycles = len(durations)
    success = cycles / entries
    mean_len = float(np.mean(durations)) if cycles else 0.0
    median_len = float(np.median(durations)) if cycles else 0.0
    return TradeCycleStats(
        trade_cycle_length=mean_len,
        median_cycle_length=median_len,
        success_rate=float(success),
        sample_size=cycles,
        entries=entries,
        is_valid=True,
        is_reliable=cycles >= RELIABLE_MIN_CYCLES and success > RELIABLE_MIN_SUCCESS,
    )


def correlation(a, b) -> float:
    """Pearson correlation; 0.0 when either input is constant or too short."""
    x = np.asarray(a, dtype=np.float64)
    y = np.asarray(b, dtype=np.float64)
    mask = np.isfinite(x) & np.isfinite(y)
    x, y = x[mask], y[mask]
    if len(x) < 2 or np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0
    r, _ = sp_stats.pearsonr(x, y)
    return float(r) if np.isfinite(r) else 0.0


def descriptive_statistics(series, zscores) -> Dict[str, float]:
    """
    Mean and sample standard deviation of `series`, range of `zscores`.

    Returns
    -------
    dict
        mean, std (ddof=1), min_zscore, max_zscore; 0.0 where undefined.
    """
    x = np.asarray(series, dtype=np.float64)
    x = x[np.isfinite(x)]
    z = np.asarray(zscores, dtype=np.float64)
    z = z[np.isfinite(z)]
    return {
        "mean": float(x.mean()) if len(x) else 0.0,
        "std": float(x.std(ddof=1)) if len(x) > 1 else 0.0,
        "min_zscore": float(z.min()) if len(z) else 0.0,
        "max_zscore": float(z.max()) if len(z) else 0.0,
    }

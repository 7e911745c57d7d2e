"""
Rolling-Window Statistics
=========================

Windowed mean, variance and z-score transforms over an ordered numeric
sequence.

    z_t = (x_t - mean(x_{t-w+1..t})) / std(x_{t-w+1..t})

Degrees of freedom are always explicit: ddof=1 (sample) is what every
z-score and descriptive statistic in the engine uses; ddof=0 (population)
survives only in the legacy chart bands.

Inside these functions "not yet valid" is carried as NaN. The public
z-score converts NaN to the 0.0 sentinel on the way out, so callers see
0 both before the window fills and where the window has zero variance.
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional, Tuple


def _as_series(values) -> pd.Series:
    return pd.Series(np.asarray(values, dtype=np.float64))


def rolling_mean_std(values, window: int, *, ddof: int,
                     min_periods: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rolling mean and standard deviation.

    Parameters
    ----------
    values : array-like
        Ordered observations.
    window : int
        Window length.
    ddof : int
        Delta degrees of freedom (0 = population, 1 = sample).
    min_periods : int or None
        Observations required for a value; defaults to the full window.

    Returns
    -------
    (mean, std) : tuple of np.ndarray
        NaN where fewer than min_periods observations are available. A window
        with len <= ddof has std 0.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    s = _as_series(values)
    min_periods = window if min_periods is None else min_periods
    roll = s.rolling(window, min_periods=min_periods)
    mean = roll.mean().to_numpy()
    count = roll.count().to_numpy()
    if ddof == 0:
        var = roll.var(ddof=0).to_numpy()
    else:
        var = roll.var(ddof=ddof).to_numpy()
        # pandas leaves len <= ddof windows as NaN; the contract says 0
        var = np.where((count <= ddof) & ~np.isnan(mean), 0.0, var)
    # rolling sums can leave tiny negative residue on flat windows
    std = np.sqrt(np.clip(var, 0.0, None))
    return mean, std


def rolling_zscore(values, window: int, *, ddof: int) -> np.ndarray:
    """
    Rolling z-score with the 0.0 sentinel.

    Entries with index < window-1 are 0. Later entries are
    (x - window_mean) / window_std, or 0 when the window std is 0.

    Parameters
    ----------
    values : array-like
        Ordered observations.
    window : int
        Window length (>= 1).
    ddof : int
        0 for population, 1 for sample standard deviation. Required.

    Returns
    -------
    np.ndarray
        Same length as the input.
    """
    x = np.asarray(values, dtype=np.float64)
    if len(x) == 0:
        return np.zeros(0)
    mean, std = rolling_mean_std(x, window, ddof=ddof)
    # flat windows: rounding in the rolling variance must not fake a signal
    flat = std <= 1e-12 * np.maximum(np.abs(mean), 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        z = np.where(flat, np.nan, (x - mean) / std)
    z[~np.isfinite(z)] = 0.0
    return z


def rolling_bands(values, window: int) -> Dict[str, np.ndarray]:
    """
    Mean +/- 1 and 2 standard-deviation bands.

    The window grows from one observation up to `window` (no warm-up gap) and
    uses the population standard deviation, matching the chart bands the
    analyzer has always reported.

    Returns
    -------
    dict
        rolling_mean, upper_1, lower_1, upper_2, lower_2.
    """
    mean, std = rolling_mean_std(values, window, ddof=0, min_periods=1)
    return {
        "rolling_mean": mean,
        "upper_1": mean + std,
        "lower_1": mean - std,
        "upper_2": mean + 2 * std,
        "lower_2": mean - 2 * std,
    }


def rolling_half_life(values, window: int) -> np.ndarray:
    """
    Half-life of mean reversion estimated inside each trailing window.

    Within a window the change dx_j = x_j - x_{j-1} is regressed on the
    demeaned lagged level; a negative slope b gives half-life -ln(2)/b.

    Returns
    -------
    np.ndarray
        Half-life per index; 0.0 where the window is incomplete or the
        slope shows no mean reversion.
    """
    x = np.asarray(values, dtype=np.float64)
    n = len(x)
    out = np.zeros(n)
    if window < 3 or n < window + 1:
        return out

    for i in range(window - 1, n):
        w = x[i - window + 1:i + 1]
        lagged = w[:-1] - w.mean()
        dx = np.diff(w)
        m = len(dx)
        sum_x = lagged.sum()
        sum_x2 = (lagged ** 2).sum()
        denom = m * sum_x2 - sum_x ** 2
        if sum_x2 == 0 or denom == 0:
            continue
        slope = (m * (lagged * dx).sum() - sum_x * dx.sum()) / denom
        if slope < 0:
            hl = -np.log(2) / slope
            if np.isfinite(hl) and hl > 0:
                out[i] = hl
    return out

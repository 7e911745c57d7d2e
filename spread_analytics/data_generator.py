"""
Synthetic Price Pair Generator
==============================

Seeded synthetic series for demos and tests:

    - Cointegrated pair: shared stochastic trend, stationary AR(1) residual
        log A_t = trend_t + log(a0)
        log B_t = beta * trend_t + s_t + log(b0),   s_t = phi s_{t-1} + e_t
    - Independent random-walk pair (no cointegration)
    - Gaussian random walk, AR(1) and Ornstein-Uhlenbeck paths

Every function takes a seed and builds its own RandomState, so results do
not depend on global numpy state.

Author: Jose Orlando Bobadilla Fuentes, CQF, MSc AI
"""

import numpy as np
import pandas as pd
from typing import List, Tuple

from spread_analytics.analyzer import PricePoint


def generate_cointegrated_pair(n: int = 750, beta: float = 0.8,
                               phi: float = 0.92, spread_vol: float = 0.008,
                               trend_vol: float = 0.015, drift: float = 0.0003,
                               start: str = "2020-01-01",
                               seed: int = 42) -> Tuple[pd.Series, pd.Series]:
    """
    Two business-day price series sharing one stochastic trend.

    Parameters
    ----------
    n : int
        Number of observations.
    beta : float
        Loading of B on the common trend.
    phi : float
        AR(1) coefficient of the stationary residual (|phi| < 1).
    spread_vol, trend_vol, drift : float
        Innovation scales of the residual and the trend, and trend drift.

    Returns
    -------
    (pd.Series, pd.Series)
        Prices of A and B on a business-day index.
    """
    rng = np.random.RandomState(seed)
    dates = pd.bdate_range(start, periods=n)
    trend = np.cumsum(rng.normal(drift, trend_vol, n))
    spread = np.zeros(n)
    for t in range(1, n):
        spread[t] = phi * spread[t - 1] + rng.normal(0, spread_vol)
    pa = np.exp(trend + np.log(50))
    pb = np.exp(beta * trend + spread + np.log(40))
    return pd.Series(pa, index=dates, name="A"), pd.Series(pb, index=dates, name="B")


def generate_independent_pair(n: int = 500, start: str = "2020-01-01",
                              seed: int = 456) -> Tuple[pd.Series, pd.Series]:
    """Two unrelated geometric random walks."""
    rng = np.random.RandomState(seed)
    dates = pd.bdate_range(start, periods=n)
    pa = np.exp(np.cumsum(rng.normal(0.0003, 0.015, n)) + np.log(50))
    pb = np.exp(np.cumsum(rng.normal(0.0001, 0.018, n)) + np.log(40))
    return pd.Series(pa, index=dates, name="C"), pd.Series(pb, index=dates, name="D")


def generate_random_walk(n: int = 500, sigma: float = 1.0, seed: int = 0) -> np.ndarray:
    """Cumulative sum of i.i.d. N(0, sigma^2) shocks."""
    rng = np.random.RandomState(seed)
    return np.cumsum(rng.normal(0.0, sigma, n))


def generate_ar1(n: int = 500, phi: float = 0.5, sigma: float = 1.0,
                 seed: int = 0) -> np.ndarray:
    """x_t = phi * x_{t-1} + e_t, started at 0."""
    rng = np.random.RandomState(seed)
    eps = rng.normal(0.0, sigma, n)
    x = np.zeros(n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + eps[t]
    return x


def generate_ou_process(n: int = 2000, theta: float = 0.1, mu: float = 0.0,
                        sigma: float = 1.0, dt: float = 1.0, x0: float = 0.0,
                        seed: int = 0) -> np.ndarray:
    """
    Ornstein-Uhlenbeck path with the exact discretisation

        X_{t+dt} = mu + (X_t - mu) e^{-theta dt} + sigma_d Z,
        sigma_d  = sigma * sqrt((1 - e^{-2 theta dt}) / (2 theta))

    The true half-life in steps is ln(2) / (theta * dt).
    """
    rng = np.random.RandomState(seed)
    decay = np.exp(-theta * dt)
    sd = sigma * np.sqrt((1 - decay ** 2) / (2 * theta))
    x = np.empty(n)
    x[0] = x0
    z = rng.standard_normal(n)
    for t in range(1, n):
        x[t] = mu + (x[t - 1] - mu) * decay + sd * z[t]
    return x


def to_price_points(prices: pd.Series) -> List[PricePoint]:
    """Convert a date-indexed Series into PricePoint records."""
    return [PricePoint(date=pd.Timestamp(d).strftime("%Y-%m-%d"), close=float(v))
            for d, v in prices.items()]

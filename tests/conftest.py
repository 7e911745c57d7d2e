"""
conftest.py
-----------
Shared pytest fixtures: seeded synthetic price pairs and processes used by
several test modules.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pandas as pd
import pytest

from spread_analytics.data_generator import (
    generate_ar1, generate_cointegrated_pair, generate_random_walk,
)


@pytest.fixture(scope="session")
def linear_pair():
    """B is a random walk around 100; A = 10 + 1.5 B + AR(1) noise."""
    rng = np.random.RandomState(2024)
    T = 500
    dates = pd.bdate_range("2021-01-04", periods=T)
    b = 100.0 + np.cumsum(rng.normal(0.0, 1.0, T))
    noise = generate_ar1(T, phi=0.5, sigma=0.5, seed=7)
    a = 10.0 + 1.5 * b + noise
    return pd.Series(a, index=dates, name="A"), pd.Series(b, index=dates, name="B")


@pytest.fixture(scope="session")
def price_pair():
    return generate_cointegrated_pair(n=400, seed=123)


@pytest.fixture(scope="session")
def random_walk():
    return generate_random_walk(500, seed=11)


@pytest.fixture(scope="session")
def ar1_series():
    return generate_ar1(500, phi=0.5, seed=11)

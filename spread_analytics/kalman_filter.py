"""
Kalman Filter for Adaptive Hedge Ratio Estimation
==================================================

Treats the intercept and hedge ratio as a latent state that follows a
random walk, so the relationship between the two legs can drift over time
instead of being fixed by a single regression.

State-space formulation:
    State equation:       x_t = x_{t-1} + w_t,        w_t ~ N(0, Q)
    Observation equation: A_t = H_t x_t + v_t,        v_t ~ N(0, R)

where A_t is the dependent price, H_t = [1, B_t] and x_t = [alpha_t, beta_t].

The Kalman filter recursion:
    Predict: x_{t|t-1} = x_{t-1|t-1}
             P_{t|t-1} = P_{t-1|t-1} + Q
    Update:  S_t = H_t P_{t|t-1} H_t' + R
             K_t = P_{t|t-1} H_t' / S_t
             x_{t|t} = x_{t|t-1} + K_t (A_t - H_t x_{t|t-1})
             P_{t|t} = (I - K_t H_t) P_{t|t-1}

Initialisation uses an OLS fit over the first `initial_lookback` points;
those points are reported with the initial estimates and are not filtered.

References:
    Kalman (1960), Montana et al. (2009), Elliott et al. (2005)
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict

from spread_analytics.exceptions import InsufficientDataError, SingularMatrixError
from spread_analytics.regression import OLSRegression

logger = logging.getLogger(__name__)

MIN_MEASUREMENT_NOISE = 1e-8
MIN_INNOVATION_VARIANCE = 1e-10
MIN_COVARIANCE_DIAG = 1e-12
RESET_COVARIANCE = 0.01


@dataclass
class KalmanState:
    """Filter state [alpha, beta] and its 2x2 covariance."""
    x: np.ndarray
    P: np.ndarray


class KalmanHedgeRatio:
    """
    Kalman filter for time-varying hedge ratio estimation.

    Parameters
    ----------
    process_noise : float
        Diagonal of Q. Larger values let alpha and beta move faster
        (default 1e-4).
    measurement_noise : float
        Observation noise variance R. Values <= 0 mean "estimate R as the
        residual variance of the initial OLS fit" (default 0.0).
    initial_lookback : int
        Points used for the initial OLS and left unfiltered (default 60).
    initial_covariance : float
        Diagonal of P0 (default 1000, an uninformative prior).
    """

    def __init__(self, process_noise: float = 1e-4,
                 measurement_noise: float = 0.0,
                 initial_lookback: int = 60,
                 initial_covariance: float = 1000.0):
        self.q = process_noise
        self.measurement_noise = measurement_noise
        self.initial_lookback = initial_lookback
        self.p0 = initial_covariance
        self.R = None
        self.initial_alpha = None
        self.initial_beta = None

    def _initialise(self, a: np.ndarray, b: np.ndarray):
        """OLS over the initial block -> (alpha0, beta0, R)."""
        L = self.initial_lookback
        X = np.column_stack([np.ones(L), b[:L]])
        try:
            fit = OLSRegression().fit(a[:L], X)
            alpha0, beta0 = fit.coefficients
            resid_var = fit.ssr / max(1, L - 2)
        except SingularMatrixError:
            # flat B over the initial block: fall back to a unit hedge
            beta0 = 1.0
            alpha0 = a[:L].mean() - b[:L].mean()
            resid = a[:L] - (alpha0 + beta0 * b[:L])
            resid_var = float(resid @ resid) / max(1, L - 2)
            logger.warning("Initial Kalman OLS singular; using beta0=1.0")

        if self.measurement_noise and self.measurement_noise > 0:
            R = self.measurement_noise
        else:
            R = resid_var
        R = max(R, MIN_MEASUREMENT_NOISE)
        return float(alpha0), float(beta0), float(R)

    def filter(self, prices_a, prices_b) -> Dict:
        """
        Run one forward pass of the filter.

        Parameters
        ----------
        prices_a : array-like
            Dependent price series (stock A).
        prices_b : array-like
            Independent price series (stock B), aligned with prices_a.

        Returns
        -------
        dict
            alphas, hedge_ratios, spreads, innovations (np.ndarray, length n),
            kalman_gains (n x 2), final_alpha, final_hedge_ratio,
            initial_alpha, initial_hedge_ratio, measurement_noise.
        """
        a = np.asarray(prices_a, dtype=np.float64)
        b = np.asarray(prices_b, dtype=np.float64)
        n = len(a)
        L = self.initial_lookback
        if n < L:
            raise InsufficientDataError(
                f"Kalman filter needs {L} points for initialisation, got {n}"
            )

        alpha0, beta0, R = self._initialise(a, b)
        self.initial_alpha, self.initial_beta, self.R = alpha0, beta0, R
        logger.debug("Kalman init: alpha=%.6f beta=%.6f R=%.6g Q=%.3g n=%d lookback=%d",
                     alpha0, beta0, R, self.q, n, L)

        state = KalmanState(
            x=np.array([alpha0, beta0]),
            P=np.eye(2) * self.p0,
        )
        Q = np.eye(2) * self.q
        I = np.eye(2)

        alphas = np.empty(n)
        betas = np.empty(n)
        innovations = np.zeros(n)
        gains = np.zeros((n, 2))

        alphas[:L] = alpha0
        betas[:L] = beta0

        for t in range(L, n):
            # Predict
            x_pred = state.x.copy()
            P_pred = state.P + Q

            # Observation vector H_t = [1, B_t]
            H = np.array([1.0, b[t]])

            # Innovation and its variance
            e_t = a[t] - H @ x_pred
            S = H @ P_pred @ H + R
            if S < MIN_INNOVATION_VARIANCE:
                logger.warning("Innovation variance %.3e too small at step %d", S, t)

            # Update
            K = P_pred @ H / S
            state.x = x_pred + K * e_t
            state.P = (I - np.outer(K, H)) @ P_pred

            if not np.all(np.isfinite(state.x)):
                logger.warning("Kalman state non-finite at step %d; reset to OLS values", t)
                state.x = np.array([alpha0, beta0])
            if (not np.all(np.isfinite(state.P))
                    or state.P[0, 0] < MIN_COVARIANCE_DIAG
                    or state.P[1, 1] < MIN_COVARIANCE_DIAG):
                logger.warning("Kalman covariance collapsing at step %d; reset", t)
                state.P = np.eye(2) * RESET_COVARIANCE

            alphas[t], betas[t] = state.x
            innovations[t] = e_t
            gains[t] = K

        spreads = a - (alphas + betas * b)

        return {
            "alphas": alphas,
            "hedge_ratios": betas,
            "spreads": spreads,
            "innovations": innovations,
            "kalman_gains": gains,
            "final_alpha": float(alphas[-1]),
            "final_hedge_ratio": float(betas[-1]),
            "initial_alpha": alpha0,
            "initial_hedge_ratio": beta0,
            "measurement_noise": R,
        }

"""
Z-Score Spread Backtest
=======================

Replays the z-score of an AnalysisResult bar by bar and trades the spread
one position at a time.

Entry (only when flat), on a threshold crossing:
    Long spread:   z_{t-1} > -z_entry  and  z_t <= -z_entry
    Short spread:  z_{t-1} < +z_entry  and  z_t >= +z_entry

Exit, checked in priority order on every bar after entry:
    1. Stop loss:    ROI_t <= stop_loss_pct
    2. Target hit:   ROI_t >= target_profit_pct
    3. Time stop:    bars held >= time_stop
    4. Z-score exit: long  z_{t-1} < -z_exit and z_t >= -z_exit
                     short z_{t-1} > +z_exit and z_t <= +z_exit

Position sizing (sign = +1 long, -1 short):
    hedged          P&L = sign * [(A_t - A_0) - h_0 (B_t - B_0)]
                    capital = A_0 + |h_0| B_0
    value_neutral   q_A = floor(C/2 / A_0), q_B = floor(C/2 / B_0)
                    P&L = sign * [q_A (A_t - A_0) - q_B (B_t - B_0)]
                    capital = C
    spread          P&L = sign * (S_t - S_0),  capital = C

    ROI_t = 100 * P&L_t / capital

"auto" picks value_neutral for the ratio and Euclidean models, hedged for
rolling OLS and spread for the Kalman model, whose hedge ratio moves
while the trade is open.

Holding periods and the time stop count bars (aligned trading days), not
calendar days. A position still open on the last bar is reported through
`open_position` and left out of the trade log.

Author: Jose Orlando Bobadilla Fuentes, CQF, MSc AI
"""

import logging
import numpy as np
import pandas as pd
from enum import Enum
from typing import Dict, Optional

from spread_analytics.analyzer import AnalysisResult
from spread_analytics.config import (
    AnalysisConfig, BacktestConfig, ModelType, validate_backtest,
)
from spread_analytics.exceptions import InvalidParameterError
from spread_analytics.utils import timeit

logger = logging.getLogger(__name__)

TRADING_DAYS = 252

TRADE_COLUMNS = [
    "entry_date", "exit_date", "direction", "holding_period",
    "entry_zscore", "exit_zscore", "entry_spread", "exit_spread",
    "entry_hedge_ratio", "exit_hedge_ratio", "hedge_ratio_change",
    "entry_price_a", "exit_price_a", "entry_price_b", "exit_price_b",
    "shares_a", "shares_b", "capital", "pnl", "roi", "exit_reason",
]

_AUTO_SIZING = {
    ModelType.RATIO: "value_neutral",
    ModelType.OLS: "hedged",
    ModelType.KALMAN: "spread",
    ModelType.EUCLIDEAN: "value_neutral",
}


class ExitReason(str, Enum):
    STOP_LOSS = "stop_loss"
    TARGET_HIT = "target_hit"
    TIME_STOP = "time_stop"
    ZSCORE_EXIT = "zscore_exit"


def _max_streak(flags: pd.Series) -> int:
    """Longest run of True values."""
    if not flags.any():
        return 0
    runs = (flags != flags.shift()).cumsum()
    return int(flags.groupby(runs).sum().max())


def _side_stats(pnl: pd.Series) -> Dict[str, float]:
    wins = pnl[pnl > 0]
    losses = pnl[pnl <= 0]
    return {
        "trades": len(pnl),
        "win_rate": len(wins) / len(pnl) if len(pnl) else 0.0,
        "avg_win": float(wins.mean()) if len(wins) else 0.0,
        "avg_loss": float(losses.mean()) if len(losses) else 0.0,
    }


class SpreadBacktester:
    """
    Single-pair z-score backtest over an analysed spread.

    Parameters
    ----------
    entry_threshold : float
        |z| level whose crossing opens a position (default 2.0).
    exit_threshold : float
        |z| level whose crossing back toward zero closes it (default 0.5).
    capital_per_trade : float
        Notional for value_neutral and spread sizing.
    stop_loss_pct : float
        Trade ROI (percent, negative) that forces an exit.
    target_profit_pct : float
        Trade ROI (percent) that takes profit.
    time_stop : int
        Maximum bars a position may stay open.
    risk_free_rate : float
        Annual rate subtracted in the per-trade Sharpe ratio.
    sizing : str
        'auto', 'hedged', 'value_neutral' or 'spread'.

    Example
    -------
    >>> result = PairAnalyzer().analyze(prices_a, prices_b, "ols")
    >>> bt = SpreadBacktester()
    >>> trades = bt.run(result)
    >>> bt.performance_summary()["Profit Factor"]
    """

    def __init__(self, entry_threshold: float = 2.0,
                 exit_threshold: float = 0.5,
                 capital_per_trade: float = 100_000.0,
                 stop_loss_pct: float = -10.0,
                 target_profit_pct: float = 10.0,
                 time_stop: int = 15,
                 risk_free_rate: float = 0.02,
                 sizing: str = "auto"):
        if entry_threshold <= 0 or not 0 <= exit_threshold <= entry_threshold:
            raise InvalidParameterError(
                f"thresholds entry={entry_threshold}, exit={exit_threshold}"
            )
        validate_backtest(BacktestConfig(
            capital_per_trade=capital_per_trade,
            stop_loss_pct=stop_loss_pct,
            target_profit_pct=target_profit_pct,
            time_stop=time_stop,
            risk_free_rate=risk_free_rate,
            sizing=sizing,
        ))
        self.z_entry = entry_threshold
        self.z_exit = exit_threshold
        self.capital = capital_per_trade
        self.stop_loss = stop_loss_pct
        self.target = target_profit_pct
        self.time_stop = time_stop
        self.rf = risk_free_rate
        self.sizing = sizing

        self.trades = None
        self.equity_curve = None
        self.open_position = None
        self.model_type = None
        self.sizing_used = None

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> "SpreadBacktester":
        bt = config.backtest
        return cls(
            entry_threshold=config.thresholds.entry,
            exit_threshold=config.thresholds.exit,
            capital_per_trade=bt.capital_per_trade,
            stop_loss_pct=bt.stop_loss_pct,
            target_profit_pct=bt.target_profit_pct,
            time_stop=bt.time_stop,
            risk_free_rate=bt.risk_free_rate,
            sizing=bt.sizing,
        )

    def _resolve_sizing(self, result: AnalysisResult) -> str:
        sizing = _AUTO_SIZING[result.model_type] if self.sizing == "auto" else self.sizing
        if sizing == "hedged" and result.hedge_ratios is None:
            raise InvalidParameterError(
                f"hedged sizing needs a hedge ratio; the {result.model_type.value} "
                f"model has none"
            )
        return sizing

    @staticmethod
    def _hedge_at(result: AnalysisResult, i: int) -> float:
        """Model hedge ratio, or the dollar-neutral ratio A/B without one."""
        if result.hedge_ratios is not None:
            return float(result.hedge_ratios[i])
        return float(result.prices_a[i] / result.prices_b[i])

    def _open(self, result: AnalysisResult, i: int, direction: str,
              sizing: str) -> Dict:
        a0 = float(result.prices_a[i])
        b0 = float(result.prices_b[i])
        h0 = self._hedge_at(result, i)
        if sizing == "hedged":
            shares_a, shares_b, capital = 1.0, h0, a0 + abs(h0) * b0
        elif sizing == "value_neutral":
            leg = self.capital / 2.0
            shares_a, shares_b = float(np.floor(leg / a0)), float(np.floor(leg / b0))
            capital = self.capital
        else:
            shares_a, shares_b, capital = 0.0, 0.0, self.capital
        return {
            "entry_index": i,
            "direction": direction,
            "sign": 1.0 if direction == "long" else -1.0,
            "entry_zscore": float(result.zscores[i]),
            "entry_spread": float(result.spread[i]),
            "entry_hedge_ratio": h0,
            "entry_price_a": a0,
            "entry_price_b": b0,
            "shares_a": shares_a,
            "shares_b": shares_b,
            "capital": capital,
        }

    @staticmethod
    def _pnl(result: AnalysisResult, pos: Dict, i: int, sizing: str) -> float:
        if sizing == "spread":
            move = result.spread[i] - pos["entry_spread"]
        else:
            move = (pos["shares_a"] * (result.prices_a[i] - pos["entry_price_a"])
                    - pos["shares_b"] * (result.prices_b[i] - pos["entry_price_b"]))
        return float(pos["sign"] * move)

    def _exit_reason(self, pos: Dict, roi: float, held: int,
                     prev_z: float, curr_z: float) -> Optional[ExitReason]:
        if roi <= self.stop_loss:
            return ExitReason.STOP_LOSS
        if roi >= self.target:
            return ExitReason.TARGET_HIT
        if held >= self.time_stop:
            return ExitReason.TIME_STOP
        if pos["direction"] == "long":
            reverted = prev_z < -self.z_exit and curr_z >= -self.z_exit
        else:
            reverted = prev_z > self.z_exit and curr_z <= self.z_exit
        return ExitReason.ZSCORE_EXIT if reverted else None

    @timeit
    def run(self, result: AnalysisResult) -> pd.DataFrame:
        """
        Execute the backtest on one analysis result.

        Trading starts once the z-score window is full: from bar
        max(window, warmup + 1), so the first crossing compares two
        real z-scores.

        Parameters
        ----------
        result : AnalysisResult
            Output of PairAnalyzer.analyze().

        Returns
        -------
        pd.DataFrame
            One row per closed trade, columns TRADE_COLUMNS.
        """
        sizing = self._resolve_sizing(result)
        out = result.output
        z = result.zscores
        dates = result.dates
        n = len(z)
        start = min(max(out.window, out.warmup + 1), n)

        trades = []
        equity = np.zeros(n - start)
        cum_pnl = 0.0
        pos = None

        for i in range(start, n):
            prev_z, curr_z = z[i - 1], z[i]

            if pos is None:
                if prev_z > -self.z_entry and curr_z <= -self.z_entry:
                    pos = self._open(result, i, "long", sizing)
                elif prev_z < self.z_entry and curr_z >= self.z_entry:
                    pos = self._open(result, i, "short", sizing)
            else:
                pnl = self._pnl(result, pos, i, sizing)
                roi = 100.0 * pnl / pos["capital"] if pos["capital"] > 0 else 0.0
                held = i - pos["entry_index"]
                reason = self._exit_reason(pos, roi, held, prev_z, curr_z)
                if reason is not None:
                    h1 = self._hedge_at(result, i)
                    h0 = pos["entry_hedge_ratio"]
                    trades.append({
                        "entry_date": dates[pos["entry_index"]],
                        "exit_date": dates[i],
                        "direction": pos["direction"],
                        "holding_period": held,
                        "entry_zscore": pos["entry_zscore"],
                        "exit_zscore": float(curr_z),
                        "entry_spread": pos["entry_spread"],
                        "exit_spread": float(result.spread[i]),
                        "entry_hedge_ratio": h0,
                        "exit_hedge_ratio": h1,
                        "hedge_ratio_change": 100.0 * (h1 - h0) / h0 if h0 != 0 else 0.0,
                        "entry_price_a": pos["entry_price_a"],
                        "exit_price_a": float(result.prices_a[i]),
                        "entry_price_b": pos["entry_price_b"],
                        "exit_price_b": float(result.prices_b[i]),
                        "shares_a": pos["shares_a"],
                        "shares_b": pos["shares_b"],
                        "capital": pos["capital"],
                        "pnl": pnl,
                        "roi": roi,
                        "exit_reason": reason.value,
                    })
                    cum_pnl += pnl
                    pos = None

            equity[i - start] = cum_pnl

        self.trades = pd.DataFrame(trades, columns=TRADE_COLUMNS)
        self.equity_curve = pd.Series(equity, index=dates[start:].rename("date"),
                                      name="cumulative_pnl")
        self.model_type = result.model_type
        self.sizing_used = sizing

        self.open_position = None
        if pos is not None:
            self.open_position = {
                "entry_date": dates[pos["entry_index"]],
                "direction": pos["direction"],
                "entry_zscore": pos["entry_zscore"],
                "unrealized_pnl": self._pnl(result, pos, n - 1, sizing),
            }
            logger.info("Position opened %s still open at the last bar",
                        self.open_position["entry_date"])

        logger.info("Backtest %s (%s sizing): %d trades, total P&L %.2f",
                    result.model_type.value, sizing, len(self.trades), cum_pnl)
        return self.trades

    def performance_summary(self) -> Dict:
        """
        Trade-level performance metrics.

        Win rates are fractions; a trade with P&L <= 0 counts as a loss.
        Profit factor is gross profit / gross loss (inf with no losing
        trade and some profit). Max drawdown is the largest fall of
        cumulative P&L from its running peak, the peak starting at 0.
        The Sharpe ratio annualises per-trade returns (ROI / 100) by
        252 / average holding period, with the population std.

        Returns
        -------
        dict
        """
        if self.trades is None:
            return {"error": "No backtest results available."}
        if self.trades.empty:
            return {"error": "No trades generated."}

        t = self.trades
        pnl = t["pnl"]
        wins = pnl[pnl > 0]
        losses = pnl[pnl <= 0]

        gross_profit = float(wins.sum())
        gross_loss = abs(float(losses.sum()))
        if gross_loss > 0:
            profit_factor = gross_profit / gross_loss
        else:
            profit_factor = np.inf if gross_profit > 0 else 0.0

        win_rate = len(wins) / len(pnl)
        avg_win = gross_profit / len(wins) if len(wins) else 0.0
        avg_loss = gross_loss / len(losses) if len(losses) else 0.0
        if avg_loss > 0:
            win_loss_ratio = avg_win / avg_loss
        else:
            win_loss_ratio = np.inf if avg_win > 0 else 0.0
        expectancy = win_rate * avg_win - (1.0 - win_rate) * avg_loss

        returns = t["roi"] / 100.0
        avg_hold = float(t["holding_period"].mean())
        periods = TRADING_DAYS / avg_hold
        ret_std = float(returns.std(ddof=0))
        if ret_std > 0:
            sharpe = (returns.mean() * periods - self.rf) / (ret_std * np.sqrt(periods))
        else:
            sharpe = 0.0

        cum = pnl.cumsum()
        peak = cum.cummax().clip(lower=0.0)
        max_dd = max(float((peak - cum).max()), 0.0)

        long_side = _side_stats(pnl[t["direction"] == "long"])
        short_side = _side_stats(pnl[t["direction"] == "short"])

        return {
            "Total Trades": len(t),
            "Total P&L": float(pnl.sum()),
            "Win Rate": win_rate,
            "Avg Win": avg_win,
            "Avg Loss": avg_loss,
            "Win/Loss Ratio": win_loss_ratio,
            "Profit Factor": profit_factor,
            "Expectancy": expectancy,
            "Sharpe Ratio": float(sharpe),
            "Max Drawdown": max_dd,
            "Best Trade": float(pnl.max()),
            "Worst Trade": float(pnl.min()),
            "Max Consecutive Wins": _max_streak(pnl > 0),
            "Max Consecutive Losses": _max_streak(pnl <= 0),
            "Avg Holding Period": avg_hold,
            "Long Trades": long_side["trades"],
            "Short Trades": short_side["trades"],
            "Long Win Rate": long_side["win_rate"],
            "Short Win Rate": short_side["win_rate"],
            "Avg Long Win": long_side["avg_win"],
            "Avg Long Loss": long_side["avg_loss"],
            "Avg Short Win": short_side["avg_win"],
            "Avg Short Loss": short_side["avg_loss"],
            "Exit Reasons": t["exit_reason"].value_counts().to_dict(),
        }

    def get_summary(self) -> str:
        """Return formatted backtest summary."""
        perf = self.performance_summary()
        if "error" in perf:
            return perf["error"]
        lines = [
            "=" * 60,
            f"SPREAD BACKTEST: {self.model_type.value.upper()} MODEL "
            f"({self.sizing_used} sizing)",
            "=" * 60,
            f"Trades:             {perf['Total Trades']} "
            f"({perf['Long Trades']} long, {perf['Short Trades']} short)",
            f"Total P&L:          {perf['Total P&L']:.2f}",
            f"Win rate:           {perf['Win Rate']:.1%}",
            f"Profit factor:      {perf['Profit Factor']:.2f}",
            f"Expectancy:         {perf['Expectancy']:.2f}",
            f"Sharpe ratio:       {perf['Sharpe Ratio']:.2f}",
            f"Max drawdown:       {perf['Max Drawdown']:.2f}",
            f"Best / worst:       {perf['Best Trade']:.2f} / {perf['Worst Trade']:.2f}",
            f"Avg holding:        {perf['Avg Holding Period']:.1f} bars",
            "-" * 60,
        ]
        for reason, count in sorted(perf["Exit Reasons"].items()):
            lines.append(f"{reason + ':':<20}{count}")
        lines.append("=" * 60)
        return "\n".join(lines)

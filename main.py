"""
Main Pipeline: Pair Spread Analytics
====================================

Runs the full analysis on synthetic data:
    1. Generate a cointegrated pair and an independent pair
    2. Analyze both with all four spread models
    3. Compare ADF verdicts, half-lives and trade-cycle statistics
    4. Backtest the z-score strategy on every model of the cointegrated pair
    5. Export the per-date table and trade log of the Kalman model

Author: Jose Orlando Bobadilla Fuentes, CQF, MSc AI
"""

import os
import sys

# Ensure project root is in path
PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_DIR)

from spread_analytics.analyzer import PairAnalyzer
from spread_analytics.backtesting import SpreadBacktester
from spread_analytics.config import AnalysisConfig, ModelType
from spread_analytics.data_generator import (
    generate_cointegrated_pair, generate_independent_pair, to_price_points,
)
from spread_analytics.utils import get_logger


def main():
    """Run the pair analytics demo pipeline."""
    config = AnalysisConfig()
    get_logger("spread_analytics", level=config.log_level)

    print("=" * 60)
    print("  PAIR SPREAD ANALYTICS")
    print("  Jose Orlando Bobadilla Fuentes, CQF, MSc AI")
    print("=" * 60)

    # --- Step 1: Data Generation ---
    print("\n[1/5] Generating synthetic price pairs (3Y daily)...")
    coint_a, coint_b = generate_cointegrated_pair(n=750, seed=123)
    indep_a, indep_b = generate_independent_pair(n=750, seed=456)
    print(f"       Date range: {coint_a.index[0].date()} to {coint_a.index[-1].date()}")

    analyzer = PairAnalyzer(config)

    # --- Step 2: All models on both pairs ---
    print("\n[2/5] Analyzing pairs with every spread model...")
    pairs = {
        "cointegrated": (to_price_points(coint_a), to_price_points(coint_b)),
        "independent": (indep_a, indep_b),
    }
    results = {name: analyzer.analyze_all(a, b) for name, (a, b) in pairs.items()}

    # --- Step 3: Comparison ---
    print("\n[3/5] Model comparison")
    header = f"  {'pair':<13}{'model':<11}{'ADF':>8}{'p':>8}{'HL':>8}{'Hurst':>8}{'cycle':>8}"
    print(header)
    print("  " + "-" * (len(header) - 2))
    for name, by_model in results.items():
        for mtype, res in by_model.items():
            print(f"  {name:<13}{mtype.value:<11}"
                  f"{res.adf.test_statistic:>8.3f}{res.adf.p_value:>8.3f}"
                  f"{res.half_life.half_life:>8.2f}{res.hurst_exponent:>8.3f}"
                  f"{res.trade_cycles.trade_cycle_length:>8.2f}")

    kalman = results["cointegrated"][ModelType.KALMAN]
    print()
    print(kalman.get_summary())

    # --- Step 4: Backtest ---
    print("\n[4/5] Backtesting the cointegrated pair...")
    backtests = {}
    for mtype, res in results["cointegrated"].items():
        bt = SpreadBacktester.from_config(config)
        bt.run(res)
        backtests[mtype] = bt
        perf = bt.performance_summary()
        if "error" in perf:
            print(f"       {mtype.value:<11}{perf['error']}")
        else:
            print(f"       {mtype.value:<11}{perf['Total Trades']:>4} trades  "
                  f"P&L {perf['Total P&L']:>12.2f}  win {perf['Win Rate']:>6.1%}")
    print()
    print(backtests[ModelType.KALMAN].get_summary())

    # --- Step 5: Export ---
    print("\n[5/5] Exporting Kalman per-date table and trade log...")
    out_dir = os.path.join(PROJECT_DIR, "output")
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, "kalman_analysis.csv")
    kalman.to_frame().to_csv(path)
    print(f"       Saved {path}")
    trades_path = os.path.join(out_dir, "kalman_trades.csv")
    backtests[ModelType.KALMAN].trades.to_csv(trades_path, index=False)
    print(f"       Saved {trades_path}")

    print("\n" + "=" * 60)
    print("  PIPELINE COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    main()

"""
Factor Model Monte Carlo Engine — Main Orchestrator
===================================================
Entry point for the FMMC estimation pipeline.

Execution Flow:
    1. Fetch / load factor and asset prices (or synthetic panel)
    2. Resample to month-end and compute log returns, keeping unequal histories
    3. Build FMMC objects per asset
    4. Point estimates on simulated returns
    5. Bootstrap standard errors
    6. Visualization
    7. Results export
"""

import sys
import json
import argparse
import warnings
import pandas as pd
from pathlib import Path

# ─────────────────────────────────────────────────────────────
# Add project root to path
# ─────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))

from fmmc.batch import fmmc, fmmc_estimate_se
from fmmc.config import DEFAULT_SE_NBOOT, DEFAULT_SEED
from fmmc.data import (
    DEFAULT_ASSET_TICKERS,
    DEFAULT_FACTOR_TICKERS,
    align_to_factors,
    compute_log_returns,
    fetch_data,
    history_lengths,
    load_data,
    simulate_factor_panel,
    to_monthly,
)
from fmmc.errors import FmmcWarning
from fmmc.estimators import (
    RISK_SUMMARY_LABELS,
    make_estimator,
    risk_summary,
    sharpe_ratio,
)
from fmmc.visualization import (
    plot_estimates_with_se,
    plot_factor_correlation,
    plot_simulated_vs_observed,
)

# ─────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────
DATA_DIR = PROJECT_ROOT / "data"
FACTOR_PATH = DATA_DIR / "factor_prices.csv"
ASSET_PATH = DATA_DIR / "asset_prices.csv"
RESULTS_DIR = PROJECT_ROOT / "results"
FIGURES_DIR = RESULTS_DIR / "figures"
TABLES_DIR = RESULTS_DIR / "tables"

PERIODS_PER_YEAR = 12
ANNUALIZED_SHARPE = make_estimator(sharpe_ratio, periods_per_year=PERIODS_PER_YEAR)


def print_header(text: str) -> None:
    """Print formatted section header."""
    width = 60
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width)


def print_table(table: pd.DataFrame) -> None:
    print(table.to_string(float_format=lambda x: f"{x:.6f}"))


def load_market_data():
    """Cached CSVs if present, otherwise download via yfinance."""
    if FACTOR_PATH.exists() and ASSET_PATH.exists():
        print(f"  Loading cached data from {DATA_DIR}")
        factor_prices = load_data(str(FACTOR_PATH))
        asset_prices = load_data(str(ASSET_PATH))
    else:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        print(f"  Fetching factor proxies: {DEFAULT_FACTOR_TICKERS}")
        factor_prices = fetch_data(DEFAULT_FACTOR_TICKERS, save_path=str(FACTOR_PATH))
        print(f"  Fetching assets:         {DEFAULT_ASSET_TICKERS}")
        asset_prices = fetch_data(DEFAULT_ASSET_TICKERS, save_path=str(ASSET_PATH))

    asset_returns, factor_returns = align_to_factors(
        compute_log_returns(to_monthly(asset_prices)),
        compute_log_returns(to_monthly(factor_prices)),
    )
    # Assets must start no earlier than the factor history
    asset_returns = asset_returns.loc[:, asset_returns.notna().any()]
    return asset_returns, factor_returns


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Factor Model Monte Carlo engine")
    parser.add_argument("--synthetic", action="store_true",
                        help="use a synthetic factor panel instead of market data")
    parser.add_argument("--nboot", type=int, default=DEFAULT_SE_NBOOT)
    parser.add_argument("--fit-method", default="LS", choices=["LS", "DLS", "Robust"])
    parser.add_argument("--variable-selection", default="subsets")
    parser.add_argument("--parallel", action="store_true")
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--no-plots", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Execute the complete FMMC pipeline."""
    args = parse_args(argv)

    print("\n" + "╔" + "═" * 58 + "╗")
    print("║   FACTOR MODEL MONTE CARLO ENGINE                       ║")
    print("║   Estimates & Standard Errors for Unequal Histories     ║")
    print("╚" + "═" * 58 + "╝")

    # ── PHASE 1: Data ─────────────────────────────────────────
    print_header("PHASE 1 — DATA ACQUISITION")

    if args.synthetic:
        print("  Generating synthetic panel (200 obs, 5 factors, 3 assets)")
        asset_returns, factor_returns, _ = simulate_factor_panel(
            n_obs=200, n_factors=5, n_assets=3, missing=[0, 20, 80], seed=args.seed
        )
    else:
        asset_returns, factor_returns = load_market_data()

    print(f"\n  Factors:       {list(factor_returns.columns)}")
    print(f"  Assets:        {list(asset_returns.columns)}")
    print(f"  Observations:  {len(factor_returns)}")
    print("\n  Available history per asset:")
    print(history_lengths(asset_returns).to_string())

    # ── PHASE 2: FMMC objects ─────────────────────────────────
    print_header("PHASE 2 — FMMC JOINT DISTRIBUTIONS")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", FmmcWarning)
        objs = fmmc(
            asset_returns,
            factor_returns,
            parallel=args.parallel,
            n_workers=args.workers,
            fit_method=args.fit_method,
            variable_selection=args.variable_selection,
        )
    for w in caught:
        print(f"  [WARN] {w.message}")

    for obj in objs:
        print(f"  {obj.asset:<8} factors={obj.factor_names} "
              f"alpha={obj.alpha:.6f} joint_rows={len(obj.bootdist.returns):,}")

    dropped = set(asset_returns.columns) - {obj.asset for obj in objs}
    if dropped:
        print(f"  Dropped assets: {sorted(dropped)}")

    # ── PHASE 3: Estimates & standard errors ──────────────────
    print_header("PHASE 3 — ESTIMATES & BOOTSTRAP STANDARD ERRORS")
    print(f"  Bootstrap replicates per asset: {args.nboot}")

    # One bootstrap run covers every statistic of the vector estimator
    summary = fmmc_estimate_se(
        objs, risk_summary, se=True, n_boot=args.nboot,
        parallel=args.parallel, n_workers=args.workers, seed=args.seed,
    )
    tables = {}
    for i, label in enumerate(RISK_SUMMARY_LABELS):
        tables[label] = summary[[f"estimate_{i}", f"se_{i}"]].set_axis(
            ["estimate", "se"], axis=1
        )

    print("\n  ┌─ sharpe (annualized) ──────────────────────────┐")
    tables["sharpe"] = fmmc_estimate_se(
        objs, ANNUALIZED_SHARPE, se=True, n_boot=args.nboot,
        parallel=args.parallel, n_workers=args.workers, seed=args.seed,
    )
    print_table(tables["sharpe"])

    for label in RISK_SUMMARY_LABELS:
        print(f"\n  ┌─ {label} ─────────────────────────────────────┐")
        print_table(tables[label])

    # ── PHASE 4: Visualization ────────────────────────────────
    if not args.no_plots:
        print_header("PHASE 4 — GENERATING VISUALIZATIONS")
        fig_dir = str(FIGURES_DIR)
        for label, table in tables.items():
            path = plot_estimates_with_se(
                table, title=f"FMMC {label} (±1 SE)", name=f"fmmc_{label}",
                output_dir=fig_dir,
            )
            print(f"  ✓ {path}")
        for obj in objs:
            print(f"  ✓ {plot_simulated_vs_observed(obj, output_dir=fig_dir)}")
        print(f"  ✓ {plot_factor_correlation(factor_returns, output_dir=fig_dir)}")

    # ── Results export ────────────────────────────────────────
    TABLES_DIR.mkdir(parents=True, exist_ok=True)
    combined = pd.concat(tables, axis=1)
    combined.to_csv(TABLES_DIR / "fmmc_estimates.csv")

    all_results = {
        "config": {
            "nboot": args.nboot,
            "fit_method": args.fit_method,
            "variable_selection": args.variable_selection,
            "seed": args.seed,
        },
        "assets": {
            obj.asset: {
                "alpha": obj.alpha,
                "beta": obj.beta.to_dict(),
                "history_length": int(obj.data.R.notna().sum()),
            }
            for obj in objs
        },
        "estimates": {label: table.to_dict(orient="index") for label, table in tables.items()},
    }

    results_path = TABLES_DIR / "full_results.json"
    with open(results_path, "w") as f:
        json.dump(all_results, f, indent=2, default=str)

    print(f"\n  Results saved to: {results_path}")

    print("\n" + "╔" + "═" * 58 + "╗")
    print("║   FMMC ENGINE EXECUTION COMPLETE                        ║")
    print("╚" + "═" * 58 + "╝\n")


if __name__ == "__main__":
    main()

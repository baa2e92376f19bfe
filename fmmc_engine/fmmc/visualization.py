"""
Visualization Module
====================
Static charts for FMMC estimate reporting.

Generated Figures:
    1. Estimates with ±1 bootstrap standard error
    2. Simulated FMMC returns vs observed short history
    3. Factor correlation heatmap
"""

import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import seaborn as sns
from pathlib import Path

from fmmc.types import FmmcObject


# ─────────────────────────────────────────────────────────────
# Style Configuration
# ─────────────────────────────────────────────────────────────
plt.rcParams.update({
    "figure.figsize": (12, 7),
    "figure.dpi": 150,
    "font.size": 11,
    "font.family": "serif",
    "axes.grid": True,
    "grid.alpha": 0.3,
    "axes.spines.top": False,
    "axes.spines.right": False,
})

COLORS = {
    "primary": "#1f77b4",
    "observed": "#ff7f0e",
    "error": "#d62728",
}


def save_figure(fig: plt.Figure, name: str, output_dir: str = "results/figures") -> str:
    """Save figure to disk and return the path."""
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)
    filepath = path / f"{name}.png"
    fig.savefig(filepath, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return str(filepath)


def plot_estimates_with_se(
    table: pd.DataFrame,
    title: str = "FMMC Estimates (±1 Bootstrap SE)",
    name: str = "fmmc_estimates",
    output_dir: str = "results/figures",
) -> str:
    """
    Bar chart of per-asset estimates with standard-error bars.

    Parameters
    ----------
    table : pd.DataFrame
        Output of `fmmc_estimate_se` with "estimate" and optional "se".
    title : str
        Plot title.
    name : str
        File name stem.
    output_dir : str
        Output directory.

    Returns
    -------
    str
        Path to saved figure.
    """
    fig, ax = plt.subplots(figsize=(12, 7))

    x = np.arange(len(table))
    yerr = table["se"].values if "se" in table.columns else None

    ax.bar(x, table["estimate"].values, color=COLORS["primary"], alpha=0.8,
           yerr=yerr, capsize=6, ecolor=COLORS["error"], label="Estimate")

    ax.set_xticks(x)
    ax.set_xticklabels([str(a) for a in table.index], fontsize=11)
    ax.set_xlabel("Asset", fontsize=12)
    ax.set_ylabel("Estimate", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=11)

    return save_figure(fig, name, output_dir)


def plot_simulated_vs_observed(
    obj: FmmcObject,
    output_dir: str = "results/figures",
) -> str:
    """
    Overlay the FMMC simulated return density on the observed returns.

    Parameters
    ----------
    obj : FmmcObject
        FMMC object for one asset.
    output_dir : str
        Output directory.

    Returns
    -------
    str
        Path to saved figure.
    """
    fig, ax = plt.subplots(figsize=(14, 7))

    simulated = obj.bootdist.returns.values
    observed = obj.data.R.dropna().values

    ax.hist(simulated, bins=200, density=True, color=COLORS["primary"],
            alpha=0.6, edgecolor="none",
            label=f"FMMC simulated (n={len(simulated):,})")
    ax.hist(observed, bins=50, density=True, histtype="step", linewidth=2,
            color=COLORS["observed"], label=f"Observed (n={len(observed):,})")

    ax.set_xlabel("Return", fontsize=12)
    ax.set_ylabel("Density", fontsize=12)
    ax.set_title(f"{obj.asset}: FMMC Simulated vs Observed Returns",
                 fontsize=14, fontweight="bold")
    ax.legend(fontsize=11)
    ax.xaxis.set_major_formatter(mtick.PercentFormatter(1.0))

    return save_figure(fig, f"simulated_vs_observed_{obj.asset}", output_dir)


def plot_factor_correlation(
    factors: pd.DataFrame,
    output_dir: str = "results/figures",
) -> str:
    """
    Plot the factor correlation matrix as an annotated heatmap.

    Parameters
    ----------
    factors : pd.DataFrame
        Factor returns.
    output_dir : str
        Output directory.

    Returns
    -------
    str
        Path to saved figure.
    """
    corr_matrix = factors.dropna().corr().values
    labels = list(factors.columns)

    fig, ax = plt.subplots(figsize=(9, 7))

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)

    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=True,
        fmt=".3f",
        cmap="RdYlBu_r",
        center=0,
        vmin=-1,
        vmax=1,
        square=True,
        linewidths=0.5,
        xticklabels=labels,
        yticklabels=labels,
        ax=ax,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
    )

    ax.set_title("Factor Correlation Matrix", fontsize=14, fontweight="bold")

    return save_figure(fig, "factor_correlation", output_dir)

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from .analysis import FitOutcome, ModelFitResult, residual_qq, successful_fits

AXIS_LABELS: Dict[str, str] = {
    "n_elements": "Number of co-occurring elements",
    "n_minerals": "Number of minerals",
    "n_localities": "Number of localities",
}


def _axis_label(column: str, transform: str) -> str:
    base = AXIS_LABELS.get(column, column)
    return f"log({base})" if transform == "log" else base


def plot_relationship(
    result: ModelFitResult,
    output_path: Path,
    log_axes: bool = False,
    annotate: bool = True,
):
    """Scatter of one relationship with its fitted line; log axes are display only."""
    output_path = Path(output_path)
    sns.set(style="whitegrid")
    fig, ax = plt.subplots(figsize=(6, 5))

    ax.scatter(result.x, result.y, s=30, color="#1f77b4", alpha=0.8)
    if annotate:
        for symbol, xv, yv in zip(result.symbols, result.x, result.y):
            ax.annotate(symbol, (xv, yv), fontsize=7, xytext=(2, 2), textcoords="offset points")

    grid = np.linspace(result.x.min(), result.x.max(), 100)
    ax.plot(
        grid,
        result.slope * grid + result.intercept,
        color="#d62728",
        label=f"{result.equation} (R² = {result.r_squared_rounded})",
    )
    if log_axes:
        ax.set_xscale("log")
        ax.set_yscale("log")
    ax.set_xlabel(_axis_label(result.predictor, result.predictor_transform))
    ax.set_ylabel(_axis_label(result.response, result.response_transform))
    ax.set_title(result.label)
    ax.legend()
    fig.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300)
    plt.close(fig)


def _draw_qq(ax, result: ModelFitResult):
    qq, r = residual_qq(result)
    ax.scatter(qq["theoretical_quantile"], qq["residual_quantile"], s=15, color="#1f77b4")
    lo, hi = qq["theoretical_quantile"].min(), qq["theoretical_quantile"].max()
    scale = np.std(result.residuals, ddof=1)
    ax.plot([lo, hi], [lo * scale, hi * scale], linestyle="--", color="gray")
    ax.set_title(f"{result.label}\nprobplot r = {r:.3f}", fontsize=9)
    ax.set_xlabel("Theoretical quantiles")
    ax.set_ylabel("Ordered residuals")


def plot_residual_qq(result: ModelFitResult, output_path: Path):
    """Normal Q-Q plot of one fit's residuals."""
    output_path = Path(output_path)
    fig, ax = plt.subplots(figsize=(5, 5))
    _draw_qq(ax, result)
    fig.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300)
    plt.close(fig)


def plot_candidate_qq_grid(outcomes: Dict[str, FitOutcome], output_path: Path) -> Optional[Path]:
    """Q-Q panels side by side for every successful candidate form."""
    output_path = Path(output_path)
    fits = successful_fits(outcomes)
    if not fits:
        return None
    fig, axes = plt.subplots(1, len(fits), figsize=(4 * len(fits), 4), squeeze=False)
    for ax, result in zip(axes[0], fits.values()):
        _draw_qq(ax, result)
    fig.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300)
    plt.close(fig)
    return output_path

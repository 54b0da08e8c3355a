"""
Diagnostic plots for AOA runs: training DI distribution with threshold,
importance weights, and DI / AOA maps.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib
import numpy as np

matplotlib.use('Agg')  # Non-interactive backend for server-side execution
import matplotlib.pyplot as plt  # noqa: E402

PLOT_COLOR = '#3C5E20'
PLOT_DPI = 300


def plot_training_di(model, output_path: Path, bins: int = 30) -> Path:
    """
    Histogram of the leave-fold-out training DI with the AOA threshold.

    Parameters
    ----------
    model : AOAModel
        Fitted AOA model
    output_path : Path
        PNG file to write
    bins : int, optional
        Number of histogram bins (default: 30)
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(exist_ok=True, parents=True)
    estimate = model.estimate
    label = (f'{estimate.quantile:.2f} quantile' if estimate.method == 'quantile' else 'upper whisker')
    try:
        plt.figure(figsize=(8, 6))
        plt.hist(estimate.distribution, bins=bins, color=PLOT_COLOR, alpha=0.8)
        plt.axvline(estimate.threshold, color='k', linestyle='--', lw=2,
                    label=f'Threshold = {estimate.threshold:.3f} ({label})')
        plt.xlabel('Dissimilarity Index (leave-fold-out)')
        plt.ylabel('Training points')
        plt.title(f'Training DI (n = {estimate.distribution.size}, omitted = {estimate.n_omitted})')
        plt.legend()
        plt.grid(alpha=0.3)
        plt.tight_layout()
        plt.savefig(output_path, dpi=PLOT_DPI, bbox_inches='tight')
    finally:
        plt.close()
    return output_path


def plot_importance_weights(weights: dict, output_path: Path) -> Path:
    """Horizontal bar chart of the normalized importance weights."""
    output_path = Path(output_path)
    output_path.parent.mkdir(exist_ok=True, parents=True)
    items = sorted(weights.items(), key=lambda kv: kv[1])
    try:
        plt.figure(figsize=(10, 8))
        plt.barh([k for k, _ in items], [v for _, v in items], color=PLOT_COLOR)
        plt.xlabel('Normalized weight (mean = 1)')
        plt.title('Variable weights of the predictor space')
        plt.grid(axis='x', alpha=0.3)
        plt.tight_layout()
        plt.savefig(output_path, dpi=PLOT_DPI, bbox_inches='tight')
    finally:
        plt.close()
    return output_path


def plot_aoa_map(result, output_path: Path) -> Path:
    """Side-by-side DI and AOA maps of a raster result."""
    if result.di.ndim != 2:
        raise ValueError(f"AOA map needs a raster result, got field shape {result.di.shape}")
    output_path = Path(output_path)
    output_path.parent.mkdir(exist_ok=True, parents=True)
    aoa = np.where(result.valid, result.aoa.astype(float), np.nan)
    stats = result.statistics
    try:
        fig, axes = plt.subplots(1, 2, figsize=(14, 6))
        im = axes[0].imshow(result.di, cmap='viridis')
        fig.colorbar(im, ax=axes[0], shrink=0.8, label='DI')
        axes[0].set_title('Dissimilarity Index')
        axes[1].imshow(aoa, cmap='RdYlGn', vmin=0, vmax=1)
        axes[1].set_title(f'AOA (threshold {stats.threshold:.3f}, {stats.fraction_inside:.1%} inside)')
        for ax in axes:
            ax.set_axis_off()
        fig.tight_layout()
        fig.savefig(output_path, dpi=PLOT_DPI, bbox_inches='tight')
    finally:
        plt.close('all')
    return output_path

"""
Posterior marginal density plots with shaded 95% credible intervals.
"""
from typing import Dict, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import gaussian_kde

from src.models.results import FitResult


def density_curve(draws: np.ndarray, n_points: int = 256):
    """KDE of posterior draws on a grid spanning the 0.1%-99.9% range."""
    v = np.asarray(draws, dtype=float).ravel()
    lo, hi = np.percentile(v, [0.1, 99.9])
    if lo == hi:
        lo, hi = lo - 0.5, hi + 0.5
    grid = np.linspace(lo, hi, n_points)
    if np.std(v) == 0:
        return grid, np.zeros_like(grid)
    return grid, gaussian_kde(v)(grid)


def plot_marginal(
    ax: plt.Axes,
    draws: np.ndarray,
    label: str,
    prob: float = 0.95,
    color: str = '#2E86AB'
) -> None:
    """Density curve with the central `prob` interval shaded and the mean marked."""
    grid, dens = density_curve(draws)
    tail = (1 - prob) / 2 * 100
    lo, hi = np.percentile(draws, [tail, 100 - tail])

    ax.plot(grid, dens, color=color, linewidth=1.5)
    inside = (grid >= lo) & (grid <= hi)
    ax.fill_between(grid, 0, dens, where=inside, color=color, alpha=0.3,
                    label=f'{int(prob * 100)}% CrI')
    ax.axvline(float(np.mean(draws)), color='black', linestyle='--', linewidth=1, label='mean')
    ax.set_title(label)
    ax.set_ylabel('Density')


def plot_posterior_densities(
    fit: FitResult,
    parameters: Optional[Sequence[str]] = None,
    prob: float = 0.95,
    ncols: int = 3
) -> plt.Figure:
    """
    Grid of marginal posterior densities for one fit.

    Args:
        fit: FitResult with scalar parameter draws
        parameters: Subset of fit.draws keys (default: all)
    """
    parameters = list(fit.draws) if parameters is None else list(parameters)
    if not parameters:
        raise ValueError(f"No parameter draws stored for '{fit.model_name}'")

    ncols = max(1, min(ncols, len(parameters)))
    nrows = int(np.ceil(len(parameters) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(4.5 * ncols, 3.2 * nrows), squeeze=False)

    for ax, name in zip(axes.ravel(), parameters):
        plot_marginal(ax, fit.draws[name], name, prob=prob)
    for ax in axes.ravel()[len(parameters):]:
        ax.set_visible(False)

    axes.ravel()[0].legend(loc='upper right', fontsize=8)
    fig.suptitle(f'Posterior marginals - {fit.model_name}', fontsize=14)
    fig.tight_layout()
    return fig


def plot_sensitivity_densities(
    fits: Dict[str, FitResult],
    parameter: str,
    prob: float = 0.95
) -> plt.Figure:
    """Overlay one parameter's marginal across prior configurations."""
    fig, ax = plt.subplots(figsize=(7, 4))
    colors = plt.get_cmap('tab10')
    for i, (label, fit) in enumerate(fits.items()):
        grid, dens = density_curve(fit.draws[parameter])
        ax.plot(grid, dens, color=colors(i), label=label)
        tail = (1 - prob) / 2 * 100
        lo, hi = np.percentile(fit.draws[parameter], [tail, 100 - tail])
        inside = (grid >= lo) & (grid <= hi)
        ax.fill_between(grid, 0, dens, where=inside, color=colors(i), alpha=0.15)
    ax.set_title(f'{parameter}: prior sensitivity')
    ax.set_ylabel('Density')
    ax.legend(fontsize=8)
    fig.tight_layout()
    return fig

"""Visualization modules for study results."""

from .curves import (
    plot_estimates_vs_truth,
    plot_schoenfeld_residuals,
    plot_survival_curves,
)

__all__ = [
    "plot_estimates_vs_truth",
    "plot_schoenfeld_residuals",
    "plot_survival_curves",
]

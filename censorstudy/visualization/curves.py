"""Survival curve and diagnostic plots."""

from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ..models.results import KaplanMeierFit, PHTestResult


def _save_or_return(fig, output_path, dpi):
    plt.tight_layout()

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(f"{output_path}.png", dpi=dpi, bbox_inches='tight')
        plt.close(fig)
        return None

    return fig


def plot_survival_curves(
    km_fits: Dict[str, KaplanMeierFit],
    output_path: Optional[Union[str, Path]] = None,
    title: Optional[str] = None,
    risk_table_times: Optional[Sequence[float]] = None,
    show_ci: bool = True,
    figsize: Tuple[float, float] = (9, 6),
    dpi: int = 150,
) -> Optional[plt.Figure]:
    """Kaplan-Meier curves per group with an optional risk table.

    Args:
        km_fits: Fits keyed by group label.
        output_path: Path to save figure (without extension).
            If None, returns figure without saving.
        title: Plot title.
        risk_table_times: Times for the numbers-at-risk table below the
            axes. No table if None.
        show_ci: Whether to shade the pointwise confidence band.
        figsize: Figure size in inches.
        dpi: Resolution for saved figures.

    Returns:
        Matplotlib figure if output_path is None.
    """
    if risk_table_times is not None:
        fig, (ax, table_ax) = plt.subplots(
            2, 1, figsize=figsize, gridspec_kw={'height_ratios': [4, 1]}, sharex=True
        )
    else:
        fig, ax = plt.subplots(figsize=figsize)
        table_ax = None

    for label, fit in km_fits.items():
        times = np.concatenate([[0.0], fit.time])
        survival = np.concatenate([[1.0], fit.survival])
        line, = ax.step(times, survival, where='post', linewidth=2, label=label)

        if show_ci:
            ax.fill_between(
                times,
                np.concatenate([[1.0], fit.ci_lower]),
                np.concatenate([[1.0], fit.ci_upper]),
                step='post',
                alpha=0.2,
                color=line.get_color(),
            )

        # Censoring marks
        censored = fit.n_censor > 0
        ax.plot(
            fit.time[censored],
            fit.survival[censored],
            '|',
            markersize=8,
            color=line.get_color(),
        )

    ax.set_ylim(0, 1.05)
    ax.set_ylabel('Survival probability', fontsize=12)
    ax.set_title(title or 'Kaplan-Meier estimate', fontsize=14)
    ax.legend(loc='best')
    ax.grid(True, alpha=0.3)

    if table_ax is not None:
        labels = list(km_fits)
        for row, label in enumerate(labels):
            table = km_fits[label].risk_table(risk_table_times)
            for t, n in zip(table['time'], table['n_risk']):
                table_ax.text(t, row, str(n), ha='center', va='center', fontsize=9)
        table_ax.set_yticks(range(len(labels)))
        table_ax.set_yticklabels(labels)
        table_ax.set_ylim(len(labels) - 0.5, -0.5)
        table_ax.set_title('Number at risk', fontsize=10, loc='left')
        table_ax.tick_params(axis='y', length=0)
        for side in ('top', 'right', 'left'):
            table_ax.spines[side].set_visible(False)
        table_ax.set_xlabel('Time (days)', fontsize=12)
    else:
        ax.set_xlabel('Time (days)', fontsize=12)

    return _save_or_return(fig, output_path, dpi)


def plot_schoenfeld_residuals(
    ph_test: PHTestResult,
    output_path: Optional[Union[str, Path]] = None,
    title: Optional[str] = None,
    figsize: Optional[Tuple[float, float]] = None,
    dpi: int = 150,
) -> Optional[plt.Figure]:
    """Scaled Schoenfeld residuals against transformed time, one panel each.

    The LOWESS trend estimates beta(t); a flat trend supports proportional
    hazards.
    """
    n_features = len(ph_test.feature_names)
    if figsize is None:
        figsize = (5 * n_features, 4)
    fig, axes = plt.subplots(1, n_features, figsize=figsize, squeeze=False)

    order = np.argsort(ph_test.transformed_times, kind='mergesort')
    g = ph_test.transformed_times[order]
    for j, (ax, name) in enumerate(zip(axes[0], ph_test.feature_names)):
        ax.scatter(g, ph_test.scaled_residuals[order, j], s=8, alpha=0.4)
        ax.plot(g, ph_test.trend[order, j], color='red', linewidth=2)
        ax.axhline(
            np.mean(ph_test.scaled_residuals[:, j]),
            color='gray',
            linestyle='--',
            linewidth=1,
        )
        ax.set_xlabel(f'g(t), {ph_test.transform} transform', fontsize=11)
        ax.set_ylabel(f'Beta(t) for {name}', fontsize=11)
        ax.set_title(f'{name}: p = {ph_test.tests[j].p_value:.3f}', fontsize=12)
        ax.grid(True, alpha=0.3)

    if title:
        fig.suptitle(title, fontsize=14)

    return _save_or_return(fig, output_path, dpi)


def plot_estimates_vs_truth(
    coefficients: pd.DataFrame,
    output_path: Optional[Union[str, Path]] = None,
    n_se: float = 2.0,
    figsize: Optional[Tuple[float, float]] = None,
    dpi: int = 150,
) -> Optional[plt.Figure]:
    """Cox estimates with +/- n_se error bars across censoring conditions.

    Args:
        coefficients: Rows as produced by compare_to_truth, with columns
            design, condition, covariate, estimate, std_error, true_value.
        output_path: Path to save figure (without extension).
        n_se: Error bar half-width in standard errors.
        figsize: Figure size in inches.
        dpi: Resolution for saved figures.

    Returns:
        Matplotlib figure if output_path is None.
    """
    covariates = list(dict.fromkeys(coefficients['covariate']))
    if figsize is None:
        figsize = (6 * len(covariates), 4.5)
    fig, axes = plt.subplots(1, len(covariates), figsize=figsize, squeeze=False)

    conditions = list(dict.fromkeys(coefficients['condition']))
    designs = list(dict.fromkeys(coefficients['design']))
    offsets = np.linspace(-0.15, 0.15, len(designs)) if len(designs) > 1 else [0.0]

    for ax, covariate in zip(axes[0], covariates):
        subset = coefficients[coefficients['covariate'] == covariate]
        for offset, design in zip(offsets, designs):
            rows = subset[subset['design'] == design]
            if rows.empty:
                continue
            x = np.array([conditions.index(c) for c in rows['condition']]) + offset
            ax.errorbar(
                x,
                rows['estimate'],
                yerr=n_se * rows['std_error'],
                fmt='o',
                capsize=4,
                label=design,
            )
        ax.axhline(
            subset['true_value'].iloc[0],
            color='red',
            linestyle='--',
            linewidth=1.5,
            label='True value',
        )
        ax.set_xticks(range(len(conditions)))
        ax.set_xticklabels(conditions)
        ax.set_xlabel('Censoring condition', fontsize=12)
        ax.set_ylabel('Log hazard ratio', fontsize=12)
        ax.set_title(covariate, fontsize=14)
        ax.legend(loc='best')
        ax.grid(True, alpha=0.3)

    return _save_or_return(fig, output_path, dpi)

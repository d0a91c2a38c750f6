"""
Exploratory figures for the joy trajectory analysis.

Figures:
- Raw vs smoothed trajectory of a single session
- All smoothed curves with the mean curve per gender
- Distribution of the accuracy outcome
- Estimated coefficient function beta(t) with its confidence band
- Information-criterion comparison of the nested models
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

from joymath.analysis.regression import FunctionalModelResult

plt.rcParams.update({
    'font.family': 'sans-serif',
    'font.size': 9,
    'axes.titlesize': 10,
    'axes.labelsize': 9,
    'xtick.labelsize': 8,
    'ytick.labelsize': 8,
    'legend.fontsize': 8,
    'savefig.bbox': 'tight',
    'savefig.pad_inches': 0.1,
})

logger = logging.getLogger(__name__)


COLORS = {
    'joy': '#E6A100',
    'raw': '#999999',
    'female': '#B2182B',
    'male': '#2166AC',
    'unknown': '#666666',
    'mean': '#000000',
    'band': '#92C5DE',
}

SINGLE_COLUMN = 3.5  # inches


@dataclass
class FigureConfig:
    """Configuration for figure generation."""

    width: float = SINGLE_COLUMN
    height: float = 3.0


def _despine(ax: plt.Axes) -> None:
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)


class FigureGenerator:
    """
    Generator for the exploratory figures.
    """

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        formats: Optional[List[str]] = None,
        dpi: int = 300
    ):
        """
        Initialize the generator.

        Parameters
        ----------
        output_dir : Optional[Path]
            Directory for saving figures
        formats : Optional[List[str]]
            Output formats
        dpi : int
            Resolution for raster formats
        """
        self.output_dir = Path(output_dir or "figures")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.formats = formats or ['pdf', 'png']
        self.dpi = dpi

    def save_figure(
        self,
        fig: plt.Figure,
        name: str,
        formats: Optional[List[str]] = None
    ) -> List[Path]:
        """
        Save figure in multiple formats.

        Parameters
        ----------
        fig : plt.Figure
            Figure to save
        name : str
            Base filename (without extension)
        formats : Optional[List[str]]
            Output formats

        Returns
        -------
        List[Path]
            Paths to saved files
        """
        saved_paths = []
        for fmt in formats or self.formats:
            path = self.output_dir / f"{name}.{fmt}"
            fig.savefig(path, format=fmt, dpi=self.dpi, bbox_inches='tight')
            saved_paths.append(path)
            logger.info(f"Saved figure: {path}")

        plt.close(fig)
        return saved_paths

    def generate_all_figures(self, analyzer) -> Dict[str, List[Path]]:
        """
        Generate all figures from a fitted analyzer.

        Parameters
        ----------
        analyzer : JoyAccuracyAnalyzer
            Analyzer after ``run_full_analysis()``

        Returns
        -------
        Dict[str, List[Path]]
            Mapping of figure names to saved paths
        """
        if analyzer.results is None:
            raise ValueError("No results. Call run_full_analysis() first.")

        figures = {}
        curves = analyzer.smoothing.curves

        key = curves.index[0]
        fig = create_session_plot(analyzer.wide.loc[key], curves.loc[key], title=f"Session {key}")
        figures['session_trajectory'] = self.save_figure(fig, 'session_trajectory')

        fig = create_curves_plot(curves, analyzer.covariates.loc[curves.index, 'gender'])
        figures['smoothed_curves'] = self.save_figure(fig, 'smoothed_curves')

        outcome = analyzer.config.regression.outcome
        fig = create_outcome_histogram(analyzer.analysis_data[outcome], label=outcome)
        figures['outcome_distribution'] = self.save_figure(fig, 'outcome_distribution')

        for name, res in analyzer.results.outcomes.items():
            fig = create_coefficient_plot(res.models.functional, title=name)
            figures[f'coefficient_{name}'] = self.save_figure(fig, f'coefficient_{name}')

            fig = create_model_comparison_plot(res.comparison, title=name)
            figures[f'comparison_{name}'] = self.save_figure(fig, f'comparison_{name}')

        return figures


def create_session_plot(
    raw: pd.Series,
    smoothed: pd.Series,
    title: str = "",
    config: Optional[FigureConfig] = None
) -> plt.Figure:
    """
    Binned intensities of one session with the smoothed trajectory.

    Parameters
    ----------
    raw : pd.Series
        One row of the wide table (index = bin start times in seconds)
    smoothed : pd.Series
        One row of the curve table (index = normalised time)
    title : str
        Axes title
    config : Optional[FigureConfig]
        Figure configuration

    Returns
    -------
    plt.Figure
    """
    if config is None:
        config = FigureConfig(width=SINGLE_COLUMN, height=2.5)

    fig, ax = plt.subplots(figsize=(config.width, config.height))

    raw = raw.dropna()
    times = raw.index.to_numpy(dtype=float)
    span = times.max() - times.min() if len(times) > 1 else 1.0
    ax.scatter(
        (times - times.min()) / span,
        raw.to_numpy(dtype=float),
        s=4,
        color=COLORS['raw'],
        alpha=0.6,
        edgecolors='none',
        label='Binned',
    )
    ax.plot(
        smoothed.index.to_numpy(dtype=float),
        smoothed.to_numpy(dtype=float),
        color=COLORS['joy'],
        linewidth=1.5,
        label='Smoothed',
    )

    ax.set_xlabel('Session time (normalised)')
    ax.set_ylabel('Joy intensity')
    ax.set_ylim(0, 1)
    ax.set_title(title)
    ax.legend(loc='upper right', frameon=False)
    _despine(ax)

    plt.tight_layout()
    return fig


def create_curves_plot(
    curves: pd.DataFrame,
    groups: Optional[pd.Series] = None,
    config: Optional[FigureConfig] = None
) -> plt.Figure:
    """
    All smoothed curves with the mean curve of each group.

    Parameters
    ----------
    curves : pd.DataFrame
        Curve table
    groups : Optional[pd.Series]
        Group label per curve (e.g. gender), aligned with ``curves``
    config : Optional[FigureConfig]
        Figure configuration

    Returns
    -------
    plt.Figure
    """
    if config is None:
        config = FigureConfig(width=SINGLE_COLUMN, height=3.0)

    fig, ax = plt.subplots(figsize=(config.width, config.height))
    grid = curves.columns.to_numpy(dtype=float)

    for values in curves.to_numpy(dtype=float):
        ax.plot(grid, values, color=COLORS['raw'], linewidth=0.4, alpha=0.4)

    if groups is None:
        ax.plot(grid, curves.mean().to_numpy(), color=COLORS['mean'], linewidth=1.5, label='Mean')
    else:
        groups = groups.reindex(curves.index)
        for label, members in curves.groupby(groups.to_numpy()):
            ax.plot(
                grid,
                members.mean().to_numpy(),
                color=COLORS.get(str(label), COLORS['mean']),
                linewidth=1.5,
                label=f'{label} (n = {len(members)})',
            )

    ax.set_xlabel('Session time (normalised)')
    ax.set_ylabel('Smoothed joy intensity')
    ax.set_ylim(bottom=0)
    ax.legend(loc='upper right', frameon=False)
    _despine(ax)

    plt.tight_layout()
    return fig


def create_outcome_histogram(
    outcome: pd.Series,
    label: str = "accuracy",
    bins: int = 10,
    config: Optional[FigureConfig] = None
) -> plt.Figure:
    """Histogram of a proportion outcome."""
    if config is None:
        config = FigureConfig(width=SINGLE_COLUMN, height=2.5)

    fig, ax = plt.subplots(figsize=(config.width, config.height))
    ax.hist(outcome.dropna(), bins=np.linspace(0, 1, bins + 1), color=COLORS['joy'], edgecolor='white')
    ax.axvline(outcome.mean(), color=COLORS['mean'], linestyle='--', linewidth=1)

    ax.set_xlabel(label)
    ax.set_ylabel('Sessions')
    ax.set_xlim(0, 1)
    _despine(ax)

    plt.tight_layout()
    return fig


def create_coefficient_plot(
    result: FunctionalModelResult,
    title: str = "",
    config: Optional[FigureConfig] = None
) -> plt.Figure:
    """
    Estimated coefficient function with its pointwise confidence band.

    Positive values mean that more joy at that point of the session goes
    with a higher outcome (on the logit scale of the mean).
    """
    if config is None:
        config = FigureConfig(width=SINGLE_COLUMN, height=2.8)

    fig, ax = plt.subplots(figsize=(config.width, config.height))

    ax.fill_between(
        result.grid,
        result.lower,
        result.upper,
        color=COLORS['band'],
        alpha=0.6,
        linewidth=0,
        label=f'{1 - result.alpha:.0%} pointwise CI',
    )
    ax.plot(result.grid, result.coefficient, color=COLORS['mean'], linewidth=1.5, label='β(t)')
    ax.axhline(0, color=COLORS['raw'], linestyle='--', linewidth=0.8)

    ax.set_xlabel('Session time (normalised)')
    ax.set_ylabel('β(t)')
    ax.set_title(title)
    ax.legend(loc='best', frameon=False)
    _despine(ax)

    plt.tight_layout()
    return fig


def create_model_comparison_plot(
    comparison: pd.DataFrame,
    title: str = "",
    config: Optional[FigureConfig] = None
) -> plt.Figure:
    """Delta-AIC and delta-BIC of each model relative to the best one."""
    if config is None:
        config = FigureConfig(width=SINGLE_COLUMN, height=2.5)

    fig, ax = plt.subplots(figsize=(config.width, config.height))

    x = np.arange(len(comparison))
    width = 0.35
    ax.bar(x - width / 2, comparison['delta_aic'], width, label='ΔAIC', color=COLORS['joy'])
    ax.bar(x + width / 2, comparison['delta_bic'], width, label='ΔBIC', color=COLORS['male'])

    ax.set_xticks(x)
    ax.set_xticklabels(comparison.index)
    ax.set_ylabel('Difference to best model')
    ax.set_title(title)
    ax.legend(loc='upper left', frameon=False)
    _despine(ax)

    plt.tight_layout()
    return fig

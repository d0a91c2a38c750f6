"""
Visualization module for the Joy & Math research project.

This module provides exploratory figures for:
- Raw and smoothed joy trajectories
- Outcome distributions
- Functional regression coefficients and model comparisons
"""

from .figures import (
    FigureGenerator,
    create_session_plot,
    create_curves_plot,
    create_outcome_histogram,
    create_coefficient_plot,
    create_model_comparison_plot,
)

__all__ = [
    "FigureGenerator",
    "create_session_plot",
    "create_curves_plot",
    "create_outcome_histogram",
    "create_coefficient_plot",
    "create_model_comparison_plot",
]

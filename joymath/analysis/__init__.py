"""
Analysis module for the Joy & Math research project.

Key components:
    - smoothing: Per-session kernel smoothing of emotion trajectories
    - strategies: Strategy-use aggregation and linkage to emotion sessions
    - regression: Functional beta regression and nested-model comparison
    - pipeline: End-to-end analyzer
"""

from .smoothing import (
    smooth_session,
    smooth_sessions,
    summarize_curves,
)

from .strategies import (
    normalize_ids,
    clean_strategy_data,
    aggregate_strategies,
    link_strategy_to_emotion,
)

from .regression import (
    fit_beta_regression,
    fit_functional_model,
    fit_nested_models,
    likelihood_ratio_test,
    compare_information_criteria,
)

from .pipeline import JoyAccuracyAnalyzer

__all__ = [
    "smooth_session",
    "smooth_sessions",
    "summarize_curves",
    "normalize_ids",
    "clean_strategy_data",
    "aggregate_strategies",
    "link_strategy_to_emotion",
    "fit_beta_regression",
    "fit_functional_model",
    "fit_nested_models",
    "likelihood_ratio_test",
    "compare_information_criteria",
    "JoyAccuracyAnalyzer",
]

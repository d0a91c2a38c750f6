"""
Data module for the Joy & Math research project.

This module provides:
- Readers for the emotion recordings and the strategy spreadsheet
- Cleaning and long-to-wide reshaping of the emotion time series
- Synthetic demo data for tests
"""

from .loading import (
    load_emotion_data,
    load_strategy_data,
    load_corrections,
)

from .preprocessing import (
    standardize_columns,
    apply_corrections,
    clean_emotion_data,
    reshape_to_wide,
    session_covariates,
    validate_wide_table,
    normalize_ids,
    coerce_sessions,
)

from .synthetic import generate_demo_data

__all__ = [
    "load_emotion_data",
    "load_strategy_data",
    "load_corrections",
    "standardize_columns",
    "apply_corrections",
    "clean_emotion_data",
    "reshape_to_wide",
    "session_covariates",
    "validate_wide_table",
    "normalize_ids",
    "coerce_sessions",
    "generate_demo_data",
]

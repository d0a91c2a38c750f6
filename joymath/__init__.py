"""
Joy & Math Research Project

Analysis pipeline relating children's facial expressions of joy, coded
automatically from video, to their accuracy and strategy use while solving
math problems.

Stages:
    - Cleaning and reshaping of emotion-intensity time series
    - Per-session kernel smoothing on the logit scale
    - Aggregation and linkage of the strategy-use database
    - Functional beta regression with nested-model comparison

Modules:
    - analysis: Smoothing, strategy aggregation, regression and the pipeline
    - data: Data loading, preprocessing and synthetic demo data
    - visualization: Exploratory figures
    - utils: Utility functions
"""

__version__ = "1.0.0"
__author__ = "Research Team"
__email__ = "research@example.com"

from joymath.config.settings import get_config, reload_config

__all__ = [
    "__version__",
    "get_config",
    "reload_config",
]

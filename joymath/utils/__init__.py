"""
Utility functions for the Joy & Math research project.
"""

from .helpers import (
    ensure_directory,
    load_json,
    save_json,
    format_pvalue,
    get_timestamp,
)

__all__ = [
    "ensure_directory",
    "load_json",
    "save_json",
    "format_pvalue",
    "get_timestamp",
]

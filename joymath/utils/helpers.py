"""
Utility helper functions for the Joy & Math research project.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Union

import numpy as np

logger = logging.getLogger(__name__)


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Parameters
    ----------
    path : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        The directory path
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_json(path: Union[str, Path]) -> Any:
    """
    Load JSON file.

    Parameters
    ----------
    path : Union[str, Path]
        Path to JSON file

    Returns
    -------
    Any
        Loaded data
    """
    with open(path, "r") as f:
        return json.load(f)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return str(obj)


def save_json(
    data: Any,
    path: Union[str, Path],
    indent: int = 2
) -> None:
    """
    Save data to JSON file.

    Numpy scalars and arrays are converted to plain Python values.

    Parameters
    ----------
    data : Any
        Data to save
    path : Union[str, Path]
        Output path
    indent : int
        JSON indentation
    """
    path = Path(path)
    ensure_directory(path.parent)

    with open(path, "w") as f:
        json.dump(data, f, indent=indent, default=_json_default)

    logger.info(f"Saved JSON to {path}")


def format_pvalue(p: float) -> str:
    """
    Format p-value according to APA guidelines.

    Parameters
    ----------
    p : float
        P-value

    Returns
    -------
    str
        Formatted p-value string
    """
    if np.isnan(p):
        return "p = NA"
    if p < 0.001:
        return "p < .001"
    elif p < 0.01:
        return f"p = {p:.3f}".replace("0.", ".", 1)
    else:
        return f"p = {p:.2f}".replace("0.", ".", 1)


def get_timestamp() -> str:
    """
    Get current timestamp string.

    Returns
    -------
    str
        Timestamp in YYYYMMDD_HHMMSS format
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")

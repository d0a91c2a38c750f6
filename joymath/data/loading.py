"""
Readers for the study's input files.

The emotion recordings arrive as a serialized table exported from the
facial-coding software (one row per video frame or sample); the strategy
database is a spreadsheet maintained by the coders, one row per problem
attempt.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from joymath.utils.helpers import load_json

logger = logging.getLogger(__name__)

EMOTION_READERS = {
    ".parquet": pd.read_parquet,
    ".pkl": pd.read_pickle,
    ".pickle": pd.read_pickle,
    ".feather": pd.read_feather,
    ".json": pd.read_json,
    ".csv": pd.read_csv,
}


def load_emotion_data(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load the serialized emotion-intensity table.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a ``.parquet``, ``.pkl``, ``.feather``, ``.json`` or ``.csv`` file

    Returns
    -------
    pd.DataFrame
        Raw emotion table in long format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Emotion data not found: {path}")

    reader = EMOTION_READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported emotion data format '{path.suffix}'. "
            f"Expected one of: {', '.join(sorted(EMOTION_READERS))}"
        )

    logger.info(f"Loading emotion data from {path}")
    df = reader(path)
    logger.info(f"Loaded {len(df):,} emotion samples")
    return df


def load_strategy_data(
    path: Union[str, Path],
    sheet_name: Union[str, int] = 0
) -> pd.DataFrame:
    """
    Load the strategy-use spreadsheet.

    Parameters
    ----------
    path : Union[str, Path]
        Path to an ``.xlsx``/``.xls`` workbook or a ``.csv`` export
    sheet_name : Union[str, int]
        Worksheet holding the attempt records

    Returns
    -------
    pd.DataFrame
        Raw attempt-level strategy records
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Strategy data not found: {path}")

    logger.info(f"Loading strategy data from {path}")
    suffix = path.suffix.lower()
    if suffix in (".xlsx", ".xlsm", ".xls"):
        df = pd.read_excel(path, sheet_name=sheet_name)
    elif suffix == ".csv":
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported strategy data format '{path.suffix}'")

    logger.info(f"Loaded {len(df):,} strategy records")
    return df


def load_corrections(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load manual data corrections.

    The file holds a JSON list; each entry has a ``match`` mapping
    (column -> value identifying the rows) and a ``set`` mapping
    (column -> corrected value), plus an optional ``note``.

    Parameters
    ----------
    path : Union[str, Path]
        Path to the corrections file

    Returns
    -------
    List[Dict[str, Any]]
        Correction entries
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Corrections file not found: {path}")

    corrections = load_json(path)
    if not isinstance(corrections, list):
        raise ValueError("Corrections file must contain a JSON list")

    for i, entry in enumerate(corrections):
        if "match" not in entry or "set" not in entry:
            raise ValueError(f"Correction #{i} needs both 'match' and 'set'")

    logger.info(f"Loaded {len(corrections)} manual corrections from {path}")
    return corrections

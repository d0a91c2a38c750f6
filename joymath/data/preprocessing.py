"""
Data preprocessing utilities for the emotion recordings.

This module provides functions for:
- Standardising facial-coding exports to a common column layout
- Applying the analyst's manual data corrections
- Cleaning the long-format intensity time series
- Reshaping to one row per subject-session (long-to-wide)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

KEY_COLUMNS = ["subject_id", "session"]

GENDER_LABELS = {
    "f": "female",
    "female": "female",
    "girl": "female",
    "w": "female",
    "m": "male",
    "male": "male",
    "boy": "male",
}


def standardize_columns(
    df: pd.DataFrame,
    mapping: Optional[Dict[str, str]] = None
) -> pd.DataFrame:
    """
    Standardise column names.

    Names are lower-cased with whitespace replaced by underscores, then
    known aliases are renamed (an alias is skipped when its target column
    already exists).

    Parameters
    ----------
    df : pd.DataFrame
        Raw table
    mapping : Optional[Dict[str, str]]
        Alias -> standard name

    Returns
    -------
    pd.DataFrame
        Copy with standardised column names
    """
    df = df.copy()
    df.columns = [
        "_".join(str(col).strip().lower().split()) for col in df.columns
    ]

    for old, new in (mapping or {}).items():
        if old in df.columns and new not in df.columns:
            df = df.rename(columns={old: new})

    return df


def apply_corrections(
    df: pd.DataFrame,
    corrections: Iterable[Dict[str, Any]]
) -> pd.DataFrame:
    """
    Apply manual data corrections.

    Matching compares values as strings so that identifiers typed as numbers
    in one file and as text in another still match.

    Parameters
    ----------
    df : pd.DataFrame
        Table with standardised column names
    corrections : Iterable[Dict[str, Any]]
        Entries with ``match`` and ``set`` mappings

    Returns
    -------
    pd.DataFrame
        Corrected copy
    """
    df = df.copy()

    for entry in corrections:
        match = entry["match"]
        updates = entry["set"]

        missing = [col for col in list(match) + list(updates) if col not in df.columns]
        if missing:
            raise ValueError(f"Correction refers to unknown columns: {missing}")

        mask = pd.Series(True, index=df.index)
        for col, value in match.items():
            mask &= df[col].astype(str).str.strip() == str(value).strip()

        n_rows = int(mask.sum())
        if n_rows == 0:
            logger.warning(f"Correction {match} -> {updates} matched no rows")
            continue

        for col, value in updates.items():
            df.loc[mask, col] = value

        note = entry.get("note", "")
        logger.info(f"Corrected {n_rows:,} rows where {match}: {updates} {note}".rstrip())

    return df


def _to_seconds(values: pd.Series) -> pd.Series:
    """Convert a time column (seconds or ``HH:MM:SS.fff`` strings) to float seconds."""
    if pd.api.types.is_timedelta64_dtype(values):
        return values.dt.total_seconds()
    if pd.api.types.is_datetime64_any_dtype(values):
        return (values - values.min()).dt.total_seconds()

    numeric = pd.to_numeric(values, errors="coerce")
    if numeric.notna().sum() >= values.notna().sum():
        return numeric.astype(float)

    deltas = pd.to_timedelta(values.astype(str), errors="coerce")
    return deltas.dt.total_seconds()


def normalize_ids(
    ids: pd.Series,
    pattern: str = r"(\d+)",
    zero_pad: int = 3
) -> pd.Series:
    """
    Normalise free-text identifiers to their zero-padded numeric core.

    ``"S-07 "``, ``"s7"`` and ``7`` all become ``"007"`` with the default
    settings. Values without a match are kept, stripped.

    Parameters
    ----------
    ids : pd.Series
        Raw identifiers
    pattern : str
        Regular expression with one capture group for the numeric core
    zero_pad : int
        Width to zero-pad the numeric core to

    Returns
    -------
    pd.Series
        Normalised identifiers (NaN stays NaN)
    """
    text = ids.astype(str).str.strip()
    # Spreadsheet readers turn integer IDs into floats such as "7.0"
    text = text.str.replace(r"\.0$", "", regex=True)
    core = text.str.extract(pattern, expand=False)

    normalized = core.map(
        lambda v: str(int(v)).zfill(zero_pad) if isinstance(v, str) and v.isdigit() else v
    )
    normalized = normalized.where(core.notna(), text)
    return normalized.where(ids.notna(), np.nan)


def coerce_sessions(sessions: pd.Series) -> pd.Series:
    """
    Store whole-number session labels as integers.

    Blank cells turn an integer column into floats (``1.0``), which would
    no longer match integer sessions elsewhere. Missing values are kept;
    non-numeric labels are returned unchanged.
    """
    numeric = pd.to_numeric(sessions, errors="coerce")
    present = sessions.notna()
    if numeric[present].isna().any() or not (numeric[present] % 1 == 0).all():
        return sessions
    if present.all():
        return numeric.astype("int64")
    return numeric.astype("Int64")


def _normalize_gender(values: pd.Series) -> pd.Series:
    labels = values.astype(str).str.strip().str.lower()
    return labels.map(GENDER_LABELS).fillna("unknown")


def clean_emotion_data(
    raw_data: pd.DataFrame,
    emotion: str = "joy",
    column_mapping: Optional[Dict[str, str]] = None,
    corrections: Optional[List[Dict[str, Any]]] = None,
    excluded_subjects: Iterable[str] = (),
    intensity_bounds: Tuple[float, float] = (0.0, 1.0),
    min_samples_per_session: int = 10,
    id_pattern: str = r"(\d+)",
    id_zero_pad: int = 3,
) -> pd.DataFrame:
    """
    Clean the long-format emotion recordings.

    Parameters
    ----------
    raw_data : pd.DataFrame
        Raw emotion table (subject, session, gender, time, one column per emotion)
    emotion : str
        Emotion column to keep
    column_mapping : Optional[Dict[str, str]]
        Column aliases passed to :func:`standardize_columns`
    corrections : Optional[List[Dict[str, Any]]]
        Manual corrections passed to :func:`apply_corrections`
    excluded_subjects : Iterable[str]
        Subject identifiers removed from the analysis, either as written in
        the export or in normalised form
    intensity_bounds : Tuple[float, float]
        Valid intensity range; values outside are clipped
    min_samples_per_session : int
        Sessions with fewer valid samples are dropped
    id_pattern, id_zero_pad
        Passed to :func:`normalize_ids` when matching exclusions

    Returns
    -------
    pd.DataFrame
        Columns ``subject_id, session, gender, time, intensity`` where ``time``
        is seconds since the start of the session, sorted by subject,
        session and time
    """
    logger.info(f"Cleaning {len(raw_data):,} emotion samples ({emotion})")
    df = standardize_columns(raw_data, column_mapping)
    emotion = emotion.lower()

    required = ["subject_id", "session", "time", emotion]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"Emotion data is missing required columns {missing}; "
            f"available columns: {list(df.columns)}"
        )

    if corrections:
        df = apply_corrections(df, corrections)

    if "gender" not in df.columns:
        logger.warning("No gender column found; gender set to 'unknown'")
        df["gender"] = "unknown"

    df = df[["subject_id", "session", "gender", "time", emotion]].rename(
        columns={emotion: "intensity"}
    )

    ids = df["subject_id"]
    df["subject_id"] = ids.astype(str).str.strip().where(ids.notna())

    excluded = [str(s).strip() for s in excluded_subjects]
    if excluded:
        # Exclusions match the raw export ID or its normalised form ("S07" ~ "007")
        excluded_keys = set(normalize_ids(pd.Series(excluded), id_pattern, id_zero_pad))
        keys = normalize_ids(df["subject_id"], id_pattern, id_zero_pad)
        df = df[~(df["subject_id"].isin(excluded) | keys.isin(excluded_keys))].copy()
        logger.info(f"After subject exclusions: {len(df):,} samples")

    df["gender"] = _normalize_gender(df["gender"])
    df["time"] = _to_seconds(df["time"])
    # Facial coders write e.g. FIT_FAILED for frames without a detected face
    df["intensity"] = pd.to_numeric(df["intensity"], errors="coerce")

    df = df.dropna(subset=["subject_id", "session", "time", "intensity"])
    logger.info(f"After missing value removal: {len(df):,} samples")

    df["session"] = coerce_sessions(df["session"])

    low, high = intensity_bounds
    out_of_range = ((df["intensity"] < low) | (df["intensity"] > high)).sum()
    if out_of_range:
        logger.warning(f"Clipping {out_of_range:,} intensities outside [{low}, {high}]")
    df["intensity"] = df["intensity"].clip(low, high)

    n_before = len(df)
    df = df.drop_duplicates(subset=["subject_id", "session", "time"], keep="first")
    if len(df) < n_before:
        logger.info(f"Removed {n_before - len(df):,} duplicated samples")

    df["time"] = df["time"] - df.groupby(KEY_COLUMNS)["time"].transform("min")
    df = df.sort_values(KEY_COLUMNS + ["time"]).reset_index(drop=True)

    counts = df.groupby(KEY_COLUMNS)["intensity"].transform("size")
    short = df.loc[counts < min_samples_per_session, KEY_COLUMNS].drop_duplicates()
    if len(short):
        logger.warning(
            f"Dropping {len(short)} sessions with fewer than "
            f"{min_samples_per_session} samples"
        )
    df = df[counts >= min_samples_per_session].reset_index(drop=True)

    n_sessions = df.groupby(KEY_COLUMNS).ngroups
    logger.info(f"Cleaning complete: {len(df):,} samples in {n_sessions} sessions")
    return df


def validate_wide_table(wide: pd.DataFrame) -> None:
    """
    Check that a table has exactly one row per subject-session.

    Raises
    ------
    ValueError
        If the index has duplicated (subject_id, session) keys
    """
    if list(wide.index.names) != KEY_COLUMNS:
        raise ValueError(f"Expected index {KEY_COLUMNS}, got {list(wide.index.names)}")

    duplicated = wide.index[wide.index.duplicated()].unique()
    if len(duplicated):
        raise ValueError(
            f"{len(duplicated)} subject-sessions appear more than once, "
            f"e.g. {list(duplicated[:3])}"
        )


def reshape_to_wide(long: pd.DataFrame, bin_width: float = 1.0) -> pd.DataFrame:
    """
    Reshape cleaned recordings to one row per subject-session.

    Samples are averaged within bins of ``bin_width`` seconds.

    Parameters
    ----------
    long : pd.DataFrame
        Output of :func:`clean_emotion_data`
    bin_width : float
        Bin width in seconds

    Returns
    -------
    pd.DataFrame
        Index ``(subject_id, session)``, one column per bin start time,
        NaN for empty bins
    """
    if bin_width <= 0:
        raise ValueError("bin_width must be positive")

    df = long.copy()
    df["time_bin"] = np.floor(df["time"] / bin_width) * bin_width

    wide = (
        df.groupby(KEY_COLUMNS + ["time_bin"])["intensity"]
        .mean()
        .unstack("time_bin")
        .sort_index(axis=1)
    )
    wide.columns.name = "time"

    validate_wide_table(wide)
    logger.info(f"Reshaped to {wide.shape[0]} sessions x {wide.shape[1]} time bins")
    return wide


def session_covariates(long: pd.DataFrame) -> pd.DataFrame:
    """
    Session-level covariates from the cleaned recordings.

    Parameters
    ----------
    long : pd.DataFrame
        Output of :func:`clean_emotion_data`

    Returns
    -------
    pd.DataFrame
        Index ``(subject_id, session)`` with ``gender``, ``duration``,
        ``n_samples`` and ``mean_intensity``
    """
    grouped = long.groupby(KEY_COLUMNS)
    covariates = pd.DataFrame({
        "gender": grouped["gender"].agg(lambda g: g.mode().iat[0]),
        "duration": grouped["time"].max(),
        "n_samples": grouped["intensity"].size(),
        "mean_intensity": grouped["intensity"].mean(),
    })

    inconsistent = long.groupby("subject_id")["gender"].nunique()
    inconsistent = inconsistent[inconsistent > 1]
    if len(inconsistent):
        logger.warning(
            f"Subjects with inconsistent gender codes: {list(inconsistent.index)}"
        )

    return covariates

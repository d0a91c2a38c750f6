"""
Strategy-use database: cleaning, aggregation and linkage to the emotion data.

The coders' spreadsheet has one row per problem attempt. Attempts are
aggregated to accuracy and strategy-use proportions per child (and per
session when sessions were recorded), then joined to the smoothed emotion
curves on normalised identifiers.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Optional

import pandas as pd

from joymath.data.preprocessing import (
    KEY_COLUMNS,
    coerce_sessions,
    normalize_ids,
    standardize_columns,
    validate_wide_table,
)

logger = logging.getLogger(__name__)

STRATEGY_COLUMN_MAPPING = {
    "child": "child_id",
    "childid": "child_id",
    "subject": "child_id",
    "subject_id": "child_id",
    "participant": "child_id",
    "id": "child_id",
    "type": "problem_type",
    "problem": "problem_type",
    "problemtype": "problem_type",
    "accuracy": "correct",
    "correctness": "correct",
    "is_correct": "correct",
    "strategy_used": "strategy",
    "session_id": "session",
}

CORRECT_VALUES = {
    "1": 1, "1.0": 1, "yes": 1, "y": 1, "true": 1, "correct": 1, "c": 1,
    "0": 0, "0.0": 0, "no": 0, "n": 0, "false": 0, "incorrect": 0, "wrong": 0, "i": 0,
}

UNCODED = "uncoded"


def _coerce_correct(values: pd.Series) -> pd.Series:
    text = values.astype(str).str.strip().str.lower()
    return text.map(CORRECT_VALUES)


def clean_strategy_data(
    raw_data: pd.DataFrame,
    column_mapping: Optional[Dict[str, str]] = None,
    strategy_mapping: Optional[Dict[str, str]] = None,
    problem_types: Iterable[str] = (),
    id_pattern: str = r"(\d+)",
    id_zero_pad: int = 3,
) -> pd.DataFrame:
    """
    Clean attempt-level strategy records.

    Parameters
    ----------
    raw_data : pd.DataFrame
        Raw spreadsheet rows
    column_mapping : Optional[Dict[str, str]]
        Column aliases; defaults to :data:`STRATEGY_COLUMN_MAPPING`
    strategy_mapping : Optional[Dict[str, str]]
        Raw label (lower-case) -> harmonised strategy label
    problem_types : Iterable[str]
        Problem types to keep (case-insensitive); empty keeps all
    id_pattern, id_zero_pad
        Passed to :func:`normalize_ids`

    Returns
    -------
    pd.DataFrame
        Columns ``child_id``, ``correct`` (0/1), ``strategy`` and, where
        present, ``session`` and ``problem_type``
    """
    logger.info(f"Cleaning {len(raw_data):,} strategy records")
    df = standardize_columns(raw_data, column_mapping or STRATEGY_COLUMN_MAPPING)

    required = ["child_id", "correct"]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"Strategy data is missing required columns {missing}; "
            f"available columns: {list(df.columns)}"
        )

    df["child_id"] = normalize_ids(df["child_id"], id_pattern, id_zero_pad)

    raw_correct = df["correct"]
    df["correct"] = _coerce_correct(raw_correct)
    unreadable = df["correct"].isna() & raw_correct.notna()
    if unreadable.any():
        examples = sorted(raw_correct[unreadable].astype(str).unique())[:5]
        logger.warning(f"{unreadable.sum():,} unreadable correctness codes, e.g. {examples}")

    df = df.dropna(subset=["child_id", "correct"])
    df["correct"] = df["correct"].astype(int)
    logger.info(f"After missing value removal: {len(df):,} records")

    if "strategy" in df.columns:
        labels = df["strategy"].astype(str).str.strip().str.lower()
        labels = labels.where(df["strategy"].notna() & (labels != ""), UNCODED)
        if strategy_mapping:
            labels = labels.map(lambda s: strategy_mapping.get(s, s))
        df["strategy"] = labels
    else:
        logger.warning("No strategy column found; strategy use not available")
        df["strategy"] = UNCODED

    problem_types = [str(p).strip().lower() for p in problem_types]
    if problem_types:
        if "problem_type" not in df.columns:
            raise ValueError("Problem-type filter requested but no problem_type column")
        df["problem_type"] = df["problem_type"].astype(str).str.strip().str.lower()
        df = df[df["problem_type"].isin(problem_types)]
        logger.info(f"After problem-type filter {problem_types}: {len(df):,} records")

    if "session" in df.columns:
        missing_session = df["session"].isna()
        if missing_session.all():
            logger.warning("Session column is empty; strategy records are per child")
            df = df.drop(columns=["session"])
        else:
            if missing_session.any():
                logger.warning(f"Dropping {missing_session.sum():,} records without a session")
                df = df[~missing_session].copy()
            df["session"] = coerce_sessions(df["session"])

    keep = [c for c in ["child_id", "session", "problem_type", "correct", "strategy"] if c in df.columns]
    return df[keep].reset_index(drop=True)


def aggregate_strategies(clean: pd.DataFrame, by_session: bool = True) -> pd.DataFrame:
    """
    Aggregate attempts to accuracy and strategy-use summaries.

    Parameters
    ----------
    clean : pd.DataFrame
        Output of :func:`clean_strategy_data`
    by_session : bool
        Aggregate per child and session (requires a ``session`` column)

    Returns
    -------
    pd.DataFrame
        One row per child (or child-session) with ``n_attempts``,
        ``n_correct``, ``accuracy``, ``n_<strategy>``, ``prop_<strategy>``,
        ``n_strategies`` and ``dominant_strategy``
    """
    if clean.empty:
        raise ValueError("No strategy records to aggregate")

    if by_session and "session" not in clean.columns:
        logger.warning("No session column in strategy data; aggregating per child")
        by_session = False
    keys = ["child_id", "session"] if by_session else ["child_id"]

    grouped = clean.groupby(keys)
    summary = pd.DataFrame({
        "n_attempts": grouped["correct"].size(),
        "n_correct": grouped["correct"].sum(),
    })
    summary["accuracy"] = summary["n_correct"] / summary["n_attempts"]

    counts = (
        clean.groupby(keys + ["strategy"]).size()
        .unstack("strategy", fill_value=0)
        .reindex(summary.index, fill_value=0)
    )
    counts = counts[sorted(counts.columns)]

    for strategy in counts.columns:
        name = re.sub(r"\W+", "_", strategy).strip("_")
        summary[f"n_{name}"] = counts[strategy]
        summary[f"prop_{name}"] = counts[strategy] / summary["n_attempts"]

    summary["n_strategies"] = (counts > 0).sum(axis=1)
    summary["dominant_strategy"] = counts.idxmax(axis=1)

    logger.info(
        f"Aggregated {len(clean):,} attempts to {len(summary)} "
        f"{'child-sessions' if by_session else 'children'} "
        f"(mean accuracy {summary['accuracy'].mean():.3f})"
    )
    return summary


def _align_session_types(left: pd.Series, right: pd.Series):
    if left.dtype == right.dtype:
        return left, right

    left_num = pd.to_numeric(left, errors="coerce")
    right_num = pd.to_numeric(right, errors="coerce")
    whole = all(
        num.notna().all() and (num % 1 == 0).all() for num in (left_num, right_num)
    )
    if whole:
        return left_num.astype("int64"), right_num.astype("int64")
    return left.astype(str), right.astype(str)


def link_strategy_to_emotion(
    emotion_sessions: pd.DataFrame,
    summary: pd.DataFrame,
    id_pattern: str = r"(\d+)",
    id_zero_pad: int = 3,
) -> pd.DataFrame:
    """
    Join strategy summaries to emotion sessions.

    Parameters
    ----------
    emotion_sessions : pd.DataFrame
        Session-level emotion table indexed by ``(subject_id, session)``
        (e.g. covariates from :func:`joymath.data.preprocessing.session_covariates`)
    summary : pd.DataFrame
        Output of :func:`aggregate_strategies`; joined on child and session
        when its index includes ``session``, on child alone otherwise
    id_pattern, id_zero_pad
        Passed to :func:`normalize_ids` for the emotion-side identifiers

    Returns
    -------
    pd.DataFrame
        Inner join indexed by ``(subject_id, session)``, one row per
        subject-session
    """
    left = emotion_sessions.reset_index()
    left["child_id"] = normalize_ids(left["subject_id"], id_pattern, id_zero_pad)

    right = summary.reset_index()
    keys = ["child_id", "session"] if "session" in summary.index.names else ["child_id"]
    if "session" in keys:
        left["session"], right["session"] = _align_session_types(left["session"], right["session"])

    emotion_ids = set(left["child_id"])
    strategy_ids = set(right["child_id"])
    only_emotion = sorted(emotion_ids - strategy_ids)
    only_strategy = sorted(strategy_ids - emotion_ids)
    if only_emotion:
        logger.warning(f"{len(only_emotion)} children without strategy records: {only_emotion}")
    if only_strategy:
        logger.warning(f"{len(only_strategy)} children without emotion data: {only_strategy}")

    linked = left.merge(right, on=keys, how="inner", validate="many_to_one")
    linked = linked.set_index(KEY_COLUMNS)
    validate_wide_table(linked)

    logger.info(
        f"Linked {len(linked)} of {len(left)} emotion sessions to strategy data "
        f"on {keys}"
    )
    return linked

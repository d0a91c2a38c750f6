"""
Synthetic DEMO data for development and testing ONLY.

The generated tables mimic the layout of the facial-coding export and of the
strategy-coding spreadsheet so that the pipeline can be exercised end to end.
They are NOT study data and must not be used to draw conclusions.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

logger = logging.getLogger(__name__)

STRATEGIES = ["retrieval", "decomposition", "counting", "guessing"]
PROBLEM_TYPES = ["addition", "subtraction"]


def _joy_profile(t: np.ndarray, level: float, peak_time: float, peak_height: float) -> np.ndarray:
    """Latent joy on the logit scale: baseline plus one bump."""
    return level + peak_height * np.exp(-((t - peak_time) ** 2) / 0.02)


def generate_demo_data(
    n_subjects: int = 20,
    n_sessions: int = 2,
    session_seconds: float = 60.0,
    sample_rate: float = 2.0,
    n_attempts: int = 12,
    seed: int = 12345,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Generate a demo emotion table and matching strategy records.

    Children with a late joy peak are given a higher chance of answering
    correctly, so the functional model has something to find.

    Parameters
    ----------
    n_subjects : int
        Number of simulated children
    n_sessions : int
        Sessions per child
    session_seconds : float
        Recording length per session
    sample_rate : float
        Samples per second
    n_attempts : int
        Problem attempts per child and session
    seed : int
        Random seed

    Returns
    -------
    Tuple[pd.DataFrame, pd.DataFrame]
        (emotion_data, strategy_data) in raw export layout
    """
    rng = np.random.default_rng(seed)
    n_samples = int(session_seconds * sample_rate)
    times = np.arange(n_samples) / sample_rate

    emotion_rows = []
    strategy_rows = []

    for subject in range(1, n_subjects + 1):
        gender = "F" if subject % 2 else "M"
        level = rng.normal(-3.0, 0.5)

        for session in range(1, n_sessions + 1):
            peak_time = rng.uniform(0.1, 0.9)
            peak_height = rng.uniform(0.5, 3.0)
            latent = _joy_profile(times / session_seconds, level, peak_time, peak_height)
            joy = expit(latent + rng.normal(0, 0.3, size=n_samples))
            anger = expit(rng.normal(-4.0, 0.5, size=n_samples))

            for t, j, a in zip(times, joy, anger):
                emotion_rows.append({
                    "Subject": f"S{subject:02d}",
                    "Session": session,
                    "Gender": gender,
                    "Time": round(float(t), 3),
                    "Happy": float(j),
                    "Angry": float(a),
                })

            p_correct = expit(-0.5 + 1.5 * peak_time + 0.3 * peak_height)
            for attempt in range(n_attempts):
                correct = rng.random() < p_correct
                if correct:
                    strategy = rng.choice(STRATEGIES[:3], p=[0.5, 0.3, 0.2])
                else:
                    strategy = rng.choice(STRATEGIES, p=[0.1, 0.2, 0.3, 0.4])
                strategy_rows.append({
                    "Child ID": f"S-{subject:02d}",
                    "Session": session,
                    "Problem Type": PROBLEM_TYPES[attempt % len(PROBLEM_TYPES)],
                    "Correct": "yes" if correct else "no",
                    "Strategy": str(strategy),
                })

    emotion_data = pd.DataFrame(emotion_rows)
    strategy_data = pd.DataFrame(strategy_rows)

    logger.info(
        f"Generated DEMO data: {len(emotion_data):,} emotion samples, "
        f"{len(strategy_data):,} strategy records"
    )
    return emotion_data, strategy_data

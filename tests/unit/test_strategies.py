"""
Unit tests for the strategy-use database.
"""

import logging

import numpy as np
import pandas as pd
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from joymath.analysis.strategies import (
    UNCODED,
    aggregate_strategies,
    clean_strategy_data,
    link_strategy_to_emotion,
    normalize_ids,
)
from joymath.config.settings import PreprocessingConfig, StrategyConfig
from joymath.data.preprocessing import clean_emotion_data, session_covariates
from joymath.data.synthetic import generate_demo_data

STRATEGY_MAPPING = StrategyConfig().strategy_mapping


def make_records():
    return pd.DataFrame({
        "Child ID": ["S-01", "S-01", "S-01", "S-01", "s2", "s2", "S-03"],
        "Session": [1, 1, 2, 2, 1, 1, 1],
        "Problem Type": ["Addition", "Addition", "Addition", "Subtraction", "Addition", "Addition", "Addition"],
        "Correct": ["Yes", "no", "1", 0, True, "maybe", "yes"],
        "Strategy": ["Recall", "Count On", "recall", None, "Count On", "recall", "Decomposition"],
    })


class TestNormalizeIds:
    """Tests for identifier normalisation."""

    def test_variants_collapse(self):
        ids = pd.Series(["S-07 ", "s7", 7, "7.0", "007"])
        assert normalize_ids(ids).tolist() == ["007"] * 5

    def test_unmatched_kept(self):
        ids = pd.Series([" pilot "])
        assert normalize_ids(ids).tolist() == ["pilot"]

    def test_missing_stays_missing(self):
        ids = pd.Series(["S1", np.nan])
        result = normalize_ids(ids)
        assert result.iat[0] == "001"
        assert pd.isna(result.iat[1])

    def test_padding_width(self):
        assert normalize_ids(pd.Series(["S12"]), zero_pad=4).tolist() == ["0012"]


class TestCleanStrategyData:
    """Tests for attempt-level cleaning."""

    def test_correctness_codes(self):
        clean = clean_strategy_data(make_records(), strategy_mapping=STRATEGY_MAPPING)

        # "maybe" is unreadable and dropped
        assert len(clean) == 6
        assert clean["correct"].tolist() == [1, 0, 1, 0, 1, 1]

    def test_strategy_labels(self):
        clean = clean_strategy_data(make_records(), strategy_mapping=STRATEGY_MAPPING)

        assert clean["strategy"].tolist() == [
            "retrieval", "counting", "retrieval", UNCODED, "counting", "decomposition",
        ]

    def test_identifiers_and_sessions(self):
        clean = clean_strategy_data(make_records())
        assert set(clean["child_id"]) == {"001", "002", "003"}
        assert pd.api.types.is_integer_dtype(clean["session"])

    def test_problem_type_filter(self):
        clean = clean_strategy_data(make_records(), problem_types=["addition"])
        assert len(clean) == 5
        assert set(clean["problem_type"]) == {"addition"}

    def test_filter_without_column(self):
        records = make_records().drop(columns=["Problem Type"])
        with pytest.raises(ValueError, match="problem_type"):
            clean_strategy_data(records, problem_types=["addition"])

    def test_missing_correct_column(self):
        records = make_records().drop(columns=["Correct"])
        with pytest.raises(ValueError, match="missing required columns"):
            clean_strategy_data(records)

    def test_missing_session_cell(self):
        records = make_records()
        records.loc[1, "Session"] = np.nan

        clean = clean_strategy_data(records)

        assert len(clean) == 5
        assert pd.api.types.is_integer_dtype(clean["session"])

    def test_empty_session_column(self):
        records = make_records()
        records["Session"] = np.nan

        clean = clean_strategy_data(records)

        assert "session" not in clean.columns
        assert list(aggregate_strategies(clean).index.names) == ["child_id"]

    def test_missing_strategy_column(self):
        records = make_records().drop(columns=["Strategy"])
        clean = clean_strategy_data(records)
        assert set(clean["strategy"]) == {UNCODED}


class TestAggregateStrategies:
    """Tests for per-session aggregation."""

    @pytest.fixture
    def clean(self):
        return clean_strategy_data(make_records(), strategy_mapping=STRATEGY_MAPPING)

    def test_counts_and_accuracy(self, clean):
        summary = aggregate_strategies(clean)

        assert list(summary.index.names) == ["child_id", "session"]
        assert len(summary) == 4

        row = summary.loc[("001", 1)]
        assert row["n_attempts"] == 2
        assert row["n_correct"] == 1
        assert row["accuracy"] == pytest.approx(0.5)
        assert row["n_retrieval"] == 1
        assert row["prop_counting"] == pytest.approx(0.5)
        assert row["n_strategies"] == 2

    def test_dominant_strategy(self, clean):
        summary = aggregate_strategies(clean)
        assert summary.loc[("002", 1), "dominant_strategy"] == "counting"
        assert summary.loc[("003", 1), "dominant_strategy"] == "decomposition"

    def test_proportions_sum_to_one(self, clean):
        summary = aggregate_strategies(clean)
        props = summary.filter(like="prop_")
        np.testing.assert_allclose(props.sum(axis=1), 1.0)

    def test_per_child(self, clean):
        summary = aggregate_strategies(clean, by_session=False)
        assert list(summary.index.names) == ["child_id"]
        assert summary.loc["001", "n_attempts"] == 4
        assert summary.loc["001", "accuracy"] == pytest.approx(0.5)

    def test_falls_back_without_session(self, clean):
        summary = aggregate_strategies(clean.drop(columns=["session"]), by_session=True)
        assert list(summary.index.names) == ["child_id"]

    def test_empty(self, clean):
        with pytest.raises(ValueError):
            aggregate_strategies(clean.iloc[:0])


class TestLinkStrategyToEmotion:
    """Tests for joining strategy summaries to emotion sessions."""

    @pytest.fixture
    def sessions(self):
        index = pd.MultiIndex.from_tuples(
            [("S01", 1), ("S01", 2), ("S02", 1), ("S04", 1)],
            names=["subject_id", "session"],
        )
        return pd.DataFrame({"gender": ["female", "female", "male", "male"]}, index=index)

    @pytest.fixture
    def clean(self):
        return clean_strategy_data(make_records(), strategy_mapping=STRATEGY_MAPPING)

    def test_join_by_session(self, sessions, clean):
        linked = link_strategy_to_emotion(sessions, aggregate_strategies(clean))

        assert len(linked) == 3
        assert list(linked.index.names) == ["subject_id", "session"]
        assert linked.loc[("S01", 2), "accuracy"] == pytest.approx(0.5)
        assert linked.loc[("S02", 1), "gender"] == "male"

    def test_join_per_child(self, sessions, clean):
        linked = link_strategy_to_emotion(sessions, aggregate_strategies(clean, by_session=False))

        assert len(linked) == 3
        assert linked.loc[("S01", 1), "n_attempts"] == 4
        assert linked.loc[("S01", 2), "n_attempts"] == 4

    def test_string_sessions(self, sessions, clean):
        sessions.index = sessions.index.set_levels(["1", "2"], level="session")
        linked = link_strategy_to_emotion(sessions, aggregate_strategies(clean))
        assert len(linked) == 3

    def test_float_and_integer_sessions_match(self, sessions, clean):
        sessions.index = sessions.index.set_levels([1.0, 2.0], level="session")
        linked = link_strategy_to_emotion(sessions, aggregate_strategies(clean))
        assert len(linked) == 3

    def test_unmatched_children_are_logged(self, sessions, clean, caplog):
        with caplog.at_level(logging.WARNING):
            link_strategy_to_emotion(sessions, aggregate_strategies(clean))

        assert "children without strategy records: ['004']" in caplog.text
        assert "children without emotion data: ['003']" in caplog.text

    def test_blank_session_cells_on_both_sides(self):
        emotion, strategy = generate_demo_data(n_subjects=4, session_seconds=20.0, seed=3)
        emotion.loc[0, "Session"] = np.nan
        strategy.loc[0, "Session"] = np.nan

        clean_emotion = clean_emotion_data(
            emotion, column_mapping=PreprocessingConfig().column_mapping
        )
        summary = aggregate_strategies(clean_strategy_data(strategy))
        linked = link_strategy_to_emotion(session_covariates(clean_emotion), summary)

        assert len(linked) == 8
        assert linked.index.get_level_values("session").dtype == "int64"

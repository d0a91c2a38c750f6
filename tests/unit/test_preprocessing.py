"""
Unit tests for emotion data cleaning and reshaping.
"""

import logging

import numpy as np
import pandas as pd
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from joymath.config.settings import PreprocessingConfig
from joymath.data.preprocessing import (
    apply_corrections,
    clean_emotion_data,
    coerce_sessions,
    reshape_to_wide,
    session_covariates,
    standardize_columns,
    validate_wide_table,
)

MAPPING = PreprocessingConfig().column_mapping


def make_raw(n_samples=20):
    """Two children, two sessions each, samples every half second."""
    rows = []
    for subject, gender in [("S01", "F"), ("S02", "M")]:
        for session in (1, 2):
            for i in range(n_samples):
                rows.append({
                    "Subject": subject,
                    "Session": session,
                    "Gender": gender,
                    "Time": 100.0 + i * 0.5,
                    "Happy": 0.1 + 0.01 * i,
                    "Angry": 0.05,
                })
    return pd.DataFrame(rows)


class TestStandardizeColumns:
    """Tests for column standardisation."""

    def test_aliases_are_renamed(self):
        df = standardize_columns(make_raw(), MAPPING)
        assert {"subject_id", "session", "gender", "time", "joy", "angry"} <= set(df.columns)

    def test_existing_target_is_not_overwritten(self):
        raw = pd.DataFrame({"subject_id": ["a"], "ID": ["b"]})
        df = standardize_columns(raw, MAPPING)
        assert list(df.columns) == ["subject_id", "id"]
        assert df["subject_id"].iat[0] == "a"

    def test_whitespace_in_names(self):
        raw = pd.DataFrame({" Video  Time ": [1.0]})
        df = standardize_columns(raw, MAPPING)
        assert list(df.columns) == ["time"]


class TestApplyCorrections:
    """Tests for manual data corrections."""

    def test_matching_rows_are_corrected(self):
        df = standardize_columns(make_raw(), MAPPING)
        corrected = apply_corrections(df, [
            {"match": {"subject_id": "S01", "session": "2"}, "set": {"gender": "M"}},
        ])

        mask = (corrected["subject_id"] == "S01") & (corrected["session"] == 2)
        assert (corrected.loc[mask, "gender"] == "M").all()
        assert (corrected.loc[~mask & (corrected["subject_id"] == "S01"), "gender"] == "F").all()

    def test_original_is_not_modified(self):
        df = standardize_columns(make_raw(), MAPPING)
        apply_corrections(df, [{"match": {"subject_id": "S01"}, "set": {"gender": "X"}}])
        assert "X" not in set(df["gender"])

    def test_no_match_leaves_data_unchanged(self, caplog):
        df = standardize_columns(make_raw(), MAPPING)
        with caplog.at_level(logging.WARNING):
            corrected = apply_corrections(df, [{"match": {"subject_id": "S99"}, "set": {"gender": "M"}}])

        pd.testing.assert_frame_equal(corrected, df)
        assert "matched no rows" in caplog.text

    def test_unknown_column_raises(self):
        df = standardize_columns(make_raw(), MAPPING)
        with pytest.raises(ValueError):
            apply_corrections(df, [{"match": {"classroom": "A"}, "set": {"gender": "M"}}])


class TestCleanEmotionData:
    """Tests for cleaning the long-format recordings."""

    def test_output_layout(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        assert list(clean.columns) == ["subject_id", "session", "gender", "time", "intensity"]
        assert len(clean) == 80

    def test_time_is_relative_to_session_start(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        starts = clean.groupby(["subject_id", "session"])["time"].min()
        assert (starts == 0).all()
        assert clean["time"].max() == pytest.approx(9.5)

    def test_gender_is_normalized(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        assert set(clean["gender"]) == {"female", "male"}

    def test_failed_frames_and_out_of_range_values(self):
        raw = make_raw()
        raw["Happy"] = raw["Happy"].astype(object)
        raw.loc[0, "Happy"] = "FIT_FAILED"
        raw.loc[1, "Happy"] = 1.2
        raw.loc[2, "Happy"] = -0.1

        clean = clean_emotion_data(raw, column_mapping=MAPPING)

        assert len(clean) == 79
        assert clean["intensity"].between(0, 1).all()
        assert clean["intensity"].max() == 1.0
        assert clean["intensity"].min() == 0.0

    def test_duplicate_samples_are_removed(self):
        raw = pd.concat([make_raw(), make_raw().iloc[:5]], ignore_index=True)
        clean = clean_emotion_data(raw, column_mapping=MAPPING)
        assert len(clean) == 80

    def test_short_sessions_are_dropped(self):
        raw = make_raw()
        raw = raw[~((raw["Subject"] == "S02") & (raw["Session"] == 2) & (raw["Time"] > 102))]

        clean = clean_emotion_data(raw, column_mapping=MAPPING, min_samples_per_session=10)

        sessions = set(map(tuple, clean[["subject_id", "session"]].drop_duplicates().to_numpy()))
        assert ("S02", 2) not in sessions
        assert len(sessions) == 3

    def test_excluded_subjects(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING, excluded_subjects=["S02"])
        assert set(clean["subject_id"]) == {"S01"}

    def test_blank_session_cell_keeps_integer_sessions(self):
        raw = make_raw()
        raw.loc[0, "Session"] = np.nan

        clean = clean_emotion_data(raw, column_mapping=MAPPING)

        assert pd.api.types.is_integer_dtype(clean["session"])
        assert sorted(clean["session"].unique()) == [1, 2]
        assert len(clean) == 79

    def test_blank_subject_cells_are_dropped(self):
        raw = make_raw()
        raw.loc[:20, "Subject"] = np.nan

        clean = clean_emotion_data(raw, column_mapping=MAPPING)

        assert set(clean["subject_id"]) == {"S01", "S02"}
        assert len(clean) == 80 - 21

    def test_exclusions_match_normalized_ids(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING, excluded_subjects=["002"])
        assert set(clean["subject_id"]) == {"S01"}

    def test_timestamp_strings(self):
        raw = make_raw()
        raw["Time"] = [f"00:00:{t:06.3f}" for t in np.tile(np.arange(20) * 0.5, 4)]

        clean = clean_emotion_data(raw, column_mapping=MAPPING)

        assert clean["time"].max() == pytest.approx(9.5)

    def test_missing_gender_column(self):
        raw = make_raw().drop(columns=["Gender"])
        clean = clean_emotion_data(raw, column_mapping=MAPPING)
        assert set(clean["gender"]) == {"unknown"}

    def test_missing_emotion_raises(self):
        with pytest.raises(ValueError, match="missing required columns"):
            clean_emotion_data(make_raw(), emotion="surprise", column_mapping=MAPPING)

    def test_corrections_are_applied(self):
        corrections = [{"match": {"subject_id": "S02"}, "set": {"subject_id": "S03"}}]
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING, corrections=corrections)
        assert set(clean["subject_id"]) == {"S01", "S03"}


class TestReshapeToWide:
    """Tests for the long-to-wide reshape."""

    def test_one_row_per_session(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        wide = reshape_to_wide(clean, bin_width=1.0)

        assert wide.shape == (4, 10)
        assert list(wide.index.names) == ["subject_id", "session"]
        assert not wide.index.duplicated().any()

    def test_bins_average_samples(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        wide = reshape_to_wide(clean, bin_width=1.0)

        # Bin [0, 1) holds the samples at 0.0 s (0.10) and 0.5 s (0.11)
        assert wide.loc[("S01", 1), 0.0] == pytest.approx(0.105)

    def test_empty_bins_are_nan(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        clean = clean[~((clean["subject_id"] == "S01") & (clean["time"].between(3, 4.9)))]

        wide = reshape_to_wide(clean, bin_width=1.0)

        assert np.isnan(wide.loc[("S01", 1), 3.0])
        assert np.isnan(wide.loc[("S01", 1), 4.0])
        assert np.isfinite(wide.loc[("S02", 1), 3.0])

    def test_invalid_bin_width(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        with pytest.raises(ValueError):
            reshape_to_wide(clean, bin_width=0)


class TestValidateWideTable:
    """Tests for the one-row-per-session invariant."""

    def test_duplicates_raise(self):
        index = pd.MultiIndex.from_tuples([("S01", 1), ("S01", 1)], names=["subject_id", "session"])
        with pytest.raises(ValueError, match="more than once"):
            validate_wide_table(pd.DataFrame({"x": [1, 2]}, index=index))

    def test_wrong_index_raises(self):
        with pytest.raises(ValueError):
            validate_wide_table(pd.DataFrame({"x": [1, 2]}))


class TestSessionCovariates:
    """Tests for session-level covariates."""

    def test_covariates(self):
        clean = clean_emotion_data(make_raw(), column_mapping=MAPPING)
        covariates = session_covariates(clean)

        assert len(covariates) == 4
        assert covariates.loc[("S01", 1), "gender"] == "female"
        assert covariates.loc[("S02", 2), "n_samples"] == 20
        assert covariates.loc[("S01", 1), "duration"] == pytest.approx(9.5)


class TestCoerceSessions:
    """Tests for session label coercion."""

    def test_float_sessions_become_integers(self):
        result = coerce_sessions(pd.Series([1.0, 2.0, 2.0]))
        assert result.dtype == "int64"
        assert result.tolist() == [1, 2, 2]

    def test_missing_values_are_kept(self):
        result = coerce_sessions(pd.Series([1.0, np.nan, 2.0]))
        assert pd.api.types.is_integer_dtype(result)
        assert result.isna().sum() == 1

    def test_numeric_strings(self):
        assert coerce_sessions(pd.Series(["1", "2"])).tolist() == [1, 2]

    def test_text_labels_unchanged(self):
        sessions = pd.Series(["pre", "post"])
        pd.testing.assert_series_equal(coerce_sessions(sessions), sessions)

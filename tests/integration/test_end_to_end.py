"""
End-to-end integration tests for the joy trajectory pipeline.

Tests the complete workflow from raw tables to model comparison, export,
figures and the command-line interface, using synthetic demo data.
"""

import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pandas as pd
import pytest

from joymath.analysis.pipeline import JoyAccuracyAnalyzer
from joymath.cli import main
from joymath.config.settings import AppConfig
from joymath.data.synthetic import generate_demo_data
from joymath.visualization.figures import FigureGenerator

N_SUBJECTS = 20
N_SESSIONS = 2


def make_config(tmp_path):
    config = AppConfig(data_dir=tmp_path / "data", results_dir=tmp_path / "results")
    config.preprocessing.corrections_path = None
    config.smoothing.n_grid = 25
    config.regression.n_basis = 4
    config.regression.basis = "bspline"
    return config


@pytest.fixture(scope="module")
def demo_data():
    return generate_demo_data(
        n_subjects=N_SUBJECTS, n_sessions=N_SESSIONS, session_seconds=40.0, seed=2024
    )


@pytest.fixture(scope="module")
def analyzer(demo_data, tmp_path_factory):
    """Analyzer after a full run on the demo data."""
    emotion, strategy = demo_data
    analyzer = JoyAccuracyAnalyzer(config=make_config(tmp_path_factory.mktemp("pipeline")))
    analyzer.set_data(emotion, strategy)
    analyzer.run_full_analysis(show_progress=False)
    return analyzer


class TestEndToEndPipeline:
    """Test the complete analysis pipeline with synthetic data."""

    def test_counts(self, analyzer):
        results = analyzer.results

        assert results.n_sessions == N_SUBJECTS * N_SESSIONS
        assert results.n_linked_sessions == N_SUBJECTS * N_SESSIONS
        assert results.n_children == N_SUBJECTS
        assert results.n_samples == N_SUBJECTS * N_SESSIONS * 80

    def test_curves_share_one_grid(self, analyzer):
        curves = analyzer.smoothing.curves
        assert curves.shape == (N_SUBJECTS * N_SESSIONS, 25)
        assert ((curves > 0) & (curves < 1)).all().all()
        assert not curves.index.duplicated().any()

    def test_outcomes(self, analyzer):
        assert set(analyzer.results.outcomes) == {"accuracy", "prop_retrieval"}

    def test_model_comparison(self, analyzer):
        res = analyzer.results.outcomes["accuracy"]

        assert set(res.comparison.index) == {"covariates", "mean_joy", "functional"}
        assert res.comparison["aic_weight"].sum() == pytest.approx(1.0)
        assert len(res.lr_tests) == 3
        for test in res.lr_tests:
            assert 0 <= test["p_value"] <= 1
            assert test["statistic"] >= 0

        frame = res.models.functional.coefficient_frame()
        assert len(frame) == 25

    def test_fpca_comparison(self, analyzer, tmp_path):
        config = make_config(tmp_path)
        config.regression.basis = "fpca"
        config.regression.n_basis = 3

        fpca = JoyAccuracyAnalyzer(config=config)
        fpca.smoothing = analyzer.smoothing
        fpca.analysis_data = analyzer.analysis_data
        fpca.fit_models()
        results = fpca.compare_models()

        assert set(results) == {"accuracy", "prop_retrieval"}
        for res in results.values():
            assert res.models.functional.basis.kind == "fpca"
            assert [(t["reduced"], t["full"]) for t in res.lr_tests] == [
                ("covariates", "mean_joy"),
                ("covariates", "functional"),
            ]
            assert res.lr_tests[1]["df"] == 3

    def test_summary_text(self, analyzer):
        text = analyzer.summary_text()
        assert "Outcome: accuracy" in text
        assert "covariates vs functional" in text

    def test_export(self, analyzer, tmp_path):
        paths = analyzer.export_results(tmp_path / "export")

        for path in paths.values():
            assert path.exists()

        with open(paths["results"]) as f:
            results = json.load(f)
        assert results["n_children"] == N_SUBJECTS
        assert "generated_at" in results
        assert "accuracy" in results["outcomes"]

        curves = pd.read_csv(paths["curves"], index_col=[0, 1])
        assert len(curves) == N_SUBJECTS * N_SESSIONS
        assert "bandwidth" in curves.columns

    def test_figures(self, analyzer, tmp_path):
        generator = FigureGenerator(tmp_path / "figures", formats=["png"], dpi=72)
        figures = generator.generate_all_figures(analyzer)

        assert "smoothed_curves" in figures
        assert "coefficient_accuracy" in figures
        for paths in figures.values():
            assert all(p.exists() for p in paths)

    def test_steps_out_of_order(self, tmp_path):
        analyzer = JoyAccuracyAnalyzer(config=make_config(tmp_path))
        with pytest.raises(ValueError, match="load_data"):
            analyzer.preprocess()
        with pytest.raises(ValueError, match="preprocess"):
            analyzer.smooth()
        with pytest.raises(ValueError, match="run_full_analysis"):
            analyzer.export_results(tmp_path)


class TestFileInputs:
    """Test loading the inputs from disk."""

    def test_pickle_and_spreadsheet(self, demo_data, tmp_path):
        emotion, strategy = demo_data
        emotion_path = tmp_path / "emotion.pkl"
        strategy_path = tmp_path / "strategy.xlsx"
        emotion.to_pickle(emotion_path)
        strategy.to_excel(strategy_path, index=False)

        analyzer = JoyAccuracyAnalyzer(config=make_config(tmp_path))
        analyzer.load_data(emotion_path, strategy_path)

        assert len(analyzer.raw_emotion) == len(emotion)
        assert len(analyzer.raw_strategy) == len(strategy)

    def test_missing_file(self, tmp_path):
        analyzer = JoyAccuracyAnalyzer(config=make_config(tmp_path))
        with pytest.raises(FileNotFoundError):
            analyzer.load_data(tmp_path / "missing.pkl", tmp_path / "missing.xlsx")


class TestCommandLine:
    """Test the CLI entry points."""

    def test_synthetic_then_smooth(self, tmp_path):
        main(["synthetic", "--n-subjects", "4", "--seed", "1", "--output", str(tmp_path)])

        emotion_path = tmp_path / "emotion_data.pkl"
        assert emotion_path.exists()
        assert (tmp_path / "strategy_data.xlsx").exists()

        output = tmp_path / "curves" / "smoothed.csv"
        main(["smooth", "--emotion-data", str(emotion_path), "--output", str(output)])

        curves = pd.read_csv(output, index_col=[0, 1])
        assert len(curves) == 8

    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])

"""
End-to-end analysis of joy trajectories and math performance.

Analysis flow:
1. Load the emotion recordings and the strategy spreadsheet
2. Clean the recordings and reshape to one row per subject-session
3. Smooth each session's joy trajectory on the logit scale
4. Aggregate strategy records and link them to the sessions
5. Fit covariates-only, mean-joy and functional-joy beta regressions
6. Compare the nested models (likelihood-ratio tests, AIC/BIC)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from joymath.config.settings import AppConfig, get_config
from joymath.data.loading import load_corrections, load_emotion_data, load_strategy_data
from joymath.data.preprocessing import clean_emotion_data, reshape_to_wide, session_covariates
from joymath.utils.helpers import ensure_directory, format_pvalue, get_timestamp, save_json
from .regression import (
    NestedModels,
    compare_information_criteria,
    fit_nested_models,
    likelihood_ratio_test,
)
from .smoothing import SmoothingResult, smooth_sessions, summarize_curves
from .strategies import aggregate_strategies, clean_strategy_data, link_strategy_to_emotion

logger = logging.getLogger(__name__)


@dataclass
class OutcomeResults:
    """Model comparison for one outcome."""

    outcome: str
    models: NestedModels
    comparison: pd.DataFrame
    lr_tests: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "nobs": self.models.nobs,
            "models": {name: fit.to_dict() for name, fit in self.models.fits.items()},
            "functional": self.models.functional.to_dict(),
            "comparison": self.comparison.reset_index().to_dict(orient="records"),
            "lr_tests": self.lr_tests,
        }


@dataclass
class AnalysisResults:
    """Complete analysis results."""

    n_samples: int
    n_sessions: int
    n_children: int
    n_linked_sessions: int
    smoothing: Dict[str, Any]
    outcomes: Dict[str, OutcomeResults] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_samples": self.n_samples,
            "n_sessions": self.n_sessions,
            "n_children": self.n_children,
            "n_linked_sessions": self.n_linked_sessions,
            "smoothing": self.smoothing,
            "outcomes": {name: res.to_dict() for name, res in self.outcomes.items()},
        }


class JoyAccuracyAnalyzer:
    """
    Analyzer relating smoothed joy curves to accuracy and strategy use.

    Each step stores its output on the instance so that it can be inspected
    or re-run on its own, the way the analysis is worked through
    interactively.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Initialize the analyzer.

        Parameters
        ----------
        config : Optional[AppConfig]
            Configuration object. Uses default if None.
        """
        self.config = config or get_config()

        self.raw_emotion: Optional[pd.DataFrame] = None
        self.raw_strategy: Optional[pd.DataFrame] = None
        self.corrections: List[Dict[str, Any]] = []

        self.clean_emotion: Optional[pd.DataFrame] = None
        self.wide: Optional[pd.DataFrame] = None
        self.covariates: Optional[pd.DataFrame] = None
        self.smoothing: Optional[SmoothingResult] = None

        self.clean_strategy: Optional[pd.DataFrame] = None
        self.strategy_summary: Optional[pd.DataFrame] = None
        self.analysis_data: Optional[pd.DataFrame] = None

        self.models: Dict[str, NestedModels] = {}
        self.outcome_results: Dict[str, OutcomeResults] = {}
        self.results: Optional[AnalysisResults] = None

    def load_data(
        self,
        emotion_path: Union[str, Path],
        strategy_path: Union[str, Path],
        sheet_name: Union[str, int] = 0,
    ) -> None:
        """
        Load the emotion recordings, the strategy spreadsheet and, when
        configured, the manual corrections file.
        """
        self.raw_emotion = load_emotion_data(emotion_path)
        self.raw_strategy = load_strategy_data(strategy_path, sheet_name=sheet_name)

        corrections_path = self.config.preprocessing.corrections_path
        if corrections_path is not None:
            self.corrections = load_corrections(corrections_path)

    def set_data(
        self,
        emotion: pd.DataFrame,
        strategy: pd.DataFrame,
        corrections: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Use tables already in memory instead of files."""
        self.raw_emotion = emotion
        self.raw_strategy = strategy
        self.corrections = list(corrections or [])

    def preprocess(self) -> pd.DataFrame:
        """
        Clean the recordings and reshape them to one row per subject-session.

        Returns
        -------
        pd.DataFrame
            Wide emotion table
        """
        if self.raw_emotion is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        cfg = self.config.preprocessing
        self.clean_emotion = clean_emotion_data(
            self.raw_emotion,
            emotion=cfg.emotion,
            column_mapping=cfg.column_mapping,
            corrections=self.corrections,
            excluded_subjects=cfg.excluded_subjects,
            intensity_bounds=(cfg.intensity_min, cfg.intensity_max),
            min_samples_per_session=cfg.min_samples_per_session,
            id_pattern=self.config.strategy.id_pattern,
            id_zero_pad=self.config.strategy.id_zero_pad,
        )
        self.wide = reshape_to_wide(self.clean_emotion, bin_width=cfg.bin_width)
        self.covariates = session_covariates(self.clean_emotion)
        return self.wide

    def smooth(self, show_progress: bool = True) -> SmoothingResult:
        """Smooth every session's trajectory onto the common grid."""
        if self.wide is None:
            raise ValueError("Emotion data not preprocessed. Call preprocess() first.")

        cfg = self.config.smoothing
        self.smoothing = smooth_sessions(
            self.wide,
            n_grid=cfg.n_grid,
            bandwidth=cfg.bandwidth,
            reg_type=cfg.reg_type,
            transform=cfg.transform,
            epsilon=cfg.epsilon,
            min_points=cfg.min_points,
            show_progress=show_progress,
        )
        return self.smoothing

    def link(self) -> pd.DataFrame:
        """
        Aggregate the strategy records and join them to the smoothed sessions.

        Returns
        -------
        pd.DataFrame
            Analysis table, one row per subject-session
        """
        if self.raw_strategy is None:
            raise ValueError("Data not loaded. Call load_data() first.")
        if self.smoothing is None:
            raise ValueError("Curves not smoothed. Call smooth() first.")

        cfg = self.config.strategy
        self.clean_strategy = clean_strategy_data(
            self.raw_strategy,
            strategy_mapping=cfg.strategy_mapping,
            problem_types=cfg.problem_types,
            id_pattern=cfg.id_pattern,
            id_zero_pad=cfg.id_zero_pad,
        )
        self.strategy_summary = aggregate_strategies(self.clean_strategy, by_session=cfg.by_session)

        curves = self.smoothing.curves
        sessions = self.covariates.loc[curves.index].join(summarize_curves(curves))
        self.analysis_data = link_strategy_to_emotion(
            sessions,
            self.strategy_summary,
            id_pattern=cfg.id_pattern,
            id_zero_pad=cfg.id_zero_pad,
        )
        if self.analysis_data.empty:
            raise ValueError("No emotion session could be linked to strategy records")
        return self.analysis_data

    def outcomes(self) -> List[str]:
        """Outcome columns analysed: accuracy plus configured strategy proportions."""
        if self.analysis_data is None:
            raise ValueError("Data not linked. Call link() first.")

        outcomes = [self.config.regression.outcome]
        for strategy in self.config.strategy.outcome_strategies:
            column = f"prop_{strategy}"
            if column in self.analysis_data.columns:
                outcomes.append(column)
            else:
                logger.warning(f"Strategy '{strategy}' never coded; skipping {column}")
        return outcomes

    def fit_models(self, outcomes: Optional[List[str]] = None) -> Dict[str, NestedModels]:
        """Fit the nested model sequence for each outcome."""
        if self.analysis_data is None:
            raise ValueError("Data not linked. Call link() first.")

        cfg = self.config.regression
        for outcome in outcomes or self.outcomes():
            self.models[outcome] = fit_nested_models(
                self.analysis_data,
                self.smoothing.curves,
                outcome=outcome,
                covariates=cfg.covariates,
                basis=cfg.basis,
                n_basis=cfg.n_basis,
                degree=cfg.spline_degree,
                squeeze=cfg.squeeze,
                maxiter=cfg.max_iterations,
                alpha=cfg.alpha,
            )
        return self.models

    def compare_models(self) -> Dict[str, OutcomeResults]:
        """
        Likelihood-ratio and information-criterion comparisons.

        The mean-joy model is nested in the functional model only for the
        B-spline basis, whose functions sum to one; with FPCA the functional
        model is tested against the covariates-only model alone.
        """
        if not self.models:
            raise ValueError("No models fitted. Call fit_models() first.")

        for outcome, models in self.models.items():
            fits = models.fits
            tests = [
                likelihood_ratio_test(fits["covariates"], fits["mean_joy"]),
                likelihood_ratio_test(fits["covariates"], fits["functional"]),
            ]
            if models.functional.basis.kind == "bspline":
                tests.append(likelihood_ratio_test(fits["mean_joy"], fits["functional"]))

            self.outcome_results[outcome] = OutcomeResults(
                outcome=outcome,
                models=models,
                comparison=compare_information_criteria(fits),
                lr_tests=tests,
            )

            for test in tests:
                logger.info(
                    f"[{outcome}] {test['reduced']} vs {test['full']}: "
                    f"LR({test['df']}) = {test['statistic']:.2f}, {format_pvalue(test['p_value'])}"
                )

        return self.outcome_results

    def run_full_analysis(self, show_progress: bool = True) -> AnalysisResults:
        """
        Run the complete analysis on loaded data.

        Returns
        -------
        AnalysisResults
        """
        self.preprocess()
        self.smooth(show_progress=show_progress)
        self.link()
        self.fit_models()
        self.compare_models()

        self.results = AnalysisResults(
            n_samples=len(self.clean_emotion),
            n_sessions=len(self.wide),
            n_children=self.analysis_data["child_id"].nunique(),
            n_linked_sessions=len(self.analysis_data),
            smoothing=self.smoothing.to_dict(),
            outcomes=self.outcome_results,
        )
        logger.info("Analysis complete")
        return self.results

    def summary_text(self) -> str:
        """Console report of the model comparisons and the functional fits."""
        if self.results is None:
            raise ValueError("No results. Call run_full_analysis() first.")

        lines = [
            "JOY TRAJECTORIES AND MATH PERFORMANCE",
            "=" * 60,
            f"Samples: {self.results.n_samples:,}   "
            f"Sessions: {self.results.n_sessions}   "
            f"Linked sessions: {self.results.n_linked_sessions}   "
            f"Children: {self.results.n_children}",
            f"Median bandwidth: {self.results.smoothing['bandwidth_median']:.3f} "
            f"({self.results.smoothing['n_skipped']} sessions skipped)",
        ]

        for outcome, res in self.results.outcomes.items():
            lines += ["", f"Outcome: {outcome}", "-" * 60]
            lines.append(res.comparison.round(3).to_string())
            lines.append("")
            for test in res.lr_tests:
                lines.append(
                    f"  {test['reduced']} vs {test['full']}: "
                    f"chi2({test['df']}) = {test['statistic']:.2f}, {format_pvalue(test['p_value'])}"
                )
            lines += ["", str(res.models.functional.fit.result.summary())]

        return "\n".join(lines)

    def export_results(self, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Export results to JSON and tables to CSV.

        Parameters
        ----------
        output_dir : Union[str, Path]
            Output directory

        Returns
        -------
        Dict[str, Path]
            Written files by name
        """
        if self.results is None:
            raise ValueError("No results to export. Call run_full_analysis() first.")

        output_dir = ensure_directory(output_dir)
        paths = {
            "results": output_dir / "results.json",
            "curves": output_dir / "smoothed_curves.csv",
            "analysis_data": output_dir / "analysis_data.csv",
        }

        save_json({"generated_at": get_timestamp(), **self.results.to_dict()}, paths["results"])
        self.smoothing.curves.join(self.smoothing.bandwidths).to_csv(paths["curves"])
        self.analysis_data.to_csv(paths["analysis_data"])

        for outcome, res in self.results.outcomes.items():
            coef_path = output_dir / f"coefficient_function_{outcome}.csv"
            res.models.functional.coefficient_frame().to_csv(coef_path, index=False)
            paths[f"coefficient_function_{outcome}"] = coef_path

            comparison_path = output_dir / f"model_comparison_{outcome}.csv"
            res.comparison.to_csv(comparison_path)
            paths[f"model_comparison_{outcome}"] = comparison_path

        logger.info(f"Exported {len(paths)} files to {output_dir}")
        return paths

"""
Configuration settings for the Joy & Math research project.

This module contains all configurable parameters for the analysis pipeline,
including preprocessing, smoothing, strategy linkage, regression and
figure settings. Values can be overridden through environment variables
(or a ``.env`` file in the working directory).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.parent.absolute()
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"


@dataclass
class PreprocessingConfig:
    """Configuration for cleaning and reshaping the emotion recordings."""

    # Emotion analysed (column name after standardisation)
    emotion: str = field(default_factory=lambda: os.getenv("JOYMATH_EMOTION", "joy"))

    # Column aliases found in facial-coding exports
    column_mapping: dict = field(default_factory=lambda: {
        "subject": "subject_id",
        "subject_id": "subject_id",
        "subjectid": "subject_id",
        "id": "subject_id",
        "participant": "subject_id",
        "child_id": "subject_id",
        "session": "session",
        "session_id": "session",
        "gender": "gender",
        "sex": "gender",
        "time": "time",
        "timestamp": "time",
        "video_time": "time",
        "happy": "joy",
        "happiness": "joy",
    })

    # FaceReader-style intensities live in [0, 1]
    intensity_min: float = 0.0
    intensity_max: float = 1.0

    # Width of the time bins (seconds) used for the wide table
    bin_width: float = 1.0

    # Sessions with fewer cleaned samples are dropped
    min_samples_per_session: int = 10

    # Subjects excluded by the analyst (e.g. withdrawn consent)
    excluded_subjects: list = field(default_factory=list)

    # JSON file with manual data corrections
    corrections_path: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["JOYMATH_CORRECTIONS"])
            if os.getenv("JOYMATH_CORRECTIONS")
            else None
        )
    )


@dataclass
class SmoothingConfig:
    """Configuration for per-session kernel smoothing."""

    # "aic" (Hurvich et al.) or "cv_ls" (least-squares cross-validation)
    bandwidth: str = field(default_factory=lambda: os.getenv("JOYMATH_BANDWIDTH", "aic"))

    # "ll" local linear or "lc" local constant
    reg_type: str = "ll"

    # Scale on which the trajectory is smoothed
    transform: str = "logit"
    epsilon: float = 1e-3

    # Points on the normalised [0, 1] session clock
    n_grid: int = 50

    # Sessions with fewer non-empty bins are skipped
    min_points: int = 10


@dataclass
class StrategyConfig:
    """Configuration for the strategy-use database."""

    # Problem types kept for the analysis (empty keeps all)
    problem_types: list = field(default_factory=list)

    # Numeric core of free-text child identifiers
    id_pattern: str = r"(\d+)"
    id_zero_pad: int = 3

    # Harmonisation of strategy labels written by different coders
    strategy_mapping: dict = field(default_factory=lambda: {
        "retrieval": "retrieval",
        "recall": "retrieval",
        "decomposition": "decomposition",
        "decompose": "decomposition",
        "count all": "counting",
        "count on": "counting",
        "counting": "counting",
        "fingers": "counting",
        "guess": "guessing",
        "guessing": "guessing",
    })

    # Join strategy summaries on session as well as on child
    by_session: bool = True

    # Strategies whose proportion of use is analysed as an outcome
    outcome_strategies: list = field(default_factory=lambda: ["retrieval"])


@dataclass
class RegressionConfig:
    """Configuration for the functional beta regression."""

    outcome: str = "accuracy"
    covariates: list = field(default_factory=lambda: ["gender", "session"])

    # "bspline" or "fpca"
    basis: str = field(default_factory=lambda: os.getenv("JOYMATH_BASIS", "bspline"))
    n_basis: int = field(default_factory=lambda: int(os.getenv("JOYMATH_N_BASIS", "5")))
    spline_degree: int = 3

    # Smithson & Verkuilen (2006) transform for outcomes of exactly 0 or 1
    squeeze: bool = True

    max_iterations: int = 5000
    alpha: float = 0.05


@dataclass
class VisualizationConfig:
    """Configuration for figure generation."""

    output_formats: list = field(default_factory=lambda: ["pdf", "png"])
    dpi: int = 300


@dataclass
class AppConfig:
    """Main application configuration."""

    data_dir: Path = field(default_factory=lambda: Path(
        os.getenv("JOYMATH_DATA_DIR", DEFAULT_DATA_DIR)
    ))
    results_dir: Path = field(default_factory=lambda: Path(
        os.getenv("JOYMATH_RESULTS_DIR", DEFAULT_DATA_DIR / "results")
    ))

    # Sub-configurations
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    regression: RegressionConfig = field(default_factory=RegressionConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)

    @property
    def figures_dir(self) -> Path:
        return self.results_dir / "figures"


# Global configuration instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> AppConfig:
    """Reload configuration from environment."""
    global config
    load_dotenv(override=True)
    config = AppConfig()
    return config

"""
Command-line interface for the Joy & Math research project.

Provides commands for:
- Running the full analysis
- Cleaning and smoothing the emotion recordings only
- Generating figures
- Writing synthetic demo inputs
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from joymath.config.settings import get_config

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _add_input_arguments(parser: argparse.ArgumentParser, strategy: bool = True) -> None:
    parser.add_argument(
        "--emotion-data",
        type=Path,
        required=True,
        help="Serialized emotion table (.parquet, .pkl, .feather, .json, .csv)"
    )
    if strategy:
        parser.add_argument(
            "--strategy-data",
            type=Path,
            required=True,
            help="Strategy spreadsheet (.xlsx or .csv)"
        )
        parser.add_argument(
            "--sheet",
            default=0,
            help="Worksheet holding the strategy records"
        )


def main(argv=None):
    """Main CLI entry point."""
    config = get_config()

    parser = argparse.ArgumentParser(
        description="Joy & Math Research CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Analysis command
    analysis_parser = subparsers.add_parser("analyze", help="Run the full analysis")
    _add_input_arguments(analysis_parser)
    analysis_parser.add_argument(
        "--output",
        type=Path,
        default=config.results_dir,
        help="Output directory for results"
    )
    analysis_parser.add_argument(
        "--figures",
        action="store_true",
        help="Also generate figures"
    )

    # Smoothing command
    smooth_parser = subparsers.add_parser("smooth", help="Clean and smooth emotion data only")
    _add_input_arguments(smooth_parser, strategy=False)
    smooth_parser.add_argument(
        "--output",
        type=Path,
        default=config.results_dir / "smoothed_curves.csv",
        help="Output CSV for the curve table"
    )

    # Figures command
    figures_parser = subparsers.add_parser("figures", help="Generate figures")
    _add_input_arguments(figures_parser)
    figures_parser.add_argument(
        "--output",
        type=Path,
        default=config.figures_dir,
        help="Output directory for figures"
    )
    figures_parser.add_argument(
        "--format",
        choices=["pdf", "png", "svg", "all"],
        default="all",
        help="Output format"
    )

    # Synthetic data command
    synthetic_parser = subparsers.add_parser("synthetic", help="Write synthetic demo inputs")
    synthetic_parser.add_argument(
        "--n-subjects",
        type=int,
        default=20,
        help="Number of simulated children"
    )
    synthetic_parser.add_argument(
        "--seed",
        type=int,
        default=12345,
        help="Random seed for reproducibility"
    )
    synthetic_parser.add_argument(
        "--output",
        type=Path,
        default=config.data_dir / "demo",
        help="Output directory"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    # Route to appropriate handler
    if args.command == "analyze":
        run_analysis(args)
    elif args.command == "smooth":
        run_smoothing(args)
    elif args.command == "figures":
        run_figures(args)
    elif args.command == "synthetic":
        run_synthetic(args)


def _sheet(value):
    return int(value) if str(value).isdigit() else value


def _run_pipeline(args):
    from joymath.analysis.pipeline import JoyAccuracyAnalyzer

    analyzer = JoyAccuracyAnalyzer()
    analyzer.load_data(args.emotion_data, args.strategy_data, sheet_name=_sheet(args.sheet))
    analyzer.run_full_analysis()
    return analyzer


def run_analysis(args):
    """Run the analysis pipeline and print the model report."""
    logger.info("Running joy/accuracy analysis...")

    analyzer = _run_pipeline(args)
    print(analyzer.summary_text())

    analyzer.export_results(args.output)
    if args.figures:
        from joymath.visualization.figures import FigureGenerator

        cfg = analyzer.config.visualization
        generator = FigureGenerator(args.output / "figures", formats=cfg.output_formats, dpi=cfg.dpi)
        generator.generate_all_figures(analyzer)

    logger.info(f"Analysis complete. Results saved to {args.output}")


def run_smoothing(args):
    """Clean and smooth the emotion recordings."""
    from joymath.analysis.smoothing import smooth_sessions
    from joymath.data.loading import load_corrections, load_emotion_data
    from joymath.data.preprocessing import clean_emotion_data, reshape_to_wide

    config = get_config()
    pre = config.preprocessing
    smo = config.smoothing

    corrections = load_corrections(pre.corrections_path) if pre.corrections_path else None
    clean = clean_emotion_data(
        load_emotion_data(args.emotion_data),
        emotion=pre.emotion,
        column_mapping=pre.column_mapping,
        corrections=corrections,
        excluded_subjects=pre.excluded_subjects,
        intensity_bounds=(pre.intensity_min, pre.intensity_max),
        min_samples_per_session=pre.min_samples_per_session,
        id_pattern=config.strategy.id_pattern,
        id_zero_pad=config.strategy.id_zero_pad,
    )
    result = smooth_sessions(
        reshape_to_wide(clean, bin_width=pre.bin_width),
        n_grid=smo.n_grid,
        bandwidth=smo.bandwidth,
        reg_type=smo.reg_type,
        transform=smo.transform,
        epsilon=smo.epsilon,
        min_points=smo.min_points,
    )

    args.output.parent.mkdir(parents=True, exist_ok=True)
    result.curves.join(result.bandwidths).to_csv(args.output)
    logger.info(f"Smoothed curves saved to {args.output}")


def run_figures(args):
    """Generate the exploratory figures."""
    logger.info("Generating figures...")

    from joymath.visualization.figures import FigureGenerator

    analyzer = _run_pipeline(args)
    formats = ["pdf", "png", "svg"] if args.format == "all" else [args.format]
    generator = FigureGenerator(output_dir=args.output, formats=formats, dpi=analyzer.config.visualization.dpi)
    figures = generator.generate_all_figures(analyzer)

    logger.info(f"Generated {len(figures)} figures in {args.output}")


def run_synthetic(args):
    """Write synthetic demo inputs (NOT study data)."""
    from joymath.data.synthetic import generate_demo_data

    emotion, strategy = generate_demo_data(n_subjects=args.n_subjects, seed=args.seed)

    args.output.mkdir(parents=True, exist_ok=True)
    emotion_path = args.output / "emotion_data.pkl"
    strategy_path = args.output / "strategy_data.xlsx"
    emotion.to_pickle(emotion_path)
    strategy.to_excel(strategy_path, index=False)

    logger.info(f"Demo data saved to {emotion_path} and {strategy_path}")


if __name__ == "__main__":
    main()

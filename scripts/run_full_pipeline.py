#!/usr/bin/env python3
"""
Complete demo run of the Joy & Math analysis pipeline.

This script:
1. Generates synthetic DEMO inputs (emotion table + strategy spreadsheet)
2. Runs cleaning, smoothing, linkage and the nested model comparison
3. Prints the model report
4. Exports results and figures

The demo data are NOT study data and must not be used for conclusions.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from joymath.analysis.pipeline import JoyAccuracyAnalyzer
from joymath.data.synthetic import generate_demo_data
from joymath.visualization.figures import FigureGenerator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the pipeline on synthetic demo data")
    parser.add_argument("--n-subjects", type=int, default=20)
    parser.add_argument("--seed", type=int, default=12345)
    parser.add_argument("--output", type=Path, default=PROJECT_ROOT / "data" / "demo_results")
    args = parser.parse_args()

    logger.warning("Using SYNTHETIC demo data - not real study data")
    emotion, strategy = generate_demo_data(n_subjects=args.n_subjects, seed=args.seed)

    analyzer = JoyAccuracyAnalyzer()
    analyzer.set_data(emotion, strategy)
    analyzer.run_full_analysis()

    print(analyzer.summary_text())

    analyzer.export_results(args.output)
    FigureGenerator(args.output / "figures").generate_all_figures(analyzer)
    logger.info(f"Demo results written to {args.output}")


if __name__ == "__main__":
    main()

"""
Training Script
===============

Command-line script running the churn modeling pipeline on a raw Telco
customer table and printing metrics and feature importance.

Usage:
    python scripts/train.py --data WA_Fn-UseC_-Telco-Customer-Churn.csv
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loguru import logger

from config import get_config, load_config
from telco_churn.data import DataLoader
from telco_churn.exceptions import ChurnModelingError
from telco_churn.pipeline import ChurnPipeline
from telco_churn.utils import format_metrics, setup_logging


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Train and evaluate churn prediction models")

    parser.add_argument(
        "--data",
        type=str,
        default="WA_Fn-UseC_-Telco-Customer-Churn.csv",
        help="Data file name in data/raw/ or a path"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Alternative YAML configuration file"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (overrides data.random_state)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the run summary as JSON to this path"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )

    return parser.parse_args()


def main():
    """Main training function."""
    args = parse_args()

    setup_logging(level=args.log_level, log_file="training.log")
    logger.info("Starting churn modeling run...")

    config = load_config(args.config) if args.config else get_config()

    loader = DataLoader(config)
    raw = loader.load_raw_data(args.data)

    pipeline = ChurnPipeline(config, random_state=args.seed)
    try:
        result = pipeline.run(raw)
    except ChurnModelingError as e:
        logger.error(f"Run aborted: {e}")
        return 1

    logger.info(f"Cleaning: {result.cleaning.to_dict()}")
    for name, report in result.reports.items():
        logger.info(f"{name} metrics: {format_metrics(report.to_dict())}")
    logger.info(f"\nModel Comparison:\n{result.comparison()}")
    logger.info(f"\nPermutation importance (AUC decrease):\n{result.importance_comparison()}")
    for name, ranking in result.impurity_rankings.items():
        logger.info(f"\n{name} impurity importance:\n{ranking.to_frame().head(10)}")

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result.summary(), indent=2, default=float))
        logger.info(f"Summary written to {output}")

    if result.failures:
        logger.warning(f"Failed model families: {result.failures}")
        return 2

    logger.info("Training complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

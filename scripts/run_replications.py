#!/usr/bin/env python3
"""Monte Carlo replication of the censoring study.

Repeats the full study with independent random streams and reports bias,
empirical SD, mean model SE, CI coverage and PH-test rejection rate per
design, condition and covariate.

Usage:
    python scripts/run_replications.py --replications 200
    python scripts/run_replications.py --config configs/censoring_study.json --replications 500
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

from censorstudy.experiments.config import PREDEFINED_STUDIES, StudyConfig, get_study
from censorstudy.experiments.replication import (
    print_progress,
    run_replications,
    save_replications,
    summarize_replications,
)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Repeat the censoring study to estimate bias and coverage.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # 200 replicates of the predefined study
    python scripts/run_replications.py --replications 200

    # Custom configuration and seed
    python scripts/run_replications.py --config configs/censoring_study.json --replications 500 --seed 7
        """,
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config",
        type=Path,
        help="Path to study config JSON",
    )
    source.add_argument(
        "--study",
        type=str,
        choices=list(PREDEFINED_STUDIES.keys()),
        default="censoring_study",
        help="Predefined study (default: censoring_study)",
    )

    parser.add_argument(
        "--replications",
        type=int,
        default=100,
        help="Number of replicates (default: 100)",
    )

    parser.add_argument(
        "--seed",
        type=int,
        help="Override the configured seed",
    )

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("outputs/replications"),
        help="Output directory (default: outputs/replications/)",
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress progress output",
    )

    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        config = StudyConfig.from_json(args.config) if args.config else get_study(args.study)
        if args.seed is not None:
            config = config.with_seed(args.seed)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print(
            f"Running {args.replications} replicates of {config.name} "
            f"(seed {config.seed}, {config.n_runs} runs each)",
            file=sys.stderr,
        )

    replicates = run_replications(
        config,
        args.replications,
        progress=None if args.quiet else print_progress,
    )
    summary = summarize_replications(replicates)

    output_dir = args.output_dir / config.study_id
    paths = save_replications(replicates, summary, output_dir)

    n_failed = int((replicates["status"] == "FAILED").sum())
    if n_failed == len(replicates):
        print("ERROR: every replicate run failed", file=sys.stderr)
        return 2

    with pd.option_context("display.width", 160, "display.max_columns", 20):
        print(
            summary[
                [
                    "design",
                    "condition",
                    "covariate",
                    "true_value",
                    "bias",
                    "empirical_sd",
                    "mean_se",
                    "coverage",
                    "ph_rejection_rate",
                    "mean_censored_fraction",
                    "n_failed",
                ]
            ].to_string(index=False)
        )

    print(f"\nReplicates saved to: {paths['replicates']}")
    print(f"Summary saved to: {paths['summary']}")

    return 3 if n_failed else 0


if __name__ == "__main__":
    sys.exit(main())

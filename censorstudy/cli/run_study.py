"""CLI for running the censoring study."""

import argparse
import sys
from pathlib import Path

from ..experiments.config import PREDEFINED_STUDIES
from ..experiments.runner import run_study


def main() -> int:
    """Main entry point for run_study CLI.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="python -m censorstudy.cli.run_study",
        description="Fit Cox PH models under every censoring condition and design.",
    )

    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--config",
        type=Path,
        help="Path to study JSON config",
    )
    group.add_argument(
        "--study",
        type=str,
        choices=list(PREDEFINED_STUDIES.keys()),
        default="censoring_study",
        help="Predefined study (default: censoring_study)",
    )

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("outputs/studies"),
        help="Output directory (default: outputs/studies/)",
    )

    parser.add_argument(
        "--seed",
        type=int,
        help="Override the configured seed",
    )

    parser.add_argument(
        "--plots",
        action="store_true",
        default=None,
        help="Render PNG figures",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate config without running",
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress non-error output",
    )

    args = parser.parse_args()

    # Check config exists
    if args.config is not None and not args.config.exists():
        print(f"ERROR: Config file not found: {args.config}", file=sys.stderr)
        return 1

    return run_study(
        config_path=args.config,
        output_dir=args.output_dir,
        study_name=args.study,
        seed=args.seed,
        make_plots=args.plots,
        dry_run=args.dry_run,
        verbose=not args.quiet,
    )


if __name__ == "__main__":
    sys.exit(main())

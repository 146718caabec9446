"""CLI for generating one censored survival dataset."""

import argparse
import sys
from pathlib import Path

import numpy as np

from ..data.censoring import CensoringEngine, censoring_summary
from ..data.scenarios import (
    DEFAULT_CONDITIONS,
    PREDEFINED_SCENARIOS,
    CensoringCondition,
    StudyScenario,
    get_scenario,
)
from ..data.types import CovariateDesign
from ..errors import StudyError
from ..experiments.runner import generate_cohort, study_streams


def main() -> int:
    """Main entry point for generate_data CLI.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="python -m censorstudy.cli.generate_data",
        description="Generate a censored survival dataset without fitting models.",
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--scenario",
        type=str,
        choices=list(PREDEFINED_SCENARIOS.keys()),
        help="Predefined scenario name",
    )
    group.add_argument(
        "--config",
        type=Path,
        help="Path to custom scenario config file",
    )

    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Output directory or file path",
    )

    parser.add_argument(
        "--design",
        type=str,
        choices=[d.name.lower() for d in CovariateDesign],
        help="Covariate design (default: richest design of the scenario)",
    )

    parser.add_argument(
        "--condition",
        type=str,
        choices=[c.label for c in DEFAULT_CONDITIONS],
        default="none",
        help="Predefined censoring condition (default: none)",
    )

    parser.add_argument(
        "--censoring-mean",
        type=float,
        help="Custom censoring mean; overrides --condition",
    )

    parser.add_argument(
        "--censoring-sd",
        type=float,
        default=20.0,
        help="Censoring sd used with --censoring-mean (default: 20)",
    )

    parser.add_argument(
        "--n-samples",
        type=int,
        help="Override sample count",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )

    parser.add_argument(
        "--format",
        type=str,
        choices=["npz", "csv"],
        default="npz",
        help="Output format: npz, csv (default: npz)",
    )

    args = parser.parse_args()

    try:
        # Load scenario
        if args.scenario:
            scenario = get_scenario(args.scenario)
        else:
            if not args.config.exists():
                print(f"ERROR: Config file not found: {args.config}", file=sys.stderr)
                return 1
            scenario = StudyScenario.from_json(args.config)

        # Override n_samples if specified
        if args.n_samples:
            scenario = StudyScenario.from_dict({**scenario.to_dict(), "n_samples": args.n_samples})

        if args.censoring_mean is not None:
            condition = CensoringCondition("custom", args.censoring_mean, args.censoring_sd)
        else:
            condition = next(c for c in DEFAULT_CONDITIONS if c.label == args.condition)

        design = CovariateDesign[args.design.upper()] if args.design else scenario.designs[-1]
        # Raises InvalidParameterError for a design the scenario lacks
        scenario.design_coefficients(design)
    except (StudyError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    # Generate data
    print(f"Generating {scenario.name} data with {scenario.n_samples} samples...")
    # Same streams as a study run over the default conditions; a custom
    # condition takes the stream after the defaults.
    cohort_seqs, censoring_seqs = study_streams(
        args.seed, len(scenario.designs), len(DEFAULT_CONDITIONS) + 1
    )
    if condition in DEFAULT_CONDITIONS:
        censoring_seq = censoring_seqs[DEFAULT_CONDITIONS.index(condition)]
    else:
        censoring_seq = censoring_seqs[-1]
    try:
        cohort = generate_cohort(
            scenario, design, cohort_seqs[scenario.designs.index(design)]
        )
    except StudyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    data = CensoringEngine().censor(cohort, condition, np.random.default_rng(censoring_seq))

    # Determine output path
    output_path = args.output
    if output_path.is_dir() or not output_path.suffix:
        output_path.mkdir(parents=True, exist_ok=True)
        output_path = output_path / f"{scenario.name}_{condition.label}.{args.format}"
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)

    # Save data
    if args.format == "npz":
        data.save(output_path)
    elif args.format == "csv":
        data.to_frame().to_csv(output_path, index=False)

    summary = censoring_summary(data)
    print(f"Data saved to: {output_path}")
    print(f"  Samples: {data.n_samples}")
    print(f"  Covariates: {', '.join(data.feature_names)}")
    print(f"  Censored: {summary['censored_fraction']:.1%} "
          f"(administrative {summary['administrative_fraction']:.1%}, "
          f"random {summary['random_fraction']:.1%})")

    return 0


if __name__ == "__main__":
    sys.exit(main())

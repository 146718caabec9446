"""Study runner: every design under every censoring condition."""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import StudyConfig, get_study
from .logging import StudyLogger
from .run import ConditionResult, ConditionRun
from ..data.censoring import CensoringEngine, censoring_summary
from ..data.generator import LatentCohort, SurvivalDataGenerator
from ..data.scenarios import CensoringCondition, StudyScenario
from ..data.types import CovariateDesign, Group, StudyStatus
from ..diagnostics.comparison import aft_verification, compare_to_truth
from ..diagnostics.schoenfeld import check_proportional_hazards
from ..errors import DegenerateSampleError, StudyError
from ..models.aft import fit_aft_model
from ..models.cox import fit_cox_model
from ..models.kaplan_meier import fit_kaplan_meier_by_group
from ..models.logrank import logrank_test
from ..models.results import WeibullAFTFit

GROUP_LABELS = {int(g): g.name.lower() for g in Group}


def design_label(design: CovariateDesign) -> str:
    return design.name.lower()


def study_streams(
    seed: Union[int, np.random.SeedSequence],
    n_designs: int,
    n_conditions: int,
) -> Tuple[List[np.random.SeedSequence], List[np.random.SeedSequence]]:
    """Seed sequences for the cohort of each design and each condition.

    Censoring streams are shared across designs: a condition draws the same
    uniforms whichever cohort it censors.

    Returns:
        Tuple of (cohort sequences, censoring sequences).
    """
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    cohort_root, censoring_root = root.spawn(2)
    return cohort_root.spawn(n_designs), censoring_root.spawn(n_conditions)


def generate_cohort(
    scenario: StudyScenario,
    design: CovariateDesign,
    seed_sequence: np.random.SeedSequence,
) -> LatentCohort:
    generator = SurvivalDataGenerator(
        scenario, design=design, rng=np.random.default_rng(seed_sequence)
    )
    return generator.generate()


def run_condition(
    cohort: LatentCohort,
    scenario: StudyScenario,
    condition: CensoringCondition,
    rng: np.random.Generator,
    ties: str = "efron",
    conf_level: float = 0.95,
    zph_transform: str = "km",
    km_conf_type: str = "log",
) -> ConditionResult:
    """Censor a cohort under one condition and run every analysis.

    Pipeline: censor, Kaplan-Meier by arm, Cox PH, log-rank, Schoenfeld
    test, comparison with the true coefficients.

    Args:
        cohort: Latent cohort; never modified.
        scenario: Generating model, for the true coefficients.
        condition: Censoring condition.
        rng: Generator for the censoring draws.
        ties: Cox tie handling.
        conf_level: Confidence level for Cox and Kaplan-Meier intervals.
        zph_transform: Time transform of the Schoenfeld test.
        km_conf_type: Kaplan-Meier interval transform.

    Returns:
        ConditionResult with every fitted artefact.

    Raises:
        DegenerateSampleError: Labelled with the condition.
        ConvergenceError: If the Cox fit or PH test fails.
    """
    design = design_label(cohort.design)
    data = CensoringEngine().censor(cohort, condition, rng)

    try:
        km_fits = fit_kaplan_meier_by_group(
            data.T,
            data.E,
            data.group,
            labels=GROUP_LABELS,
            conf_type=km_conf_type,
            conf_level=conf_level,
        )
        cox = fit_cox_model(data, ties=ties, conf_level=conf_level)
        logrank = logrank_test(data.T, data.E, data.group, labels=GROUP_LABELS)
        ph_test = check_proportional_hazards(cox, data, transform=zph_transform)
    except DegenerateSampleError as e:
        if e.condition is None:
            raise DegenerateSampleError(str(e), condition=condition.label) from e
        raise

    comparison = compare_to_truth(
        cox,
        scenario.true_cox_coefficients(cohort.design),
        design=design,
        condition=condition.label,
    )

    return ConditionResult(
        design=design,
        condition=condition.label,
        data=data,
        censoring=censoring_summary(data),
        km_fits=km_fits,
        cox=cox,
        logrank=logrank,
        ph_test=ph_test,
        comparison=comparison,
    )


def verify_generator(cohort: LatentCohort) -> WeibullAFTFit:
    """Weibull AFT fit on horizon-only censored data."""
    return fit_aft_model(CensoringEngine().administrative_only(cohort))


class StudyRunner:
    """Orchestrates study execution.

    Handles:
    - Cohort generation per design from the study seed
    - Every censoring condition per design, each isolated from the others
    - Weibull AFT verification of the generator per design
    - Result tables, run records and optional figures

    Args:
        config: Study configuration.
        output_dir: Output directory for results.
        verbose: Whether to print progress.
    """

    def __init__(
        self,
        config: StudyConfig,
        output_dir: Union[str, Path],
        verbose: bool = True,
    ):
        self.config = config
        self.output_dir = Path(output_dir) / config.study_id
        self.verbose = verbose

        self._setup_directories()

        # Results storage
        self.results: Dict[str, ConditionResult] = {}
        self.runs: List[ConditionRun] = []
        self.aft_fits: Dict[str, WeibullAFTFit] = {}

    def _setup_directories(self) -> None:
        """Create output directory structure."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / "runs").mkdir(exist_ok=True)
        (self.output_dir / "results").mkdir(exist_ok=True)
        if self.config.make_plots:
            (self.output_dir / "figures").mkdir(exist_ok=True)

    def run(self) -> StudyStatus:
        """Execute the full study.

        Returns:
            Final study status.
        """
        config = self.config
        scenario = config.scenario
        designs = scenario.designs

        config.to_json(self.output_dir / "config.json")
        config.start()
        self._log(f"Starting study: {config.name}")
        self._log(f"Runs: {len(designs)} designs x {len(config.conditions)} conditions")

        cohort_seqs, censoring_seqs = study_streams(
            config.seed, len(designs), len(config.conditions)
        )

        logger = StudyLogger(self.output_dir)
        n_failed = 0
        try:
            for design, cohort_seq in zip(designs, cohort_seqs):
                cohort = generate_cohort(scenario, design, cohort_seq)
                label = design_label(design)
                self._log(f"\nDesign {label}: {cohort.n_samples} subjects")

                self._verify(cohort, logger)

                for condition, censoring_seq in zip(config.conditions, censoring_seqs):
                    success = self._run_point(
                        cohort,
                        condition,
                        np.random.default_rng(censoring_seq),
                        logger,
                    )
                    if not success:
                        n_failed += 1
        except Exception as e:
            config.fail()
            self._log(f"\nStudy failed with error: {e}")
            config.to_json(self.output_dir / "config.json")
            return StudyStatus.FAILED
        finally:
            logger.close()

        config.finish(n_failed, config.n_runs)
        if config.status == StudyStatus.COMPLETED:
            self._log("\nStudy completed successfully!")
        elif config.status == StudyStatus.PARTIAL:
            self._log(f"\nStudy completed with {n_failed} failed runs")
        else:
            self._log("\nStudy failed: all runs failed")

        if config.make_plots and self.results:
            self._plot_summary()

        config.to_json(self.output_dir / "config.json")
        return config.status

    def _verify(self, cohort: LatentCohort, logger: StudyLogger) -> None:
        """Fit the Weibull AFT model and log recovery of the true parameters."""
        label = design_label(cohort.design)
        try:
            fit = verify_generator(cohort)
        except StudyError as e:
            self._log(f"  AFT verification FAILED: {e}")
            return

        self.aft_fits[label] = fit
        rows = aft_verification(
            fit, self.config.scenario.true_aft_parameters(cohort.design), design=label
        )
        logger.log_aft(rows)
        self._log(
            f"  AFT: intercept={fit.intercept:.3f}, shape={fit.shape:.3f} "
            f"({sum(r['within_tolerance'] for r in rows)}/{len(rows)} within tolerance)"
        )

    def _run_point(
        self,
        cohort: LatentCohort,
        condition: CensoringCondition,
        rng: np.random.Generator,
        logger: StudyLogger,
    ) -> bool:
        """Run a single design x condition point.

        Returns:
            True if every analysis succeeded.
        """
        config = self.config
        label = design_label(cohort.design)
        run = ConditionRun.create(config.study_id, label, condition.label)
        run.start()
        self._log(f"  [{condition.label}] mean={condition.mean}, sd={condition.sd}")

        try:
            result = run_condition(
                cohort,
                config.scenario,
                condition,
                rng,
                ties=config.ties,
                conf_level=config.conf_level,
                zph_transform=config.zph_transform,
                km_conf_type=config.km_conf_type,
            )
        except StudyError as e:
            run.fail(e)
            self._log(f"    FAILED: {e}")
            logger.log_censoring(
                label, condition.label, run.status.name, None, condition.mean, condition.sd
            )
            logger.log_run_info(run)
            self.runs.append(run)
            return False

        run.complete(result)
        self.runs.append(run)
        self.results[run.run_id] = result

        logger.log_censoring(
            label,
            condition.label,
            run.status.name,
            result.censoring,
            condition.mean,
            condition.sd,
        )
        logger.log_condition(result, config.risk_table_times)
        logger.log_run_info(run)

        estimates = ", ".join(
            f"{row['covariate']}={row['estimate']:.3f} ({row['std_error']:.3f})"
            for row in result.comparison
        )
        self._log(
            f"    censored {result.data.censored_fraction:.1%}, {estimates}, "
            f"PH global p={result.ph_test.global_test.p_value:.3f}"
        )

        if config.make_plots:
            self._plot_condition(result)

        return True

    def _plot_condition(self, result: ConditionResult) -> None:
        from ..visualization.curves import plot_schoenfeld_residuals, plot_survival_curves

        figures_dir = self.output_dir / "figures"
        stem = f"{result.design}__{result.condition}"
        plot_survival_curves(
            result.km_fits,
            output_path=figures_dir / f"km_{stem}",
            title=f"{result.design}, {result.condition} censoring",
            risk_table_times=self.config.risk_table_times,
        )
        plot_schoenfeld_residuals(
            result.ph_test,
            output_path=figures_dir / f"schoenfeld_{stem}",
        )

    def _plot_summary(self) -> None:
        from ..visualization.curves import plot_estimates_vs_truth

        plot_estimates_vs_truth(
            self.comparison_frame(),
            output_path=self.output_dir / "figures" / "estimates_vs_truth",
        )

    def comparison_frame(self) -> pd.DataFrame:
        """Coefficient rows of every completed run."""
        rows = [row for result in self.results.values() for row in result.comparison]
        return pd.DataFrame(rows)

    def _log(self, message: str) -> None:
        """Log a message if verbose mode is enabled."""
        if self.verbose:
            print(message, file=sys.stderr)


def run_study(
    config_path: Optional[Union[str, Path]] = None,
    output_dir: Union[str, Path] = "outputs/studies",
    study_name: Optional[str] = None,
    seed: Optional[int] = None,
    make_plots: Optional[bool] = None,
    dry_run: bool = False,
    verbose: bool = True,
) -> int:
    """Run a study from a config file or a predefined study name.

    Args:
        config_path: Path to study config JSON.
        output_dir: Base output directory.
        study_name: Predefined study to run when no config path is given.
        seed: Overrides the configured seed.
        make_plots: Overrides the configured make_plots flag.
        dry_run: If True, validate config without running.
        verbose: Whether to print progress.

    Returns:
        Exit code (0=success, 1=config error, 2=all runs failed, 3=partial).
    """
    # Load config
    try:
        if config_path is not None:
            config = StudyConfig.from_json(config_path)
        else:
            config = get_study(study_name or "censoring_study")
        if seed is not None:
            config = config.with_seed(seed)
        if make_plots is not None:
            config.make_plots = make_plots
    except (OSError, ValueError, KeyError, TypeError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    if dry_run:
        print(f"Config validation successful: {config.name}")
        print(f"  Study ID: {config.study_id}")
        print(f"  Runs: {config.n_runs}")
        return 0

    runner = StudyRunner(config=config, output_dir=output_dir, verbose=verbose)
    status = runner.run()

    # Map status to exit code
    if status == StudyStatus.COMPLETED:
        return 0
    elif status == StudyStatus.FAILED:
        return 2
    else:
        return 3

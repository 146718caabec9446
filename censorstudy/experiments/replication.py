"""Monte Carlo replication of the study and aggregation across replicates."""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .config import StudyConfig
from .runner import design_label, generate_cohort, run_condition, study_streams
from ..errors import StudyError

REPLICATE_COLUMNS = [
    "replicate",
    "design",
    "condition",
    "covariate",
    "status",
    "true_value",
    "estimate",
    "std_error",
    "covers_truth",
    "within_2se",
    "censored_fraction",
    "ph_p_value",
    "ph_global_p_value",
    "logrank_p_value",
    "error",
]


def run_replications(
    config: StudyConfig,
    n_replications: int,
    progress: Optional[Callable[[int, int], None]] = None,
) -> pd.DataFrame:
    """Repeat the whole study with independent random streams.

    Replicate r draws from the r-th child of SeedSequence(config.seed), laid
    out exactly as a single study run, so replicates are reproducible
    individually and independent of each other.

    Args:
        config: Study configuration.
        n_replications: Number of replicates.
        progress: Optional callback called with (completed, total).

    Returns:
        One row per replicate x design x condition x covariate. Failed runs
        get one row with status FAILED and the error message.
    """
    if n_replications < 1:
        raise ValueError(f"n_replications must be >= 1, got {n_replications}")

    scenario = config.scenario
    designs = scenario.designs
    replicate_seqs = np.random.SeedSequence(config.seed).spawn(n_replications)

    rows: List[Dict[str, object]] = []
    for r, replicate_seq in enumerate(replicate_seqs):
        cohort_seqs, censoring_seqs = study_streams(
            replicate_seq, len(designs), len(config.conditions)
        )
        for design, cohort_seq in zip(designs, cohort_seqs):
            cohort = generate_cohort(scenario, design, cohort_seq)
            for condition, censoring_seq in zip(config.conditions, censoring_seqs):
                base = {
                    "replicate": r,
                    "design": design_label(design),
                    "condition": condition.label,
                }
                try:
                    result = run_condition(
                        cohort,
                        scenario,
                        condition,
                        np.random.default_rng(censoring_seq),
                        ties=config.ties,
                        conf_level=config.conf_level,
                        zph_transform=config.zph_transform,
                        km_conf_type=config.km_conf_type,
                    )
                except StudyError as e:
                    rows.append({**base, "status": "FAILED", "error": str(e)})
                    continue

                for row, ph in zip(result.comparison, result.ph_test.tests):
                    rows.append(
                        {
                            **base,
                            "covariate": row["covariate"],
                            "status": "COMPLETED",
                            "true_value": row["true_value"],
                            "estimate": row["estimate"],
                            "std_error": row["std_error"],
                            "covers_truth": row["covers_truth"],
                            "within_2se": row["within_2se"],
                            "censored_fraction": result.data.censored_fraction,
                            "ph_p_value": ph.p_value,
                            "ph_global_p_value": result.ph_test.global_test.p_value,
                            "logrank_p_value": result.logrank.p_value,
                            "error": "",
                        }
                    )
        if progress is not None:
            progress(r + 1, n_replications)

    return pd.DataFrame(rows, columns=REPLICATE_COLUMNS)


def summarize_replications(
    replicates: pd.DataFrame,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """Bias, variance and coverage per design x condition x covariate.

    Args:
        replicates: Output of run_replications.
        alpha: Level at which PH and log-rank rejections are counted.

    Returns:
        DataFrame with n_ok, n_failed, mean_estimate, bias, empirical_sd,
        mean_se, se_ratio (mean_se / empirical_sd), rmse, coverage,
        within_2se_rate, ph_rejection_rate, logrank_power and
        mean_censored_fraction.
    """
    keys = ["design", "condition"]
    ok = replicates[replicates["status"] == "COMPLETED"]
    failed = (
        replicates[replicates["status"] == "FAILED"]
        .groupby(keys, sort=False)
        .size()
        .rename("n_failed")
    )

    def _summarize(group: pd.DataFrame) -> pd.Series:
        estimate = group["estimate"].astype(float)
        error = estimate - group["true_value"].astype(float)
        empirical_sd = estimate.std(ddof=1) if len(estimate) > 1 else np.nan
        mean_se = group["std_error"].astype(float).mean()
        return pd.Series(
            {
                "true_value": group["true_value"].iloc[0],
                "n_ok": len(group),
                "mean_estimate": estimate.mean(),
                "bias": error.mean(),
                "empirical_sd": empirical_sd,
                "mean_se": mean_se,
                "se_ratio": mean_se / empirical_sd if empirical_sd else np.nan,
                "rmse": float(np.sqrt(np.mean(error**2))),
                "coverage": group["covers_truth"].astype(bool).mean(),
                "within_2se_rate": group["within_2se"].astype(bool).mean(),
                "ph_rejection_rate": (group["ph_p_value"].astype(float) < alpha).mean(),
                "logrank_power": (group["logrank_p_value"].astype(float) < alpha).mean(),
                "mean_censored_fraction": group["censored_fraction"].astype(float).mean(),
            }
        )

    if ok.empty:
        return pd.DataFrame(columns=keys + ["covariate", "n_ok", "n_failed"])

    summary = (
        ok.groupby(keys + ["covariate"], sort=False)
        .apply(_summarize)
        .reset_index()
    )
    summary = summary.merge(failed.reset_index(), on=keys, how="left")
    summary["n_failed"] = summary["n_failed"].fillna(0).astype(int)
    return summary


def save_replications(
    replicates: pd.DataFrame,
    summary: pd.DataFrame,
    output_dir: Union[str, Path],
) -> Dict[str, Path]:
    """Write replicate rows and their summary as CSV.

    Returns:
        Dictionary of written paths.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "replicates": output_dir / "replicates.csv",
        "summary": output_dir / "replication_summary.csv",
    }
    replicates.to_csv(paths["replicates"], index=False)
    summary.to_csv(paths["summary"], index=False)
    return paths


def print_progress(completed: int, total: int) -> None:
    """Progress callback writing to stderr."""
    print(f"  replicate {completed}/{total}", file=sys.stderr)

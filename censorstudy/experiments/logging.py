"""CSV and JSON result logging for study runs."""

import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .run import ConditionResult, ConditionRun


class ResultCSVWriter:
    """CSV writer with a fixed column set.

    Writes one row per call to ``write``. Keys outside FIELDNAMES are
    dropped and missing keys are left blank.

    Args:
        output_path: Path to CSV file.
        append: If True, append to existing file.
    """

    FIELDNAMES: List[str] = []

    def __init__(self, output_path: Union[str, Path], append: bool = False):
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        mode = "a" if append and self.output_path.exists() else "w"
        self.file = open(self.output_path, mode, newline="")
        self.writer = csv.DictWriter(
            self.file,
            fieldnames=self.FIELDNAMES,
            extrasaction="ignore",
            restval="",
        )

        # Write header if new file
        if mode == "w":
            self.writer.writeheader()

    def write(self, row: Dict[str, Any]) -> None:
        self.writer.writerow(row)

    def write_rows(self, rows: Iterable[Dict[str, Any]]) -> None:
        self.writer.writerows(rows)
        self.file.flush()

    def close(self) -> None:
        """Close the CSV file."""
        self.file.close()


class CoefficientCSVWriter(ResultCSVWriter):
    """Cox coefficient estimates against their true values."""

    FIELDNAMES = [
        "design",
        "condition",
        "covariate",
        "true_value",
        "estimate",
        "std_error",
        "z",
        "p_value",
        "hazard_ratio",
        "hr_lower",
        "hr_upper",
        "true_hazard_ratio",
        "bias",
        "z_vs_truth",
        "within_2se",
        "covers_truth",
        "n_events",
    ]


class CensoringCSVWriter(ResultCSVWriter):
    """Realized censoring per design and condition, failed runs included."""

    FIELDNAMES = [
        "design",
        "condition",
        "status",
        "censoring_mean",
        "censoring_sd",
        "n_subjects",
        "n_events",
        "n_administrative",
        "n_random",
        "censored_fraction",
        "administrative_fraction",
        "random_fraction",
        "censored_fraction_placebo",
        "censored_fraction_treatment",
    ]


class SurvivalCurveCSVWriter(ResultCSVWriter):
    """Kaplan-Meier plot data."""

    FIELDNAMES = [
        "design",
        "condition",
        "group",
        "time",
        "n_risk",
        "n_event",
        "n_censor",
        "survival",
        "std_err",
        "ci_lower",
        "ci_upper",
    ]


class RiskTableCSVWriter(ResultCSVWriter):
    """Numbers at risk under the survival curves."""

    FIELDNAMES = [
        "design",
        "condition",
        "group",
        "time",
        "n_risk",
        "cum_events",
        "cum_censored",
    ]


class PHTestCSVWriter(ResultCSVWriter):
    """Schoenfeld test per covariate plus the global test."""

    FIELDNAMES = [
        "design",
        "condition",
        "term",
        "transform",
        "rho",
        "statistic",
        "df",
        "p_value",
    ]


class LogRankCSVWriter(ResultCSVWriter):
    """Observed and expected events per arm with the test statistic."""

    FIELDNAMES = [
        "design",
        "condition",
        "group",
        "n",
        "observed",
        "expected",
        "statistic",
        "df",
        "p_value",
        "rho",
    ]


class AFTVerificationCSVWriter(ResultCSVWriter):
    """Weibull AFT recovery of the generating parameters."""

    FIELDNAMES = [
        "design",
        "parameter",
        "true_value",
        "estimate",
        "std_error",
        "error",
        "relative_error",
        "within_tolerance",
    ]


class StudyLogger:
    """Writes every result table of a study under ``<study_dir>/results``.

    Args:
        study_dir: Study output directory.
    """

    def __init__(self, study_dir: Union[str, Path]):
        self.study_dir = Path(study_dir)
        results_dir = self.study_dir / "results"
        results_dir.mkdir(parents=True, exist_ok=True)

        self.coefficients = CoefficientCSVWriter(results_dir / "coefficients.csv")
        self.censoring = CensoringCSVWriter(results_dir / "censoring.csv")
        self.curves = SurvivalCurveCSVWriter(results_dir / "survival_curves.csv")
        self.risk_tables = RiskTableCSVWriter(results_dir / "risk_tables.csv")
        self.ph_tests = PHTestCSVWriter(results_dir / "ph_tests.csv")
        self.logrank = LogRankCSVWriter(results_dir / "logrank.csv")
        self.aft = AFTVerificationCSVWriter(results_dir / "aft_verification.csv")

    def log_censoring(
        self,
        design: str,
        condition: str,
        status: str,
        summary: Optional[Dict[str, object]],
        mean: Optional[float] = None,
        sd: Optional[float] = None,
    ) -> None:
        """Log realized censoring; ``summary`` is None if censoring never ran."""
        row = {
            "design": design,
            "condition": condition,
            "status": status,
            "censoring_mean": "" if mean is None else mean,
            "censoring_sd": sd,
        }
        if summary:
            row.update({k: v for k, v in summary.items() if k != "condition"})
        self.censoring.write_rows([row])

    def log_condition(
        self,
        result: ConditionResult,
        risk_table_times: Iterable[float],
    ) -> None:
        """Log the fitted results of one design x condition run."""
        keys = {"design": result.design, "condition": result.condition}

        self.coefficients.write_rows(result.comparison)

        for fit in result.km_fits.values():
            self.curves.write_rows(
                {**keys, **row} for row in fit.to_frame().to_dict("records")
            )
            self.risk_tables.write_rows(
                {**keys, **row}
                for row in fit.risk_table(list(risk_table_times)).to_dict("records")
            )

        summary = result.ph_test.summary().reset_index()
        self.ph_tests.write_rows(
            {**keys, "transform": result.ph_test.transform, **row}
            for row in summary.to_dict("records")
        )

        test = result.logrank.test.to_dict()
        self.logrank.write_rows(
            {**keys, **row, **test, "rho": result.logrank.rho}
            for row in result.logrank.to_frame().to_dict("records")
        )

    def log_aft(self, rows: List[Dict[str, object]]) -> None:
        self.aft.write_rows(rows)

    def log_run_info(self, run: ConditionRun) -> None:
        """Log run status to ``runs/<run_id>/run_info.json``."""
        run_dir = self.study_dir / "runs" / run.run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        with open(run_dir / "run_info.json", "w") as f:
            json.dump(run.to_dict(), f, indent=2, default=str)

    def close(self) -> None:
        """Close all writers."""
        for writer in (
            self.coefficients,
            self.censoring,
            self.curves,
            self.risk_tables,
            self.ph_tests,
            self.logrank,
            self.aft,
        ):
            writer.close()

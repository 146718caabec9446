"""Immutable result records for fitted survival models.

Each record is a frozen dataclass tagged with a ``model_type`` class
attribute. Arrays are flagged read-only on construction.
"""

from dataclasses import dataclass, fields
from typing import ClassVar, Dict, List, Sequence

import numpy as np
import pandas as pd


def _freeze_arrays(record) -> None:
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, np.ndarray):
            value = np.array(value, copy=True)
            value.setflags(write=False)
            object.__setattr__(record, f.name, value)


@dataclass(frozen=True)
class ChiSquareTest:
    """A chi-square test statistic with its degrees of freedom and p-value."""

    statistic: float
    df: int
    p_value: float

    def to_dict(self) -> dict:
        return {"statistic": self.statistic, "df": self.df, "p_value": self.p_value}


@dataclass(frozen=True, eq=False)
class CoxFit:
    """Cox proportional hazards fit.

    Attributes:
        feature_names: Covariate names, in coefficient order.
        coefficients: Log hazard ratios.
        standard_errors: From the inverse observed information.
        covariance: Inverse observed information matrix.
        z_statistics: coefficients / standard_errors.
        p_values: Two-sided Wald p-values.
        hazard_ratios: exp(coefficients).
        ci_lower: Lower Wald confidence bound on the hazard ratio scale.
        ci_upper: Upper Wald confidence bound on the hazard ratio scale.
        conf_level: Confidence level of the intervals.
        loglik: Log partial likelihood at the estimate.
        loglik_null: Log partial likelihood at beta = 0.
        likelihood_ratio_test: 2 * (loglik - loglik_null) test.
        wald_test: Global Wald test.
        score_test: Score (log-rank) test at beta = 0.
        concordance: Harrell's C for the linear predictor.
        n_samples: Number of subjects.
        n_events: Number of events.
        iterations: Newton-Raphson iterations used by the fitting backend.
        ties: Tie handling, "efron" or "breslow".
        baseline_times: Times at which the baseline hazard is tabulated.
        baseline_cumulative_hazard: Breslow estimate at baseline_times, for
            covariates equal to zero.
    """

    model_type: ClassVar[str] = "cox_ph"

    feature_names: List[str]
    coefficients: np.ndarray
    standard_errors: np.ndarray
    covariance: np.ndarray
    z_statistics: np.ndarray
    p_values: np.ndarray
    hazard_ratios: np.ndarray
    ci_lower: np.ndarray
    ci_upper: np.ndarray
    conf_level: float
    loglik: float
    loglik_null: float
    likelihood_ratio_test: ChiSquareTest
    wald_test: ChiSquareTest
    score_test: ChiSquareTest
    concordance: float
    n_samples: int
    n_events: int
    iterations: int
    ties: str
    baseline_times: np.ndarray
    baseline_cumulative_hazard: np.ndarray

    def __post_init__(self) -> None:
        _freeze_arrays(self)

    def coefficient(self, name: str) -> float:
        return float(self.coefficients[self.feature_names.index(name)])

    def standard_error(self, name: str) -> float:
        return float(self.standard_errors[self.feature_names.index(name)])

    def summary(self) -> pd.DataFrame:
        """Coefficient table in the usual coxph layout."""
        pct = int(round(self.conf_level * 100))
        return pd.DataFrame(
            {
                "coef": self.coefficients,
                "exp(coef)": self.hazard_ratios,
                "se(coef)": self.standard_errors,
                "z": self.z_statistics,
                "p": self.p_values,
                f"lower {pct}%": self.ci_lower,
                f"upper {pct}%": self.ci_upper,
            },
            index=pd.Index(self.feature_names, name="covariate"),
        )

    def predict_survival(self, X: np.ndarray, times: Sequence[float]) -> np.ndarray:
        """Survival curves S(t | x) = exp(-H0(t) * exp(x'beta)).

        Returns:
            Array of shape (n_subjects, n_times).
        """
        times = np.asarray(times, dtype=float)
        idx = np.searchsorted(self.baseline_times, times, side="right") - 1
        H0 = np.where(idx >= 0, self.baseline_cumulative_hazard[np.maximum(idx, 0)], 0.0)
        risk = np.exp(np.asarray(X, dtype=float) @ self.coefficients)
        return np.exp(-np.outer(risk, H0))


@dataclass(frozen=True, eq=False)
class WeibullAFTFit:
    """Weibull accelerated failure time fit.

    The model is log T = X beta + scale * W with W standard extreme value,
    so the Weibull shape is 1 / scale.

    Attributes:
        feature_names: "(Intercept)" followed by covariate names.
        coefficients: Intercept and covariate effects on log time.
        standard_errors: Standard errors of coefficients.
        scale: Estimated scale tau.
        log_scale_se: Standard error of log(scale).
        covariance: Covariance of (coefficients, log(scale)).
        loglik: Log likelihood on the time scale.
        n_samples: Number of subjects.
        n_events: Number of events.
        iterations: Optimizer iterations.
    """

    model_type: ClassVar[str] = "weibull_aft"

    feature_names: List[str]
    coefficients: np.ndarray
    standard_errors: np.ndarray
    scale: float
    log_scale_se: float
    covariance: np.ndarray
    loglik: float
    n_samples: int
    n_events: int
    iterations: int

    def __post_init__(self) -> None:
        _freeze_arrays(self)

    @property
    def shape(self) -> float:
        """Weibull shape kappa = 1 / scale."""
        return 1.0 / self.scale

    @property
    def intercept(self) -> float:
        return float(self.coefficients[0])

    def coefficient(self, name: str) -> float:
        return float(self.coefficients[self.feature_names.index(name)])

    def implied_cox_coefficients(self) -> Dict[str, float]:
        """Proportional hazards coefficients -beta / scale for each covariate."""
        return {
            name: float(-beta / self.scale)
            for name, beta in zip(self.feature_names[1:], self.coefficients[1:])
        }

    def summary(self) -> pd.DataFrame:
        """Coefficient table in the usual survreg layout."""
        values = np.append(self.coefficients, np.log(self.scale))
        ses = np.append(self.standard_errors, self.log_scale_se)
        return pd.DataFrame(
            {"value": values, "std_error": ses, "z": values / ses},
            index=pd.Index(self.feature_names + ["Log(scale)"], name="term"),
        )


@dataclass(frozen=True, eq=False)
class KaplanMeierFit:
    """Kaplan-Meier survival estimate for one group.

    Attributes:
        label: Group label.
        time: Distinct observed times.
        n_risk: Number at risk just before each time.
        n_event: Events at each time.
        n_censor: Censored observations at each time.
        survival: S(t) right after each time.
        std_err: Greenwood standard error of the cumulative hazard,
            i.e. of -log S(t).
        ci_lower: Lower pointwise confidence bound for S(t).
        ci_upper: Upper pointwise confidence bound for S(t).
        conf_type: "log", "log-log" or "plain".
        conf_level: Confidence level.
    """

    model_type: ClassVar[str] = "kaplan_meier"

    label: str
    time: np.ndarray
    n_risk: np.ndarray
    n_event: np.ndarray
    n_censor: np.ndarray
    survival: np.ndarray
    std_err: np.ndarray
    ci_lower: np.ndarray
    ci_upper: np.ndarray
    conf_type: str
    conf_level: float

    def __post_init__(self) -> None:
        _freeze_arrays(self)

    @property
    def n_samples(self) -> int:
        return int(self.n_risk[0]) if len(self.n_risk) else 0

    @property
    def n_events(self) -> int:
        return int(np.sum(self.n_event))

    def survival_at(self, times: Sequence[float]) -> np.ndarray:
        """Right-continuous step function S(t) evaluated at ``times``."""
        times = np.asarray(times, dtype=float)
        idx = np.searchsorted(self.time, times, side="right") - 1
        return np.where(idx >= 0, self.survival[np.maximum(idx, 0)], 1.0)

    def median(self) -> float:
        """Smallest time with S(t) <= 0.5, NaN if the curve never gets there."""
        below = np.nonzero(self.survival <= 0.5)[0]
        return float(self.time[below[0]]) if len(below) else float("nan")

    def risk_table(self, times: Sequence[float]) -> pd.DataFrame:
        """At-risk and cumulative event/censoring counts at given times.

        ``n_risk`` counts subjects with observed time >= t; the cumulative
        counts include everything observed up to and including t.
        """
        times = np.asarray(times, dtype=float)
        total = self.n_samples
        cum_event = np.cumsum(self.n_event)
        cum_censor = np.cumsum(self.n_censor)

        rows = []
        for t in times:
            before = np.searchsorted(self.time, t, side="left")
            upto = np.searchsorted(self.time, t, side="right")
            removed_before = (cum_event[before - 1] + cum_censor[before - 1]) if before else 0
            rows.append(
                {
                    "group": self.label,
                    "time": float(t),
                    "n_risk": int(total - removed_before),
                    "cum_events": int(cum_event[upto - 1]) if upto else 0,
                    "cum_censored": int(cum_censor[upto - 1]) if upto else 0,
                }
            )
        return pd.DataFrame(rows)

    def to_frame(self) -> pd.DataFrame:
        """Plot data: one row per distinct time."""
        return pd.DataFrame(
            {
                "group": self.label,
                "time": self.time,
                "n_risk": self.n_risk,
                "n_event": self.n_event,
                "n_censor": self.n_censor,
                "survival": self.survival,
                "std_err": self.std_err,
                "ci_lower": self.ci_lower,
                "ci_upper": self.ci_upper,
            }
        )


@dataclass(frozen=True, eq=False)
class LogRankResult:
    """G-rho family test of equal survival across groups.

    Attributes:
        group_labels: Group labels in the order of the arrays below.
        n_per_group: Subjects per group.
        observed: Observed (weighted) events per group.
        expected: Expected (weighted) events per group under H0.
        test: Chi-square test with n_groups - 1 degrees of freedom.
        rho: Weight exponent; 0 is the log-rank test.
    """

    model_type: ClassVar[str] = "logrank"

    group_labels: List[str]
    n_per_group: np.ndarray
    observed: np.ndarray
    expected: np.ndarray
    test: ChiSquareTest
    rho: float

    def __post_init__(self) -> None:
        _freeze_arrays(self)

    @property
    def statistic(self) -> float:
        return self.test.statistic

    @property
    def p_value(self) -> float:
        return self.test.p_value

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "group": self.group_labels,
                "n": self.n_per_group,
                "observed": self.observed,
                "expected": self.expected,
            }
        )


@dataclass(frozen=True, eq=False)
class PHTestResult:
    """Schoenfeld residual test of the proportional hazards assumption.

    Attributes:
        feature_names: Covariate names.
        tests: Per-covariate score tests (1 df each).
        global_test: Joint test across covariates.
        transform: Time transform used ("km", "rank", "identity", "log").
        event_times: Event times, one per Schoenfeld residual row.
        transformed_times: g(t) at each event time, before centering.
        scaled_residuals: Scaled Schoenfeld residuals plus beta, shape
            (n_events, n_features); these estimate beta(t).
        correlations: Pearson correlation of g(t) with each column of
            scaled_residuals.
        trend: LOWESS smooth of scaled_residuals against transformed_times,
            same shape as scaled_residuals, ordered like event_times.
    """

    model_type: ClassVar[str] = "cox_zph"

    feature_names: List[str]
    tests: List[ChiSquareTest]
    global_test: ChiSquareTest
    transform: str
    event_times: np.ndarray
    transformed_times: np.ndarray
    scaled_residuals: np.ndarray
    correlations: np.ndarray
    trend: np.ndarray

    def __post_init__(self) -> None:
        _freeze_arrays(self)

    def p_value(self, name: str) -> float:
        return self.tests[self.feature_names.index(name)].p_value

    def summary(self) -> pd.DataFrame:
        """chisq / df / p table with a GLOBAL row, like cox.zph."""
        rows = [
            {"term": name, "rho": rho, **test.to_dict()}
            for name, rho, test in zip(self.feature_names, self.correlations, self.tests)
        ]
        rows.append({"term": "GLOBAL", "rho": np.nan, **self.global_test.to_dict()})
        return pd.DataFrame(rows).set_index("term")

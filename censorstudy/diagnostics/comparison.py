"""Comparison of fitted estimates against the generating parameters.

Since the data are simulated, the true log hazard ratios and AFT parameters
are known exactly and every fit can be scored against them.
"""

from typing import Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd
from scipy import stats

from ..models.results import CoxFit, WeibullAFTFit

# Agreement required between the AFT fit and the generating parameters
AFT_TOLERANCE = 0.2


def compare_to_truth(
    fit: CoxFit,
    truth: Mapping[str, float],
    design: str,
    condition: str,
    n_se: float = 2.0,
) -> List[Dict[str, object]]:
    """Score each Cox coefficient against its true value.

    Args:
        fit: Cox fit.
        truth: True log hazard ratio per covariate name.
        design: Covariate design label.
        condition: Censoring condition label.
        n_se: Width, in standard errors, of the agreement band.

    Returns:
        One row per covariate with the estimate, bias, the estimate's
        distance from the truth in standard errors, and whether the Wald
        interval covers the truth.
    """
    z_crit = stats.norm.ppf(1.0 - (1.0 - fit.conf_level) / 2.0)
    rows = []
    for j, name in enumerate(fit.feature_names):
        true_value = float(truth[name])
        estimate = float(fit.coefficients[j])
        se = float(fit.standard_errors[j])
        lower, upper = estimate - z_crit * se, estimate + z_crit * se
        z_vs_truth = (estimate - true_value) / se
        rows.append(
            {
                "design": design,
                "condition": condition,
                "covariate": name,
                "true_value": true_value,
                "estimate": estimate,
                "std_error": se,
                "z": float(fit.z_statistics[j]),
                "p_value": float(fit.p_values[j]),
                "hazard_ratio": float(fit.hazard_ratios[j]),
                "hr_lower": float(fit.ci_lower[j]),
                "hr_upper": float(fit.ci_upper[j]),
                "true_hazard_ratio": float(np.exp(true_value)),
                "bias": estimate - true_value,
                "z_vs_truth": z_vs_truth,
                "within_2se": bool(abs(z_vs_truth) <= n_se),
                "covers_truth": bool(lower <= true_value <= upper),
                "n_events": fit.n_events,
            }
        )
    return rows


def comparison_table(rows: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    """Estimates side by side across censoring conditions.

    Args:
        rows: Rows from compare_to_truth, possibly from many conditions.

    Returns:
        DataFrame indexed by (design, covariate) with one
        ``estimate``/``std_error`` column pair per condition, plus the true
        value. Conditions keep their first-seen order.
    """
    frame = pd.DataFrame(list(rows))
    if frame.empty:
        return frame

    conditions = list(dict.fromkeys(frame["condition"]))
    wide = frame.pivot_table(
        index=["design", "covariate", "true_value"],
        columns="condition",
        values=["estimate", "std_error"],
        sort=False,
    )
    wide = wide.reindex(columns=conditions, level="condition")
    wide.columns = [f"{stat}_{condition}" for stat, condition in wide.columns]
    return wide.reset_index(level="true_value")


def aft_verification(
    fit: WeibullAFTFit,
    truth: Mapping[str, float],
    design: str,
    tolerance: float = AFT_TOLERANCE,
) -> List[Dict[str, object]]:
    """Check that a Weibull AFT fit recovers the generating parameters.

    Reports the intercept, each covariate effect, the scale tau and the
    shape 1/tau, each against its true value with an absolute tolerance.

    Args:
        fit: AFT fit, typically on horizon-only censored data.
        truth: Output of StudyScenario.true_aft_parameters.
        design: Covariate design label.
        tolerance: Allowed absolute error.

    Returns:
        One row per parameter.
    """
    estimates = dict(zip(fit.feature_names, fit.coefficients.tolist()))
    ses = dict(zip(fit.feature_names, fit.standard_errors.tolist()))
    estimates["scale"] = fit.scale
    ses["scale"] = fit.scale * fit.log_scale_se
    estimates["shape"] = fit.shape
    ses["shape"] = fit.shape * fit.log_scale_se

    truth = dict(truth)
    truth["shape"] = 1.0 / truth["scale"]

    rows = []
    for name, true_value in truth.items():
        estimate = estimates[name]
        error = estimate - true_value
        rows.append(
            {
                "design": design,
                "parameter": name,
                "true_value": float(true_value),
                "estimate": float(estimate),
                "std_error": float(ses[name]),
                "error": float(error),
                "relative_error": float(error / true_value) if true_value else np.nan,
                "within_tolerance": bool(abs(error) <= tolerance),
            }
        )
    return rows

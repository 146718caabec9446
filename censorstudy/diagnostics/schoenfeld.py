"""Schoenfeld residual test of the proportional hazards assumption.

For each covariate the fitted model is extended to beta(t) = beta + gamma * g(t)
and the slope of the scaled Schoenfeld residuals on g(t) is tested. The
per-covariate statistics are lifelines' ``proportional_hazard_test``; the
global statistic is the matching joint test on the unscaled residuals, as in
R's ``cox.zph`` before survival 3.0.

The residuals come from a lifelines refit of the covariates with Efron ties,
whatever tie method the supplied fit used.
"""

import numpy as np
from lifelines.statistics import TimeTransformers, proportional_hazard_test
from scipy import stats
from statsmodels.duration.hazard_regression import PHReg
from statsmodels.nonparametric.smoothers_lowess import lowess

from ..data.generator import SurvivalData
from ..errors import ConvergenceError, DegenerateSampleError, InvalidParameterError
from ..models.checks import check_survival_inputs
from ..models.cox import check_separation, run_lifelines_cox
from ..models.results import ChiSquareTest, CoxFit, PHTestResult

TIME_TRANSFORMS = ("km", "rank", "identity", "log")
MIN_EVENTS = 3


def global_ph_statistic(
    transformed_times: np.ndarray,
    residuals: np.ndarray,
    covariance: np.ndarray,
) -> float:
    """Joint test of zero slope across covariates.

    Args:
        transformed_times: g(t) at each event time.
        residuals: Unscaled Schoenfeld residuals, one row per event.
        covariance: Covariance of the Cox coefficients.

    Returns:
        u' V u * d / sum((g - mean g)^2) with u = sum((g - mean g) * residuals),
        chi-square on n_features df under proportional hazards.
    """
    centered = transformed_times - transformed_times.mean()
    u = centered @ residuals
    return float(u @ covariance @ u * len(centered) / np.sum(centered**2))


def cox_zph(
    fit: CoxFit,
    X: np.ndarray,
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    transform: str = "km",
    lowess_frac: float = 2.0 / 3.0,
) -> PHTestResult:
    """Test proportional hazards for a fitted Cox model.

    Args:
        fit: Cox fit on the same data; supplies the covariate names.
        X: Covariates used in the fit.
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        transform: Time transform g(t): "km" (default), "rank", "identity"
            or "log".
        lowess_frac: Smoothing span for the residual trend.

    Returns:
        PHTestResult with per-covariate 1-df tests, a global test with
        n_features df, scaled residuals and their LOWESS trend.

    Raises:
        InvalidParameterError: On an unknown transform.
        DegenerateSampleError: With fewer than three events.
        ConvergenceError: If the Efron refit does not converge or a
            coefficient diverges.
    """
    if transform not in TIME_TRANSFORMS:
        raise InvalidParameterError(
            f"transform must be one of {list(TIME_TRANSFORMS)}, got {transform!r}"
        )

    n_events = int(np.sum(np.asarray(event_indicators)))
    if n_events < MIN_EVENTS:
        raise DegenerateSampleError(
            f"PH test needs at least {MIN_EVENTS} events, got {n_events}"
        )

    X, T, E, names = check_survival_inputs(X, event_times, event_indicators, fit.feature_names)
    fitter, frame, iterations, failure = run_lifelines_cox(X, T, E, names)
    if failure is not None:
        raise ConvergenceError(
            f"Cox refit for the PH test did not converge: {failure}",
            iterations=iterations,
        )
    refit = PHReg(T, X, status=E, ties="efron")
    check_separation(refit, X, fitter.params_.to_numpy(), iterations)

    per_covariate = proportional_hazard_test(fitter, frame, time_transform=transform)
    tests = [
        ChiSquareTest(float(stat), 1, float(p))
        for stat, p in zip(per_covariate.test_statistic, per_covariate.p_value)
    ]

    durations = fitter.durations
    events = fitter.event_observed
    g = np.asarray(
        TimeTransformers().get(transform)(durations, events, fitter.weights)[events.values],
        dtype=float,
    )
    times = durations.to_numpy(dtype=float)[events.to_numpy(dtype=bool)]

    residuals = fitter.compute_residuals(frame, kind="schoenfeld").to_numpy()
    covariance = fitter.variance_matrix_.to_numpy()
    global_stat = global_ph_statistic(g, residuals, covariance)
    if not np.isfinite(global_stat):
        raise ConvergenceError(
            "PH test statistic is not finite", iterations=iterations
        )
    p = len(names)
    global_test = ChiSquareTest(global_stat, p, float(stats.chi2.sf(global_stat, p)))

    scaled = (
        fitter.compute_residuals(frame, kind="scaled_schoenfeld").to_numpy()
        + fitter.params_.to_numpy()
    )
    correlations = np.array(
        [stats.pearsonr(g, scaled[:, j])[0] for j in range(p)]
    )
    trend = np.column_stack(
        [
            lowess(scaled[:, j], g, frac=lowess_frac, return_sorted=False)
            for j in range(p)
        ]
    )

    return PHTestResult(
        feature_names=names,
        tests=tests,
        global_test=global_test,
        transform=transform,
        event_times=times,
        transformed_times=g,
        scaled_residuals=scaled,
        correlations=correlations,
        trend=trend,
    )


def check_proportional_hazards(
    fit: CoxFit,
    data: SurvivalData,
    transform: str = "km",
) -> PHTestResult:
    """Run cox_zph on the dataset a Cox model was fitted to."""
    return cox_zph(fit, data.X, data.T, data.E, transform=transform)

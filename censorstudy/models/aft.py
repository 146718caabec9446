"""Weibull accelerated failure time model via lifelines' WeibullAFTFitter.

The model is log T = X beta + tau * W, where W has the standard minimum
extreme value distribution. lifelines parameterises the same model with
lambda_ = beta and rho_ = log(1 / tau), so the scale row of its covariance
changes sign on the way out.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from lifelines import WeibullAFTFitter
from lifelines import exceptions as lifelines_exceptions

from ..data.generator import SurvivalData
from ..errors import ConvergenceError
from .checks import check_survival_inputs
from .results import WeibullAFTFit

INTERCEPT = "(Intercept)"

_DURATION_COL = "__duration"
_EVENT_COL = "__event"


def fit_weibull_aft(
    X: Optional[np.ndarray],
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    feature_names: Optional[Sequence[str]] = None,
    max_iter: int = 200,
) -> WeibullAFTFit:
    """Fit a Weibull AFT model.

    Args:
        X: Covariates without an intercept column, or None for an
            intercept-only model.
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        feature_names: Covariate names.
        max_iter: Maximum optimizer iterations.

    Returns:
        WeibullAFTFit record. Standard errors come from the inverse observed
        information in (beta, log scale).

    Raises:
        DegenerateSampleError: If the sample cannot support a fit.
        ConvergenceError: If the optimizer fails.
    """
    X, T, E, names = check_survival_inputs(X, event_times, event_indicators, feature_names)

    frame = pd.DataFrame(X, columns=names)
    frame[_DURATION_COL] = T
    frame[_EVENT_COL] = E

    steps = []
    fitter = WeibullAFTFitter()
    fitter._scipy_fit_callback = steps.append
    try:
        fitter.fit(
            frame,
            duration_col=_DURATION_COL,
            event_col=_EVENT_COL,
            fit_options={"maxiter": max_iter},
        )
    except lifelines_exceptions.ConvergenceError as e:
        raise ConvergenceError(
            "Weibull AFT optimization did not converge", iterations=len(steps)
        ) from e

    keys = [("lambda_", "Intercept")] + [("lambda_", name) for name in names]
    keys.append(("rho_", "Intercept"))
    theta = fitter.params_.loc[keys].to_numpy()
    covariance = fitter.variance_matrix_.loc[keys, keys].to_numpy().copy()
    covariance[-1, :] *= -1
    covariance[:, -1] *= -1

    variances = np.diag(covariance)
    if not np.all(np.isfinite(theta)) or np.any(~np.isfinite(variances)) or np.any(variances <= 0):
        raise ConvergenceError(
            "Observed information is not positive definite at the optimum",
            iterations=len(steps),
        )
    se = np.sqrt(variances)

    return WeibullAFTFit(
        feature_names=[INTERCEPT] + names,
        coefficients=theta[:-1],
        standard_errors=se[:-1],
        scale=float(np.exp(-theta[-1])),
        log_scale_se=float(se[-1]),
        covariance=covariance,
        loglik=float(fitter.log_likelihood_),
        n_samples=len(T),
        n_events=int(E.sum()),
        iterations=len(steps),
    )


def fit_aft_model(data: SurvivalData, **kwargs) -> WeibullAFTFit:
    """Fit a Weibull AFT model to every covariate of a simulated dataset."""
    return fit_weibull_aft(
        data.X, data.T, data.E, feature_names=data.feature_names, **kwargs
    )

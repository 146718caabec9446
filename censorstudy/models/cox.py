"""Cox proportional hazards fits on lifelines and statsmodels.

Efron ties are fitted with lifelines' ``CoxPHFitter``; Breslow ties with
statsmodels' ``PHReg``. The PHReg model for the requested tie method also
supplies the partial likelihood, score and Hessian at any coefficient vector,
which the global tests and the separation check need.
"""

import contextlib
import io
import re
import warnings
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from lifelines import CoxPHFitter
from lifelines import exceptions as lifelines_exceptions
from scipy import linalg, stats
from statsmodels.duration.hazard_regression import PHReg
from statsmodels.tools.sm_exceptions import ConvergenceWarning as StatsmodelsConvergenceWarning

from ..data.generator import SurvivalData
from ..errors import ConvergenceError, InvalidParameterError
from ..metrics.concordance import calculate_c_index
from .checks import check_survival_inputs
from .results import ChiSquareTest, CoxFit

TIES_METHODS = ("efron", "breslow")

# Largest remaining Newton step, in covariate standard deviations, accepted at
# a reported optimum. A monotone likelihood keeps taking steps of fixed size.
SEPARATION_STEP = 1e-3

_DURATION_COL = "__duration"
_EVENT_COL = "__event"
_ITERATION_LINE = re.compile(r"Iteration (\d+):")
_NEWTON_FAILURES = ("Newton-Raphson", "suspiciously close to 0")


def _first_sentence(message) -> str:
    return str(message).strip().split(". ")[0].rstrip(".")


def _split_warnings(caught, category, markers=None) -> Optional[str]:
    """Re-emit caught warnings, returning the first convergence failure."""
    failure = None
    for record in caught:
        is_failure = issubclass(record.category, category) and (
            markers is None or any(m in str(record.message) for m in markers)
        )
        if is_failure:
            failure = failure or _first_sentence(record.message)
        else:
            warnings.warn_explicit(
                record.message, record.category, record.filename, record.lineno
            )
    return failure


def _solve(matrix: np.ndarray, vector: np.ndarray, iterations: int) -> np.ndarray:
    try:
        return linalg.solve(matrix, vector, assume_a="sym")
    except (linalg.LinAlgError, ValueError) as e:
        raise ConvergenceError(
            f"Information matrix is singular: {e}",
            iterations=iterations,
            gradient_norm=float(np.linalg.norm(vector)),
        ) from e


def run_lifelines_cox(X, T, E, names: List[str], max_iter: int = 50):
    """Fit lifelines' CoxPHFitter (Efron ties), counting Newton-Raphson steps.

    lifelines only reports progress on stdout, so the iteration count is read
    from its progress lines. Newton-Raphson convergence warnings are caught
    and returned as a message; all other warnings are re-emitted.

    Returns:
        Tuple of (fitter, training frame, iterations, failure message or None).

    Raises:
        ConvergenceError: If lifelines halts on a singular or non-finite
            Hessian.
    """
    frame = pd.DataFrame(X, columns=names)
    frame[_DURATION_COL] = T
    frame[_EVENT_COL] = E

    fitter = CoxPHFitter()
    progress = io.StringIO()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            with contextlib.redirect_stdout(progress):
                fitter.fit(
                    frame,
                    duration_col=_DURATION_COL,
                    event_col=_EVENT_COL,
                    show_progress=True,
                    fit_options={"max_steps": max_iter},
                )
        except lifelines_exceptions.ConvergenceError as e:
            raise ConvergenceError(
                f"Partial likelihood did not converge: {_first_sentence(e)}",
                iterations=_count_iterations(progress.getvalue()),
            ) from e
    failure = _split_warnings(caught, lifelines_exceptions.ConvergenceWarning, _NEWTON_FAILURES)
    return fitter, frame, _count_iterations(progress.getvalue()), failure


def _fit_efron(X, T, E, names: List[str], max_iter: int):
    fitter, _, iterations, failure = run_lifelines_cox(X, T, E, names, max_iter)

    beta = fitter.params_.to_numpy()
    # lifelines centres covariates, so its baseline sits at the sample means
    cumhaz = fitter.baseline_cumulative_hazard_
    shift = np.exp(-np.mean(X, axis=0) @ beta)
    return {
        "beta": beta,
        "covariance": fitter.variance_matrix_.to_numpy(),
        "loglik": float(fitter.log_likelihood_),
        "iterations": iterations,
        "baseline_times": cumhaz.index.to_numpy(dtype=float),
        "baseline_cumulative_hazard": cumhaz.iloc[:, 0].to_numpy() * shift,
        "failure": failure,
    }


def _fit_breslow(model: PHReg, max_iter: int):
    steps = []
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = model.fit(maxiter=max_iter, callback=steps.append)
        except (ValueError, np.linalg.LinAlgError) as e:
            # No covariance when the Hessian cannot be inverted
            raise ConvergenceError(
                f"Partial likelihood did not converge: {e}", iterations=len(steps)
            ) from e
    failure = _split_warnings(caught, StatsmodelsConvergenceWarning)

    times, cumhaz, _ = result.baseline_cumulative_hazard[0]
    return {
        "beta": np.asarray(result.params, dtype=float),
        "covariance": np.asarray(result.cov_params(), dtype=float),
        "loglik": float(result.llf),
        "iterations": len(steps),
        "baseline_times": np.asarray(times, dtype=float),
        "baseline_cumulative_hazard": np.asarray(cumhaz, dtype=float),
        "failure": failure,
    }


def _count_iterations(progress: str) -> int:
    counts = [int(n) for n in _ITERATION_LINE.findall(progress)]
    return max(counts) if counts else 0


def check_separation(model: PHReg, X: np.ndarray, beta: np.ndarray, iterations: int) -> None:
    """Raise if a Newton step of more than SEPARATION_STEP SDs remains at beta.

    Raises:
        ConvergenceError: If a coefficient diverges (complete separation).
    """
    score = model.score(beta)
    remaining = _solve(-model.hessian(beta), score, iterations)
    if np.any(np.abs(remaining) * X.std(axis=0) > SEPARATION_STEP):
        raise ConvergenceError(
            "Partial likelihood is monotone; a coefficient diverges to infinity "
            "(complete separation)",
            iterations=iterations,
            gradient_norm=float(np.linalg.norm(score)),
        )


def fit_cox_ph(
    X: np.ndarray,
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    feature_names: Optional[Sequence[str]] = None,
    ties: str = "efron",
    conf_level: float = 0.95,
    max_iter: int = 50,
    group: Optional[np.ndarray] = None,
) -> CoxFit:
    """Fit a Cox proportional hazards model.

    A reported optimum is accepted only if the Newton step still available
    there is negligible. When one arm's events all precede the other's the
    partial likelihood is monotone, the optimizer drifts towards an infinite
    coefficient and the fit raises instead of returning a huge estimate.

    Args:
        X: Covariates, shape (n_samples, n_features).
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        feature_names: Covariate names.
        ties: "efron" (default) or "breslow".
        conf_level: Confidence level for the Wald intervals.
        max_iter: Maximum Newton-Raphson iterations.
        group: Optional treatment arm codes, checked for wholly censored arms.

    Returns:
        CoxFit record.

    Raises:
        InvalidParameterError: On malformed inputs or options.
        DegenerateSampleError: If the sample cannot support a fit.
        ConvergenceError: If Newton-Raphson does not converge or a
            coefficient diverges.
    """
    if ties not in TIES_METHODS:
        raise InvalidParameterError(f"ties must be one of {TIES_METHODS}, got {ties!r}")
    if not 0.0 < conf_level < 1.0:
        raise InvalidParameterError(f"conf_level must be in (0, 1), got {conf_level}")

    X, T, E, names = check_survival_inputs(X, event_times, event_indicators, feature_names, group)
    if X.shape[1] == 0:
        raise InvalidParameterError("Cox model needs at least one covariate")

    model = PHReg(T, X, status=E, ties=ties)
    if ties == "efron":
        fitted = _fit_efron(X, T, E, names, max_iter)
    else:
        fitted = _fit_breslow(model, max_iter)

    beta = fitted["beta"]
    covariance = fitted["covariance"]
    iterations = fitted["iterations"]

    if not np.all(np.isfinite(beta)):
        raise ConvergenceError(
            "Partial likelihood did not converge: non-finite coefficients",
            iterations=iterations,
        )
    score = model.score(beta)
    gradient_norm = float(np.linalg.norm(score))

    if fitted["failure"] is not None:
        raise ConvergenceError(
            f"Partial likelihood did not converge: {fitted['failure']}",
            iterations=iterations,
            gradient_norm=gradient_norm,
        )

    variances = np.diag(covariance)
    if np.any(~np.isfinite(variances)) or np.any(variances <= 0):
        raise ConvergenceError(
            "Fit converged to a degenerate estimate (non-positive variance)",
            iterations=iterations,
            gradient_norm=gradient_norm,
        )

    check_separation(model, X, beta, iterations)

    se = np.sqrt(variances)
    z = beta / se
    z_crit = stats.norm.ppf(1.0 - (1.0 - conf_level) / 2.0)
    p = len(beta)

    null = np.zeros(p)
    loglik = fitted["loglik"]
    loglik_null = float(model.loglike(null))
    score_null = model.score(null)

    lr_stat = 2.0 * (loglik - loglik_null)
    wald_stat = float(beta @ _solve(covariance, beta, iterations))
    score_stat = float(score_null @ _solve(-model.hessian(null), score_null, 0))

    return CoxFit(
        feature_names=names,
        coefficients=beta,
        standard_errors=se,
        covariance=covariance,
        z_statistics=z,
        p_values=2.0 * stats.norm.sf(np.abs(z)),
        hazard_ratios=np.exp(beta),
        ci_lower=np.exp(beta - z_crit * se),
        ci_upper=np.exp(beta + z_crit * se),
        conf_level=conf_level,
        loglik=loglik,
        loglik_null=loglik_null,
        likelihood_ratio_test=ChiSquareTest(lr_stat, p, float(stats.chi2.sf(lr_stat, p))),
        wald_test=ChiSquareTest(wald_stat, p, float(stats.chi2.sf(wald_stat, p))),
        score_test=ChiSquareTest(score_stat, p, float(stats.chi2.sf(score_stat, p))),
        concordance=calculate_c_index(X @ beta, T, E),
        n_samples=len(T),
        n_events=int(E.sum()),
        iterations=iterations,
        ties=ties,
        baseline_times=fitted["baseline_times"],
        baseline_cumulative_hazard=fitted["baseline_cumulative_hazard"],
    )


def fit_cox_model(
    data: SurvivalData,
    ties: str = "efron",
    conf_level: float = 0.95,
    **kwargs,
) -> CoxFit:
    """Fit a Cox model to every covariate of a simulated dataset."""
    return fit_cox_ph(
        data.X,
        data.T,
        data.E,
        feature_names=data.feature_names,
        ties=ties,
        conf_level=conf_level,
        group=data.group,
        **kwargs,
    )

"""Kaplan-Meier survival estimates from lifelines with Greenwood confidence bands.

lifelines only offers log-log intervals, so the log and plain transforms are
built here from the Greenwood variance of its event table.
"""

from typing import Dict, Mapping, Optional

import numpy as np
from lifelines import KaplanMeierFitter
from scipy import stats

from ..errors import InvalidParameterError
from .results import KaplanMeierFit

CONF_TYPES = ("log", "log-log", "plain")


def _confidence_band(survival, std_err, z, conf_type):
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if conf_type == "log":
            lower = survival * np.exp(-z * std_err)
            upper = survival * np.exp(z * std_err)
        elif conf_type == "log-log":
            log_s = np.log(survival)
            width = np.exp(z * std_err / np.abs(log_s))
            lower = survival ** width
            upper = survival ** (1.0 / width)
        else:
            lower = survival - z * survival * std_err
            upper = survival + z * survival * std_err

    # Undefined where S is 0 or 1, or once the variance blows up
    undefined = ~np.isfinite(lower) | ~np.isfinite(upper) | (survival <= 0)
    if conf_type == "log-log":
        undefined |= survival >= 1
    lower = np.where(undefined, survival, np.clip(lower, 0.0, 1.0))
    upper = np.where(undefined, survival, np.clip(upper, 0.0, 1.0))
    return lower, upper


def fit_kaplan_meier(
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    label: str = "all",
    conf_type: str = "log",
    conf_level: float = 0.95,
) -> KaplanMeierFit:
    """Product-limit estimate of the survival function.

    Args:
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        label: Group label stored on the result.
        conf_type: Confidence interval transform: "log" (default),
            "log-log" or "plain".
        conf_level: Confidence level of the pointwise intervals.

    Returns:
        KaplanMeierFit with one row per distinct observed time.
    """
    if conf_type not in CONF_TYPES:
        raise InvalidParameterError(f"conf_type must be one of {CONF_TYPES}, got {conf_type!r}")
    if not 0.0 < conf_level < 1.0:
        raise InvalidParameterError(f"conf_level must be in (0, 1), got {conf_level}")

    times = np.asarray(event_times, dtype=float).ravel()
    events = np.asarray(event_indicators).ravel().astype(int)
    if len(times) == 0:
        raise InvalidParameterError("Cannot estimate survival from an empty sample")
    if len(events) != len(times):
        raise InvalidParameterError("event_times and event_indicators differ in length")

    kmf = KaplanMeierFitter(alpha=1.0 - conf_level).fit(times, events, label=str(label))

    # The event table opens with an entry row at t = 0
    table = kmf.event_table[kmf.event_table["removed"] > 0]
    unique_times = table.index.to_numpy(dtype=float)
    n_risk = table["at_risk"].to_numpy().astype(int)
    n_event = table["observed"].to_numpy().astype(int)
    n_censor = table["censored"].to_numpy().astype(int)

    survival = kmf.survival_function_.iloc[:, 0].loc[unique_times].to_numpy()

    with np.errstate(divide="ignore", invalid="ignore"):
        increments = np.where(
            n_event > 0, n_event / (n_risk * (n_risk - n_event)), 0.0
        )
    std_err = np.sqrt(np.cumsum(increments))

    z = stats.norm.ppf(1.0 - (1.0 - conf_level) / 2.0)
    ci_lower, ci_upper = _confidence_band(survival, std_err, z, conf_type)

    return KaplanMeierFit(
        label=str(label),
        time=unique_times,
        n_risk=n_risk,
        n_event=n_event,
        n_censor=n_censor,
        survival=survival,
        std_err=std_err,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        conf_type=conf_type,
        conf_level=conf_level,
    )


def fit_kaplan_meier_by_group(
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    groups: np.ndarray,
    labels: Optional[Mapping] = None,
    **kwargs,
) -> Dict[str, KaplanMeierFit]:
    """Kaplan-Meier estimate for each group.

    Args:
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        groups: Group code per subject.
        labels: Optional mapping from group code to display label.
        **kwargs: Passed to fit_kaplan_meier.

    Returns:
        Dictionary from label to fit, in sorted group-code order.
    """
    times = np.asarray(event_times, dtype=float).ravel()
    events = np.asarray(event_indicators).ravel()
    groups = np.asarray(groups).ravel()

    fits = {}
    for code in np.unique(groups):
        mask = groups == code
        label = labels.get(code, str(code)) if labels else str(code)
        fits[label] = fit_kaplan_meier(times[mask], events[mask], label=label, **kwargs)
    return fits

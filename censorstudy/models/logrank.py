"""Log-rank and G-rho tests for equality of survival across groups.

Counts come from lifelines' event tables; the rho = 0 statistic is lifelines'
multivariate log-rank test.
"""

from typing import Mapping, Optional

import numpy as np
from lifelines import KaplanMeierFitter
from lifelines.statistics import multivariate_logrank_test
from lifelines.utils import group_survival_table_from_events
from scipy import linalg, stats

from ..errors import DegenerateSampleError, InvalidParameterError
from .checks import check_survival_inputs
from .results import ChiSquareTest, LogRankResult


def logrank_test(
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    groups: np.ndarray,
    rho: float = 0.0,
    labels: Optional[Mapping] = None,
) -> LogRankResult:
    """Harrington-Fleming G-rho test across k >= 2 groups.

    Each event time is weighted by S(t-)^rho, with S the pooled Kaplan-Meier
    estimate. rho = 0 gives the log-rank test, rho = 1 the Peto-Peto
    modification of the Gehan-Wilcoxon test.

    Args:
        event_times: Observed times.
        event_indicators: 1 = event, 0 = censored.
        groups: Group code per subject.
        rho: Weight exponent.
        labels: Optional mapping from group code to display label.

    Returns:
        LogRankResult with a chi-square test on k - 1 degrees of freedom.

    Raises:
        DegenerateSampleError: If fewer than two groups or no events.
    """
    if rho < 0:
        raise InvalidParameterError(f"rho must be >= 0, got {rho}")

    _, T, E, _ = check_survival_inputs(None, event_times, event_indicators)
    groups = np.asarray(groups).ravel()
    if len(groups) != len(T):
        raise InvalidParameterError(f"groups has length {len(groups)}, expected {len(T)}")

    codes = np.unique(groups)
    if len(codes) < 2:
        raise DegenerateSampleError("Log-rank test needs at least two groups")

    _, removed, deaths, _ = group_survival_table_from_events(groups, T, E)
    # lifelines orders columns by first appearance
    removed = removed[[f"removed:{code}" for code in codes]]
    deaths = deaths[[f"observed:{code}" for code in codes]]

    n_risk = removed.sum(0).to_numpy() - removed.cumsum(0).shift(1).fillna(0).to_numpy()
    n_event = deaths.to_numpy()
    n = n_risk.sum(axis=1)
    d = n_event.sum(axis=1)

    # Pooled KM just before each table time
    pooled = KaplanMeierFitter().fit(T, E).survival_function_.iloc[:, 0]
    weights = pooled.shift(1).fillna(1.0).loc[removed.index].to_numpy() ** rho

    share = n_risk / n[:, None]
    observed = (weights[:, None] * n_event).sum(axis=0)
    expected = (weights[:, None] * share * d[:, None]).sum(axis=0)

    df = len(codes) - 1
    if rho == 0:
        reference = multivariate_logrank_test(T, groups, E)
        test = ChiSquareTest(float(reference.test_statistic), df, float(reference.p_value))
    else:
        statistic = _weighted_statistic(observed - expected, share, d, n, weights)
        test = ChiSquareTest(statistic, df, float(stats.chi2.sf(statistic, df)))

    group_labels = [
        labels.get(code, str(code)) if labels else str(code) for code in codes
    ]

    return LogRankResult(
        group_labels=group_labels,
        n_per_group=np.array([np.sum(groups == code) for code in codes]),
        observed=observed,
        expected=expected,
        test=test,
        rho=float(rho),
    )


def _weighted_statistic(diff, share, d, n, weights) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        tie_factor = np.where(n > 1, d * (n - d) / (n - 1), 0.0)
    k = share.shape[1]
    variance = np.zeros((k, k))
    for s, w, f in zip(share, weights, tie_factor):
        variance += w**2 * f * (np.diag(s) - np.outer(s, s))

    try:
        return float(diff[:-1] @ linalg.solve(variance[:-1, :-1], diff[:-1], assume_a="sym"))
    except linalg.LinAlgError as e:
        raise DegenerateSampleError(f"Log-rank variance matrix is singular: {e}") from e

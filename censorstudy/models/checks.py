"""Input checks shared by the model fitting functions."""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..errors import DegenerateSampleError, InvalidParameterError


def check_survival_inputs(
    X: Optional[np.ndarray],
    event_times: np.ndarray,
    event_indicators: np.ndarray,
    feature_names: Optional[Sequence[str]] = None,
    group: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, List[str]]:
    """Coerce and validate fitting inputs.

    Args:
        X: Covariates, shape (n_samples, n_features), or None for no
            covariates.
        event_times: Observed times, must be positive and finite.
        event_indicators: 1 = event, 0 = censored.
        feature_names: Names of the columns of X.
        group: Optional treatment arm codes. When given, every arm must be
            present and have at least one event.

    Returns:
        Tuple of (X, event_times, event_indicators, feature_names).

    Raises:
        InvalidParameterError: On malformed inputs.
        DegenerateSampleError: When the sample cannot support a fit.
    """
    event_times = np.asarray(event_times, dtype=float).ravel()
    event_indicators = np.asarray(event_indicators).ravel()
    n = len(event_times)

    if n == 0:
        raise InvalidParameterError("Cannot fit a model to an empty sample")
    if len(event_indicators) != n:
        raise InvalidParameterError(
            f"event_indicators has length {len(event_indicators)}, expected {n}"
        )
    if np.any(~np.isfinite(event_times)) or np.any(event_times <= 0):
        raise InvalidParameterError("Observed times must be positive and finite")
    if not np.all(np.isin(event_indicators, (0, 1))):
        raise InvalidParameterError("Event indicators must be 0 or 1")
    event_indicators = event_indicators.astype(int)

    if X is None:
        X = np.zeros((n, 0))
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X[:, None]
    if X.shape[0] != n:
        raise InvalidParameterError(f"X has {X.shape[0]} rows, expected {n}")
    if np.any(~np.isfinite(X)):
        raise InvalidParameterError("Covariates must be finite")

    if feature_names is None:
        feature_names = [f"x{j}" for j in range(X.shape[1])]
    feature_names = list(feature_names)
    if len(feature_names) != X.shape[1]:
        raise InvalidParameterError(
            f"Got {len(feature_names)} feature names for {X.shape[1]} columns"
        )

    if event_indicators.sum() == 0:
        raise DegenerateSampleError("No events: every observation is censored")

    for j, name in enumerate(feature_names):
        if np.ptp(X[:, j]) == 0:
            raise DegenerateSampleError(f"Covariate {name!r} has zero variance")

    if group is not None:
        check_group_events(group, event_indicators)

    return X, event_times, event_indicators, feature_names


def check_group_events(group: np.ndarray, event_indicators: np.ndarray) -> None:
    """Raise if fewer than two groups are present or any group has no events."""
    group = np.asarray(group).ravel()
    labels = np.unique(group)
    if len(labels) < 2:
        raise DegenerateSampleError(
            f"Only one group present ({labels.tolist()}); need at least two"
        )
    for label in labels:
        if np.sum(np.asarray(event_indicators)[group == label]) == 0:
            raise DegenerateSampleError(f"Group {label} is wholly censored")

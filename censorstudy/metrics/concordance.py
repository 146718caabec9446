"""Concordance index (C-index) calculation for survival analysis."""

import numpy as np
from sksurv.metrics import concordance_index_censored


def calculate_c_index(
    risk_scores: np.ndarray,
    event_times: np.ndarray,
    event_indicators: np.ndarray,
) -> float:
    """Calculate Harrell's concordance index.

    The probability that, for a random comparable pair of subjects, the one
    with the higher risk score has the event first. Ties in risk count as
    one half.

    Args:
        risk_scores: Predicted risk scores (higher = higher risk).
            Shape: (n_samples,)
        event_times: Observed survival times.
            Shape: (n_samples,)
        event_indicators: Event indicators (1 = event, 0 = censored).
            Shape: (n_samples,)

    Returns:
        C-index value in [0, 1]. Value of 0.5 indicates random predictions.

    Raises:
        ValueError: If input arrays have mismatched shapes or are empty.
    """
    risk_scores = np.asarray(risk_scores, dtype=float).ravel()
    event_times = np.asarray(event_times, dtype=float).ravel()
    event_indicators = np.asarray(event_indicators).ravel()

    if not (len(risk_scores) == len(event_times) == len(event_indicators)):
        raise ValueError(
            f"Input arrays must have the same length. Got: "
            f"risk_scores={len(risk_scores)}, event_times={len(event_times)}, "
            f"event_indicators={len(event_indicators)}"
        )

    if len(risk_scores) == 0:
        raise ValueError("Input arrays cannot be empty")

    # No comparable pairs
    if np.sum(event_indicators) == 0:
        return 0.5

    c_index, _, _, _, _ = concordance_index_censored(
        event_indicators.astype(bool),
        event_times,
        risk_scores,
    )
    return float(c_index)

"""Administrative and random right-censoring of latent event times."""

from typing import Dict, Optional, Tuple

import numpy as np

from ..errors import InvalidParameterError
from .generator import LatentCohort, SurvivalData
from .sampler import check_sample_size, draw_truncated_normal
from .scenarios import CensoringCondition
from .types import CensoringCause, Group


def draw_censoring_times(
    rng: Optional[np.random.Generator],
    n: int,
    mean: Optional[float],
    sd: float,
) -> np.ndarray:
    """Draw independent censoring times from a normal truncated at zero.

    Args:
        rng: Random number generator.
        n: Number of subjects.
        mean: Mean of the untruncated normal. None disables random
            censoring and returns +inf for every subject.
        sd: Standard deviation of the untruncated normal.

    Returns:
        Censoring times of shape (n,).
    """
    check_sample_size(n)
    if mean is None:
        return np.full(n, np.inf)
    return draw_truncated_normal(rng, mean=mean, sd=sd, size=n, lower=0.0)


def apply_censoring(
    latent_times: np.ndarray,
    censoring_times: np.ndarray,
    horizon: float,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Combine administrative and random censoring.

    Rules, applied in order for each subject:

    1. T >= horizon: observed at the horizon, censored (administrative).
    2. C < T: observed at C, censored (random).
    3. Otherwise: observed at T, event.

    Administrative censoring wins when both would apply. A censoring time
    exactly equal to the event time counts as an event. A latent time exactly
    at the horizon is administratively censored, so observed == horizon
    always implies a censored record.

    Args:
        latent_times: Latent event times T.
        censoring_times: Random censoring times C.
        horizon: Study horizon.

    Returns:
        Tuple of (observed times, event indicators, CensoringCause codes).
    """
    latent_times = np.asarray(latent_times, dtype=float)
    censoring_times = np.asarray(censoring_times, dtype=float)

    if latent_times.shape != censoring_times.shape:
        raise InvalidParameterError(
            f"latent and censoring times differ in shape: "
            f"{latent_times.shape} vs {censoring_times.shape}"
        )
    if not np.isfinite(horizon) or horizon <= 0:
        raise InvalidParameterError(f"horizon must be > 0, got {horizon}")

    administrative = latent_times >= horizon
    random = ~administrative & (censoring_times < latent_times)

    observed = np.where(
        administrative,
        horizon,
        np.where(random, censoring_times, latent_times),
    )
    events = (~administrative & ~random).astype(int)

    cause = np.full(len(latent_times), int(CensoringCause.EVENT))
    cause[administrative] = int(CensoringCause.ADMINISTRATIVE)
    cause[random] = int(CensoringCause.RANDOM)

    return observed, events, cause


class CensoringEngine:
    """Derives observed datasets from a latent cohort.

    The cohort is never modified; each call returns a new SurvivalData.

    Args:
        horizon: Study horizon. Defaults to the cohort's own horizon.
    """

    def __init__(self, horizon: Optional[float] = None):
        self.horizon = horizon

    def censor(
        self,
        cohort: LatentCohort,
        condition: CensoringCondition,
        rng: Optional[np.random.Generator] = None,
    ) -> SurvivalData:
        """Apply one censoring condition to a cohort.

        Args:
            cohort: Latent cohort.
            condition: Censoring condition.
            rng: Generator for the censoring draws. Required when the
                condition has random censoring.

        Returns:
            Observed dataset labelled with the condition.
        """
        horizon = self.horizon if self.horizon is not None else cohort.horizon
        if condition.has_random_censoring and rng is None:
            raise InvalidParameterError(
                f"Condition {condition.label} needs a generator for censoring draws"
            )
        C = draw_censoring_times(rng, cohort.n_samples, condition.mean, condition.sd)
        T, E, cause = apply_censoring(cohort.T_true, C, horizon)

        return SurvivalData(
            X=cohort.X,
            T=T,
            E=E,
            T_true=cohort.T_true,
            C=C,
            group=cohort.group,
            cause=cause,
            feature_names=list(cohort.feature_names),
            condition=condition.label,
            horizon=horizon,
        )

    def administrative_only(self, cohort: LatentCohort) -> SurvivalData:
        """Censor at the horizon only, with no random draws."""
        condition = CensoringCondition(label="administrative", mean=None)
        return self.censor(cohort, condition)


def censoring_summary(data: SurvivalData) -> Dict[str, object]:
    """Realized censoring fractions for a dataset.

    Returns:
        Dictionary with subject and event counts, overall censored fraction,
        fractions by cause, and censored fraction per treatment arm.
    """
    n = data.n_samples
    cause = np.asarray(data.cause)
    summary = {
        "condition": data.condition,
        "n_subjects": n,
        "n_events": data.n_events,
        "n_administrative": int(np.sum(cause == CensoringCause.ADMINISTRATIVE)),
        "n_random": int(np.sum(cause == CensoringCause.RANDOM)),
        "censored_fraction": data.censored_fraction,
        "administrative_fraction": float(
            np.mean(cause == CensoringCause.ADMINISTRATIVE)
        ),
        "random_fraction": float(np.mean(cause == CensoringCause.RANDOM)),
    }

    for group in Group:
        mask = data.group == group
        key = f"censored_fraction_{group.name.lower()}"
        summary[key] = float(1.0 - np.mean(data.E[mask])) if mask.any() else np.nan

    return summary


def calibrate_censoring_mean(
    latent_times: np.ndarray,
    horizon: float,
    target_rate: float,
    sd: float,
    rng: Optional[np.random.Generator] = None,
    max_iterations: int = 60,
    tolerance: float = 0.01,
    n_simulations: int = 5,
) -> Optional[float]:
    """Find a censoring mean that reaches a target overall censored fraction.

    Offline helper for choosing condition means. Uses binary search on the
    mean of the truncated-normal censoring distribution, with the sd held
    fixed. The censoring engine itself never calls this.

    Args:
        latent_times: Latent event times.
        horizon: Study horizon.
        target_rate: Target overall censored fraction, horizon included.
        sd: Censoring distribution sd.
        rng: Random number generator for the simulated draws.
        max_iterations: Maximum binary search iterations.
        tolerance: Acceptable error in the achieved rate.
        n_simulations: Censoring draws averaged per candidate mean.

    Returns:
        Censoring mean, or None when the horizon alone already censors at
        least ``target_rate``.

    Raises:
        InvalidParameterError: If target_rate is outside (0, 1).
    """
    if not 0.0 < target_rate < 1.0:
        raise InvalidParameterError(
            f"target_rate must be in (0, 1), got {target_rate}"
        )
    if rng is None:
        rng = np.random.default_rng()

    latent_times = np.asarray(latent_times, dtype=float)
    n = len(latent_times)

    administrative_rate = float(np.mean(latent_times >= horizon))
    if administrative_rate >= target_rate:
        return None

    def simulated_rate(mean: float) -> float:
        rates = []
        for _ in range(n_simulations):
            C = draw_censoring_times(rng, n, mean, sd)
            _, E, _ = apply_censoring(latent_times, C, horizon)
            rates.append(1.0 - np.mean(E))
        return float(np.mean(rates))

    # Larger mean = less censoring
    low, high = -3.0 * sd, 2.0 * horizon + 3.0 * sd
    mid = (low + high) / 2
    for _ in range(max_iterations):
        mid = (low + high) / 2
        rate = simulated_rate(mid)

        if abs(rate - target_rate) <= tolerance:
            return mid

        if rate > target_rate:
            low = mid
        else:
            high = mid

    return mid

"""Seeded random draws for latent survival data.

Every function takes an explicit ``numpy.random.Generator``; nothing here
touches the global numpy RNG.
"""

from typing import Optional, Union

import numpy as np
from scipy import stats

from ..errors import InvalidParameterError

# Keeps inverse-transform draws away from the endpoints of (0, 1)
_UNIFORM_EPS = 1e-12


def _uniform(rng: np.random.Generator, size: int) -> np.ndarray:
    """Draw uniforms strictly inside (0, 1)."""
    return np.clip(rng.random(size), _UNIFORM_EPS, 1.0 - _UNIFORM_EPS)


def check_sample_size(n: int) -> None:
    """Raise if ``n`` is not a positive integer."""
    if int(n) != n or n < 1:
        raise InvalidParameterError(f"Sample size must be a positive integer, got {n}")


def draw_weibull_times(
    rng: np.random.Generator,
    shape: float,
    scale: np.ndarray,
) -> np.ndarray:
    """Draw Weibull event times by inverse transform sampling.

    With survival function S(t) = exp(-(t / scale)^shape), a uniform U
    maps to T = scale * (-log U)^(1 / shape).

    Args:
        rng: Random number generator.
        shape: Weibull shape (kappa), must be > 0.
        scale: Per-subject Weibull scale, typically exp(linear predictor).

    Returns:
        Event times, strictly positive.

    Raises:
        InvalidParameterError: If shape <= 0 or any scale is not a positive
            finite number.
    """
    if not np.isfinite(shape) or shape <= 0:
        raise InvalidParameterError(f"Weibull shape must be > 0, got {shape}")

    scale = np.atleast_1d(np.asarray(scale, dtype=float))
    check_sample_size(len(scale))
    if np.any(~np.isfinite(scale)) or np.any(scale <= 0):
        bad = scale[~np.isfinite(scale) | (scale <= 0)]
        raise InvalidParameterError(
            f"Weibull scale must be positive and finite for every subject, "
            f"got {bad[:5]}"
        )

    U = _uniform(rng, len(scale))
    T = scale * (-np.log(U)) ** (1.0 / shape)

    # Underflow guard for extreme shape/scale combinations
    return np.maximum(T, np.finfo(float).tiny)


def weibull_scale_from_predictor(linear_predictor: np.ndarray) -> np.ndarray:
    """Map an AFT linear predictor eta to the Weibull scale exp(eta)."""
    with np.errstate(over="ignore"):
        return np.exp(np.asarray(linear_predictor, dtype=float))


def draw_truncated_normal(
    rng: np.random.Generator,
    mean: float,
    sd: float,
    size: int,
    lower: float = 0.0,
) -> np.ndarray:
    """Draw from a normal distribution left-truncated at ``lower``.

    Sampling goes through the truncated-normal inverse CDF, so for a fixed
    generator state the draws are monotone in ``mean``.

    Args:
        rng: Random number generator.
        mean: Mean of the untruncated normal.
        sd: Standard deviation of the untruncated normal, must be > 0.
        size: Number of draws.
        lower: Truncation point.

    Returns:
        Array of draws, all >= lower.
    """
    check_sample_size(size)
    if not np.isfinite(sd) or sd <= 0:
        raise InvalidParameterError(f"Truncated normal sd must be > 0, got {sd}")
    if not np.isfinite(mean):
        raise InvalidParameterError(f"Truncated normal mean must be finite, got {mean}")

    a = (lower - mean) / sd
    draws = stats.truncnorm.ppf(_uniform(rng, size), a, np.inf, loc=mean, scale=sd)
    return np.maximum(draws, lower)


def assign_groups(
    rng: np.random.Generator,
    n: int,
    treatment_fraction: float = 0.5,
) -> np.ndarray:
    """Randomly assign subjects to placebo (0) or treatment (1).

    Exactly ``round(n * treatment_fraction)`` subjects are treated.
    """
    check_sample_size(n)
    if not 0.0 < treatment_fraction < 1.0:
        raise InvalidParameterError(
            f"treatment_fraction must be in (0, 1), got {treatment_fraction}"
        )

    n_treated = int(round(n * treatment_fraction))
    groups = np.zeros(n, dtype=int)
    groups[:n_treated] = 1
    return rng.permutation(groups)


def spawn_generators(
    seed: Union[int, np.random.SeedSequence, None],
    n_streams: int,
) -> list:
    """Create independent generators from one root seed or seed sequence."""
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    children = root.spawn(n_streams)
    return [np.random.default_rng(child) for child in children]

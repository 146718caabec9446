"""Exception hierarchy for the censoring study."""

from typing import Optional


class StudyError(Exception):
    """Base class for all study errors."""


class InvalidParameterError(StudyError, ValueError):
    """A generating or fitting parameter is outside its valid range.

    Raised before any simulation work starts.
    """


class DegenerateSampleError(StudyError, ValueError):
    """A simulated sample cannot support a model fit.

    Examples: a treatment group with no events, a covariate with zero
    variance, or a dataset containing a single group.

    Args:
        message: Human-readable description.
        condition: Censoring condition label, when known.
    """

    def __init__(self, message: str, condition: Optional[str] = None):
        self.condition = condition
        if condition is not None:
            message = f"[{condition}] {message}"
        super().__init__(message)


class ConvergenceError(StudyError, RuntimeError):
    """An iterative fit failed to converge.

    Args:
        message: Human-readable description.
        iterations: Iterations performed before giving up.
        gradient_norm: Norm of the score vector at the last iterate.
    """

    def __init__(
        self,
        message: str,
        iterations: int = 0,
        gradient_norm: float = float("nan"),
    ):
        self.iterations = iterations
        self.gradient_norm = gradient_norm
        super().__init__(
            f"{message} (iterations={iterations}, "
            f"gradient_norm={gradient_norm:.3g})"
        )

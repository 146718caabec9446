"""Synthetic survival data generator."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from .sampler import (
    assign_groups,
    draw_truncated_normal,
    draw_weibull_times,
    weibull_scale_from_predictor,
)
from .scenarios import StudyScenario
from .types import CensoringCause, CovariateDesign


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class LatentCohort:
    """Subjects with their latent (never directly observed) event times.

    Attributes:
        subject_id: Subject identifiers 1..n.
        group: Treatment arm codes (0 = placebo, 1 = treatment).
        X: Design matrix of shape (n_samples, n_features).
        feature_names: Column names of X.
        T_true: Latent Weibull event times in days.
        design: Covariate design used to generate the cohort.
        horizon: Administrative censoring time in days.
    """

    subject_id: np.ndarray
    group: np.ndarray
    X: np.ndarray
    feature_names: List[str]
    T_true: np.ndarray
    design: CovariateDesign
    horizon: float

    def __post_init__(self) -> None:
        for name in ("subject_id", "group", "X", "T_true"):
            object.__setattr__(self, name, _readonly(getattr(self, name)))

    @property
    def n_samples(self) -> int:
        return len(self.T_true)


@dataclass(frozen=True, eq=False)
class SurvivalData:
    """One observed dataset derived from a latent cohort.

    Attributes:
        X: Covariate matrix of shape (n_samples, n_features).
        T: Observed times, min(T_true, C, horizon).
        E: Event indicators (1 = event, 0 = censored).
        T_true: Latent event times before censoring.
        C: Random censoring times (inf when random censoring is off).
        group: Treatment arm codes.
        cause: CensoringCause code per subject.
        feature_names: Column names of X.
        condition: Label of the censoring condition.
        horizon: Administrative censoring time.
    """

    X: np.ndarray
    T: np.ndarray
    E: np.ndarray
    T_true: np.ndarray
    C: np.ndarray
    group: np.ndarray
    cause: np.ndarray
    feature_names: List[str]
    condition: str
    horizon: float

    def __post_init__(self) -> None:
        for name in ("X", "T", "E", "T_true", "C", "group", "cause"):
            object.__setattr__(self, name, _readonly(getattr(self, name)))

    @property
    def n_samples(self) -> int:
        return len(self.T)

    @property
    def n_events(self) -> int:
        return int(np.sum(self.E))

    @property
    def censored_fraction(self) -> float:
        return float(1.0 - np.mean(self.E))

    def covariate(self, name: str) -> np.ndarray:
        """Return one column of X by name."""
        return self.X[:, self.feature_names.index(name)]

    def subset(self, mask: np.ndarray) -> "SurvivalData":
        """Rows selected by a boolean mask, as a new dataset."""
        return SurvivalData(
            X=self.X[mask],
            T=self.T[mask],
            E=self.E[mask],
            T_true=self.T_true[mask],
            C=self.C[mask],
            group=self.group[mask],
            cause=self.cause[mask],
            feature_names=list(self.feature_names),
            condition=self.condition,
            horizon=self.horizon,
        )

    def to_frame(self) -> pd.DataFrame:
        """Subject records as a DataFrame.

        Latent times are included under ``latent_time`` for verification
        only; models never read that column.
        """
        frame = pd.DataFrame(
            {
                "id": np.arange(1, self.n_samples + 1),
                "group": self.group,
            }
        )
        for j, name in enumerate(self.feature_names):
            frame[name] = self.X[:, j]
        frame["latent_time"] = self.T_true
        frame["censoring_time"] = self.C
        frame["time"] = self.T
        frame["event"] = self.E.astype(int)
        frame["cause"] = [CensoringCause(c).name.lower() for c in self.cause]
        return frame

    def save(self, path: Union[str, Path]) -> None:
        """Save data to npz file."""
        np.savez(
            path,
            X=self.X,
            T=self.T,
            E=self.E,
            T_true=self.T_true,
            C=self.C,
            group=self.group,
            cause=self.cause,
            feature_names=np.array(self.feature_names),
            condition=np.array(self.condition),
            horizon=np.array(self.horizon),
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SurvivalData":
        """Load data from npz file."""
        data = np.load(path)
        return cls(
            X=data["X"],
            T=data["T"],
            E=data["E"],
            T_true=data["T_true"],
            C=data["C"],
            group=data["group"],
            cause=data["cause"],
            feature_names=[str(name) for name in data["feature_names"]],
            condition=str(data["condition"]),
            horizon=float(data["horizon"]),
        )


class SurvivalDataGenerator:
    """Generator for latent Weibull AFT survival times.

    Draws treatment assignment, the optional cigarettes/day covariate from a
    normal distribution truncated at zero, and Weibull(shape, exp(eta))
    event times. All draws come from the supplied generator, in a fixed
    order, so a given seed always yields the same cohort.

    Args:
        scenario: Generating-model scenario.
        design: Covariate design; defaults to the richest design the
            scenario supports.
        rng: Random number generator. If None, one is built from ``seed``.
        seed: Seed used when ``rng`` is not given.
    """

    def __init__(
        self,
        scenario: StudyScenario,
        design: Optional[CovariateDesign] = None,
        rng: Optional[np.random.Generator] = None,
        seed: int = 42,
    ):
        self.scenario = scenario
        self.design = design if design is not None else scenario.designs[-1]
        if self.design not in scenario.designs:
            # Raises the scenario's own InvalidParameterError
            scenario.design_coefficients(self.design)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def generate(self) -> LatentCohort:
        """Generate a latent cohort.

        Returns:
            LatentCohort with covariates and latent event times.
        """
        n = self.scenario.n_samples
        group = assign_groups(self.rng, n, self.scenario.treatment_fraction)

        X = self._generate_covariates(group)
        names, beta = self.scenario.design_coefficients(self.design)

        linear_predictor = self.scenario.scale_base + X @ beta
        T_true = draw_weibull_times(
            self.rng,
            self.scenario.shape,
            weibull_scale_from_predictor(linear_predictor),
        )

        return LatentCohort(
            subject_id=np.arange(1, n + 1),
            group=group,
            X=X,
            feature_names=names,
            T_true=T_true,
            design=self.design,
            horizon=self.scenario.horizon_days,
        )

    def _generate_covariates(self, group: np.ndarray) -> np.ndarray:
        """Build the design matrix in the column order of design_coefficients."""
        columns = [group.astype(float)]

        if self.design == CovariateDesign.TWO_COVARIATE:
            cigarettes = draw_truncated_normal(
                self.rng,
                mean=self.scenario.covariate_mean,
                sd=self.scenario.covariate_sd,
                size=len(group),
            )
            columns.append(cigarettes)

        return np.column_stack(columns)


def latent_frame(cohort: LatentCohort) -> pd.DataFrame:
    """Latent cohort as a DataFrame, one row per subject."""
    frame = pd.DataFrame({"id": cohort.subject_id, "group": cohort.group})
    for j, name in enumerate(cohort.feature_names):
        frame[name] = cohort.X[:, j]
    frame["latent_time"] = cohort.T_true
    return frame

"""Shared pytest fixtures for censoring study tests."""

import numpy as np
import pytest

from censorstudy.data.censoring import CensoringEngine
from censorstudy.data.generator import SurvivalDataGenerator
from censorstudy.data.scenarios import CensoringCondition, StudyScenario
from censorstudy.data.types import CovariateDesign


@pytest.fixture
def random_seed():
    """Fixed random seed for reproducibility."""
    return 42


@pytest.fixture
def rng(random_seed):
    """Random number generator seeded with the fixed seed."""
    return np.random.default_rng(random_seed)


@pytest.fixture
def one_covariate_scenario():
    """Treatment-only Weibull AFT scenario with the study defaults."""
    return StudyScenario(name="test_one_covariate")


@pytest.fixture
def two_covariate_scenario():
    """Treatment plus cigarettes/day scenario."""
    return StudyScenario(name="test_two_covariate", beta_covariate=-0.03)


@pytest.fixture
def one_covariate_cohort(one_covariate_scenario, random_seed):
    """Latent cohort of 500 subjects, treatment only."""
    generator = SurvivalDataGenerator(
        one_covariate_scenario,
        design=CovariateDesign.ONE_COVARIATE,
        seed=random_seed,
    )
    return generator.generate()


@pytest.fixture
def two_covariate_cohort(two_covariate_scenario, random_seed):
    """Latent cohort of 500 subjects, treatment plus cigarettes/day."""
    generator = SurvivalDataGenerator(
        two_covariate_scenario,
        design=CovariateDesign.TWO_COVARIATE,
        seed=random_seed,
    )
    return generator.generate()


@pytest.fixture
def horizon_only_data(two_covariate_cohort):
    """Two-covariate dataset censored at the 120-day horizon only."""
    return CensoringEngine().administrative_only(two_covariate_cohort)


@pytest.fixture
def moderate_censoring_data(two_covariate_cohort):
    """Two-covariate dataset with moderate random censoring."""
    condition = CensoringCondition(label="moderate", mean=60.0, sd=30.0)
    return CensoringEngine().censor(
        two_covariate_cohort, condition, np.random.default_rng(7)
    )


@pytest.fixture
def sample_survival_data():
    """Small exponential dataset with tied times, for reference comparisons."""
    rng = np.random.default_rng(2024)
    n_samples = 200

    group = rng.permutation(np.repeat([0, 1], n_samples // 2)).astype(float)
    age = rng.normal(0.0, 1.0, n_samples)
    X = np.column_stack([group, age])

    hazard = np.exp(0.6 * group - 0.4 * age)
    latent = rng.exponential(1.0 / hazard)
    censor = rng.exponential(2.0, n_samples)

    # Rounding creates tied event times
    T = np.maximum(np.round(np.minimum(latent, censor), 1), 0.1)
    E = (latent <= censor).astype(int)

    return {
        "X": X,
        "T": T,
        "E": E,
        "feature_names": ["group", "age"],
    }


@pytest.fixture
def tmp_study_dir(tmp_path):
    """Temporary base directory for study outputs."""
    study_dir = tmp_path / "studies"
    study_dir.mkdir()
    return study_dir

"""Unit tests for scenarios and latent cohort generation."""

import numpy as np
import pytest

from censorstudy.data.censoring import CensoringEngine
from censorstudy.data.generator import SurvivalData, SurvivalDataGenerator, latent_frame
from censorstudy.data.scenarios import (
    COVARIATE,
    DEFAULT_CONDITIONS,
    PREDEFINED_SCENARIOS,
    TREATMENT,
    CensoringCondition,
    StudyScenario,
    get_scenario,
)
from censorstudy.data.types import CovariateDesign
from censorstudy.errors import InvalidParameterError


class TestStudyScenario:
    """Tests for StudyScenario configuration."""

    def test_default_scenario_creation(self):
        """Test creating a scenario with default values."""
        scenario = StudyScenario(name="test")
        assert scenario.n_samples == 500
        assert scenario.shape == 0.8
        assert scenario.scale_base == 3.0
        assert scenario.beta_treatment == 0.7
        assert scenario.horizon_days == 120.0
        assert scenario.designs == [CovariateDesign.ONE_COVARIATE]

    def test_two_covariate_designs(self, two_covariate_scenario):
        """Test that a covariate effect enables the second design."""
        assert two_covariate_scenario.designs == [
            CovariateDesign.ONE_COVARIATE,
            CovariateDesign.TWO_COVARIATE,
        ]

    @pytest.mark.parametrize(
        "field, value",
        [
            ("n_samples", 0),
            ("shape", 0.0),
            ("horizon_days", -1.0),
            ("treatment_fraction", 1.0),
            ("scale_base", np.inf),
        ],
    )
    def test_validation(self, field, value):
        """Test that out-of-range parameters raise InvalidParameterError."""
        with pytest.raises(InvalidParameterError, match=field):
            StudyScenario(name="test", **{field: value})

    def test_true_cox_coefficients(self, two_covariate_scenario):
        """Test the AFT to PH coefficient conversion -beta * shape."""
        truth = two_covariate_scenario.true_cox_coefficients(CovariateDesign.TWO_COVARIATE)

        assert truth[TREATMENT] == pytest.approx(-0.56)
        assert truth[COVARIATE] == pytest.approx(0.024)

    def test_true_aft_parameters(self, one_covariate_scenario):
        """Test the generating AFT parameters."""
        params = one_covariate_scenario.true_aft_parameters(CovariateDesign.ONE_COVARIATE)

        assert params["(Intercept)"] == 3.0
        assert params[TREATMENT] == 0.7
        assert params["scale"] == pytest.approx(1.25)

    def test_missing_covariate_effect_raises(self, one_covariate_scenario):
        """Test that the two-covariate design needs beta_covariate."""
        with pytest.raises(InvalidParameterError, match="beta_covariate"):
            one_covariate_scenario.design_coefficients(CovariateDesign.TWO_COVARIATE)

    def test_predefined_scenarios_exist(self):
        """Test that all predefined scenarios are available."""
        for name in ["one_covariate", "two_covariate"]:
            assert get_scenario(name).name == name
        assert set(PREDEFINED_SCENARIOS) == {"one_covariate", "two_covariate"}

    def test_unknown_scenario_raises(self):
        """Test that an unknown scenario name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown scenario"):
            get_scenario("nonexistent")

    def test_scenario_serialization(self, tmp_path):
        """Test scenario to/from JSON."""
        scenario = StudyScenario(name="test_scenario", n_samples=300, beta_covariate=-0.03)
        path = tmp_path / "scenario.json"
        scenario.to_json(path)

        loaded = StudyScenario.from_json(path)
        assert loaded == scenario

    def test_short_aliases(self):
        """Test that ``n`` and ``horizon`` are accepted."""
        scenario = StudyScenario.from_dict({"name": "alias", "n": 200, "horizon": 90})

        assert scenario.n_samples == 200
        assert scenario.horizon_days == 90


class TestCensoringCondition:
    """Tests for CensoringCondition."""

    def test_default_conditions(self):
        """Test the four conditions of the reference study."""
        assert [c.label for c in DEFAULT_CONDITIONS] == ["none", "low", "moderate", "high"]
        assert not DEFAULT_CONDITIONS[0].has_random_censoring
        assert all(c.has_random_censoring for c in DEFAULT_CONDITIONS[1:])

    def test_invalid_sd(self):
        """Test that a non-positive sd is rejected."""
        with pytest.raises(InvalidParameterError, match="sd"):
            CensoringCondition(label="bad", mean=30.0, sd=0.0)

    def test_empty_label(self):
        """Test that an empty label is rejected."""
        with pytest.raises(InvalidParameterError, match="label"):
            CensoringCondition(label="", mean=30.0)

    def test_round_trip(self):
        """Test dictionary conversion."""
        condition = CensoringCondition(label="high", mean=30.0, sd=20.0)

        assert CensoringCondition.from_dict(condition.to_dict()) == condition


class TestSurvivalDataGenerator:
    """Tests for latent cohort generation."""

    def test_generate_correct_shapes(self, two_covariate_cohort):
        """Test that generated data has correct shapes."""
        cohort = two_covariate_cohort

        assert cohort.X.shape == (500, 2)
        assert cohort.T_true.shape == (500,)
        assert cohort.feature_names == [TREATMENT, COVARIATE]
        assert cohort.design == CovariateDesign.TWO_COVARIATE
        np.testing.assert_array_equal(cohort.subject_id, np.arange(1, 501))

    def test_treatment_column_matches_group(self, two_covariate_cohort):
        """Test that the first column is the 0/1 treatment code."""
        np.testing.assert_array_equal(two_covariate_cohort.X[:, 0], two_covariate_cohort.group)
        assert two_covariate_cohort.group.sum() == 250

    def test_covariate_nonnegative(self, two_covariate_cohort):
        """Test that cigarettes/day is truncated at zero."""
        assert np.all(two_covariate_cohort.X[:, 1] >= 0)

    def test_default_design_is_richest(self, two_covariate_scenario):
        """Test that the generator defaults to the last available design."""
        generator = SurvivalDataGenerator(two_covariate_scenario, seed=1)

        assert generator.design == CovariateDesign.TWO_COVARIATE

    def test_unsupported_design_raises(self, one_covariate_scenario):
        """Test that requesting a design without its coefficient fails."""
        with pytest.raises(InvalidParameterError):
            SurvivalDataGenerator(
                one_covariate_scenario, design=CovariateDesign.TWO_COVARIATE
            )

    def test_reproducibility(self, two_covariate_scenario):
        """Test that same seed produces same data."""
        cohort1 = SurvivalDataGenerator(two_covariate_scenario, seed=42).generate()
        cohort2 = SurvivalDataGenerator(two_covariate_scenario, seed=42).generate()

        np.testing.assert_array_equal(cohort1.X, cohort2.X)
        np.testing.assert_array_equal(cohort1.T_true, cohort2.T_true)

    def test_different_seeds_differ(self, two_covariate_scenario):
        """Test that different seeds produce different data."""
        cohort1 = SurvivalDataGenerator(two_covariate_scenario, seed=42).generate()
        cohort2 = SurvivalDataGenerator(two_covariate_scenario, seed=43).generate()

        assert not np.array_equal(cohort1.T_true, cohort2.T_true)

    def test_treatment_prolongs_survival(self):
        """Test that the positive AFT effect lengthens treated survival times."""
        scenario = StudyScenario(name="large", n_samples=4000)
        cohort = SurvivalDataGenerator(scenario, seed=5).generate()

        log_t = np.log(cohort.T_true)
        shift = log_t[cohort.group == 1].mean() - log_t[cohort.group == 0].mean()

        # AFT: treatment shifts log time by beta_treatment
        assert shift == pytest.approx(0.7, abs=0.2)

    def test_cohort_is_read_only(self, one_covariate_cohort):
        """Test that latent arrays cannot be modified in place."""
        with pytest.raises(ValueError):
            one_covariate_cohort.T_true[0] = 1.0

    def test_latent_frame(self, two_covariate_cohort):
        """Test the latent cohort table."""
        frame = latent_frame(two_covariate_cohort)

        assert list(frame.columns) == ["id", "group", TREATMENT, COVARIATE, "latent_time"]
        assert len(frame) == 500


class TestSurvivalData:
    """Tests for observed dataset records."""

    def test_save_load(self, moderate_censoring_data, tmp_path):
        """Test npz round trip keeps every field."""
        path = tmp_path / "data.npz"
        moderate_censoring_data.save(path)

        loaded = SurvivalData.load(path)
        np.testing.assert_array_equal(loaded.T, moderate_censoring_data.T)
        np.testing.assert_array_equal(loaded.E, moderate_censoring_data.E)
        np.testing.assert_array_equal(loaded.C, moderate_censoring_data.C)
        assert loaded.feature_names == moderate_censoring_data.feature_names
        assert loaded.condition == "moderate"
        assert loaded.horizon == 120.0

    def test_to_frame(self, moderate_censoring_data):
        """Test the subject-level table."""
        frame = moderate_censoring_data.to_frame()

        assert len(frame) == 500
        assert set(frame["cause"]) <= {"event", "administrative", "random"}
        assert frame["event"].sum() == moderate_censoring_data.n_events

    def test_subset(self, moderate_censoring_data):
        """Test row selection keeps labels."""
        mask = moderate_censoring_data.group == 1
        treated = moderate_censoring_data.subset(mask)

        assert treated.n_samples == 250
        assert treated.condition == "moderate"
        assert np.all(treated.group == 1)

    def test_covariate_lookup(self, horizon_only_data):
        """Test column access by name."""
        np.testing.assert_array_equal(
            horizon_only_data.covariate(TREATMENT), horizon_only_data.X[:, 0]
        )

    def test_engine_reuses_cohort_covariates(self, two_covariate_cohort):
        """Test that every condition shares the cohort's covariates."""
        data = CensoringEngine().administrative_only(two_covariate_cohort)

        np.testing.assert_array_equal(data.X, two_covariate_cohort.X)
        np.testing.assert_array_equal(data.T_true, two_covariate_cohort.T_true)

"""Unit tests for study configuration."""

from pathlib import Path

import pytest

from censorstudy.data.scenarios import DEFAULT_CONDITIONS, CensoringCondition, StudyScenario
from censorstudy.data.types import StudyStatus
from censorstudy.errors import InvalidParameterError
from censorstudy.experiments.config import PREDEFINED_STUDIES, StudyConfig, get_study

EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "configs" / "censoring_study.json"


class TestStudyConfig:
    """Tests for StudyConfig construction and validation."""

    @pytest.fixture
    def config(self, two_covariate_scenario):
        return StudyConfig(name="Test Study", seed=7, scenario=two_covariate_scenario)

    def test_defaults(self, config):
        """Test default conditions and analysis options."""
        assert config.conditions == list(DEFAULT_CONDITIONS)
        assert config.ties == "efron"
        assert config.zph_transform == "km"
        assert config.status == StudyStatus.PENDING
        assert config.n_runs == 8

    def test_one_covariate_run_count(self, one_covariate_scenario):
        """Test that a treatment-only scenario has one design."""
        config = StudyConfig(name="t", seed=1, scenario=one_covariate_scenario)

        assert config.n_runs == 4

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"seed": -1}, "seed"),
            ({"conditions": []}, "conditions"),
            ({"ties": "exact"}, "ties"),
            ({"conf_level": 1.0}, "conf_level"),
            ({"zph_transform": "sqrt"}, "zph_transform"),
            ({"km_conf_type": "arcsine"}, "km_conf_type"),
            ({"risk_table_times": [-1.0]}, "risk_table_times"),
        ],
    )
    def test_validation(self, two_covariate_scenario, overrides, message):
        """Test that invalid options raise InvalidParameterError."""
        kwargs = {"name": "bad", "seed": 1, "scenario": two_covariate_scenario, **overrides}

        with pytest.raises(InvalidParameterError, match=message):
            StudyConfig(**kwargs)

    def test_duplicate_condition_labels(self, two_covariate_scenario):
        """Test that condition labels must be unique."""
        conditions = [CensoringCondition("a", 30.0), CensoringCondition("a", 60.0)]

        with pytest.raises(InvalidParameterError, match="unique"):
            StudyConfig(name="dup", seed=1, scenario=two_covariate_scenario, conditions=conditions)

    def test_serialization_round_trip(self, config, tmp_path):
        """Test study to/from JSON."""
        path = tmp_path / "study.json"
        config.to_json(path)

        loaded = StudyConfig.from_json(path)
        assert loaded.study_id == config.study_id
        assert loaded.seed == 7
        assert loaded.conditions == config.conditions
        assert loaded.scenario.beta_covariate == -0.03
        assert loaded.scenario.n_samples == config.scenario.n_samples
        assert loaded.risk_table_times == config.risk_table_times

    def test_with_seed(self, config):
        """Test reseeding keeps everything else."""
        reseeded = config.with_seed(99)

        assert reseeded.seed == 99
        assert reseeded.study_id == f"{config.study_id}_seed99"
        assert reseeded.conditions == config.conditions
        assert config.seed == 7

    def test_status_transitions(self, config):
        """Test start and finish bookkeeping."""
        config.start()
        assert config.status == StudyStatus.RUNNING
        assert config.started_at is not None

        config.finish(n_failed=0, n_total=8)
        assert config.status == StudyStatus.COMPLETED

        config.finish(n_failed=2, n_total=8)
        assert config.status == StudyStatus.PARTIAL

        config.finish(n_failed=8, n_total=8)
        assert config.status == StudyStatus.FAILED
        assert config.completed_at is not None


class TestFromDict:
    """Tests for the accepted configuration layouts."""

    def test_flat_censoring_means(self):
        """Test conditions built from a list of means and one sd."""
        config = StudyConfig.from_dict(
            {
                "name": "flat",
                "seed": 3,
                "n": 200,
                "beta_covariate": -0.03,
                "censoring_mean_per_condition": [None, 120.0, 60.0, 30.0],
                "censoring_sd": 20.0,
            }
        )

        assert [c.label for c in config.conditions] == ["none", "low", "moderate", "high"]
        assert config.conditions[0].mean is None
        assert all(c.sd == 20.0 for c in config.conditions)
        assert config.scenario.n_samples == 200

    def test_generic_labels(self):
        """Test labels for a non-standard number of means."""
        config = StudyConfig.from_dict(
            {"name": "two", "seed": 3, "censoring_mean_per_condition": [None, 50.0]}
        )

        assert [c.label for c in config.conditions] == ["condition_0", "condition_1"]

    def test_label_count_mismatch(self):
        """Test that labels must match the means."""
        with pytest.raises(InvalidParameterError, match="labels"):
            StudyConfig.from_dict(
                {
                    "name": "bad",
                    "seed": 3,
                    "censoring_mean_per_condition": [None, 50.0],
                    "condition_labels": ["only_one"],
                }
            )

    def test_nested_scenario(self):
        """Test a nested scenario block and a predefined scenario name."""
        nested = StudyConfig.from_dict(
            {"name": "nested", "seed": 1, "scenario": {"n_samples": 300, "shape": 1.2}}
        )
        named = StudyConfig.from_dict({"name": "named", "seed": 1, "scenario": "two_covariate"})

        assert nested.scenario.n_samples == 300
        assert nested.scenario.shape == 1.2
        assert named.scenario.beta_covariate == -0.03

    def test_missing_seed(self):
        """Test that the seed is mandatory."""
        with pytest.raises(InvalidParameterError, match="seed"):
            StudyConfig.from_dict({"name": "no_seed"})

    def test_example_config_file(self):
        """Test that the shipped example configuration loads."""
        config = StudyConfig.from_json(EXAMPLE_CONFIG)

        assert config.seed == 42
        assert config.n_runs == 8
        assert [c.mean for c in config.conditions] == [None, 120.0, 60.0, 30.0]
        assert config.scenario.horizon_days == 120.0


class TestPredefinedStudies:
    """Tests for predefined studies."""

    def test_censoring_study(self):
        """Test the reference two-design study."""
        config = get_study("censoring_study")

        assert config.seed == 42
        assert config.scenario.beta_covariate == -0.03
        assert config.n_runs == 8

    def test_get_study_returns_copy(self):
        """Test that callers cannot modify the registry."""
        config = get_study("censoring_study")
        config.start()

        assert PREDEFINED_STUDIES["censoring_study"].status == StudyStatus.PENDING

    def test_unknown_study(self):
        """Test that an unknown name raises."""
        with pytest.raises(InvalidParameterError, match="Unknown study"):
            get_study("nonexistent")

    def test_scenario_type(self):
        """Test that every predefined study carries a scenario."""
        for config in PREDEFINED_STUDIES.values():
            assert isinstance(config.scenario, StudyScenario)

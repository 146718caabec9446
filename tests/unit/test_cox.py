"""Unit tests for the Cox proportional hazards fit."""

import numpy as np
import pandas as pd
import pytest
from lifelines import CoxPHFitter
from statsmodels.duration.hazard_regression import PHReg

from censorstudy.data.censoring import CensoringEngine
from censorstudy.data.generator import SurvivalDataGenerator
from censorstudy.data.scenarios import TREATMENT, StudyScenario
from censorstudy.errors import ConvergenceError, DegenerateSampleError, InvalidParameterError
from censorstudy.models.cox import fit_cox_model, fit_cox_ph


class TestCoxAgainstReference:
    """Tests comparing the fit with established implementations."""

    @pytest.fixture
    def lifelines_fit(self, sample_survival_data):
        """Lifelines Cox fit (Efron ties) on the shared sample."""
        df = pd.DataFrame(sample_survival_data["X"], columns=sample_survival_data["feature_names"])
        df["T"] = sample_survival_data["T"]
        df["E"] = sample_survival_data["E"]
        return CoxPHFitter().fit(df, duration_col="T", event_col="E")

    @pytest.fixture
    def efron_fit(self, sample_survival_data):
        return fit_cox_ph(
            sample_survival_data["X"],
            sample_survival_data["T"],
            sample_survival_data["E"],
            feature_names=sample_survival_data["feature_names"],
        )

    def test_coefficients_match_lifelines(self, efron_fit, lifelines_fit):
        """Test Efron coefficients and standard errors against lifelines."""
        np.testing.assert_allclose(
            efron_fit.coefficients, lifelines_fit.params_.values, rtol=1e-4, atol=1e-6
        )
        np.testing.assert_allclose(
            efron_fit.standard_errors, lifelines_fit.standard_errors_.values, rtol=1e-3
        )

    def test_loglik_matches_lifelines(self, efron_fit, lifelines_fit):
        """Test log partial likelihood and likelihood ratio test."""
        assert efron_fit.loglik == pytest.approx(lifelines_fit.log_likelihood_, rel=1e-6)
        lr = lifelines_fit.log_likelihood_ratio_test()
        assert efron_fit.likelihood_ratio_test.statistic == pytest.approx(
            lr.test_statistic, rel=1e-4
        )
        assert efron_fit.likelihood_ratio_test.df == 2

    def test_concordance_matches_lifelines(self, efron_fit, lifelines_fit):
        """Test Harrell's C of the fitted linear predictor."""
        assert efron_fit.concordance == pytest.approx(lifelines_fit.concordance_index_, abs=0.01)

    def test_breslow_matches_statsmodels(self, sample_survival_data):
        """Test Breslow ties against statsmodels PHReg."""
        fit = fit_cox_ph(
            sample_survival_data["X"],
            sample_survival_data["T"],
            sample_survival_data["E"],
            ties="breslow",
        )
        reference = PHReg(
            sample_survival_data["T"],
            sample_survival_data["X"],
            status=sample_survival_data["E"],
            ties="breslow",
        ).fit()

        np.testing.assert_allclose(fit.coefficients, reference.params, rtol=1e-4, atol=1e-6)
        np.testing.assert_allclose(fit.standard_errors, reference.bse, rtol=1e-3)

    def test_efron_matches_statsmodels(self, efron_fit, sample_survival_data):
        """Test Efron ties against statsmodels PHReg."""
        reference = PHReg(
            sample_survival_data["T"],
            sample_survival_data["X"],
            status=sample_survival_data["E"],
            ties="efron",
        ).fit()

        np.testing.assert_allclose(efron_fit.coefficients, reference.params, rtol=1e-4, atol=1e-6)


class TestCoxFit:
    """Tests for fit behaviour and outputs."""

    @pytest.fixture
    def fit(self, moderate_censoring_data):
        return fit_cox_model(moderate_censoring_data)

    def test_feature_names(self, fit):
        """Test that coefficients follow the dataset's column order."""
        assert fit.feature_names == ["treatment", "cigarettes"]
        assert fit.ties == "efron"

    def test_score_is_zero_at_estimate(self, fit, moderate_censoring_data):
        """Test that the score vanishes at the maximum."""
        data = moderate_censoring_data
        model = PHReg(data.T, data.X, status=data.E, ties="efron")
        score = model.score(fit.coefficients)
        information = -model.hessian(fit.coefficients)

        # Newton decrement: the likelihood gain still available
        assert score @ np.linalg.solve(information, score) < 1e-6

    def test_hazard_ratio_and_interval(self, fit):
        """Test exp(coef) and the Wald interval on the hazard ratio scale."""
        np.testing.assert_allclose(fit.hazard_ratios, np.exp(fit.coefficients))
        assert np.all(fit.ci_lower < fit.hazard_ratios)
        assert np.all(fit.hazard_ratios < fit.ci_upper)

        half_width = 1.959964 * fit.standard_errors
        np.testing.assert_allclose(
            np.log(fit.ci_upper) - fit.coefficients, half_width, rtol=1e-5
        )

    def test_global_tests_agree(self, fit):
        """Test that LR, Wald and score tests are positive and of p df."""
        for test in (fit.likelihood_ratio_test, fit.wald_test, fit.score_test):
            assert test.statistic > 0
            assert test.df == 2
            assert 0.0 <= test.p_value <= 1.0

    def test_counts(self, fit, moderate_censoring_data):
        """Test sample and event counts."""
        assert fit.n_samples == 500
        assert fit.n_events == moderate_censoring_data.n_events
        assert fit.iterations >= 1

    def test_summary_layout(self, fit):
        """Test the coefficient table."""
        summary = fit.summary()

        assert list(summary.index) == ["treatment", "cigarettes"]
        assert list(summary.columns) == [
            "coef", "exp(coef)", "se(coef)", "z", "p", "lower 95%", "upper 95%",
        ]

    def test_predict_survival(self, fit, moderate_censoring_data):
        """Test survival curves from the Breslow baseline."""
        times = [0.0, 30.0, 60.0, 90.0]
        survival = fit.predict_survival(moderate_censoring_data.X[:5], times)

        assert survival.shape == (5, 4)
        np.testing.assert_allclose(survival[:, 0], 1.0)
        assert np.all(np.diff(survival, axis=1) <= 0)
        assert np.all((survival >= 0) & (survival <= 1))

    def test_breslow_and_efron_close(self, moderate_censoring_data):
        """Test that the two tie methods agree closely on continuous times."""
        efron = fit_cox_model(moderate_censoring_data, ties="efron")
        breslow = fit_cox_model(moderate_censoring_data, ties="breslow")

        np.testing.assert_allclose(efron.coefficients, breslow.coefficients, atol=0.02)

    def test_recovers_true_treatment_effect(self):
        """Test that a large sample recovers -beta * shape = -0.56."""
        scenario = StudyScenario(name="large", n_samples=4000)
        cohort = SurvivalDataGenerator(scenario, seed=8).generate()
        data = CensoringEngine().administrative_only(cohort)

        fit = fit_cox_model(data)

        assert fit.coefficient(TREATMENT) == pytest.approx(-0.56, abs=0.15)
        assert abs(fit.coefficient(TREATMENT) + 0.56) < 4 * fit.standard_error(TREATMENT)


class TestCoxErrors:
    """Tests for invalid and degenerate inputs."""

    def test_no_events(self):
        """Test that an all-censored sample is degenerate."""
        with pytest.raises(DegenerateSampleError, match="No events"):
            fit_cox_ph(np.array([[0.0], [1.0], [0.0]]), [1.0, 2.0, 3.0], [0, 0, 0])

    def test_constant_covariate(self):
        """Test that a zero-variance covariate is degenerate."""
        with pytest.raises(DegenerateSampleError, match="zero variance"):
            fit_cox_ph(np.ones((4, 1)), [1.0, 2.0, 3.0, 4.0], [1, 1, 0, 1])

    def test_wholly_censored_group(self):
        """Test that an arm without events is degenerate."""
        X = np.array([[0.0], [0.0], [1.0], [1.0]])
        with pytest.raises(DegenerateSampleError, match="wholly censored"):
            fit_cox_ph(X, [1.0, 2.0, 3.0, 4.0], [1, 1, 0, 0], group=X[:, 0])

    def test_single_group(self):
        """Test that a sample with one arm is degenerate."""
        X = np.array([[0.5], [1.0], [1.5]])
        with pytest.raises(DegenerateSampleError, match="one group"):
            fit_cox_ph(X, [1.0, 2.0, 3.0], [1, 1, 1], group=np.zeros(3))

    def test_invalid_ties(self, sample_survival_data):
        """Test that an unknown tie method is rejected."""
        with pytest.raises(InvalidParameterError, match="ties"):
            fit_cox_ph(
                sample_survival_data["X"],
                sample_survival_data["T"],
                sample_survival_data["E"],
                ties="exact",
            )

    def test_nonpositive_times(self):
        """Test that zero or negative times are rejected."""
        with pytest.raises(InvalidParameterError, match="positive"):
            fit_cox_ph(np.array([[0.0], [1.0]]), [0.0, 2.0], [1, 1])

    def test_bad_event_codes(self):
        """Test that event indicators must be 0/1."""
        with pytest.raises(InvalidParameterError, match="0 or 1"):
            fit_cox_ph(np.array([[0.0], [1.0]]), [1.0, 2.0], [1, 2])

    def test_no_covariates(self):
        """Test that a Cox model needs a covariate."""
        with pytest.raises(InvalidParameterError, match="at least one covariate"):
            fit_cox_ph(None, [1.0, 2.0, 3.0], [1, 0, 1])

    def test_convergence_error_reports_state(self, sample_survival_data):
        """Test that non-convergence raises with iterations and gradient norm."""
        with pytest.raises(ConvergenceError) as excinfo:
            fit_cox_ph(
                sample_survival_data["X"],
                sample_survival_data["T"],
                sample_survival_data["E"],
                max_iter=1,
            )

        assert excinfo.value.iterations == 1
        assert np.isfinite(excinfo.value.gradient_norm)
        assert "did not converge" in str(excinfo.value)


class TestMonotoneLikelihood:
    """Tests for complete separation between the arms."""

    @pytest.fixture
    def separated(self):
        """Every placebo event (days 1-20) precedes every treated event (days 30-49)."""
        group = np.repeat([0.0, 1.0], 20)
        T = np.concatenate([np.arange(1.0, 21.0), np.arange(30.0, 50.0)])
        E = np.ones(40, dtype=int)
        return group, T, E

    @pytest.mark.parametrize("ties", ["efron", "breslow"])
    def test_separation_raises(self, separated, ties):
        """Test that a diverging coefficient is a fit failure, not an estimate."""
        group, T, E = separated

        with pytest.raises(ConvergenceError) as excinfo:
            fit_cox_ph(group[:, None], T, E, ties=ties, group=group)

        assert excinfo.value.iterations >= 1

    def test_overlap_restores_fit(self, separated):
        """Test that one interleaved event pair gives a finite estimate."""
        group, T, E = separated
        T = T.copy()
        T[0], T[20] = 35.5, 2.5

        fit = fit_cox_ph(group[:, None], T, E, group=group)

        assert np.isfinite(fit.coefficients[0])
        assert fit.standard_errors[0] < 10.0

    def test_breslow_iterations_counted(self, moderate_censoring_data):
        """Test that the statsmodels path records its Newton steps."""
        fit = fit_cox_model(moderate_censoring_data, ties="breslow")

        assert fit.iterations >= 1
        assert fit.ties == "breslow"

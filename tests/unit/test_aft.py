"""Unit tests for the Weibull AFT fit used to verify the generator."""

import numpy as np
import pandas as pd
import pytest
from lifelines import WeibullAFTFitter

from censorstudy.data.censoring import CensoringEngine
from censorstudy.data.generator import SurvivalDataGenerator
from censorstudy.data.scenarios import COVARIATE, TREATMENT, StudyScenario
from censorstudy.errors import ConvergenceError, DegenerateSampleError
from censorstudy.models.aft import INTERCEPT, fit_aft_model, fit_weibull_aft


class TestWeibullAFTFit:
    """Tests for maximum likelihood estimation."""

    @pytest.fixture
    def large_data(self):
        """2000 subjects with both covariates, horizon censoring only."""
        scenario = StudyScenario(name="aft", n_samples=2000, beta_covariate=-0.03)
        cohort = SurvivalDataGenerator(scenario, seed=21).generate()
        return CensoringEngine().administrative_only(cohort)

    def test_recovers_generating_parameters(self, large_data):
        """Test intercept, shape and effects against the generating model."""
        fit = fit_aft_model(large_data)

        assert fit.feature_names == [INTERCEPT, TREATMENT, COVARIATE]
        assert fit.intercept == pytest.approx(3.0, abs=0.2)
        assert fit.shape == pytest.approx(0.8, abs=0.1)
        assert fit.coefficient(TREATMENT) == pytest.approx(0.7, abs=0.2)
        assert fit.coefficient(COVARIATE) == pytest.approx(-0.03, abs=0.02)

    def test_implied_cox_coefficients(self, large_data):
        """Test the -beta / scale conversion."""
        fit = fit_aft_model(large_data)
        implied = fit.implied_cox_coefficients()

        assert implied[TREATMENT] == pytest.approx(-fit.coefficient(TREATMENT) * fit.shape)
        assert implied[TREATMENT] == pytest.approx(-0.56, abs=0.15)

    def test_matches_lifelines(self, moderate_censoring_data):
        """Test estimates and log likelihood against lifelines."""
        data = moderate_censoring_data
        fit = fit_aft_model(data)

        df = pd.DataFrame(data.X, columns=data.feature_names)
        df["T"] = data.T
        df["E"] = data.E
        reference = WeibullAFTFitter().fit(df, duration_col="T", event_col="E")

        assert fit.intercept == pytest.approx(
            reference.params_.loc[("lambda_", "Intercept")], abs=1e-3
        )
        assert fit.coefficient(TREATMENT) == pytest.approx(
            reference.params_.loc[("lambda_", TREATMENT)], abs=1e-3
        )
        assert np.log(fit.shape) == pytest.approx(
            reference.params_.loc[("rho_", "Intercept")], abs=1e-3
        )
        assert fit.loglik == pytest.approx(reference.log_likelihood_, rel=1e-5)

    def test_intercept_only(self, horizon_only_data):
        """Test a fit without covariates."""
        fit = fit_weibull_aft(None, horizon_only_data.T, horizon_only_data.E)

        assert fit.feature_names == [INTERCEPT]
        assert fit.scale > 0
        assert fit.covariance.shape == (2, 2)

    def test_summary(self, horizon_only_data):
        """Test the survreg-style table."""
        summary = fit_aft_model(horizon_only_data).summary()

        assert list(summary.index) == [INTERCEPT, TREATMENT, COVARIATE, "Log(scale)"]
        assert np.all(summary["std_error"] > 0)

    def test_no_events_raises(self):
        """Test that an all-censored sample is degenerate."""
        with pytest.raises(DegenerateSampleError):
            fit_weibull_aft(None, [1.0, 2.0, 3.0], [0, 0, 0])


class TestWeibullAFTParameterisation:
    """Tests for the mapping from lifelines' (lambda_, rho_) parameters."""

    @pytest.fixture
    def fits(self, moderate_censoring_data):
        data = moderate_censoring_data
        df = pd.DataFrame(data.X, columns=data.feature_names)
        df["T"] = data.T
        df["E"] = data.E
        reference = WeibullAFTFitter().fit(df, duration_col="T", event_col="E")
        return fit_aft_model(data), reference

    def test_scale_is_inverse_shape(self, fits):
        """Test tau = exp(-rho_) and the standard error of log tau."""
        fit, reference = fits
        rho = reference.params_.loc[("rho_", "Intercept")]

        assert fit.scale == pytest.approx(np.exp(-rho), rel=1e-4)
        assert fit.log_scale_se == pytest.approx(
            reference.standard_errors_.loc[("rho_", "Intercept")], rel=1e-4
        )

    def test_covariance_flips_scale_row(self, fits):
        """Test that covariances with log tau change sign."""
        fit, reference = fits
        lifelines_cov = reference.variance_matrix_.loc[
            ("lambda_", TREATMENT), ("rho_", "Intercept")
        ]

        assert fit.covariance[1, -1] == pytest.approx(-lifelines_cov, rel=1e-4)
        assert fit.covariance[-1, 1] == pytest.approx(-lifelines_cov, rel=1e-4)
        np.testing.assert_allclose(fit.covariance, fit.covariance.T)

    def test_standard_errors_match_lifelines(self, fits):
        """Test coefficient standard errors in intercept-first order."""
        fit, reference = fits
        expected = [
            reference.standard_errors_.loc[("lambda_", name)]
            for name in ["Intercept", TREATMENT, COVARIATE]
        ]

        np.testing.assert_allclose(fit.standard_errors, expected, rtol=1e-4)

    def test_iterations_counted(self, fits):
        """Test that optimizer iterations are recorded."""
        fit, _ = fits

        assert fit.iterations >= 1

    def test_iteration_limit_raises(self, moderate_censoring_data):
        """Test that an exhausted optimizer raises with its iteration count."""
        with pytest.raises(ConvergenceError) as excinfo:
            fit_aft_model(moderate_censoring_data, max_iter=1)

        assert excinfo.value.iterations >= 1
        assert "did not converge" in str(excinfo.value)

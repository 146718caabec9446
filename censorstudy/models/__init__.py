"""Survival model fitting: Cox PH, Weibull AFT, Kaplan-Meier and log-rank."""

from .results import (
    ChiSquareTest,
    CoxFit,
    KaplanMeierFit,
    LogRankResult,
    PHTestResult,
    WeibullAFTFit,
)
from .checks import check_group_events, check_survival_inputs
from .cox import fit_cox_model, fit_cox_ph
from .aft import fit_aft_model, fit_weibull_aft
from .kaplan_meier import fit_kaplan_meier, fit_kaplan_meier_by_group
from .logrank import logrank_test

__all__ = [
    "ChiSquareTest",
    "CoxFit",
    "KaplanMeierFit",
    "LogRankResult",
    "PHTestResult",
    "WeibullAFTFit",
    "check_group_events",
    "check_survival_inputs",
    "fit_cox_model",
    "fit_cox_ph",
    "fit_aft_model",
    "fit_weibull_aft",
    "fit_kaplan_meier",
    "fit_kaplan_meier_by_group",
    "logrank_test",
]

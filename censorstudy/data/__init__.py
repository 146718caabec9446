"""Data generation and censoring for the censoring study."""

from .types import CovariateDesign, CensoringCause, Group, RunStatus, StudyStatus
from .scenarios import (
    CensoringCondition,
    StudyScenario,
    get_scenario,
    DEFAULT_CONDITIONS,
    PREDEFINED_SCENARIOS,
)
from .sampler import (
    assign_groups,
    draw_truncated_normal,
    draw_weibull_times,
    spawn_generators,
)
from .generator import LatentCohort, SurvivalData, SurvivalDataGenerator
from .censoring import (
    CensoringEngine,
    apply_censoring,
    calibrate_censoring_mean,
    censoring_summary,
    draw_censoring_times,
)

__all__ = [
    # Types
    "CovariateDesign",
    "CensoringCause",
    "Group",
    "RunStatus",
    "StudyStatus",
    # Scenarios
    "CensoringCondition",
    "StudyScenario",
    "get_scenario",
    "DEFAULT_CONDITIONS",
    "PREDEFINED_SCENARIOS",
    # Sampler
    "assign_groups",
    "draw_truncated_normal",
    "draw_weibull_times",
    "spawn_generators",
    # Generator
    "LatentCohort",
    "SurvivalData",
    "SurvivalDataGenerator",
    # Censoring
    "CensoringEngine",
    "apply_censoring",
    "calibrate_censoring_mean",
    "censoring_summary",
    "draw_censoring_times",
]

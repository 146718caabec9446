"""Proportional hazards diagnostics and estimate-vs-truth comparison."""

from .schoenfeld import (
    TIME_TRANSFORMS,
    check_proportional_hazards,
    cox_zph,
    global_ph_statistic,
)
from .comparison import aft_verification, compare_to_truth, comparison_table

__all__ = [
    "TIME_TRANSFORMS",
    "check_proportional_hazards",
    "cox_zph",
    "global_ph_statistic",
    "aft_verification",
    "compare_to_truth",
    "comparison_table",
]

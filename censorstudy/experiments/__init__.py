"""Study orchestration and management."""

from .config import StudyConfig, PREDEFINED_STUDIES, get_study
from .run import ConditionResult, ConditionRun
from .logging import (
    CoefficientCSVWriter,
    CensoringCSVWriter,
    ResultCSVWriter,
    StudyLogger,
)
from .runner import StudyRunner, run_condition, run_study, study_streams
from .replication import run_replications, save_replications, summarize_replications

__all__ = [
    "StudyConfig",
    "PREDEFINED_STUDIES",
    "get_study",
    "ConditionResult",
    "ConditionRun",
    "CoefficientCSVWriter",
    "CensoringCSVWriter",
    "ResultCSVWriter",
    "StudyLogger",
    "StudyRunner",
    "run_condition",
    "run_study",
    "study_streams",
    "run_replications",
    "save_replications",
    "summarize_replications",
]

"""Core enumerations for the censoring study."""

from enum import Enum, IntEnum, auto


class Group(IntEnum):
    """Treatment arm. Values are the 0/1 codes used in design matrices."""

    PLACEBO = 0
    TREATMENT = 1


class CovariateDesign(Enum):
    """Which covariates enter the generating model and the fitted models."""

    ONE_COVARIATE = auto()  # treatment only
    TWO_COVARIATE = auto()  # treatment + cigarettes/day


class CensoringCause(IntEnum):
    """Why an observation ended."""

    EVENT = 0
    ADMINISTRATIVE = 1  # study horizon reached
    RANDOM = 2  # independent censoring time came first


class StudyStatus(Enum):
    """Status of a full study run."""

    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    PARTIAL = auto()
    FAILED = auto()


class RunStatus(Enum):
    """Status of a single design x condition run."""

    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    SKIPPED = auto()
